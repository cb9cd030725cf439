import typing

import redis
import structlog
from redis.exceptions import RedisError

from entity_hashmap.errors import NotFound, StoreError
from entity_hashmap.storages import StoreClient


logger = structlog.get_logger(__name__)


def _escape_pattern(prefix: str) -> str:
    # SCAN MATCH uses glob syntax
    return "".join(f"\\{char}" if char in "*?[]\\" else char for char in prefix)


class RedisHashStore(StoreClient):
    """Store client over redis hashes, one hash per record."""

    _SET_IF_ABSENT_LUA = """
    if redis.call('EXISTS', KEYS[1]) == 1 then
        return 0
    end
    redis.call('HSET', KEYS[1], unpack(ARGV))
    return 1
    """

    def __init__(self, client: redis.Redis, scan_count: int = 500) -> None:
        self._redis = client
        self._scan_count = scan_count
        self._set_if_absent = client.register_script(self._SET_IF_ABSENT_LUA)

    @classmethod
    def from_url(cls, url: str, **kwargs: typing.Any) -> "RedisHashStore":
        return cls(redis.Redis.from_url(url, decode_responses=True, **kwargs))

    def _call(self, command: str, *args: typing.Any) -> typing.Any:
        try:
            return getattr(self._redis, command)(*args)
        except RedisError as error:
            logger.warning("redis_command_failed", command=command, error=str(error))
            raise StoreError(f"Redis {command} failed: {error}") from error

    def exists(self, key: str) -> bool:
        return bool(self._call("exists", key))

    def get_all_fields(self, key: str) -> typing.Dict[str, str]:
        # a missing key and an empty hash are the same thing in redis
        values = self._call("hgetall", key)
        if not values:
            raise NotFound(key)
        return values

    def get_fields(self, key: str, names: typing.Sequence[str]) -> typing.Dict[str, typing.Optional[str]]:
        if not self.exists(key):
            raise NotFound(key)
        if not names:
            return {}
        return dict(zip(names, self._call("hmget", key, list(names))))

    def set_fields(self, key: str, values: typing.Mapping[str, str]) -> None:
        if values:
            self._call("hset", key, None, None, dict(values))

    def set_field(self, key: str, name: str, value: str) -> None:
        self._call("hset", key, name, value)

    def delete(self, *keys: str) -> None:
        if keys:
            self._call("delete", *keys)

    def list_keys(self, prefix: str) -> typing.Iterator[str]:
        # SCAN may return a key more than once
        seen: typing.Set[str] = set()
        try:
            for key in self._redis.scan_iter(match=f"{_escape_pattern(prefix)}*", count=self._scan_count):
                if key not in seen:
                    seen.add(key)
                    yield key
        except RedisError as error:
            raise StoreError(f"Redis SCAN failed: {error}") from error

    def set_fields_if_absent(self, key: str, values: typing.Mapping[str, str]) -> bool:
        arguments = [item for pair in values.items() for item in pair]
        if not arguments:
            raise StoreError(f"Refusing to create empty hash under {key!r}")
        try:
            return bool(self._set_if_absent(keys=[key], args=arguments))
        except RedisError as error:
            raise StoreError(f"Redis set-if-absent failed: {error}") from error
