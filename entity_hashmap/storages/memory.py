import threading
import typing

from entity_hashmap.errors import NotFound
from entity_hashmap.storages import StoreClient


class MemoryStore(StoreClient):
    def __init__(self) -> None:
        self._hashes: typing.Dict[str, typing.Dict[str, str]] = {}
        self._lock = threading.Lock()

    def exists(self, key: str) -> bool:
        with self._lock:
            return key in self._hashes

    def get_all_fields(self, key: str) -> typing.Dict[str, str]:
        with self._lock:
            try:
                return dict(self._hashes[key])
            except KeyError:
                raise NotFound(key)

    def get_fields(self, key: str, names: typing.Sequence[str]) -> typing.Dict[str, typing.Optional[str]]:
        with self._lock:
            try:
                stored = self._hashes[key]
            except KeyError:
                raise NotFound(key)
            return {name: stored.get(name) for name in names}

    def set_fields(self, key: str, values: typing.Mapping[str, str]) -> None:
        with self._lock:
            self._hashes.setdefault(key, {}).update(values)

    def set_field(self, key: str, name: str, value: str) -> None:
        with self._lock:
            self._hashes.setdefault(key, {})[name] = value

    def delete(self, *keys: str) -> None:
        with self._lock:
            for key in keys:
                self._hashes.pop(key, None)

    def list_keys(self, prefix: str) -> typing.List[str]:
        with self._lock:
            return [key for key in self._hashes if key.startswith(prefix)]

    def set_fields_if_absent(self, key: str, values: typing.Mapping[str, str]) -> bool:
        with self._lock:
            if key in self._hashes:
                return False
            self._hashes[key] = dict(values)
            return True
