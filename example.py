import typing

import redis

from entity_hashmap import Entity, Identity, HashRepository, AlreadyExists, NotFound
from entity_hashmap.logging_config import configure_logging
from entity_hashmap.storages.redis_hash import RedisHashStore


class Tag(Entity):
    id: Identity[int]
    name: str
    userId: int


class User(Entity):
    id: Identity[int]
    name: str
    tag: typing.List[Tag]


configure_logging("debug")
store = RedisHashStore(redis.Redis.from_url("redis://localhost:6379/0", decode_responses=True))
users = HashRepository.for_entity(User, store)
tags = HashRepository.for_entity(Tag, store)

users.insert(User(id=1, name="Ann", tag=[]))
tags.batch_insert([Tag(id=10, name="red", userId=1), Tag(id=11, name="blue", userId=1)])

try:
    users.insert(User(id=1, name="Bob", tag=[]))
except AlreadyExists as error:
    print(error)

users.update([1], {"name": "Carl"})
reloaded = users.read_by_key([1], ["name", "tag[].name"], include=["tag"])
assert reloaded["name"] == "Carl", reloaded
print(reloaded)

users.delete([1])
tags.delete([10])
tags.delete([11])
try:
    users.read_by_key([1])
except NotFound as error:
    print(error)
