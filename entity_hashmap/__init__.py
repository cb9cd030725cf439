from entity_hashmap.entity import Entity, Identity
from entity_hashmap.errors import (
    AlreadyExists,
    ConfigError,
    DataFormatError,
    HashMapError,
    InvalidArgument,
    NotFound,
    StoreError,
    UnknownField,
)
from entity_hashmap.metadata import DataType, EntityMetadata, RelationField, SimpleField, build
from entity_hashmap.repository import HashRepository, ReadOnlyRepository, Repository
from entity_hashmap.settings import EngineSettings, InsertMode, UpdatePolicy
from entity_hashmap.storages import StoreClient
from entity_hashmap.storages.memory import MemoryStore
