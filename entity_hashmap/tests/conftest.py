import pytest
from _pytest.config.argparsing import Parser

from entity_hashmap import DataType, EntityMetadata, HashRepository, MemoryStore, RelationField, SimpleField


def pytest_addoption(parser: Parser) -> None:
    parser.addoption("--redis-url", action="store", default=None)


@pytest.fixture()
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture()
def tag_metadata() -> EntityMetadata:
    return EntityMetadata(
        "tag",
        ["id"],
        [SimpleField("id", DataType.INT), SimpleField("name", DataType.STRING), SimpleField("userId", DataType.INT)],
    )


@pytest.fixture()
def user_metadata(tag_metadata: EntityMetadata) -> EntityMetadata:
    return EntityMetadata(
        "User",
        ["id"],
        [
            SimpleField("id", DataType.INT),
            SimpleField("name", DataType.STRING),
            SimpleField("score", DataType.FLOAT),
            SimpleField("active", DataType.BOOLEAN),
            RelationField("tag", tag_metadata, DataType.INT),
        ],
    )


@pytest.fixture()
def users(user_metadata: EntityMetadata, store: MemoryStore) -> HashRepository:
    return HashRepository(user_metadata, store)


@pytest.fixture()
def tags(tag_metadata: EntityMetadata, store: MemoryStore) -> HashRepository:
    return HashRepository(tag_metadata, store)
