import abc
import typing

from entity_hashmap.entity import Entity, as_record
from entity_hashmap.metadata import EntityMetadata, build
from entity_hashmap.reading import ReadEngine, Record, RecordCursor
from entity_hashmap.settings import EngineSettings
from entity_hashmap.storages import StoreClient
from entity_hashmap.writing import WriteEngine


KeyValues = typing.Sequence[typing.Any]
Fields = typing.Optional[typing.Iterable[str]]


class ReadOnlyRepository(abc.ABC):
    @abc.abstractmethod
    def read_by_key(self, key_values: KeyValues, fields: Fields = None, include: Fields = None) -> Record:
        pass

    @abc.abstractmethod
    def read_all(self, fields: Fields = None, include: Fields = None) -> typing.Iterable[Record]:
        pass


class Repository(ReadOnlyRepository):
    @abc.abstractmethod
    def batch_insert(self, records: typing.Iterable[typing.Mapping[str, typing.Any]]) -> None:
        pass

    @abc.abstractmethod
    def update(self, key_values: KeyValues, partial: typing.Mapping[str, typing.Any]) -> None:
        pass

    @abc.abstractmethod
    def delete(self, key_values: KeyValues) -> None:
        pass


class HashRepository(Repository):
    """CRUD over one entity type stored as flat hashes.

    Holds nothing but the metadata and the store client, so one instance can be
    shared between threads as long as the client can.
    """

    def __init__(
        self, metadata: EntityMetadata, client: StoreClient, settings: typing.Optional[EngineSettings] = None
    ) -> None:
        self.metadata = metadata
        self.settings = settings or EngineSettings()
        self._reader = ReadEngine(metadata, client)
        self._writer = WriteEngine(metadata, client, self.settings)

    @classmethod
    def for_entity(
        cls, entity_cls: typing.Type[Entity], client: StoreClient, settings: typing.Optional[EngineSettings] = None
    ) -> "HashRepository":
        return cls(build(entity_cls), client, settings)

    def read_by_key(self, key_values: KeyValues, fields: Fields = None, include: Fields = None) -> Record:
        return self._reader.read_by_key(key_values, fields, include)

    def read_all(self, fields: Fields = None, include: Fields = None) -> RecordCursor:
        return self._reader.read_all(fields, include)

    def batch_insert(self, records: typing.Iterable[typing.Union[Entity, typing.Mapping[str, typing.Any]]]) -> None:
        self._writer.batch_insert(as_record(record) if isinstance(record, Entity) else record for record in records)

    def insert(self, record: typing.Union[Entity, typing.Mapping[str, typing.Any]]) -> None:
        self.batch_insert([record])

    def update(self, key_values: KeyValues, partial: typing.Mapping[str, typing.Any]) -> None:
        self._writer.update(key_values, partial)

    def delete(self, key_values: KeyValues) -> None:
        self._writer.delete(key_values)
