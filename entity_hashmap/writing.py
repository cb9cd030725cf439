import typing

import structlog

from entity_hashmap.errors import AlreadyExists, HashMapError, NotFound
from entity_hashmap.keys import build_key
from entity_hashmap.metadata import EntityMetadata, FieldVisitor, SimpleField
from entity_hashmap.settings import EngineSettings, InsertMode, UpdatePolicy
from entity_hashmap.storages import StoreClient
from entity_hashmap.types import from_storage, to_storage


logger = structlog.get_logger(__name__)

Record = typing.Mapping[str, typing.Any]


class StoreRecordVisitor(FieldVisitor):
    """Stringifies the present simple fields of a record.

    Relation fields are never stored on the owning record. Every value is parsed
    back right away, so nothing is written that could not be read.
    """

    def __init__(self, record: Record) -> None:
        self._record = record
        self._result: typing.Dict[str, str] = {}

    @property
    def result(self) -> typing.Dict[str, str]:
        return self._result

    def visit_simple_field(self, field: SimpleField) -> None:
        value = self._record.get(field.name)
        if value is None:
            return
        raw = to_storage(value)
        from_storage(field, raw)
        self._result[field.name] = raw


class WriteEngine:
    def __init__(self, metadata: EntityMetadata, client: StoreClient, settings: EngineSettings) -> None:
        self.metadata = metadata
        self.client = client
        self.settings = settings

    def key_for(self, record: Record) -> str:
        values = [record.get(name) for name in self.metadata.key_fields]
        return build_key(self.metadata.collection, self.metadata.identity_fields, values)

    def store_record(self, record: Record) -> typing.Dict[str, str]:
        for name in record:
            self.metadata.field(name)
        visitor = StoreRecordVisitor(record)
        self.metadata.traverse(visitor)
        return visitor.result

    def batch_insert(self, records: typing.Iterable[Record]) -> None:
        """Inserts records in order, stopping at the first duplicate key.

        Records are all validated before the first write, but records written
        before a duplicate is met stay written.
        """
        try:
            prepared = [(self.key_for(record), self.store_record(record)) for record in records]
            for key, values in prepared:
                self._insert(key, values)
        except HashMapError as error:
            logger.warning(
                "insert_failed", collection=self.metadata.collection, error=str(error), kind=type(error).__name__
            )
            raise

    def _insert(self, key: str, values: typing.Dict[str, str]) -> None:
        if self.settings.insert_mode is InsertMode.ATOMIC:
            written = self.client.set_fields_if_absent(key, values)
        else:
            # not atomic, a concurrent insert of the same key may slip in between
            written = not self.client.exists(key)
            if written:
                self.client.set_fields(key, values)

        if not written:
            raise AlreadyExists(key)
        logger.debug("inserted", key=key, fields=sorted(values))

    def update(self, key_values: typing.Sequence[typing.Any], partial: Record) -> None:
        try:
            self._update(key_values, partial)
        except HashMapError as error:
            logger.warning(
                "update_failed", collection=self.metadata.collection, error=str(error), kind=type(error).__name__
            )
            raise

    def _update(self, key_values: typing.Sequence[typing.Any], partial: Record) -> None:
        key = build_key(self.metadata.collection, self.metadata.identity_fields, key_values)
        values = self.store_record(partial)
        if self.settings.update_policy is UpdatePolicy.REQUIRE_EXISTING and not self.client.exists(key):
            raise NotFound(key)
        # TODO: relation fields are ignored on update, writing related records would need their keys
        for name, value in values.items():
            self.client.set_field(key, name, value)
        logger.debug("updated", key=key, fields=sorted(values))

    def delete(self, key_values: typing.Sequence[typing.Any]) -> None:
        try:
            key = build_key(self.metadata.collection, self.metadata.identity_fields, key_values)
            self.client.delete(key)
        except HashMapError as error:
            logger.warning(
                "delete_failed", collection=self.metadata.collection, error=str(error), kind=type(error).__name__
            )
            raise
        logger.debug("deleted", key=key)
