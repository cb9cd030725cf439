import typing

import attr
import structlog

from entity_hashmap.errors import HashMapError, InvalidArgument
from entity_hashmap.keys import build_key
from entity_hashmap.metadata import EntityMetadata, FieldVisitor, RelationField, SimpleField
from entity_hashmap.projection import Projection
from entity_hashmap.storages import StoreClient
from entity_hashmap.types import from_storage


logger = structlog.get_logger(__name__)

Record = typing.Dict[str, typing.Any]


class RecordReadingVisitor(FieldVisitor):
    """Builds a typed record out of a raw hash, resolving requested relations."""

    def __init__(
        self, engine: "ReadEngine", projection: Projection, raw: typing.Mapping[str, typing.Optional[str]]
    ) -> None:
        self._engine = engine
        self._projection = projection
        self._raw = raw
        self._result: Record = {}

    @property
    def result(self) -> Record:
        return self._result

    def visit_simple_field(self, field: SimpleField) -> None:
        if field.name in self._raw:
            self._result[field.name] = from_storage(field, self._raw[field.name])

    def visit_relation_field(self, field: RelationField) -> None:
        sub_fields = self._projection.relation_fields(field.name)
        if not sub_fields:
            return
        owner_keys = {
            name: from_storage(self._engine.metadata.field(name), self._raw.get(name))
            for name in self._engine.metadata.key_fields
        }
        self._result[field.name] = self._engine.resolve_relation(field, sub_fields, owner_keys)


@attr.s(auto_attribs=True)
class RecordCursor:
    """Every record of a collection, fetched one key at a time.

    Each iteration starts a fresh scan. A failure on any key ends the iteration.
    """

    engine: "ReadEngine"
    projection: Projection

    def __iter__(self) -> typing.Generator[Record, None, None]:
        def iterate() -> typing.Generator[Record, None, None]:
            for key in self.engine.client.list_keys(self.engine.metadata.key_prefix):
                yield self.engine.read_key(key, self.projection)

        return iterate()


class ReadEngine:
    def __init__(self, metadata: EntityMetadata, client: StoreClient) -> None:
        self.metadata = metadata
        self.client = client

    def read_by_key(
        self,
        key_values: typing.Sequence[typing.Any],
        fields: typing.Optional[typing.Iterable[str]] = None,
        include: typing.Optional[typing.Iterable[str]] = None,
    ) -> Record:
        try:
            projection = Projection.parse(self.metadata, fields, include)
            key = build_key(self.metadata.collection, self.metadata.identity_fields, key_values)
        except InvalidArgument as error:
            logger.warning("read_rejected", collection=self.metadata.collection, error=str(error))
            raise
        return self.read_key(key, projection)

    def read_all(
        self, fields: typing.Optional[typing.Iterable[str]] = None, include: typing.Optional[typing.Iterable[str]] = None
    ) -> RecordCursor:
        try:
            projection = Projection.parse(self.metadata, fields, include)
        except InvalidArgument as error:
            logger.warning("read_rejected", collection=self.metadata.collection, error=str(error))
            raise
        return RecordCursor(self, projection)

    def read_key(self, key: str, projection: Projection) -> Record:
        logger.debug("read_record", key=key, fields=list(projection.requested))
        try:
            raw = self._fetch(key, projection)
            visitor = RecordReadingVisitor(self, projection, raw)
            self.metadata.traverse(visitor)
        except HashMapError as error:
            logger.warning("read_failed", key=key, error=str(error), kind=type(error).__name__)
            raise
        return projection.strip(visitor.result)

    def _fetch(self, key: str, projection: Projection) -> typing.Dict[str, typing.Optional[str]]:
        names = [field.name for field in projection.simple_fields]
        if len(names) < len(self.metadata.simple_fields):
            return self.client.get_fields(key, names)
        stored = self.client.get_all_fields(key)
        return {name: stored.get(name) for name in names}

    def resolve_relation(
        self, relation: RelationField, sub_fields: typing.Sequence[str], owner_keys: Record
    ) -> typing.List[Record]:
        """Scans the whole related collection and keeps records whose foreign keys match.

        Costs one round-trip per related record, order follows the store's key listing.
        """
        if any(value is None for value in owner_keys.values()):
            return []
        target = relation.target
        foreign_keys = self.metadata.foreign_keys(relation)
        names = list(dict.fromkeys([*sub_fields, *(foreign.name for _, foreign in foreign_keys)]))
        logger.debug("resolve_relation", relation=relation.name, collection=target.collection, fields=names)

        related = []
        for candidate_key in self.client.list_keys(target.key_prefix):
            raw = self.client.get_fields(candidate_key, names)
            candidate = {name: from_storage(target.field(name), raw.get(name)) for name in sub_fields}
            if all(
                from_storage(foreign, raw.get(foreign.name)) == owner_keys[own.name] for own, foreign in foreign_keys
            ):
                related.append(candidate)
        return related
