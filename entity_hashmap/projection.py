import typing

import attr

from entity_hashmap.metadata import EntityMetadata, SimpleField


RELATION_MARKER = "[]."


@attr.s(auto_attribs=True, frozen=True)
class Projection:
    """Which simple fields and which relation sub-fields a caller asked for.

    Asking for no simple field at all means asking for every simple field.
    Key fields are always fetched, ``strip`` removes those that were not asked for.
    """

    metadata: EntityMetadata
    requested: typing.Tuple[str, ...]
    relations: typing.Dict[str, typing.Tuple[str, ...]] = attr.Factory(dict)

    @classmethod
    def parse(
        cls,
        metadata: EntityMetadata,
        fields: typing.Optional[typing.Iterable[str]] = None,
        include: typing.Optional[typing.Iterable[str]] = None,
    ) -> "Projection":
        fields = list(fields or ())
        simple_names = [
            name for name in fields if RELATION_MARKER not in name and not metadata.field(name).is_relation
        ]
        if not simple_names:
            simple_names = [field.name for field in metadata.simple_fields]

        for name in fields:
            if RELATION_MARKER in name:
                relation_name, _, sub_field = name.partition(RELATION_MARKER)
                metadata.relation(relation_name).target.field(sub_field)

        relations = {}
        for relation_name in include or ():
            metadata.relation(relation_name)
            prefix = f"{relation_name}{RELATION_MARKER}"
            sub_fields = tuple(name[len(prefix):] for name in fields if name.startswith(prefix))
            relations[relation_name] = sub_fields

        return cls(metadata, tuple(dict.fromkeys(simple_names)), relations)

    @property
    def simple_fields(self) -> typing.List[SimpleField]:
        """Requested simple fields plus every key field."""
        names = list(self.requested)
        names.extend(name for name in self.metadata.key_fields if name not in self.requested)
        return [self.metadata.field(name) for name in names]

    def relation_fields(self, relation_name: str) -> typing.Tuple[str, ...]:
        return self.relations.get(relation_name, ())

    def strip(self, record: typing.Dict[str, typing.Any]) -> typing.Dict[str, typing.Any]:
        for name in self.metadata.key_fields:
            if name not in self.requested:
                record.pop(name, None)
        return record
