import enum
import typing

import attr
import inflection

from entity_hashmap.entity import Entity, Identity
from entity_hashmap.errors import InvalidArgument, UnknownField
from entity_hashmap.keys import key_prefix


class DataType(enum.Enum):
    INT = "int"
    STRING = "string"
    FLOAT = "float"
    BOOLEAN = "boolean"


class FieldVisitor:
    def traverse(self, metadata: "EntityMetadata") -> None:
        for field in metadata.fields:
            field.accept(self)

    def visit_simple_field(self, field: "SimpleField") -> None:
        pass

    def visit_relation_field(self, field: "RelationField") -> None:
        pass


@attr.s(auto_attribs=True, frozen=True)
class SimpleField:
    name: str
    data_type: DataType

    is_relation = False

    @property
    def storage_type(self) -> DataType:
        return self.data_type

    def accept(self, visitor: FieldVisitor) -> None:
        visitor.visit_simple_field(self)


@attr.s(auto_attribs=True, frozen=True)
class RelationField:
    """Zero or more records of another entity, matched on the owner's key fields.

    Related records carry one foreign key field per owner key field, named
    ``foreign_key_prefix + UpperCamel(key_field)``. When no prefix is given the
    owning entity's name in lowerCamel is used, so ``User.id`` is matched against
    ``userId`` on the related records.
    """

    name: str
    target: "EntityMetadata"
    ref_data_type: typing.Optional[DataType] = None
    foreign_key_prefix: typing.Optional[str] = None

    is_relation = True

    @property
    def storage_type(self) -> typing.Optional[DataType]:
        return self.ref_data_type

    def accept(self, visitor: FieldVisitor) -> None:
        visitor.visit_relation_field(self)


Field = typing.Union[SimpleField, RelationField]


def upper_first(name: str) -> str:
    return name[:1].upper() + name[1:]


@attr.s(auto_attribs=True, frozen=True)
class EntityMetadata:
    name: str
    key_fields: typing.Tuple[str, ...] = attr.ib(converter=tuple)
    fields: typing.Tuple[Field, ...] = attr.ib(converter=tuple)
    collection: str = attr.ib(default=attr.Factory(lambda self: upper_first(self.name), takes_self=True))

    def __attrs_post_init__(self) -> None:
        names = [field.name for field in self.fields]
        if len(names) != len(set(names)):
            raise InvalidArgument(f"Duplicated field names in {self.name}: {names}")
        if not self.key_fields:
            raise InvalidArgument(f"{self.name} declares no key fields")
        for name in self.key_fields:
            if self.field(name).is_relation:
                raise InvalidArgument(f"Key field {name!r} of {self.name} must be a simple field")

    def field(self, name: str) -> Field:
        for field in self.fields:
            if field.name == name:
                return field
        raise UnknownField(self.name, name)

    @property
    def simple_fields(self) -> typing.List[SimpleField]:
        return [field for field in self.fields if not field.is_relation]

    @property
    def relation_fields(self) -> typing.List[RelationField]:
        return [field for field in self.fields if field.is_relation]

    @property
    def identity_fields(self) -> typing.List[SimpleField]:
        return [self.field(name) for name in self.key_fields]

    @property
    def key_prefix(self) -> str:
        return key_prefix(self.collection)

    def relation(self, name: str) -> RelationField:
        field = self.field(name)
        if not field.is_relation:
            raise InvalidArgument(f"{self.name}.{name} is not a relation field")
        return field

    def foreign_keys(self, relation: RelationField) -> typing.List[typing.Tuple[SimpleField, SimpleField]]:
        """Pairs of (own key field, matching field on the related records)."""
        prefix = relation.foreign_key_prefix
        if prefix is None:
            prefix = inflection.camelize(self.name, False)
        pairs = []
        for name in self.key_fields:
            key_field = self.field(name)
            pairs.append((key_field, SimpleField(f"{prefix}{inflection.camelize(name)}", key_field.data_type)))
        return pairs

    def traverse(self, visitor: FieldVisitor) -> None:
        visitor.traverse(self)


_native_types = {int: DataType.INT, str: DataType.STRING, float: DataType.FLOAT, bool: DataType.BOOLEAN}


def _is_generic(field_type: typing.Type) -> bool:
    return hasattr(field_type, "__origin__")


def _get_wrapped_type(wrapped_type: typing.Type) -> typing.Type:
    return wrapped_type.__args__[0]


def _is_field_nullable(field_type: typing.Type) -> bool:
    return field_type.__origin__ == typing.Union and isinstance(None, field_type.__args__[1])


def _is_list_of_entities(field_type: typing.Type) -> bool:
    if not _is_generic(field_type) or field_type.__origin__ not in (list, typing.List):
        return False
    wrapped = _get_wrapped_type(field_type)
    return isinstance(wrapped, type) and issubclass(wrapped, Entity)


def _data_type(native: typing.Type) -> DataType:
    try:
        return _native_types[native]
    except KeyError:
        raise TypeError(f"Unsupported type - {native}")


def build(root: typing.Type[Entity]) -> EntityMetadata:
    """Derives metadata from an entity class.

    ``Identity[...]`` fields become key fields in declaration order and
    ``typing.List[SomeEntity]`` fields become relations to ``SomeEntity``.
    """
    in_progress: typing.Set[typing.Type[Entity]] = set()

    def parse(entity_cls: typing.Type[Entity]) -> EntityMetadata:
        if entity_cls in in_progress:
            raise NotImplementedError("Probably recursive, not supported")
        in_progress.add(entity_cls)

        key_fields = []
        fields: typing.List[Field] = []
        for attribute in attr.fields(entity_cls):
            field_type = attribute.type
            if _is_list_of_entities(field_type):
                target = parse(_get_wrapped_type(field_type))
                ref_data_type = target.field(target.key_fields[0]).data_type
                fields.append(RelationField(attribute.name, target, ref_data_type))
                continue

            if _is_generic(field_type):
                if Identity.is_identity(attribute):
                    key_fields.append(attribute.name)
                    field_type = _get_wrapped_type(field_type)
                elif _is_field_nullable(field_type):
                    field_type = _get_wrapped_type(field_type)
                else:
                    raise TypeError(f"Unhandled Generic type - {field_type}")

            fields.append(SimpleField(attribute.name, _data_type(field_type)))

        in_progress.discard(entity_cls)
        if not key_fields:
            raise InvalidArgument(f"{entity_cls.__name__} declares no key fields")
        return EntityMetadata(entity_cls.__name__, key_fields, fields)

    return parse(root)
