import abc
import typing

import attr


class EntityWithoutIdentity(TypeError):
    pass


T = typing.TypeVar("T")


class Identity(typing.Generic[T]):
    @classmethod
    def is_identity(cls, field: attr.Attribute) -> bool:
        return getattr(field.type, "__origin__", None) == cls


class EntityMeta(abc.ABCMeta):
    def __new__(mcs, name: str, bases: tuple, namespace: dict):
        cls = super().__new__(mcs, name, bases, namespace)
        if name == "Entity":
            return cls
        attr_cls = attr.s(auto_attribs=True)(cls)
        if not any(Identity.is_identity(field) for field in attr.fields(attr_cls)):
            raise EntityWithoutIdentity(name)
        return attr_cls


class Entity(metaclass=EntityMeta):
    pass


def as_record(entity: Entity) -> typing.Dict[str, typing.Any]:
    # relation lists are not persisted on the owning record
    return {
        field.name: getattr(entity, field.name)
        for field in attr.fields(type(entity))
        if not isinstance(getattr(entity, field.name), list)
    }
