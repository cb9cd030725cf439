import re
import typing
from functools import singledispatch

from entity_hashmap.errors import DataFormatError
from entity_hashmap.metadata import DataType, Field


@singledispatch
def to_storage(argument: typing.Any) -> str:
    return str(argument)


@to_storage.register(str)
def _(argument: str) -> str:
    return argument


@to_storage.register(bool)
def _(argument: bool) -> str:
    return "true" if argument else "false"


@to_storage.register(int)
def _(argument: int) -> str:
    return format(argument, "d")


@to_storage.register(float)
def _(argument: float) -> str:
    return repr(argument)


_INT = re.compile(r"-?[0-9]+")
_FLOAT = re.compile(r"-?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][-+]?[0-9]+)?")


def _parse_int(raw: str) -> int:
    if not _INT.fullmatch(raw):
        raise ValueError("expected a base-10 integer")
    return int(raw, 10)


def _parse_float(raw: str) -> float:
    if not _FLOAT.fullmatch(raw):
        raise ValueError("expected a decimal or exponential number")
    return float(raw)


def _parse_boolean(raw: str) -> bool:
    try:
        return {"true": True, "false": False}[raw]
    except KeyError:
        raise ValueError("expected 'true' or 'false'")


def _parse_string(raw: str) -> str:
    return raw


mapping: typing.Dict[DataType, typing.Callable[[str], typing.Any]] = {
    DataType.INT: _parse_int,
    DataType.FLOAT: _parse_float,
    DataType.BOOLEAN: _parse_boolean,
    DataType.STRING: _parse_string,
}


def from_storage(field: Field, raw: typing.Optional[str]) -> typing.Any:
    """Converts a raw hash value into the type declared for ``field``.

    A missing value stays ``None``. Relation fields convert with the data type
    of the key they reference.
    """
    if raw is None:
        return None

    data_type = field.storage_type
    try:
        parse = mapping[data_type]
    except KeyError:
        raise DataFormatError(field.name, raw, f"unsupported data type {data_type}")

    try:
        return parse(raw)
    except (TypeError, ValueError) as error:
        raise DataFormatError(field.name, raw, str(error)) from error
