import typing

from entity_hashmap.errors import DataFormatError, InvalidArgument


DELIMITER = ":"


def key_prefix(collection: str) -> str:
    return f"{collection}{DELIMITER}"


def build_key(collection: str, key_fields: typing.Sequence["SimpleField"], values: typing.Any) -> str:
    """Builds ``collection:value1:value2...`` from values ordered like ``key_fields``.

    Every value has to read back as its key field's declared type. Values are not
    escaped, a value containing the delimiter yields an ambiguous key.
    """
    # imported here, types depends on metadata which depends on this module
    from entity_hashmap.types import from_storage, to_storage

    names = ", ".join(field.name for field in key_fields)
    if not isinstance(values, (tuple, list)):
        raise InvalidArgument(f"Key of {collection} must be a tuple of values, got {type(values).__name__}")
    if len(values) != len(key_fields):
        raise InvalidArgument(f"Key of {collection} needs {len(key_fields)} values ({names}), got {len(values)}")

    parts = []
    for field, value in zip(key_fields, values):
        if value is None:
            raise InvalidArgument(f"Key of {collection} can not contain None - {values!r}")
        raw = to_storage(value)
        try:
            from_storage(field, raw)
        except DataFormatError as error:
            raise InvalidArgument(f"Key of {collection} has malformed {field.name} - {value!r}") from error
        parts.append(raw)
    return collection + "".join(f"{DELIMITER}{part}" for part in parts)
