class HashMapError(Exception):
    pass


class ConfigError(HashMapError):
    pass


class InvalidArgument(HashMapError, ValueError):
    pass


class UnknownField(InvalidArgument):
    def __init__(self, entity_name: str, field_name: str) -> None:
        super().__init__(f"{entity_name} has no field {field_name!r}")
        self.entity_name = entity_name
        self.field_name = field_name


class NotFound(HashMapError, KeyError):
    def __init__(self, key: str) -> None:
        super().__init__(key)
        self.key = key

    def __str__(self) -> str:
        return f"No record under key {self.key!r}"


class AlreadyExists(HashMapError):
    def __init__(self, key: str) -> None:
        super().__init__(f"Record under key {key!r} already exists")
        self.key = key


class DataFormatError(HashMapError, ValueError):
    def __init__(self, field_name: str, raw: object, reason: str) -> None:
        super().__init__(f"Can not convert {raw!r} of field {field_name!r}: {reason}")
        self.field_name = field_name
        self.raw = raw


class StoreError(HashMapError):
    pass
