import enum
import os
import typing

import attr

from entity_hashmap.errors import ConfigError


class InsertMode(enum.Enum):
    # exists() followed by set_fields(), two concurrent inserts of one key may both write
    CHECK_THEN_SET = "check_then_set"
    # single set_fields_if_absent() round-trip, needs store support
    ATOMIC = "atomic"


class UpdatePolicy(enum.Enum):
    # whatever the store does when setting a field of a missing key (redis creates it)
    STORE_DEFINED = "store_defined"
    REQUIRE_EXISTING = "require_existing"


@attr.s(auto_attribs=True, frozen=True)
class EngineSettings:
    insert_mode: InsertMode = InsertMode.CHECK_THEN_SET
    update_policy: UpdatePolicy = UpdatePolicy.STORE_DEFINED

    @classmethod
    def from_env(cls, environ: typing.Optional[typing.Mapping[str, str]] = None) -> "EngineSettings":
        environ = os.environ if environ is None else environ
        return cls(
            insert_mode=_parse(InsertMode, environ.get("ENTITY_HASHMAP_INSERT_MODE"), InsertMode.CHECK_THEN_SET),
            update_policy=_parse(
                UpdatePolicy, environ.get("ENTITY_HASHMAP_UPDATE_POLICY"), UpdatePolicy.STORE_DEFINED
            ),
        )


E = typing.TypeVar("E", bound=enum.Enum)


def _parse(enum_cls: typing.Type[E], raw: typing.Optional[str], default: E) -> E:
    if raw is None or not raw.strip():
        return default
    try:
        return enum_cls(raw.strip().lower())
    except ValueError as error:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ConfigError(f"Invalid {enum_cls.__name__} {raw!r}, expected one of: {allowed}") from error
