import abc
import typing

from entity_hashmap.errors import StoreError


class StoreClient(abc.ABC):
    """Flat hash store the engines talk to.

    Keys map to string-keyed, string-valued hashes. ``get_all_fields`` and
    ``get_fields`` raise ``NotFound`` for keys holding no hash, every other
    failure is raised as ``StoreError``.
    """

    @abc.abstractmethod
    def exists(self, key: str) -> bool:
        pass

    @abc.abstractmethod
    def get_all_fields(self, key: str) -> typing.Dict[str, str]:
        pass

    @abc.abstractmethod
    def get_fields(self, key: str, names: typing.Sequence[str]) -> typing.Dict[str, typing.Optional[str]]:
        pass

    @abc.abstractmethod
    def set_fields(self, key: str, values: typing.Mapping[str, str]) -> None:
        pass

    @abc.abstractmethod
    def set_field(self, key: str, name: str, value: str) -> None:
        pass

    @abc.abstractmethod
    def delete(self, *keys: str) -> None:
        pass

    @abc.abstractmethod
    def list_keys(self, prefix: str) -> typing.Iterable[str]:
        pass

    def set_fields_if_absent(self, key: str, values: typing.Mapping[str, str]) -> bool:
        """Atomically writes ``values`` unless ``key`` exists, returns whether it wrote."""
        raise StoreError(f"{type(self).__name__} has no atomic set-if-absent")
