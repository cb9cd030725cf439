import typing

import pytest
import structlog.testing

from entity_hashmap import (
    AlreadyExists,
    DataFormatError,
    EngineSettings,
    Entity,
    HashMapError,
    HashRepository,
    Identity,
    InsertMode,
    InvalidArgument,
    MemoryStore,
    NotFound,
    StoreClient,
    StoreError,
    UnknownField,
    UpdatePolicy,
)


def by_id(records: typing.Iterable[dict]) -> typing.List[dict]:
    return sorted(records, key=lambda record: record["id"])


def test_insert_read_update_delete(store: MemoryStore, user_metadata):
    users = HashRepository(user_metadata, store)

    users.batch_insert([{"id": 1, "name": "Ann"}])
    assert users.read_by_key([1], ["id", "name"]) == {"id": 1, "name": "Ann"}

    with pytest.raises(AlreadyExists):
        users.batch_insert([{"id": 1, "name": "Bob"}])
    assert users.read_by_key([1], ["id", "name"]) == {"id": 1, "name": "Ann"}

    users.update([1], {"name": "Carl"})
    assert users.read_by_key([1], ["id", "name"]) == {"id": 1, "name": "Carl"}

    users.delete([1])
    with pytest.raises(NotFound):
        users.read_by_key([1])


def test_every_scalar_type_reads_back(users: HashRepository, store: MemoryStore):
    users.insert({"id": -1, "name": "x", "score": 3.14, "active": False})

    assert users.read_by_key((-1,)) == {"id": -1, "name": "x", "score": 3.14, "active": False}
    assert store.get_all_fields("User:-1") == {"id": "-1", "name": "x", "score": "3.14", "active": "false"}


def test_full_projection_reports_unset_fields_as_none(users: HashRepository):
    users.insert({"id": 1, "name": "Ann"})

    assert users.read_by_key([1]) == {"id": 1, "name": "Ann", "score": None, "active": None}


def test_projection_hides_unrequested_key_fields(users: HashRepository):
    users.insert({"id": 1, "name": "Ann", "active": True})

    assert users.read_by_key([1], ["name"]) == {"name": "Ann"}
    assert users.read_by_key([1], ["name", "active"]) == {"name": "Ann", "active": True}


@pytest.mark.parametrize("key_values", [1, "1", (), (1, 2), [None], ["abc"], (1.5,), (True,)])
def test_malformed_key_is_rejected(users: HashRepository, key_values):
    with pytest.raises(InvalidArgument):
        users.read_by_key(key_values)
    with pytest.raises(InvalidArgument):
        users.update(key_values, {"name": "Ann"})
    with pytest.raises(InvalidArgument):
        users.delete(key_values)


def test_reading_missing_key_with_projection_fails(users: HashRepository):
    with pytest.raises(NotFound) as error:
        users.read_by_key([404], ["name"])

    assert error.value.key == "User:404"


def test_malformed_stored_value_fails_the_read(users: HashRepository, store: MemoryStore):
    store.set_fields("User:1", {"id": "1", "score": "lots"})

    with pytest.raises(DataFormatError):
        users.read_by_key([1])


class TestRelations:
    @pytest.fixture(autouse=True)
    def data(self, users: HashRepository, tags: HashRepository) -> None:
        users.batch_insert([{"id": 1, "name": "Ann"}, {"id": 2, "name": "Bob"}])
        tags.batch_insert(
            [
                {"id": 10, "name": "red", "userId": 1},
                {"id": 11, "name": "blue", "userId": 2},
                {"id": 12, "name": "green", "userId": 1},
                {"id": 13, "name": "orphan"},
            ]
        )

    def test_includes_only_matching_related_records(self, users: HashRepository):
        user = users.read_by_key([1], ["name", "tag[].name"], include=["tag"])

        assert user["name"] == "Ann"
        assert "id" not in user
        assert sorted(user["tag"], key=lambda tag: tag["name"]) == [{"name": "green"}, {"name": "red"}]

    def test_related_records_carry_requested_sub_fields(self, users: HashRepository):
        user = users.read_by_key([2], ["tag[].id", "tag[].userId"], include=["tag"])

        assert user["tag"] == [{"id": 11, "userId": 2}]

    def test_relation_without_sub_fields_is_not_fetched(self, users: HashRepository):
        assert "tag" not in users.read_by_key([1], ["name"], include=["tag"])
        assert "tag" not in users.read_by_key([1], ["name", "tag[].name"])

    def test_owner_without_related_records_gets_empty_list(self, users: HashRepository):
        users.insert({"id": 3, "name": "Cid"})

        assert users.read_by_key([3], ["tag[].name"], include=["tag"])["tag"] == []

    def test_read_all_resolves_relation_per_record(self, users: HashRepository):
        records = by_id(users.read_all(["id", "tag[].id"], include=["tag"]))

        assert [record["id"] for record in records] == [1, 2]
        assert sorted(tag["id"] for tag in records[0]["tag"]) == [10, 12]
        assert records[1]["tag"] == [{"id": 11}]

    def test_related_record_vanishing_mid_scan_aborts(self, users: HashRepository, store: MemoryStore):
        listed = store.list_keys("Tag:")
        store.list_keys = lambda prefix: listed if prefix == "Tag:" else MemoryStore.list_keys(store, prefix)
        store.delete("Tag:12")

        with pytest.raises(NotFound):
            users.read_by_key([1], ["tag[].name"], include=["tag"])


def test_read_all_returns_every_record(users: HashRepository):
    users.batch_insert([{"id": 2, "name": "Bob"}, {"id": 1, "name": "Ann"}])

    assert by_id(users.read_all(["id", "name"])) == [{"id": 1, "name": "Ann"}, {"id": 2, "name": "Bob"}]


def test_read_all_can_be_iterated_again(users: HashRepository):
    users.insert({"id": 1, "name": "Ann"})
    records = users.read_all(["name"])

    assert list(records) == [{"name": "Ann"}]
    users.insert({"id": 2, "name": "Bob"})
    assert sorted(record["name"] for record in records) == ["Ann", "Bob"]


def test_read_all_of_empty_collection(users: HashRepository):
    assert list(users.read_all()) == []


def test_read_all_stops_at_first_failing_record(users: HashRepository, store: MemoryStore):
    users.insert({"id": 1, "name": "Ann"})
    store.set_fields("User:2", {"id": "2", "active": "yes"})

    with pytest.raises(DataFormatError):
        list(users.read_all())


def test_read_all_validates_projection_eagerly(users: HashRepository):
    with pytest.raises(UnknownField):
        users.read_all(["nickname"])


def test_other_collections_sharing_a_name_prefix_are_not_listed(users: HashRepository, store: MemoryStore):
    users.insert({"id": 1, "name": "Ann"})
    store.set_fields("UserGroup:1", {"id": "1"})

    assert list(users.read_all(["name"])) == [{"name": "Ann"}]


def test_batch_stops_at_first_duplicate_keeping_earlier_writes(users: HashRepository, store: MemoryStore):
    users.insert({"id": 1, "name": "Ann"})

    with pytest.raises(AlreadyExists) as error:
        users.batch_insert([{"id": 2, "name": "Bob"}, {"id": 1, "name": "Eve"}, {"id": 3, "name": "Cid"}])

    assert error.value.key == "User:1"
    assert store.exists("User:2")
    assert not store.exists("User:3")
    assert users.read_by_key([1], ["name"]) == {"name": "Ann"}


def test_batch_is_validated_before_writing(users: HashRepository, store: MemoryStore):
    with pytest.raises(DataFormatError):
        users.batch_insert([{"id": 1, "name": "Ann"}, {"id": 2, "score": "high"}])

    assert store.list_keys("User:") == []


@pytest.mark.parametrize(
    "record, error",
    [
        ({"name": "Ann"}, InvalidArgument),
        ({"id": 1, "nickname": "A"}, UnknownField),
        ({"id": "one"}, InvalidArgument),
        ({"id": 1, "score": "high"}, DataFormatError),
    ],
)
def test_invalid_record_is_not_inserted(users: HashRepository, store: MemoryStore, record, error):
    with pytest.raises(error):
        users.insert(record)

    assert store.list_keys("User:") == []


def test_relation_values_are_not_stored(users: HashRepository, store: MemoryStore):
    users.insert({"id": 1, "name": "Ann", "tag": [{"id": 10}]})

    assert store.get_all_fields("User:1") == {"id": "1", "name": "Ann"}


def test_atomic_insert_detects_duplicates(user_metadata, store: MemoryStore):
    users = HashRepository(user_metadata, store, EngineSettings(insert_mode=InsertMode.ATOMIC))
    users.insert({"id": 1, "name": "Ann"})

    with pytest.raises(AlreadyExists):
        users.insert({"id": 1, "name": "Bob"})
    assert users.read_by_key([1], ["name"]) == {"name": "Ann"}


def test_update_touches_only_present_fields(users: HashRepository):
    users.insert({"id": 1, "name": "Ann", "score": 1.5, "active": True})

    users.update([1], {"score": 2.5, "name": None, "tag": [{"id": 10}]})

    assert users.read_by_key([1]) == {"id": 1, "name": "Ann", "score": 2.5, "active": True}


def test_update_rejects_unknown_fields(users: HashRepository):
    users.insert({"id": 1, "name": "Ann"})

    with pytest.raises(UnknownField):
        users.update([1], {"nickname": "A"})


def test_update_of_missing_key_is_left_to_the_store(users: HashRepository, store: MemoryStore):
    users.update([9], {"name": "Ghost"})

    assert store.get_all_fields("User:9") == {"name": "Ghost"}


def test_update_of_missing_key_can_be_refused(user_metadata, store: MemoryStore):
    users = HashRepository(user_metadata, store, EngineSettings(update_policy=UpdatePolicy.REQUIRE_EXISTING))

    with pytest.raises(NotFound):
        users.update([9], {"name": "Ghost"})
    assert not store.exists("User:9")


def test_delete_of_missing_key_is_silent(users: HashRepository):
    users.delete([404])


class Book(Entity):
    isbn: Identity[str]
    edition: Identity[int]
    title: str
    pages: typing.Optional[int] = None


def test_repository_for_entity_class_with_composite_key(store: MemoryStore):
    books = HashRepository.for_entity(Book, store)

    books.insert(Book("978-0", 2, "Dune"))

    assert store.exists("Book:978-0:2")
    assert books.read_by_key(("978-0", 2)) == {"isbn": "978-0", "edition": 2, "title": "Dune", "pages": None}
    with pytest.raises(InvalidArgument):
        books.read_by_key(("978-0",))


def test_update_with_mistyped_key_creates_nothing(users: HashRepository, store: MemoryStore):
    users.insert({"id": 1, "name": "Ann"})

    with pytest.raises(InvalidArgument):
        users.update(["abc"], {"name": "Ghost"})

    assert store.list_keys("User:") == ["User:1"]
    assert list(users.read_all(["id", "name"])) == [{"id": 1, "name": "Ann"}]


def test_atomic_insert_needs_store_support(user_metadata):
    class PlainStore(MemoryStore):
        set_fields_if_absent = StoreClient.set_fields_if_absent

    users = HashRepository(user_metadata, PlainStore(), EngineSettings(insert_mode=InsertMode.ATOMIC))

    with pytest.raises(StoreError):
        users.insert({"id": 1, "name": "Ann"})


@pytest.mark.parametrize(
    "operation, event",
    [
        (lambda users: users.read_by_key([404]), "read_failed"),
        (lambda users: users.read_by_key(["abc"]), "read_rejected"),
        (lambda users: users.batch_insert([{"id": 1, "score": "high"}]), "insert_failed"),
        (lambda users: users.update([1], {"active": "maybe"}), "update_failed"),
        (lambda users: users.delete([None]), "delete_failed"),
    ],
)
def test_aborted_operations_are_logged(users: HashRepository, operation, event):
    with structlog.testing.capture_logs() as logs:
        with pytest.raises(HashMapError):
            operation(users)

    assert [log["event"] for log in logs if log["log_level"] == "warning"] == [event]


def test_duplicate_insert_is_logged(users: HashRepository):
    users.insert({"id": 1, "name": "Ann"})

    with structlog.testing.capture_logs() as logs:
        with pytest.raises(AlreadyExists):
            users.insert({"id": 1, "name": "Bob"})

    assert {"event": "insert_failed", "kind": "AlreadyExists"}.items() <= logs[-1].items()
