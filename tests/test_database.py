import pytest
from pymongo.errors import DuplicateKeyError

from config import MEMORY_URL
from database import (
    IdAllocator,
    backing_name,
    connect,
    find_record,
    find_records,
    insert_record,
    push_value,
    record_exists,
)


def test_allocator_starts_at_one_and_increases(ids):
    assert [ids.next("idea") for _ in range(3)] == [1, 2, 3]
    assert ids.current("idea") == 3


def test_allocator_namespaces_are_independent(ids):
    assert ids.next("idea") == 1
    assert ids.next("idea") == 2
    assert ids.next("campaign") == 1
    assert ids.next("document") == 1
    assert ids.current("unused") == 0


def test_allocator_counter_is_stored_with_the_data(db):
    IdAllocator(db).next("idea")
    IdAllocator(db).next("idea")
    assert IdAllocator(db).next("idea") == 3


def test_insert_and_find_round_trip(db):
    insert_record(db, "idea", 7, {"title": "x", "doc_ids": []})
    assert find_record(db, "idea", 7) == {"id": 7, "title": "x", "doc_ids": []}
    assert find_record(db, "idea", 8) is None
    assert record_exists(db, "idea", 7)
    assert not record_exists(db, "idea", 8)


def test_duplicate_id_is_rejected(db):
    insert_record(db, "idea", 1, {"title": "x"})
    with pytest.raises(DuplicateKeyError):
        insert_record(db, "idea", 1, {"title": "y"})


def test_find_records_is_ordered_by_id(db):
    for i in (3, 1, 2):
        insert_record(db, "campaign", i, {"idea_id": 1})
    assert [r["id"] for r in find_records(db, "campaign")] == [1, 2, 3]


def test_returned_records_do_not_alias_storage(db):
    insert_record(db, "idea", 1, {"doc_ids": []})
    record = find_record(db, "idea", 1)
    record["doc_ids"].append(99)
    assert find_record(db, "idea", 1)["doc_ids"] == []


def test_push_value_appends_in_order(db):
    insert_record(db, "idea", 1, {"doc_ids": [], "updated_at": 0})
    assert push_value(db, "idea", 1, "doc_ids", 4, updated_at=5) == 1
    assert push_value(db, "idea", 1, "doc_ids", 9) == 1
    record = find_record(db, "idea", 1)
    assert record["doc_ids"] == [4, 9]
    assert record["updated_at"] == 5


def test_push_value_on_missing_record_matches_nothing(db):
    assert push_value(db, "idea", 42, "doc_ids", 1) == 0


def test_memory_backing_name():
    assert backing_name(connect(MEMORY_URL, "x")) == "memory"
