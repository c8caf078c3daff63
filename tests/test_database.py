import pytest

from order_lifecycle.database import StaleRecord


def test_find_filter_sort_and_slice(file_db):
    for i, status in enumerate(["pending", "confirmed", "pending", "shipped", "pending"]):
        file_db.create_record("orders", {"id": f"o{i}", "status": status, "created_at": f"2026-01-0{i + 1}"})

    rows = file_db.find_records("orders", {"status": "pending"}, sort="created_at", descending=True)
    assert [r["id"] for r in rows] == ["o4", "o2", "o0"]

    page = file_db.find_records("orders", {"status": "pending"}, sort="created_at", offset=1, limit=1)
    assert [r["id"] for r in page] == ["o2"]

    either = file_db.find_records("orders", {"status": ["confirmed", "shipped"]})
    assert {r["id"] for r in either} == {"o1", "o3"}

    assert file_db.count_records("orders") == 5
    assert file_db.count_records("orders", {"status": "pending"}) == 3
    assert file_db.find_records("orders", {"no_such_column": "x"}) == []


def test_missing_table_reads_empty(file_db):
    assert file_db.list_records("orders") == []
    assert file_db.get_record("orders", "id", "x") is None
    assert file_db.count_records("orders") == 0
    assert file_db.update_record("orders", "id", "x", {"status": "confirmed"}) is None


def test_create_generates_id(file_db):
    row = file_db.create_record("orders", {"status": "pending"})
    assert row["id"]
    assert file_db.get_record("orders", "id", row["id"])["status"] == "pending"


def test_compare_and_update(file_db):
    file_db.create_record("orders", {"id": "o1", "status": "pending", "version": 0})

    updated = file_db.compare_and_update("orders", "id", "o1", {"status": "pending", "version": 0},
                                         {"status": "confirmed", "version": 1})
    assert updated["status"] == "confirmed"

    with pytest.raises(StaleRecord) as exc:
        file_db.compare_and_update("orders", "id", "o1", {"status": "pending"}, {"status": "cancelled"})
    assert exc.value.mismatched == {"status": "confirmed"}
    assert file_db.get_record("orders", "id", "o1")["status"] == "confirmed"

    assert file_db.compare_and_update("orders", "id", "missing", {}, {"status": "x"}) is None


def test_new_columns_keep_integer_text(file_db):
    file_db.create_record("orders", {"id": "o1", "status": "pending"})
    file_db.create_record("orders", {"id": "o2", "status": "pending"})
    file_db.update_record("orders", "id", "o1", {"version": 1})

    assert file_db.get_record("orders", "id", "o1")["version"] == "1"
    assert file_db.get_record("orders", "id", "o2")["version"] == ""


def test_delete_record(file_db):
    file_db.create_record("users", {"id": "u1", "username": "a"})
    assert file_db.delete_record("users", "id", "u1") is True
    assert file_db.delete_record("users", "id", "u1") is False
    assert file_db.get_record("users", "id", "u1") is None


def test_non_string_values_are_stored_as_text(file_db):
    file_db.create_record("users", {"id": "u1", "is_admin": True, "age": 7, "nickname": None})
    file_db.create_record("users", {"id": "u2", "is_admin": False})
    file_db.update_record("users", "id", "u2", {"age": 12, "score": 1.5})

    assert file_db.get_record("users", "id", "u1") == {"id": "u1", "is_admin": "True", "age": "7", "nickname": ""}
    u2 = file_db.get_record("users", "id", "u2")
    assert (u2["age"], u2["score"], u2["is_admin"]) == ("12", "1.5", "False")
