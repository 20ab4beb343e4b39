"""
Tests for storage backends and transaction support
"""

import tempfile
from pathlib import Path

import pytest

from investment_club.amounts import U64_MAX
from investment_club.storage import InMemoryStorage, SQLiteStorage, create_storage


record = {
    "id": "club_001",
    "name": "Acme Invest",
    "balance": U64_MAX,
    "members": {"alice": {"paid": False}},
}


def exercise_backend(storage):
    storage.save("clubs", "club_001", record)
    assert storage.load("clubs", "club_001") == record
    assert storage.exists("clubs", "club_001")
    assert not storage.exists("clubs", "missing")
    assert storage.load("clubs", "missing") is None

    storage.save("clubs", "club_002", {"id": "club_002", "name": "Other"})
    assert len(storage.load_all("clubs")) == 2
    assert storage.count("clubs") == 2

    found = storage.find("clubs", {"name": "Other"})
    assert [r["id"] for r in found] == ["club_002"]

    assert storage.delete("clubs", "club_001")
    assert not storage.delete("clubs", "club_001")
    assert storage.count("clubs") == 1


class TestInMemoryStorage:
    """Test the in-memory backend"""

    def test_basic_operations(self):
        exercise_backend(InMemoryStorage())

    def test_loaded_records_are_copies(self):
        storage = InMemoryStorage()
        storage.save("clubs", "c1", {"members": {}})

        loaded = storage.load("clubs", "c1")
        loaded["members"]["x"] = 1

        assert storage.load("clubs", "c1") == {"members": {}}

    def test_atomic_commit(self):
        storage = InMemoryStorage()

        with storage.atomic():
            storage.save("clubs", "c1", {"id": "c1"})

        assert storage.exists("clubs", "c1")

    def test_atomic_rollback(self):
        storage = InMemoryStorage()
        storage.save("clubs", "c1", {"id": "c1", "balance": 0})

        with pytest.raises(RuntimeError):
            with storage.atomic():
                storage.save("clubs", "c1", {"id": "c1", "balance": 10})
                storage.save("members", "m1", {"id": "m1"})
                raise RuntimeError("abort")

        assert storage.load("clubs", "c1")["balance"] == 0
        assert not storage.exists("members", "m1")

    def test_invalid_table_name(self):
        with pytest.raises(ValueError):
            InMemoryStorage().save("clubs; DROP TABLE x", "id", {})


class TestSQLiteStorage:
    """Test the SQLite backend"""

    def test_basic_operations(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            storage = SQLiteStorage(Path(temp_dir) / "test.db")
            exercise_backend(storage)
            storage.close()

    def test_persistence_across_connections(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = Path(temp_dir) / "test.db"

            storage = SQLiteStorage(db_path)
            storage.save("clubs", "c1", record)
            storage.close()

            reopened = SQLiteStorage(db_path)
            assert reopened.load("clubs", "c1") == record
            reopened.close()

    def test_atomic_rollback(self):
        storage = SQLiteStorage()
        storage.save("clubs", "c1", {"id": "c1", "balance": 0})

        with pytest.raises(RuntimeError):
            with storage.atomic():
                storage.save("clubs", "c1", {"id": "c1", "balance": 10})
                raise RuntimeError("abort")

        assert storage.load("clubs", "c1")["balance"] == 0
        storage.close()

    def test_rollback_of_first_write_to_new_table(self):
        storage = SQLiteStorage()

        with pytest.raises(RuntimeError):
            with storage.atomic():
                storage.save("members", "m1", {"id": "m1"})
                raise RuntimeError("abort")

        assert storage.count("members") == 0
        storage.save("members", "m2", {"id": "m2"})
        assert storage.exists("members", "m2")
        storage.close()


class TestCreateStorage:
    """Test backend selection from a database url"""

    def test_memory_url(self):
        assert isinstance(create_storage("memory://"), InMemoryStorage)

    def test_sqlite_url(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            storage = create_storage(f"sqlite:///{temp_dir}/club.db")
            assert isinstance(storage, SQLiteStorage)
            assert storage.db_path == f"{temp_dir}/club.db"
            storage.close()
