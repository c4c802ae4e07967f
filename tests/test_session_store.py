"""Tests for session persistence and its self-healing on corrupt data."""

from __future__ import annotations

import json
import pathlib

from conftest import START_TIME, make_credential, make_user
from lms_session.storage.backends import FileStorage, MemoryStorage
from lms_session.storage.store import CREDENTIAL_KEY, USER_KEY, SessionStore


class TestSessionStore:
    def test_empty_storage_loads_nothing(self, store: SessionStore) -> None:
        assert store.load() is None

    def test_save_then_load(self, store: SessionStore, storage: MemoryStorage) -> None:
        credential = make_credential(START_TIME + 3600)
        store.save(make_user(user_type="admin"), credential)

        assert json.loads(storage.get(USER_KEY))["userType"] == "admin"
        loaded = store.load()
        assert loaded is not None
        assert loaded.credential == credential
        assert loaded.user == make_user(user_type="admin")

    def test_save_overwrites(self, store: SessionStore) -> None:
        store.save(make_user(user_id=1), "a.b.c")
        store.save(make_user(user_id=2), "d.e.f")
        loaded = store.load()
        assert loaded.user.id == 2
        assert loaded.credential == "d.e.f"

    def test_missing_credential_clears_both_keys(self, storage: MemoryStorage) -> None:
        storage.set(USER_KEY, json.dumps(make_user().to_dict()))
        store = SessionStore(storage)

        assert store.load() is None
        assert storage.keys() == []

    def test_missing_user_clears_both_keys(self, storage: MemoryStorage) -> None:
        storage.set(CREDENTIAL_KEY, "a.b.c")
        assert SessionStore(storage).load() is None
        assert storage.keys() == []

    def test_unparsable_user_clears_both_keys(self, storage: MemoryStorage) -> None:
        storage.set(USER_KEY, "{not json")
        storage.set(CREDENTIAL_KEY, "a.b.c")
        assert SessionStore(storage).load() is None
        assert storage.keys() == []

    def test_user_without_id_clears_both_keys(self, storage: MemoryStorage) -> None:
        storage.set(USER_KEY, json.dumps({"email": "x@example.com"}))
        storage.set(CREDENTIAL_KEY, "a.b.c")
        assert SessionStore(storage).load() is None
        assert storage.keys() == []

    def test_save_user_leaves_credential(self, store: SessionStore, storage: MemoryStorage) -> None:
        store.save(make_user(), "a.b.c")
        store.save_user(make_user(first_name="Alicia"))
        assert storage.get(CREDENTIAL_KEY) == "a.b.c"
        assert store.load().user.first_name == "Alicia"

    def test_clear_is_idempotent(self, store: SessionStore, storage: MemoryStorage) -> None:
        store.save(make_user(), "a.b.c")
        store.clear()
        store.clear()
        assert storage.keys() == []


class TestFileStorage:
    def test_survives_a_new_instance(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "nested" / "session.json"
        SessionStore(FileStorage(path)).save(make_user(), "a.b.c")

        loaded = SessionStore(FileStorage(path)).load()
        assert loaded is not None
        assert loaded.credential == "a.b.c"

    def test_remove_only_drops_one_key(self, tmp_path: pathlib.Path) -> None:
        storage = FileStorage(tmp_path / "session.json")
        storage.set("a", "1")
        storage.set("b", "2")
        storage.remove("a")
        storage.remove("missing")
        assert storage.get("a") is None
        assert storage.get("b") == "2"

    def test_corrupt_file_reads_as_empty(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "session.json"
        path.write_text("{{{ definitely not json")
        storage = FileStorage(path)

        assert storage.get(USER_KEY) is None
        storage.set("token", "a.b.c")
        assert json.loads(path.read_text()) == {"token": "a.b.c"}

    def test_non_string_values_are_ignored(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "session.json"
        path.write_text(json.dumps({"token": 42}))
        assert FileStorage(path).get("token") is None

    def test_no_temp_files_left_behind(self, tmp_path: pathlib.Path) -> None:
        storage = FileStorage(tmp_path / "session.json")
        storage.set("token", "a.b.c")
        assert [p.name for p in tmp_path.iterdir()] == ["session.json"]
