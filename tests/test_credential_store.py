"""
Tests for credential persistence.
"""

import json

import pytest

from inventory_sync.credential_store import (
    CredentialStore,
    JsonFileKeyValueStore,
    MemoryKeyValueStore,
)


class TestMemoryKeyValueStore:
    def test_set_get_delete(self):
        store = MemoryKeyValueStore()

        store.set("token", "abc")
        assert store.get("token") == "abc"

        store.delete("token")
        assert store.get("token") is None

    def test_delete_missing_key(self):
        MemoryKeyValueStore().delete("absent")


class TestJsonFileKeyValueStore:
    @pytest.fixture
    def path(self, tmp_path):
        return tmp_path / "nested" / "session.json"

    def test_missing_file_reads_as_empty(self, path):
        assert JsonFileKeyValueStore(path).get("token") is None

    def test_survives_new_instance(self, path):
        JsonFileKeyValueStore(path).set("token", "abc")

        assert JsonFileKeyValueStore(path).get("token") == "abc"
        assert json.loads(path.read_text()) == {"token": "abc"}

    def test_delete_keeps_other_keys(self, path):
        store = JsonFileKeyValueStore(path)
        store.set("token", "abc")
        store.set("theme", "dark")

        store.delete("token")

        assert json.loads(path.read_text()) == {"theme": "dark"}

    def test_corrupt_file_reads_as_empty(self, path):
        path.parent.mkdir(parents=True)
        path.write_text("{not json")

        assert JsonFileKeyValueStore(path).get("token") is None

    def test_no_temporary_files_left(self, path):
        JsonFileKeyValueStore(path).set("token", "abc")

        assert [entry.name for entry in path.parent.iterdir()] == ["session.json"]


class TestCredentialStore:
    def test_roundtrip_under_single_key(self):
        backend = MemoryKeyValueStore()
        credentials = CredentialStore(backend, key="token")

        credentials.save("abc")

        assert backend.get("token") == "abc"
        assert credentials.load() == "abc"

    def test_absent_key_means_no_session(self):
        assert CredentialStore(MemoryKeyValueStore(), key="token").load() is None

    def test_empty_value_means_no_session(self):
        backend = MemoryKeyValueStore({"token": ""})

        assert CredentialStore(backend, key="token").load() is None

    def test_clear(self):
        credentials = CredentialStore(MemoryKeyValueStore({"token": "abc"}), key="token")

        credentials.clear()

        assert credentials.load() is None

    def test_default_key_from_settings(self):
        assert CredentialStore(MemoryKeyValueStore()).key == "token"
