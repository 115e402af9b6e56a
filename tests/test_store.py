import pytest

from store.accessor import LocalStore, parse_int
from store.backends import DirectoryKeyValueStore, InMemoryKeyValueStore, SqliteKeyValueStore
from store.keys import BACKUP_PREFIX, is_user_data_key
from utils.errors import StorageQuotaExceeded


def test_missing_keys_read_as_defaults():
    store = LocalStore(InMemoryKeyValueStore())
    assert store.get("nope") is None
    assert store.get("nope", "fallback") == "fallback"
    assert store.get_json("nope", {}) == {}
    assert store.get_int("nope") == 0
    assert store.get_bool("nope") is False


def test_scalars_are_stored_as_strings():
    store = LocalStore(InMemoryKeyValueStore())
    store.set("isTrialUser", True)
    store.set("quizzesCompleted", 7)
    assert store.get("isTrialUser") == "true"
    assert store.get_bool("isTrialUser") is True
    assert store.get("quizzesCompleted") == "7"
    assert store.get_int("quizzesCompleted") == 7


def test_unparseable_json_reads_as_default():
    store = LocalStore(InMemoryKeyValueStore())
    store.set("alice_progress_v2", "{not json")
    assert store.get_json("alice_progress_v2", {"streak": 0}) == {"streak": 0}


def test_parse_int_takes_leading_digits():
    assert parse_int("12abc") == 12
    assert parse_int(" -3") == -3
    assert parse_int("abc") == 0
    assert parse_int("", 4) == 4
    assert parse_int(None, 5) == 5


def test_in_memory_quota_rejects_oversized_write():
    backend = InMemoryKeyValueStore(quota_bytes=20)
    backend.set("a", "x" * 10)
    with pytest.raises(StorageQuotaExceeded):
        backend.set("b", "y" * 10)
    # replacing a key only counts its new size
    backend.set("a", "z" * 19)
    assert backend.get("a") == "z" * 19
    assert backend.get("b") is None


def test_sqlite_store_persists_across_instances(tmp_path):
    path = tmp_path / "store.db"
    first = SqliteKeyValueStore(path)
    first.set("currentUser", "alice")
    first.set("currentUser", "bob")

    reopened = SqliteKeyValueStore(path)
    assert reopened.get("currentUser") == "bob"
    assert reopened.keys() == ["currentUser"]
    reopened.remove("currentUser")
    assert reopened.get("currentUser") is None


def test_sqlite_quota(tmp_path):
    backend = SqliteKeyValueStore(tmp_path / "store.db", quota_bytes=10)
    backend.set("k", "12345678")
    with pytest.raises(StorageQuotaExceeded):
        backend.set("j", "xx")
    assert backend.get("j") is None


def test_directory_store_round_trip(tmp_path):
    backend = DirectoryKeyValueStore(tmp_path / "backups")
    assert backend.keys() == []
    key = BACKUP_PREFIX + "2026-01-01T00-00-00-000000Z"
    backend.set(key, '{"version": "2.0"}')
    assert backend.get(key) == '{"version": "2.0"}'
    assert backend.keys() == [key]
    backend.remove(key)
    assert backend.get(key) is None


def test_user_data_key_filter():
    assert is_user_data_key("currentUser")
    assert is_user_data_key("quizzesCompleted")
    assert is_user_data_key("alice_subscription_v2")
    assert is_user_data_key("alice_progress")
    assert is_user_data_key("alice_backup")
    assert not is_user_data_key("appVersion")
    assert not is_user_data_key("migrationLog")
    assert not is_user_data_key(BACKUP_PREFIX + "2026-01-01T00-00-00-000000Z")
