import json

import httpx
import pytest

from store.accessor import LocalStore
from store.backends import InMemoryKeyValueStore
from utils.errors import Conflict, InputMissing, StorageQuotaExceeded, Unauthorized, UserNotFound
from utils.sync import RemoteSyncClient
from utils.users import UserManager


def _manager():
    store = LocalStore(InMemoryKeyValueStore())
    return UserManager(store), store


@pytest.mark.asyncio
async def test_register_then_login_sets_current_user():
    users, store = _manager()
    created = await users.register("alice", "pw123", "alice@example.com")
    assert created.email == "alice@example.com"
    assert users.get_current_user() is None

    user = await users.login("alice", "pw123")

    assert user.username == "alice"
    assert user.last_login is not None
    assert users.get_current_user() == "alice"
    assert users.is_logged_in()


@pytest.mark.asyncio
async def test_password_is_stored_hashed():
    users, store = _manager()
    await users.register("alice", "pw123")

    record = json.loads(store.get("mathsUsers"))["alice"]
    assert record["password"] != "pw123"
    assert record["password"].startswith("pbkdf2_sha256$")
    assert record["email"] == "alice@mathsmayhem.com"
    assert "createdAt" in record


@pytest.mark.asyncio
async def test_register_rejects_duplicates_and_missing_fields():
    users, _ = _manager()
    await users.register("alice", "pw123")

    with pytest.raises(Conflict):
        await users.register("alice", "other")
    with pytest.raises(InputMissing):
        await users.register("", "pw")
    with pytest.raises(InputMissing):
        await users.register("bob", None)


@pytest.mark.asyncio
async def test_failed_login_leaves_current_user_alone():
    users, _ = _manager()
    await users.register("alice", "pw123")
    await users.register("bob", "hunter2")
    await users.login("alice", "pw123")

    with pytest.raises(Unauthorized):
        await users.login("bob", "wrong")
    with pytest.raises(UserNotFound):
        await users.login("carol", "pw123")

    assert users.get_current_user() == "alice"


@pytest.mark.asyncio
async def test_register_initializes_user_records():
    users, store = _manager()
    await users.register("alice", "pw123")

    assert store.has("alice_subscription_v2")
    assert store.has("alice_progress_v2")
    assert users.get_subscription("alice").plan == "free"
    assert users.get_subscription("alice").start_date
    assert users.get_progress("alice").quizzes_completed == 0
    assert users.has_user_data("alice")
    assert not users.has_user_data("bob")


def test_progress_falls_back_to_v1_record_and_merges_updates():
    users, store = _manager()
    store.set_json("bob_progress", {"quizzesCompleted": 2, "bestStreak": 5})

    assert users.get_progress("bob").quizzes_completed == 2

    record = users.update_progress("bob", {"quizzesCompleted": 3})
    assert record.quizzes_completed == 3
    assert record.best_streak == 5
    assert json.loads(store.get("bob_progress_v2"))["quizzesCompleted"] == 3

    record = users.update_progress("bob", {"total_score": 40})
    assert record.total_score == 40
    assert record.quizzes_completed == 3


def test_update_subscription_merges():
    users, _ = _manager()
    users.initialize_user_data("alice")
    record = users.update_subscription("alice", {"plan": "premium", "hasPaymentMethod": True})
    assert record.plan == "premium"
    assert record.has_payment_method is True
    assert users.get_subscription("alice").plan == "premium"


@pytest.mark.asyncio
async def test_logout_backs_up_and_clears_current_user():
    users, store = _manager()
    await users.register("alice", "pw123")
    await users.login("alice", "pw123")
    users.update_progress("alice", {"quizzesCompleted": 6})

    assert await users.logout() == "alice"

    assert users.get_current_user() is None
    backup = store.get_json("alice_backup")
    assert backup["progress"]["quizzesCompleted"] == 6
    assert backup["timestamp"]


@pytest.mark.asyncio
async def test_recover_user_data_from_local_backup():
    users, _ = _manager()
    await users.register("alice", "pw123")
    users.update_progress("alice", {"quizzesCompleted": 9})
    assert await users.backup_user_data("alice")
    users.update_progress("alice", {"quizzesCompleted": 0})

    assert await users.recover_user_data("alice")
    assert users.get_progress("alice").quizzes_completed == 9


@pytest.mark.asyncio
async def test_recover_without_backup_or_remote_fails():
    users, _ = _manager()
    assert await users.recover_user_data("ghost") is False


class _UsersWriteFails(InMemoryKeyValueStore):
    """Accepts every write except the users map once ``full`` is set."""

    def __init__(self):
        super().__init__()
        self.full = False

    def set(self, key, value):
        if self.full and key == "mathsUsers":
            raise StorageQuotaExceeded("Writing 'mathsUsers' would exceed the quota")
        super().set(key, value)


def _remote_returning(data):
    def handler(request):
        return httpx.Response(200, json={"success": True, "data": data})
    return RemoteSyncClient("http://remote.test/api/user-data", transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_malformed_remote_data_does_not_break_login():
    store = LocalStore(InMemoryKeyValueStore())
    users = UserManager(store, _remote_returning({
        "subscription": {"plan": "premium"},
        "progress": {"quizzesCompleted": "lots"},
    }))
    await users.register("alice", "pw123")
    users.update_progress("alice", {"quizzesCompleted": 3})

    user = await users.login("alice", "pw123")

    assert user.username == "alice"
    assert users.get_current_user() == "alice"
    assert users.get_progress("alice").quizzes_completed == 3
    assert users.get_subscription("alice").plan == "free"
    assert users.sync.status.value == "online"


@pytest.mark.asyncio
async def test_restore_ignores_non_object_remote_data():
    store = LocalStore(InMemoryKeyValueStore())
    users = UserManager(store, _remote_returning(["not", "a", "record"]))
    await users.register("alice", "pw123")

    assert await users.restore_user_data("alice") is False


@pytest.mark.asyncio
async def test_storage_failure_during_login_leaves_current_user_alone():
    backend = _UsersWriteFails()
    users = UserManager(LocalStore(backend))
    await users.register("alice", "pw123")
    await users.register("bob", "hunter2")
    await users.login("bob", "hunter2")
    backend.full = True

    with pytest.raises(StorageQuotaExceeded):
        await users.login("alice", "pw123")

    assert users.get_current_user() == "bob"


@pytest.mark.asyncio
async def test_storage_failure_during_register_writes_nothing():
    backend = _UsersWriteFails()
    users = UserManager(LocalStore(backend))
    backend.full = True

    with pytest.raises(StorageQuotaExceeded):
        await users.register("alice", "pw123")

    assert users.get_user("alice") is None
    assert not users.has_user_data("alice")
