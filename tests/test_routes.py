from fastapi.testclient import TestClient

from main import app
from store.keys import BACKUP_PREFIX
from utils.tutor import FALLBACK_PRACTICE


def _register_and_login(client, username="alice", password="pw123"):
    assert client.post("/api/register", json={"username": username, "password": password}).status_code == 200
    response = client.post("/api/login", json={"username": username, "password": password})
    assert response.status_code == 200
    return response


def test_register_and_login_status_codes(server_store):
    client = TestClient(app)

    response = client.post("/api/register", json={"username": "alice", "password": "pw123"})
    assert response.status_code == 200
    assert response.json()["message"] == "User registered successfully!"
    assert "password" not in response.json()["user"]

    assert client.post("/api/register", json={"username": "alice", "password": "x"}).status_code == 409
    assert client.post("/api/register", json={"username": "bob"}).status_code == 400
    assert client.post("/api/register", json={"password": "pw"}).status_code == 400

    assert client.post("/api/login", json={"username": "alice", "password": "nope"}).status_code == 401
    assert client.post("/api/login", json={"username": "zed", "password": "pw123"}).status_code == 401
    assert client.post("/api/login", json={"username": "alice"}).status_code == 400
    assert server_store.get("currentUser") is None

    response = client.post("/api/login", json={"username": "alice", "password": "pw123"})
    assert response.status_code == 200
    assert response.json()["message"] == "Login successful"
    assert server_store.get("currentUser") == "alice"
    assert "mm_session" in response.cookies


def test_wrong_method_is_rejected(server_store):
    client = TestClient(app)
    assert client.get("/api/register").status_code == 405
    assert client.get("/api/login").status_code == 405


def test_session_reports_user_and_sync_status(server_store):
    client = TestClient(app)
    _register_and_login(client)

    body = client.get("/api/session").json()
    assert body == {"currentUser": "alice", "sessionUser": "alice", "syncStatus": "offline"}

    response = client.post("/api/logout")
    assert response.status_code == 200
    assert response.json()["username"] == "alice"
    assert server_store.get("currentUser") is None
    assert server_store.has("alice_backup")


def test_admin_backups_require_login(server_store):
    client = TestClient(app)
    assert client.get("/admin/backups").status_code == 401
    assert client.post("/admin/backups").status_code == 401


def test_admin_backup_lifecycle(server_store):
    client = TestClient(app)
    _register_and_login(client)
    server_store.set("quizzesCompleted", "1")

    response = client.post("/admin/backups")
    assert response.status_code == 200
    backup_key = response.json()["backupKey"]
    assert backup_key.startswith(BACKUP_PREFIX)

    server_store.set("quizzesCompleted", "99")
    response = client.post(f"/admin/backups/{backup_key}/restore")
    assert response.status_code == 200
    assert response.json()["success"] is True
    assert server_store.get("quizzesCompleted") == "1"

    assert client.post(f"/admin/backups/{BACKUP_PREFIX}missing/restore").status_code == 404

    for _ in range(5):
        assert client.post("/admin/backups").status_code == 200
    listing = client.get("/admin/backups").json()
    assert len(listing) == 6
    assert listing[0]["timestamp"] > listing[-1]["timestamp"]

    response = client.post("/admin/backups/clean")
    assert response.json() == {"deleted": 1, "remaining": 5}
    assert backup_key not in [b["key"] for b in client.get("/admin/backups").json()]

    log = client.get("/admin/migration-log").json()
    assert log[-1]["type"] == "restore"


def test_user_data_actions(server_store):
    client = TestClient(app)
    assert client.post("/api/register", json={"username": "alice", "password": "pw123"}).status_code == 200

    def action(**body):
        return client.post("/api/user-data", json=body)

    body = action(action="get_user", username="alice").json()
    assert body["success"] is True
    assert body["data"]["progress"]["quizzesCompleted"] == 0
    assert body["data"]["user"]["username"] == "alice"
    assert "password" not in body["data"]["user"]

    body = action(action="update_progress", username="alice", data={"quizzesCompleted": 4}).json()
    assert body["progress"]["quizzesCompleted"] == 4
    body = action(action="update_subscription", username="alice", data={"plan": "premium"}).json()
    assert body["subscription"]["plan"] == "premium"

    body = action(action="save_user_data", username="alice", data={"progress": {"totalScore": 30}}).json()
    assert body["success"] is True
    assert action(action="get_user", username="alice").json()["data"]["progress"]["totalScore"] == 30

    assert action(action="get_user", username="zed").json() == {"success": True, "data": None}

    response = action(action="get_user")
    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Username required"}
    assert action(action="update_progress", username="alice").status_code == 400
    response = action(action="explode")
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid action"

    backup = action(action="backup_all").json()["backup"]
    assert "mathsUsers" in backup["userData"]
    assert "alice_progress_v2" in backup["userData"]

    body = action(
        action="restore_backup",
        data={"userData": {"quizzesCompleted": "7", "appVersion": "9.9", BACKUP_PREFIX + "x": "{}"}},
    ).json()
    assert body["restored"] == 1
    assert server_store.get("quizzesCompleted") == "7"
    assert server_store.get("appVersion") is None
    assert action(action="restore_backup").status_code == 400

    assert action(action="load_user_data").json()["users"] == ["alice"]


def test_tutor_chat_falls_back_without_api_key(server_store):
    client = TestClient(app)

    response = client.post("/api/openai-chat", json={"question": "What is a fraction?"})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["fallback"] is True
    assert body["practiceProblem"] == FALLBACK_PRACTICE
    assert client.post("/api/openai-chat", json={}).status_code == 400


def test_home_reports_version(server_store):
    client = TestClient(app)
    body = client.get("/").json()
    assert body["version"] == "2.0"
    assert body["currentUser"] is None


def test_storage_failure_on_register_is_a_structured_error(server_store):
    client = TestClient(app)
    server_store.backend.quota_bytes = 10

    response = client.post("/api/register", json={"username": "alice", "password": "pw123"})

    assert response.status_code == 500
    assert "quota" in response.json()["detail"]
    assert server_store.get("mathsUsers") is None


def test_storage_failure_on_login_keeps_previous_user(server_store):
    client = TestClient(app)
    _register_and_login(client, "bob", "hunter2")
    assert client.post("/api/register", json={"username": "alice", "password": "pw123"}).status_code == 200
    backend = server_store.backend
    backend.quota_bytes = sum(len(k) + len(v) for k, v in backend.data.items())

    response = client.post("/api/login", json={"username": "alice", "password": "pw123"})

    assert response.status_code == 500
    assert "quota" in response.json()["detail"]
    assert server_store.get("currentUser") == "bob"
