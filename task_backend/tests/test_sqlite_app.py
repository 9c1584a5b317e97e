from fastapi.testclient import TestClient

from src.api.dependencies import build_services
from src.api.main import create_app


def test_end_to_end_on_sqlite_backend(sqlite_settings):
    app = create_app(sqlite_settings)
    alice = TestClient(app)
    bob = TestClient(app)

    assert alice.post("/api/register", json={"username": "alice", "password": "secret1"}).status_code == 200
    assert bob.post("/api/register", json={"username": "bob", "password": "secret2"}).status_code == 200
    assert bob.post("/api/register", json={"username": "alice", "password": "secret3"}).status_code == 409

    tid = alice.post("/api/tasks", json={"title": "Write report"}).json()["id"]
    assert bob.get("/api/tasks").json() == []
    assert bob.delete(f"/api/tasks/{tid}").status_code == 404

    assert alice.patch(f"/api/tasks/{tid}", json={"completed": True}).json()["completed"] is True
    assert alice.delete(f"/api/tasks/{tid}").status_code == 204
    assert alice.delete(f"/api/tasks/{tid}").status_code == 404


def test_sessions_survive_a_restart(sqlite_settings):
    first = TestClient(create_app(sqlite_settings))
    first.post("/api/register", json={"username": "alice", "password": "secret1"})
    first.post("/api/tasks", json={"title": "persisted"})
    cookies = dict(first.cookies)

    # A brand-new app over the same database file
    restarted = create_app(services=build_services(sqlite_settings))
    second = TestClient(restarted, cookies=cookies)
    res = second.get("/api/tasks")
    assert res.status_code == 200
    assert [t["title"] for t in res.json()] == ["persisted"]
