import json

from src.api.generate_openapi import generate_openapi


def test_writes_schema_with_all_routes_and_tags(tmp_path, settings):
    out = generate_openapi(str(tmp_path / "interfaces" / "openapi.json"))
    with open(out, encoding="utf-8") as f:
        schema = json.load(f)

    assert schema["info"]["title"] == "Task Backend"
    for path in ["/api/register", "/api/login", "/api/logout", "/api/user", "/api/tasks", "/api/tasks/{task_id}", "/api/suggestions"]:
        assert path in schema["paths"]
    assert {"health", "users", "tasks", "suggestions"} <= {t["name"] for t in schema["tags"]}


def test_does_not_create_a_database(tmp_path, settings, monkeypatch):
    db_dir = tmp_path / "data"
    monkeypatch.setenv("PERSISTENCE_BACKEND", "sqlite")
    monkeypatch.setenv("SQLITE_DB_PATH", str(db_dir / "tasks.db"))
    generate_openapi(str(tmp_path / "openapi.json"))
    assert (tmp_path / "openapi.json").exists()
    assert not db_dir.exists()
