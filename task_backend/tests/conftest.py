from __future__ import annotations

import json
from types import SimpleNamespace
from typing import Any, Callable, List, Optional

import pytest
from fastapi.testclient import TestClient

from src.api.dependencies import Services, build_services
from src.api.main import create_app
from src.api.settings import Settings, get_settings


class FakeCompletions:
    """
    Stand-in for ``OpenAI().chat.completions``.

    - Captures call kwargs for assertions
    - Returns ``content`` as the first choice, or raises ``error``
    """

    def __init__(self, content: Optional[str] = None, error: Optional[BaseException] = None) -> None:
        self.content = content
        self.error = error
        self.calls: List[dict] = []

    def create(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(role="assistant", content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(index=0, message=message)])


class FakeOpenAI:
    def __init__(self, content: Optional[str] = None, error: Optional[BaseException] = None) -> None:
        self.completions = FakeCompletions(content, error)
        self.chat = SimpleNamespace(completions=self.completions)


@pytest.fixture()
def fake_openai() -> Callable[..., FakeOpenAI]:
    """
    Factory for fake provider clients.

    ``fake_openai(suggestions=[...])`` answers with a well-formed JSON object,
    ``fake_openai(content="...")`` with raw text, ``fake_openai(error=exc)`` raises.
    """

    def _make(
        suggestions: Optional[List[Any]] = None,
        content: Optional[str] = None,
        error: Optional[BaseException] = None,
    ) -> FakeOpenAI:
        if suggestions is not None:
            content = json.dumps({"suggestions": suggestions})
        return FakeOpenAI(content=content, error=error)

    return _make


@pytest.fixture()
def settings(monkeypatch: pytest.MonkeyPatch) -> Settings:
    """
    Settings for an isolated in-memory app: cheap password hashing and no
    suggestion provider configured.
    """
    monkeypatch.setenv("PERSISTENCE_BACKEND", "memory")
    monkeypatch.setenv("PASSWORD_HASH_METHOD", "pbkdf2:sha256:1000")
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("OPENAI_BASE_URL", raising=False)
    monkeypatch.delenv("SESSION_COOKIE_NAME", raising=False)
    monkeypatch.delenv("SESSION_COOKIE_SECURE", raising=False)
    return get_settings()


@pytest.fixture()
def sqlite_settings(monkeypatch: pytest.MonkeyPatch, tmp_path, settings: Settings) -> Settings:
    monkeypatch.setenv("PERSISTENCE_BACKEND", "sqlite")
    monkeypatch.setenv("SQLITE_DB_PATH", str(tmp_path / "tasks.db"))
    return get_settings()


@pytest.fixture()
def services(settings: Settings) -> Services:
    return build_services(settings)


@pytest.fixture()
def app(services: Services):
    return create_app(services=services)


@pytest.fixture()
def make_client(app) -> Callable[[], TestClient]:
    """Factory for independent clients (separate cookie jars) on the same app."""

    def _make() -> TestClient:
        return TestClient(app)

    return _make


@pytest.fixture()
def client(make_client) -> TestClient:
    return make_client()


@pytest.fixture()
def register() -> Callable[..., Any]:
    """Register a user through the API; the client keeps the session cookie."""

    def _register(client: TestClient, username: str = "alice", password: str = "password123"):
        res = client.post("/api/register", json={"username": username, "password": password})
        assert res.status_code == 200, res.text
        return res.json()

    return _register


@pytest.fixture()
def alice(make_client, register) -> TestClient:
    c = make_client()
    register(c, "alice", "alice-secret")
    return c


@pytest.fixture()
def bob(make_client, register) -> TestClient:
    c = make_client()
    register(c, "bob", "bob-secret")
    return c
