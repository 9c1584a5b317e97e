from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from fastapi import Request

from .repositories import TaskRepository, UserDirectory, get_task_repository, get_user_directory
from .security import CredentialStore
from .sessions import SessionManager, get_session_store
from .settings import Settings
from .suggestions import SuggestionEngine


# PUBLIC_INTERFACE
@dataclass(frozen=True)
class Services:
    """
    Process-wide collaborators, built once at startup and attached to
    ``app.state.services``.
    """

    settings: Settings
    users: UserDirectory
    tasks: TaskRepository
    sessions: SessionManager
    suggestions: SuggestionEngine


# PUBLIC_INTERFACE
def build_services(settings: Settings) -> Services:
    """Construct the configured stores, session manager and suggestion engine."""
    credentials = CredentialStore(method=settings.password_hash_method)
    users = get_user_directory(settings, credentials)
    sessions = SessionManager(
        users=users,
        credentials=credentials,
        store=get_session_store(settings),
        idle_timeout=timedelta(seconds=settings.session_idle_timeout_seconds),
        absolute_timeout=timedelta(seconds=settings.session_absolute_timeout_seconds),
        purge_interval=timedelta(seconds=settings.session_purge_interval_seconds),
    )
    return Services(
        settings=settings,
        users=users,
        tasks=get_task_repository(settings),
        sessions=sessions,
        suggestions=SuggestionEngine.from_settings(settings),
    )


def get_services(request: Request) -> Services:
    """
    Dependency returning the services attached to the running app.
    """
    return request.app.state.services
