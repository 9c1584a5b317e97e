from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .dependencies import Services, build_services
from .errors import ApiError
from .logging_setup import setup_logging
from .routers import suggestions as suggestions_router
from .routers import tasks as tasks_router
from .routers import users as users_router
from .settings import Settings, get_settings

logger = logging.getLogger(__name__)


def _public_errors(errors: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Drop submitted values from validation errors; passwords must not be echoed."""
    cleaned = []
    for err in errors:
        err = {k: v for k, v in err.items() if k != "input"}
        ctx = err.get("ctx")
        if ctx:
            err["ctx"] = {
                k: v if isinstance(v, (str, int, float, bool)) else str(v) for k, v in ctx.items()
            }
        cleaned.append(err)
    return jsonable_encoder(cleaned)


openapi_tags = [
    {"name": "health", "description": "Service health and status endpoints."},
    {"name": "users", "description": "Registration, login/logout and account management."},
    {"name": "tasks", "description": "CRUD operations on the authenticated user's tasks."},
    {
        "name": "suggestions",
        "description": "AI-generated follow-up task suggestions with a deterministic fallback.",
    },
]


# PUBLIC_INTERFACE
def create_app(settings: Optional[Settings] = None, services: Optional[Services] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Settings to use; loaded from the environment when omitted.
        services: Pre-built collaborators (tests inject fakes here); built
            from ``settings`` when omitted.

    Returns:
        A configured FastAPI app with ``app.state.services`` populated.
    """
    if services is None:
        services = build_services(settings or get_settings())
    settings = services.settings

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        setup_logging(settings.log_level)
        purged = services.sessions.purge_expired()
        logger.info(
            "Task backend starting (backend=%s, suggestions=%s, purged %d expired session(s))",
            settings.persistence_backend,
            "provider" if services.suggestions.configured else "fallback",
            purged,
        )
        yield

    app = FastAPI(
        title="Task Backend",
        description="Personal task management API with session auth and AI follow-up suggestions.",
        version="0.1.0",
        openapi_tags=openapi_tags,
        lifespan=lifespan,
    )
    app.state.services = services

    # Configure CORS based on settings (.env -> CORS_ALLOW_ORIGINS), with '*' fallback.
    # The session cookie is only shared with explicitly listed origins.
    allow_all = (settings.cors_allow_origins == ["*"]) or (len(settings.cors_allow_origins) == 0)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.cors_allow_origins,
        allow_credentials=not allow_all,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """
        Return a consistent JSON structure for request validation errors.

        Response format:
            {
                "error": "ValidationError",
                "message": "Request validation failed",
                "detail": [... pydantic/fastapi error details, without "input" ...]
            }
        """
        return JSONResponse(
            status_code=400,
            content={
                "error": "ValidationError",
                "message": "Request validation failed",
                "detail": _public_errors(exc.errors()),
            },
        )

    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
        """Map domain errors to their HTTP status."""
        if exc.status_code >= 500:
            logger.error("Unhandled service error on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.error, "message": exc.message},
        )

    @app.get("/", summary="Health Check", tags=["health"])
    def health_check():
        """
        Health check endpoint.

        Returns:
            A JSON object indicating service health.
        """
        return {
            "message": "Healthy",
            "backend": settings.persistence_backend,
            "suggestions": "provider" if services.suggestions.configured else "fallback",
        }

    app.include_router(users_router.router)
    app.include_router(tasks_router.router)
    app.include_router(suggestions_router.router)
    return app


_app: Optional[FastAPI] = None


def __getattr__(name: str) -> Any:
    # Uvicorn entry point: uvicorn src.api.main:app
    # Built on first access so importing this module has no storage side effects.
    global _app
    if name == "app":
        if _app is None:
            _app = create_app()
        return _app
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
