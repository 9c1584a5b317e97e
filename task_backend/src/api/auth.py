from __future__ import annotations

from typing import Optional

from fastapi import Depends, Request, Response

from .dependencies import Services, get_services
from .errors import AuthenticationError


def get_session_token(request: Request, services: Services = Depends(get_services)) -> Optional[str]:
    """Return the raw session token carried by the request cookie, if any."""
    return request.cookies.get(services.settings.session_cookie_name)


# PUBLIC_INTERFACE
def get_current_user_id(
    token: Optional[str] = Depends(get_session_token),
    services: Services = Depends(get_services),
) -> int:
    """
    Dependency enforcing an authenticated session.

    Returns:
        The id of the user owning the session.

    Raises:
        AuthenticationError (401) if the cookie is missing, unknown or expired.
    """
    user_id = services.sessions.validate(token)
    if user_id is None:
        raise AuthenticationError()
    return user_id


# PUBLIC_INTERFACE
def set_session_cookie(response: Response, services: Services, token: str) -> None:
    """
    Attach the session cookie to a response.

    The cookie is HttpOnly and SameSite=Lax; Secure follows SESSION_COOKIE_SECURE.
    """
    response.set_cookie(
        key=services.settings.session_cookie_name,
        value=token,
        max_age=int(services.sessions.absolute_timeout.total_seconds()),
        httponly=True,
        samesite="lax",
        secure=services.settings.session_cookie_secure,
        path="/",
    )


def clear_session_cookie(response: Response, services: Services) -> None:
    response.delete_cookie(
        key=services.settings.session_cookie_name,
        path="/",
        httponly=True,
        samesite="lax",
        secure=services.settings.session_cookie_secure,
    )
