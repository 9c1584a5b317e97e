from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Response

from ..auth import clear_session_cookie, get_current_user_id, get_session_token, set_session_cookie
from ..dependencies import Services, get_services
from ..errors import AuthenticationError
from ..models import UserEntity
from ..schemas import LoginRequest, MessageOut, PasswordChange, UserCreate, UserOut

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api",
    tags=["users"],
)


def _to_out(user: UserEntity) -> UserOut:
    return UserOut(id=user["id"], username=user["username"], created_at=user["created_at"])


def _user_out(services: Services, user_id: int) -> UserOut:
    user = services.users.find_by_id(user_id)
    if user is None:
        # Session outlived its user.
        raise AuthenticationError()
    return _to_out(user)


# PUBLIC_INTERFACE
@router.post(
    "/register",
    response_model=UserOut,
    summary="Register",
    description="Create an account and start a session for it.",
    responses={
        200: {"description": "User registered and logged in"},
        400: {"description": "Username or password does not meet the length policy"},
        409: {"description": "Username already exists"},
    },
)
def register(
    payload: UserCreate,
    response: Response,
    services: Services = Depends(get_services),
) -> UserOut:
    """
    Register a new user. The new user is logged in immediately.
    """
    user = services.users.create_user(payload.username, payload.password)
    logger.info("Registered user_id=%s username=%r", user["id"], user["username"])
    set_session_cookie(response, services, services.sessions.create_session(user["id"]))
    return _to_out(user)


# PUBLIC_INTERFACE
@router.post(
    "/login",
    response_model=UserOut,
    summary="Log In",
    description="Verify credentials and set the session cookie.",
    responses={
        200: {"description": "Logged in"},
        401: {"description": "Invalid username or password"},
    },
)
def login(
    payload: LoginRequest,
    response: Response,
    services: Services = Depends(get_services),
) -> UserOut:
    """
    Log in with username and password.
    """
    token = services.sessions.login(payload.username, payload.password)
    set_session_cookie(response, services, token)
    user = services.users.find_by_username(payload.username)
    if user is None:
        raise AuthenticationError()
    return _to_out(user)


# PUBLIC_INTERFACE
@router.post(
    "/logout",
    response_model=MessageOut,
    summary="Log Out",
    description="End the current session and clear the cookie.",
    responses={401: {"description": "Missing or invalid session"}},
)
def logout(
    response: Response,
    user_id: int = Depends(get_current_user_id),
    token: Optional[str] = Depends(get_session_token),
    services: Services = Depends(get_services),
) -> MessageOut:
    """
    Log out the current session.
    """
    services.sessions.logout(token)
    clear_session_cookie(response, services)
    return MessageOut(message="Logged out")


# PUBLIC_INTERFACE
@router.get(
    "/user",
    response_model=UserOut,
    summary="Current User",
    description="Return the user behind the current session.",
    responses={401: {"description": "Missing or invalid session"}},
)
def current_user(
    user_id: int = Depends(get_current_user_id),
    services: Services = Depends(get_services),
) -> UserOut:
    return _user_out(services, user_id)


# PUBLIC_INTERFACE
@router.post(
    "/user/password",
    response_model=MessageOut,
    summary="Change Password",
    description=(
        "Replace the caller's password. Every existing session of the user is "
        "invalidated and a fresh session cookie is issued."
    ),
    responses={
        400: {"description": "Current password incorrect or new password too short"},
        401: {"description": "Missing or invalid session"},
    },
)
def change_password(
    payload: PasswordChange,
    response: Response,
    user_id: int = Depends(get_current_user_id),
    services: Services = Depends(get_services),
) -> MessageOut:
    """
    Change the caller's password.
    """
    token = services.sessions.change_password(user_id, payload.current_password, payload.new_password)
    set_session_cookie(response, services, token)
    return MessageOut(message="Password changed")
