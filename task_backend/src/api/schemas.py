from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

TITLE_MAX_LENGTH = 100
USERNAME_MIN_LENGTH = 3
PASSWORD_MIN_LENGTH = 6


def _ensure_encodable(v: str) -> str:
    # JSON escapes can produce lone surrogates, which UTF-8 cannot encode.
    try:
        v.encode("utf-8")
    except UnicodeEncodeError:
        raise ValueError("must be valid Unicode text") from None
    return v


def _validate_title(v: Optional[str]) -> str:
    """
    Strip whitespace and enforce 1..100 length.
    """
    if v is None:
        raise ValueError("title must not be null")
    s = _ensure_encodable(v).strip()
    if not (1 <= len(s) <= TITLE_MAX_LENGTH):
        raise ValueError(f"title length must be between 1 and {TITLE_MAX_LENGTH} characters")
    return s


# PUBLIC_INTERFACE
class TaskCreate(BaseModel):
    """
    Schema for creating a new task.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Write report",
                "completed": False,
            }
        }
    )

    title: str = Field(..., description="Short title for the task")
    completed: bool = Field(default=False, description="Completion status flag")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        return _validate_title(v)


# PUBLIC_INTERFACE
class TaskUpdate(BaseModel):
    """
    Schema for partially updating a task.
    All fields are optional; only provided fields will be updated.
    Explicit nulls are rejected.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "completed": True,
            }
        }
    )

    title: Optional[str] = Field(default=None, description="Short title for the task")
    completed: Optional[bool] = Field(default=None, description="Completion status flag")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: Optional[str]) -> str:
        return _validate_title(v)

    @field_validator("completed")
    @classmethod
    def validate_completed(cls, v: Optional[bool]) -> bool:
        if v is None:
            raise ValueError("completed must not be null")
        return v


# PUBLIC_INTERFACE
class TaskOut(BaseModel):
    """
    Schema returned by the API for a task.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": 7,
                "title": "Write report",
                "completed": False,
                "user_id": 1,
                "created_at": "2025-01-25T10:15:30.123456+00:00",
            }
        }
    )

    id: int = Field(..., description="Unique identifier of the task")
    title: str = Field(..., description="Short title for the task")
    completed: bool = Field(..., description="Completion status flag")
    user_id: int = Field(..., description="Identifier of the owning user")
    created_at: datetime = Field(..., description="Creation timestamp")


# PUBLIC_INTERFACE
class UserCreate(BaseModel):
    """
    Registration payload. Usernames are matched exactly (case-sensitive).
    """

    model_config = ConfigDict(
        json_schema_extra={"example": {"username": "alice", "password": "s3cret!"}}
    )

    username: str = Field(..., description="Unique login name")
    password: str = Field(..., description="Plaintext password, never stored")

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        s = _ensure_encodable(v).strip()
        if len(s) < USERNAME_MIN_LENGTH:
            raise ValueError(f"Username must be at least {USERNAME_MIN_LENGTH} characters")
        return s

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        _ensure_encodable(v)
        if len(v) < PASSWORD_MIN_LENGTH:
            raise ValueError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters")
        return v


class LoginRequest(BaseModel):
    """Login payload. Length policies are not re-checked here."""

    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)

    @field_validator("username")
    @classmethod
    def strip_username(cls, v: str) -> str:
        return _ensure_encodable(v).strip()

    @field_validator("password")
    @classmethod
    def check_password(cls, v: str) -> str:
        return _ensure_encodable(v)


class PasswordChange(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., description="Replacement password")

    @field_validator("current_password")
    @classmethod
    def check_current_password(cls, v: str) -> str:
        return _ensure_encodable(v)

    @field_validator("new_password")
    @classmethod
    def validate_new_password(cls, v: str) -> str:
        _ensure_encodable(v)
        if len(v) < PASSWORD_MIN_LENGTH:
            raise ValueError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters")
        return v


# PUBLIC_INTERFACE
class UserOut(BaseModel):
    """
    Public view of a user. The password hash is never included.
    """

    id: int = Field(..., description="Unique identifier of the user")
    username: str = Field(..., description="Login name")
    created_at: datetime = Field(..., description="Registration timestamp")


class MessageOut(BaseModel):
    message: str


# PUBLIC_INTERFACE
class SuggestionRequest(BaseModel):
    """
    Request body for follow-up task suggestions.
    """

    model_config = ConfigDict(json_schema_extra={"example": {"task": "Plan team offsite"}})

    task: str = Field(..., description="Free-text task description")

    @field_validator("task")
    @classmethod
    def validate_task(cls, v: str) -> str:
        s = _ensure_encodable(v).strip()
        if not s:
            raise ValueError("Task text required")
        return s


# PUBLIC_INTERFACE
class SuggestionResponse(BaseModel):
    """
    Suggested follow-up tasks; possibly empty, never more than three.
    """

    suggestions: List[str] = Field(default_factory=list, description="Suggested follow-up task titles")
