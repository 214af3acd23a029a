"""Pydantic request/response schemas for uh_user.

All responses are wrapped in ApiResponse at the router layer.
password_hash never leaves the service: UserOut has no password field.

Cursor format for the user list (UUID PK, not sequential):
  {"ts": "<created_at ISO>", "id": "<user_id>"}
  Encoded as Base64 JSON string.
"""

import base64
import json
import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from src.uh_user.domain.models import User

_MOBILE_PATTERN = r"^\+?[0-9]+$"
# bcrypt only hashes the first 72 bytes and refuses longer input
_PASSWORD_MAX_BYTES = 72

# ---------------------------------------------------------------------------
# Cursor utilities
# ---------------------------------------------------------------------------


def cursor_encode(last_user: User) -> str:
    """Encode composite cursor from last user in page."""
    payload = {
        "ts": last_user.created_at.isoformat(),
        "id": last_user.id,
    }
    return base64.b64encode(json.dumps(payload).encode()).decode()


def cursor_decode(cursor: str | None) -> tuple[str | None, str | None]:
    """Decode composite cursor -> (ts_iso, user_id), or (None, None) on error."""
    if cursor is None:
        return None, None
    try:
        data = json.loads(base64.b64decode(cursor.encode()).decode())
        datetime.fromisoformat(data["ts"])
        uuid.UUID(data["id"])
        return data["ts"], data["id"]
    except Exception:
        return None, None


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


def _check_password_bytes(v: str) -> str:
    if len(v.encode("utf-8")) > _PASSWORD_MAX_BYTES:
        raise ValueError(f"Password must be at most {_PASSWORD_MAX_BYTES} bytes")
    return v


class CreateUserRequest(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str | None = Field(None, max_length=100)
    email: EmailStr
    mobile_no: str | None = Field(None, min_length=8, max_length=15, pattern=_MOBILE_PATTERN)
    password: str = Field(..., min_length=6, max_length=_PASSWORD_MAX_BYTES)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, v: str) -> str:
        return _check_password_bytes(v)


class UpdateUserRequest(BaseModel):
    """Partial update: only fields present in the body are changed."""

    first_name: str | None = Field(None, min_length=1, max_length=100)
    last_name: str | None = Field(None, max_length=100)
    email: EmailStr | None = None
    mobile_no: str | None = Field(None, min_length=8, max_length=15, pattern=_MOBILE_PATTERN)
    password: str | None = Field(None, min_length=6, max_length=_PASSWORD_MAX_BYTES)
    status: int | None = Field(None, ge=0, le=1)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, v: str | None) -> str | None:
        return v if v is None else _check_password_bytes(v)

    @model_validator(mode="after")
    def at_least_one_field(self) -> "UpdateUserRequest":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided")
        for name in ("first_name", "email", "password", "status"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class UserOut(BaseModel):
    id: str
    first_name: str
    last_name: str | None
    email: str
    mobile_no: str | None
    status: int
    created_at: str
    updated_at: str

    @classmethod
    def from_domain(cls, user: User) -> "UserOut":
        return cls(
            id=user.id,
            first_name=user.first_name,
            last_name=user.last_name,
            email=user.email,
            mobile_no=user.mobile_no,
            status=user.status,
            created_at=user.created_at.isoformat(),
            updated_at=user.updated_at.isoformat(),
        )


class UserListResponse(BaseModel):
    items: list[UserOut]
    next_cursor: str | None
    has_more: bool
