"""Password hashing for stored users (bcrypt, used directly).

Plain-text passwords arrive in create/update bodies and are swapped for a
bcrypt hash before anything reaches the repository.
"""

from typing import Any

import bcrypt


def hash_password(plain: str) -> str:
    """Hash a plain-text password with bcrypt. Returns a utf-8 hash string."""
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def with_password_hash(fields: dict[str, Any]) -> dict[str, Any]:
    """Copy of ``fields`` with ``password`` replaced by ``password_hash``."""
    out = dict(fields)
    plain = out.pop("password", None)
    if plain is not None:
        out["password_hash"] = hash_password(plain)
    return out
