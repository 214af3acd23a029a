# src/uh_user/domain/repository.py
"""Repository Protocol — dependency inversion for testability.

Unit tests inject a mock that conforms to this Protocol.
Infrastructure layer provides the real implementation.

Soft-deleted rows (deleted_at IS NOT NULL) are invisible to every method
except the uniqueness lookups, which mirror the table's UNIQUE constraints.
"""

from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.uh_user.domain.models import User


class UserRepositoryProtocol(Protocol):
    async def list_users(
        self,
        db: AsyncSession,
        status: int | None,
        cursor_ts: str | None,
        cursor_id: str | None,
        limit: int,
    ) -> list[User]: ...

    async def get_user_by_id(self, db: AsyncSession, user_id: str) -> User | None: ...

    async def email_taken(
        self, db: AsyncSession, email: str, exclude_id: str | None = None
    ) -> bool: ...

    async def mobile_taken(
        self, db: AsyncSession, mobile_no: str, exclude_id: str | None = None
    ) -> bool: ...

    async def create_user(self, db: AsyncSession, fields: dict[str, Any]) -> User: ...

    async def update_user(
        self, db: AsyncSession, user_id: str, changes: dict[str, Any]
    ) -> User | None: ...

    async def soft_delete_user(self, db: AsyncSession, user_id: str) -> bool: ...
