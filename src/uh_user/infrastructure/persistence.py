"""UserRepository — concrete implementation of UserRepositoryProtocol.

ORM queries over UserModel. Mutations flush (to surface constraint errors
and server-side defaults) but never commit.

Transaction ownership: The CALLER (application service) commits or rolls back.
"""

import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.uh_user.domain.models import User
from src.uh_user.infrastructure.db_models import UserModel


def _to_domain(model: UserModel) -> User:
    return User(
        id=str(model.id),
        first_name=model.first_name,
        last_name=model.last_name,
        email=model.email,
        mobile_no=model.mobile_no,
        password_hash=model.password_hash,
        status=model.status,
        created_at=model.created_at,
        updated_at=model.updated_at,
        deleted_at=model.deleted_at,
    )


class UserRepository:
    async def list_users(
        self,
        db: AsyncSession,
        status: int | None,
        cursor_ts: str | None,
        cursor_id: str | None,
        limit: int,
    ) -> list[User]:
        stmt = select(UserModel).where(UserModel.deleted_at.is_(None))
        if status is not None:
            stmt = stmt.where(UserModel.status == status)
        if cursor_ts is not None and cursor_id is not None:
            ts = datetime.fromisoformat(cursor_ts)
            cid = uuid.UUID(cursor_id)
            stmt = stmt.where(
                or_(
                    UserModel.created_at < ts,
                    and_(UserModel.created_at == ts, UserModel.id < cid),
                )
            )
        stmt = stmt.order_by(UserModel.created_at.desc(), UserModel.id.desc()).limit(limit)
        result = await db.execute(stmt)
        return [_to_domain(m) for m in result.scalars().all()]

    async def _get_model(self, db: AsyncSession, user_id: str) -> UserModel | None:
        result = await db.execute(
            select(UserModel).where(
                UserModel.id == uuid.UUID(user_id),
                UserModel.deleted_at.is_(None),
            )
        )
        return result.scalar_one_or_none()

    async def get_user_by_id(self, db: AsyncSession, user_id: str) -> User | None:
        model = await self._get_model(db, user_id)
        return _to_domain(model) if model is not None else None

    async def email_taken(
        self, db: AsyncSession, email: str, exclude_id: str | None = None
    ) -> bool:
        stmt = select(UserModel.id).where(UserModel.email == email)
        if exclude_id is not None:
            stmt = stmt.where(UserModel.id != uuid.UUID(exclude_id))
        result = await db.execute(stmt.limit(1))
        return result.scalar_one_or_none() is not None

    async def mobile_taken(
        self, db: AsyncSession, mobile_no: str, exclude_id: str | None = None
    ) -> bool:
        stmt = select(UserModel.id).where(UserModel.mobile_no == mobile_no)
        if exclude_id is not None:
            stmt = stmt.where(UserModel.id != uuid.UUID(exclude_id))
        result = await db.execute(stmt.limit(1))
        return result.scalar_one_or_none() is not None

    async def create_user(self, db: AsyncSession, fields: dict[str, Any]) -> User:
        model = UserModel(**fields)
        db.add(model)
        await db.flush()
        await db.refresh(model)  # load server defaults (id, timestamps)
        return _to_domain(model)

    async def update_user(
        self, db: AsyncSession, user_id: str, changes: dict[str, Any]
    ) -> User | None:
        model = await self._get_model(db, user_id)
        if model is None:
            return None
        for name, value in changes.items():
            setattr(model, name, value)
        await db.flush()
        await db.refresh(model)  # updated_at is set by trigger
        return _to_domain(model)

    async def soft_delete_user(self, db: AsyncSession, user_id: str) -> bool:
        model = await self._get_model(db, user_id)
        if model is None:
            return False
        model.deleted_at = datetime.now(UTC)
        await db.flush()
        return True
