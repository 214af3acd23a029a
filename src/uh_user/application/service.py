"""UserApplicationService — CRUD over users with cache upkeep.

Reads:  get_user is cache-aside on the entity key ``users:user:{id}``.
        list_users is not cached here; the router caches the whole HTTP
        response under ``users:list``.
Writes: commit first, then invalidate (entity key + every listing namespace),
        then return. The mutating caller never reads its own stale data.

Transactions: each mutation commits or rolls back itself. The cache argument
may be None (cache disabled); every cache step is then skipped.
"""

import logging

from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.uh_cache.application.invalidation import CacheInvalidator, InvalidationReport
from src.uh_cache.application.service import CacheService
from src.uh_common.errors import (
    EmailExistsError,
    MobileExistsError,
    UserConflictError,
    UserNotFoundError,
)
from src.uh_user.application.password import with_password_hash
from src.uh_user.application.schemas import (
    CreateUserRequest,
    UpdateUserRequest,
    UserListResponse,
    UserOut,
    cursor_decode,
    cursor_encode,
)
from src.uh_user.domain.repository import UserRepositoryProtocol
from src.uh_user.infrastructure.persistence import UserRepository

logger = logging.getLogger("uh.user")

USERS_NAMESPACE = "users"
USER_LIST_NAMESPACE = "users:list"
USER_ENTITY_PREFIX = "user"


def user_invalidator(cache: CacheService) -> CacheInvalidator:
    return CacheInvalidator(
        cache,
        namespace=USERS_NAMESPACE,
        entity_prefix=USER_ENTITY_PREFIX,
        listing_namespaces=(USER_LIST_NAMESPACE,),
    )


def user_cache_key(user_id: str) -> str:
    return f"{USER_ENTITY_PREFIX}:{user_id}"


class UserApplicationService:
    def __init__(
        self,
        repo: UserRepositoryProtocol | None = None,
        entity_ttl: int | None = None,
    ) -> None:
        self._repo: UserRepositoryProtocol = repo or UserRepository()
        self._entity_ttl = entity_ttl or settings.USER_CACHE_TTL

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_users(
        self,
        db: AsyncSession,
        status: int | None,
        cursor: str | None,
        limit: int,
    ) -> UserListResponse:
        cursor_ts, cursor_id = cursor_decode(cursor)
        # Fetch limit+1 to detect has_more without COUNT(*)
        users = await self._repo.list_users(db, status, cursor_ts, cursor_id, limit + 1)
        has_more = len(users) > limit
        page = users[:limit]
        next_cursor = cursor_encode(page[-1]) if has_more and page else None
        return UserListResponse(
            items=[UserOut.from_domain(u) for u in page],
            next_cursor=next_cursor,
            has_more=has_more,
        )

    async def get_user(
        self,
        db: AsyncSession,
        user_id: str,
        cache: CacheService | None = None,
    ) -> UserOut:
        key = user_cache_key(user_id)
        if cache is not None:
            cached = await cache.fetch(key, USERS_NAMESPACE)
            if cached.hit:
                try:
                    return UserOut.model_validate(cached.value)
                except ValidationError:
                    logger.warning("Discarding malformed cached user %s", user_id)

        user = await self._repo.get_user_by_id(db, user_id)
        if user is None:
            raise UserNotFoundError(user_id)

        out = UserOut.from_domain(user)
        if cache is not None:
            await cache.set(key, out.model_dump(), self._entity_ttl, USERS_NAMESPACE)
        return out

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create_user(
        self,
        db: AsyncSession,
        body: CreateUserRequest,
        cache: CacheService | None = None,
    ) -> UserOut:
        try:
            # Uniqueness pre-checks (DB UNIQUE constraints are the final guard)
            if await self._repo.email_taken(db, body.email):
                raise EmailExistsError()
            if body.mobile_no and await self._repo.mobile_taken(db, body.mobile_no):
                raise MobileExistsError()

            fields = with_password_hash(body.model_dump())
            fields["status"] = 1
            user = await self._repo.create_user(db, fields)
            await db.commit()
        except IntegrityError as exc:
            await db.rollback()
            raise UserConflictError() from exc
        except Exception:
            await db.rollback()
            raise

        logger.info("User created: %s", user.id)
        await self._invalidate(cache, user.id)
        return UserOut.from_domain(user)

    async def update_user(
        self,
        db: AsyncSession,
        user_id: str,
        body: UpdateUserRequest,
        cache: CacheService | None = None,
    ) -> UserOut:
        changes = body.changes()
        try:
            if "email" in changes and await self._repo.email_taken(
                db, changes["email"], exclude_id=user_id
            ):
                raise EmailExistsError()
            if changes.get("mobile_no") and await self._repo.mobile_taken(
                db, changes["mobile_no"], exclude_id=user_id
            ):
                raise MobileExistsError()

            user = await self._repo.update_user(db, user_id, with_password_hash(changes))
            if user is None:
                raise UserNotFoundError(user_id)
            await db.commit()
        except IntegrityError as exc:
            await db.rollback()
            raise UserConflictError() from exc
        except Exception:
            await db.rollback()
            raise

        logger.info("User updated: %s (%s)", user_id, ", ".join(sorted(changes)))
        await self._invalidate(cache, user_id)
        return UserOut.from_domain(user)

    async def delete_user(
        self,
        db: AsyncSession,
        user_id: str,
        cache: CacheService | None = None,
    ) -> None:
        try:
            deleted = await self._repo.soft_delete_user(db, user_id)
            if not deleted:
                raise UserNotFoundError(user_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info("User soft-deleted: %s", user_id)
        await self._invalidate(cache, user_id)

    async def _invalidate(
        self, cache: CacheService | None, user_id: str
    ) -> InvalidationReport | None:
        if cache is None:
            return None
        return await user_invalidator(cache).invalidate(user_id)
