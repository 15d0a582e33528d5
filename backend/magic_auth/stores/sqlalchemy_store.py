"""PostgreSQL store built on the SQLAlchemy async engine (asyncpg).

One AsyncSession per unit of work, opened with ``session.begin()`` so the
transaction commits on normal exit and rolls back on any exception or
cancellation. Driver exceptions are translated to store errors here so
services never see SQLAlchemy types.
"""

import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime

from sqlalchemy import text
from sqlalchemy.exc import (
    DBAPIError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
    TimeoutError as PoolTimeoutError,
)
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from magic_auth.repositories.magic_link_token_repository import (
    MagicLinkTokenRepository,
)
from magic_auth.repositories.user_repository import UserRepository
from magic_auth.stores.base import (
    AuthStore,
    AuthTransaction,
    DuplicateAccountError,
    RedeemableToken,
    StoreError,
    StoreUnavailableError,
)

logger = logging.getLogger(__name__)


def _is_unavailable(exc: BaseException) -> bool:
    """True when no connection could be obtained (refused, dropped, pool timeout)."""
    if isinstance(
        exc, OperationalError | InterfaceError | PoolTimeoutError | OSError
    ):
        return True
    return isinstance(exc, DBAPIError) and exc.connection_invalidated


class _SqlAlchemyTransaction(AuthTransaction):
    """AuthTransaction bound to one AsyncSession inside ``session.begin()``."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def find_user_id(self, email: str) -> uuid.UUID | None:
        user = await UserRepository.get_by_email(self._session, email)
        return user.id if user is not None else None

    async def create_user(self, email: str) -> uuid.UUID:
        # Savepoint so a unique violation does not poison the outer transaction
        try:
            async with self._session.begin_nested():
                user = await UserRepository.create(self._session, email=email)
        except IntegrityError as exc:
            raise DuplicateAccountError(email) from exc
        return user.id

    async def add_token(
        self, *, user_id: uuid.UUID, token_hash: bytes, expires_at: datetime
    ) -> uuid.UUID:
        token = await MagicLinkTokenRepository.create(
            self._session,
            user_id=user_id,
            token_hash=token_hash,
            expires_at=expires_at,
        )
        return token.id

    async def lock_redeemable_token(
        self, token_hash: bytes, now: datetime
    ) -> RedeemableToken | None:
        token = await MagicLinkTokenRepository.get_redeemable_for_update(
            self._session, token_hash=token_hash, now=now
        )
        if token is None:
            return None
        return RedeemableToken(id=token.id, user_id=token.user_id)

    async def mark_token_consumed(self, token_id: uuid.UUID, at: datetime) -> None:
        await MagicLinkTokenRepository.mark_consumed(self._session, token_id, at=at)

    async def record_login(self, user_id: uuid.UUID, at: datetime) -> None:
        updated = await UserRepository.touch_last_login(self._session, user_id, at=at)
        if not updated:
            raise StoreError(f"user {user_id} vanished during redemption")

    async def get_user_email(self, user_id: uuid.UUID) -> str | None:
        return await UserRepository.get_email(self._session, user_id)


class SqlAlchemyAuthStore(AuthStore):
    """AuthStore over a pooled SQLAlchemy async engine.

    Args:
        engine: Async engine (asyncpg driver). The store owns it and
            disposes it in close().
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine
        self._session_factory = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AuthTransaction]:
        try:
            async with self._session_factory() as session, session.begin():
                yield _SqlAlchemyTransaction(session)
        except SQLAlchemyError as exc:
            if _is_unavailable(exc):
                raise StoreUnavailableError(str(exc)) from exc
            raise StoreError(str(exc)) from exc
        except OSError as exc:
            raise StoreUnavailableError(str(exc)) from exc

    async def ping(self) -> None:
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as exc:
            raise StoreUnavailableError(str(exc)) from exc

    async def close(self) -> None:
        await self._engine.dispose()
        logger.info("Database pool disposed")
