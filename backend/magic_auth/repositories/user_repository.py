"""Repository for User operations.

Provides database access for the users table. Callers own the
transaction: nothing here commits.
"""

import uuid
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from magic_auth.models.user import User


class UserRepository:
    """Stateless repository for User table operations.

    All methods are static (no instance state). Pass an AsyncSession
    for every call so the caller controls transaction boundaries.
    """

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> User | None:
        """Fetch a user by (already normalized) email address.

        Args:
            db: Async database session.
            email: Email address to look up.

        Returns:
            User if found, None otherwise.
        """
        stmt = select(User).where(User.email == email)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create(db: AsyncSession, *, email: str) -> User:
        """Create a new user.

        Args:
            db: Async database session.
            email: Normalized email address.

        Returns:
            Created User with database-generated fields populated.

        Raises:
            sqlalchemy.exc.IntegrityError: If email already exists.
        """
        user = User(email=email)
        db.add(user)
        await db.flush()
        await db.refresh(user)
        return user

    @staticmethod
    async def get_email(db: AsyncSession, user_id: uuid.UUID) -> str | None:
        """Read back a user's email by primary key."""
        stmt = select(User.email).where(User.id == user_id)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def touch_last_login(
        db: AsyncSession, user_id: uuid.UUID, *, at: datetime
    ) -> bool:
        """Record a successful sign-in.

        Returns:
            True if the user row was updated, False if it does not exist.
        """
        stmt = update(User).where(User.id == user_id).values(last_login_at=at)
        result = await db.execute(stmt)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count > 0
