"""Repository for MagicLinkToken operations.

Single-use magic link tokens stored as SHA-256 digests with a logical
expiry. Rows are inserted at issuance and updated exactly once
(consumed_at) at redemption; nothing here deletes them.
"""

import uuid
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from magic_auth.models.magic_link_token import MagicLinkToken


class MagicLinkTokenRepository:
    """Stateless repository for MagicLinkToken table operations."""

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        token_hash: bytes,
        expires_at: datetime,
    ) -> MagicLinkToken:
        """Store a new token digest.

        Args:
            db: Async database session.
            user_id: Owning account.
            token_hash: SHA-256 digest of the plain token.
            expires_at: Token expiry timestamp.

        Returns:
            Created MagicLinkToken with its generated id.
        """
        token = MagicLinkToken(
            user_id=user_id,
            token_hash=token_hash,
            expires_at=expires_at,
        )
        db.add(token)
        await db.flush()
        await db.refresh(token)
        return token

    @staticmethod
    async def get_redeemable_for_update(
        db: AsyncSession,
        *,
        token_hash: bytes,
        now: datetime,
    ) -> MagicLinkToken | None:
        """Find a redeemable token and lock its row until the transaction ends.

        SELECT ... FOR UPDATE serializes concurrent redemptions of the same
        digest. A waiter re-evaluates the WHERE clause once the holder
        commits, so it no longer matches after consumed_at is set.

        Args:
            db: Async database session (must be inside a transaction).
            token_hash: SHA-256 digest of the presented token.
            now: Current time; the token must expire strictly after it.

        Returns:
            The locked MagicLinkToken, or None if unknown, expired or consumed.
        """
        stmt = (
            select(MagicLinkToken)
            .where(
                MagicLinkToken.token_hash == token_hash,
                MagicLinkToken.consumed_at.is_(None),
                MagicLinkToken.expires_at > now,
            )
            .with_for_update()
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def mark_consumed(
        db: AsyncSession, token_id: uuid.UUID, *, at: datetime
    ) -> None:
        """Set consumed_at on a token locked by get_redeemable_for_update()."""
        stmt = (
            update(MagicLinkToken)
            .where(MagicLinkToken.id == token_id)
            .values(consumed_at=at)
        )
        await db.execute(stmt)
