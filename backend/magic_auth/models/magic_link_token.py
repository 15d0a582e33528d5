"""Magic link token model.

Stores only the SHA-256 digest of the secret, never the secret itself.
Tokens are consumed once (consumed_at set) and never deleted; expiry is
logical, enforced by comparing expires_at at redemption time.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Index, LargeBinary, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from magic_auth.models.base import Base, CreatedAtMixin

if TYPE_CHECKING:
    from magic_auth.models.user import User

_DEFAULT_UUID = text("gen_random_uuid()")

# SHA-256 digest length in bytes
TOKEN_HASH_LENGTH = 32


class MagicLinkToken(Base, CreatedAtMixin):
    """Single-use, time-limited sign-in token.

    Attributes:
        id: UUID primary key.
        user_id: Owning account.
        token_hash: SHA-256 digest of the URL-safe secret.
        expires_at: Issuance time + configured TTL.
        consumed_at: NULL while the token is still redeemable.
        created_at: Issuance timestamp (from CreatedAtMixin).
    """

    __tablename__ = "magic_link_tokens"
    __table_args__ = (
        Index("idx_magic_link_tokens_user_id", "user_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=_DEFAULT_UUID,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id"),
        nullable=False,
    )
    token_hash: Mapped[bytes] = mapped_column(
        LargeBinary(TOKEN_HASH_LENGTH),
        unique=True,
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(
        nullable=False,
    )
    consumed_at: Mapped[datetime | None] = mapped_column(
        nullable=True,
    )

    user: Mapped["User"] = relationship(
        "User",
        back_populates="magic_link_tokens",
    )
