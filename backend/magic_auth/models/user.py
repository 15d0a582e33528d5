"""User model - the account a magic link authenticates.

Created lazily on the first link request for an unseen email.
Never deleted by this service.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import String, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from magic_auth.models.base import Base, CreatedAtMixin

if TYPE_CHECKING:
    from magic_auth.models.magic_link_token import MagicLinkToken

_DEFAULT_UUID = text("gen_random_uuid()")

# Request validation uses the same limit, so any accepted email fits the column
EMAIL_MAX_LENGTH = 320


class User(Base, CreatedAtMixin):
    """User account identified by email.

    Attributes:
        id: UUID primary key, generated by the database.
        email: Unique, trimmed and lower-cased email address.
        last_login_at: Set on every successful magic link redemption.
        created_at: Account creation timestamp (from CreatedAtMixin).
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=_DEFAULT_UUID,
    )
    email: Mapped[str] = mapped_column(
        String(EMAIL_MAX_LENGTH),
        unique=True,
        nullable=False,
    )
    last_login_at: Mapped[datetime | None] = mapped_column(
        nullable=True,
    )

    magic_link_tokens: Mapped[list["MagicLinkToken"]] = relationship(
        "MagicLinkToken",
        back_populates="user",
    )
