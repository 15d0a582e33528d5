"""Abstract store interface for accounts and magic link tokens.

The issuance flow and the redemption protocol only talk to an AuthStore,
so they can run against PostgreSQL in production and an in-process store
in tests. All work happens inside ``transaction()``: leaving the block
normally commits, leaving it with an exception rolls everything back.
"""

import uuid
from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from datetime import datetime


class StoreError(Exception):
    """A store operation failed (query error, constraint violation, ...)."""


class StoreUnavailableError(StoreError):
    """The store could not be reached (connection refused, pool closed, ...)."""


class DuplicateAccountError(StoreError):
    """An account with this email was created concurrently."""


@dataclass(frozen=True)
class RedeemableToken:
    """A token row locked for redemption.

    Attributes:
        id: Token primary key.
        user_id: Owning account.
    """

    id: uuid.UUID
    user_id: uuid.UUID


class AuthTransaction(ABC):
    """Operations available inside one atomic unit of work."""

    @abstractmethod
    async def find_user_id(self, email: str) -> uuid.UUID | None:
        """Look up an account by normalized email."""

    @abstractmethod
    async def create_user(self, email: str) -> uuid.UUID:
        """Insert an account and return its generated id.

        Raises:
            DuplicateAccountError: If the email already exists. The
                transaction stays usable.
        """

    @abstractmethod
    async def add_token(
        self, *, user_id: uuid.UUID, token_hash: bytes, expires_at: datetime
    ) -> uuid.UUID:
        """Persist a token digest and return the token id."""

    @abstractmethod
    async def lock_redeemable_token(
        self, token_hash: bytes, now: datetime
    ) -> RedeemableToken | None:
        """Find an unconsumed, unexpired token by digest and lock it.

        The lock is held until the transaction ends, so a concurrent
        caller for the same digest waits and then sees the token consumed.
        """

    @abstractmethod
    async def mark_token_consumed(self, token_id: uuid.UUID, at: datetime) -> None:
        """Set consumed_at on a locked token."""

    @abstractmethod
    async def record_login(self, user_id: uuid.UUID, at: datetime) -> None:
        """Set last_login_at on an account."""

    @abstractmethod
    async def get_user_email(self, user_id: uuid.UUID) -> str | None:
        """Read an account's email."""


class AuthStore(ABC):
    """Durable, transactional store shared by all requests."""

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[AuthTransaction]:
        """Open an atomic unit of work.

        Raises:
            StoreUnavailableError: If the store cannot be reached.
            StoreError: If a store operation inside the unit fails.
        """

    @abstractmethod
    async def ping(self) -> None:
        """Check connectivity.

        Raises:
            StoreUnavailableError: If the store cannot be reached.
        """

    @abstractmethod
    async def close(self) -> None:
        """Release pooled resources."""
