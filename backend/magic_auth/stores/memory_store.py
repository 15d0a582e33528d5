"""In-process AuthStore for testing.

InMemoryAuthStore lets the issuance flow and the redemption protocol run
without PostgreSQL, with the same transactional contract:

- A transaction works on a private copy of the tables and publishes it
  only when the block exits normally (rollback = drop the copy).
- Transactions are serialized by an asyncio.Lock, which is at least as
  strong as the row lock taken by the PostgreSQL store.
- The email column is unique and token digests are unique.

Faults can be injected to exercise rollback and error mapping:
``unavailable`` makes every transaction fail to open, ``fail_operations``
makes the named operations raise StoreError, ``latency`` delays every
operation (seconds) to exercise timeouts.
"""

import asyncio
import copy
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import UTC, datetime

from magic_auth.stores.base import (
    AuthStore,
    AuthTransaction,
    DuplicateAccountError,
    RedeemableToken,
    StoreError,
    StoreUnavailableError,
)


@dataclass
class StoredUser:
    """Row of the in-memory users table."""

    id: uuid.UUID
    email: str
    last_login_at: datetime | None = None


@dataclass
class StoredToken:
    """Row of the in-memory magic_link_tokens table."""

    id: uuid.UUID
    user_id: uuid.UUID
    token_hash: bytes
    expires_at: datetime
    consumed_at: datetime | None = None
    created_at: datetime | None = None


class _InMemoryTransaction(AuthTransaction):
    def __init__(
        self,
        store: "InMemoryAuthStore",
        users: dict[uuid.UUID, StoredUser],
        tokens: dict[uuid.UUID, StoredToken],
    ) -> None:
        self._store = store
        self.users = users
        self.tokens = tokens

    async def _step(self, operation: str) -> None:
        # Yield to the loop so concurrent callers really interleave
        await asyncio.sleep(self._store.latency)
        if operation in self._store.fail_operations:
            raise StoreError(f"injected failure in {operation}")

    async def find_user_id(self, email: str) -> uuid.UUID | None:
        await self._step("find_user_id")
        for user in self.users.values():
            if user.email == email:
                return user.id
        return None

    async def create_user(self, email: str) -> uuid.UUID:
        await self._step("create_user")
        if email in self._store.concurrent_registrations:
            self._store.concurrent_registrations.discard(email)
            # The competing insert committed first; a re-read now sees it
            winner = StoredUser(id=uuid.uuid4(), email=email)
            self._store.users[winner.id] = winner
            self.users[winner.id] = copy.deepcopy(winner)
            raise DuplicateAccountError(email)
        if any(user.email == email for user in self.users.values()):
            raise DuplicateAccountError(email)
        user = StoredUser(id=uuid.uuid4(), email=email)
        self.users[user.id] = user
        return user.id

    async def add_token(
        self, *, user_id: uuid.UUID, token_hash: bytes, expires_at: datetime
    ) -> uuid.UUID:
        await self._step("add_token")
        if user_id not in self.users:
            raise StoreError(f"foreign key violation: user {user_id}")
        if any(token.token_hash == token_hash for token in self.tokens.values()):
            raise StoreError("unique violation: token_hash")
        token = StoredToken(
            id=uuid.uuid4(),
            user_id=user_id,
            token_hash=token_hash,
            expires_at=expires_at,
            created_at=datetime.now(UTC),
        )
        self.tokens[token.id] = token
        return token.id

    async def lock_redeemable_token(
        self, token_hash: bytes, now: datetime
    ) -> RedeemableToken | None:
        await self._step("lock_redeemable_token")
        for token in self.tokens.values():
            if (
                token.token_hash == token_hash
                and token.consumed_at is None
                and token.expires_at > now
            ):
                return RedeemableToken(id=token.id, user_id=token.user_id)
        return None

    async def mark_token_consumed(self, token_id: uuid.UUID, at: datetime) -> None:
        await self._step("mark_token_consumed")
        self.tokens[token_id].consumed_at = at

    async def record_login(self, user_id: uuid.UUID, at: datetime) -> None:
        await self._step("record_login")
        user = self.users.get(user_id)
        if user is None:
            raise StoreError(f"user {user_id} vanished during redemption")
        user.last_login_at = at

    async def get_user_email(self, user_id: uuid.UUID) -> str | None:
        await self._step("get_user_email")
        user = self.users.get(user_id)
        return user.email if user is not None else None


class InMemoryAuthStore(AuthStore):
    """Transactional in-process store.

    Attributes:
        users: Committed users, keyed by id.
        tokens: Committed tokens, keyed by id.
        unavailable: When True, opening a transaction raises
            StoreUnavailableError.
        fail_operations: Names of AuthTransaction methods that raise
            StoreError when called.
        concurrent_registrations: Emails whose next insert loses a race
            against another registration that commits first.
        latency: Seconds each operation sleeps before running.
        commits: Number of committed transactions.
    """

    def __init__(self) -> None:
        self.users: dict[uuid.UUID, StoredUser] = {}
        self.tokens: dict[uuid.UUID, StoredToken] = {}
        self.unavailable = False
        self.fail_operations: set[str] = set()
        self.concurrent_registrations: set[str] = set()
        self.latency = 0.0
        self.commits = 0
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AuthTransaction]:
        if self.unavailable:
            raise StoreUnavailableError("in-memory store marked unavailable")
        async with self._lock:
            tx = _InMemoryTransaction(
                self, copy.deepcopy(self.users), copy.deepcopy(self.tokens)
            )
            yield tx
            self.users = tx.users
            self.tokens = tx.tokens
            self.commits += 1

    async def ping(self) -> None:
        if self.unavailable:
            raise StoreUnavailableError("in-memory store marked unavailable")

    async def close(self) -> None:
        return None

    def user_by_email(self, email: str) -> StoredUser | None:
        """Committed user with this email, for test assertions."""
        for user in self.users.values():
            if user.email == email:
                return user
        return None

    def tokens_for(self, user_id: uuid.UUID) -> list[StoredToken]:
        """Committed tokens owned by an account, for test assertions."""
        return [t for t in self.tokens.values() if t.user_id == user_id]
