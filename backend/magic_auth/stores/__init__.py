"""Durable store for accounts and magic link tokens.

- base.py: AuthStore / AuthTransaction interfaces and store errors
- sqlalchemy_store.py: PostgreSQL implementation (production)
- memory_store.py: In-process implementation for tests
"""

from magic_auth.stores.base import (
    AuthStore,
    AuthTransaction,
    DuplicateAccountError,
    RedeemableToken,
    StoreError,
    StoreUnavailableError,
)

__all__ = [
    "AuthStore",
    "AuthTransaction",
    "DuplicateAccountError",
    "RedeemableToken",
    "StoreError",
    "StoreUnavailableError",
]
