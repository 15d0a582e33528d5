"""Async database engine and store construction.

Configures the SQLAlchemy async engine with connection pooling. The
store is optional: without DATABASE_URL the application runs with no
store and every store-backed route answers 503.
"""

from sqlalchemy.ext.asyncio import create_async_engine

from magic_auth.core.config import Settings
from magic_auth.stores.base import AuthStore
from magic_auth.stores.sqlalchemy_store import SqlAlchemyAuthStore


def build_auth_store(settings: Settings) -> AuthStore | None:
    """Create the PostgreSQL store, or None when DATABASE_URL is unset.

    The engine connects lazily; call ``AuthStore.ping()`` to verify
    connectivity.
    """
    if not settings.database_url:
        return None

    engine = create_async_engine(
        settings.async_database_url,
        pool_pre_ping=True,
        pool_timeout=settings.store_timeout_seconds,
    )
    return SqlAlchemyAuthStore(engine)
