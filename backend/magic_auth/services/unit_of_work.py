"""Store access guard shared by the issuance flow and the redemption protocol.

Every entry point first checks that a store is configured, then runs its
work in one transaction bounded by STORE_TIMEOUT_SECONDS. Store failures
are mapped to API errors here:

- no store, unreachable store, timeout → ServiceUnavailableError (503)
- any other store failure → InternalError (500)

API errors raised inside the block pass through untouched (after the
transaction rolls back).
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from magic_auth.core.errors import InternalError, ServiceUnavailableError
from magic_auth.stores.base import (
    AuthStore,
    AuthTransaction,
    StoreError,
    StoreUnavailableError,
)

logger = logging.getLogger(__name__)


def require_store(store: AuthStore | None) -> AuthStore:
    """Capability check: return the store or fail with 503."""
    if store is None:
        raise ServiceUnavailableError("database unavailable")
    return store


@asynccontextmanager
async def unit_of_work(
    store: AuthStore,
    *,
    timeout: float,
    failure_message: str,
) -> AsyncIterator[AuthTransaction]:
    """Run one store transaction under a deadline.

    Args:
        store: Configured store.
        timeout: Deadline in seconds for the whole unit.
        failure_message: Client-facing message for InternalError.

    Yields:
        The open AuthTransaction.
    """
    try:
        async with asyncio.timeout(timeout):
            async with store.transaction() as tx:
                yield tx
    except TimeoutError as exc:
        logger.warning("Store unit of work timed out", extra={"timeout": timeout})
        raise ServiceUnavailableError("database timeout") from exc
    except StoreUnavailableError as exc:
        logger.warning("Store unreachable: %s", exc)
        raise ServiceUnavailableError("database unavailable") from exc
    except StoreError as exc:
        logger.error("Store operation failed: %s", exc)
        raise InternalError(failure_message) from exc
