"""Magic link redemption protocol.

Exchanges a presented secret for an access credential, consuming the
token exactly once:

    Presented → Validated → Consumed        (success)
    Presented → Rejected                    (unknown / expired / consumed)

Steps 1-4 run in a single transaction. The token row is locked with
SELECT ... FOR UPDATE, so of N concurrent redemptions of one secret only
the first lock holder sees it unconsumed; the rest wait, then find
nothing and fail with the same generic 401. Any failure before commit
rolls back, leaving the token redeemable until it expires.

The access credential is generated only after the commit. It is a bare
bearer value; nothing about it is persisted.
"""

import logging
import uuid
from dataclasses import dataclass

from magic_auth.core.clock import Clock, utc_now
from magic_auth.core.config import Settings
from magic_auth.core.errors import InternalError, UnauthorizedError, ValidationError
from magic_auth.services.tokens import (
    EntropyUnavailableError,
    generate_token,
    hash_token,
)
from magic_auth.services.unit_of_work import require_store, unit_of_work
from magic_auth.stores.base import AuthStore

logger = logging.getLogger(__name__)

# Security: one message for every rejection cause
INVALID_TOKEN_MSG = "invalid or expired token"


@dataclass(frozen=True)
class RedemptionResult:
    """Outcome of a successful redemption.

    Attributes:
        access_token: Opaque bearer credential.
        user_id: Authenticated account.
        email: Account email (normalized).
    """

    access_token: str
    user_id: uuid.UUID
    email: str

    def __repr__(self) -> str:
        return f"RedemptionResult(user_id={self.user_id}, email={self.email!r})"


class MagicLinkRedeemer:
    """Redeems magic link tokens.

    Args:
        store: Durable store, or None when no database is configured.
        settings: Application settings (store timeout).
        clock: Source of "now" for the expiry check and timestamps.
    """

    def __init__(
        self,
        store: AuthStore | None,
        settings: Settings,
        *,
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._settings = settings
        self._clock = clock

    async def redeem(self, token: str) -> RedemptionResult:
        """Redeem a magic link secret.

        Args:
            token: Secret from the magic link (surrounding whitespace ignored).

        Returns:
            RedemptionResult with a fresh access credential.

        Raises:
            ServiceUnavailableError: No store, store unreachable, or timeout.
            ValidationError: Empty token.
            UnauthorizedError: Unknown, expired, or already consumed token.
            InternalError: Persistence or credential generation failed.
        """
        store = require_store(self._store)

        secret = token.strip()
        if not secret:
            raise ValidationError("token is required")

        token_hash = hash_token(secret)

        async with unit_of_work(
            store,
            timeout=self._settings.store_timeout_seconds,
            failure_message="failed to redeem token",
        ) as tx:
            now = self._clock()
            locked = await tx.lock_redeemable_token(token_hash, now)
            if locked is None:
                logger.info("Magic link rejected")
                raise UnauthorizedError(INVALID_TOKEN_MSG)

            await tx.mark_token_consumed(locked.id, now)
            await tx.record_login(locked.user_id, now)

            email = await tx.get_user_email(locked.user_id)
            if email is None:
                raise InternalError("failed to load user")

        try:
            access_token = generate_token().secret
        except EntropyUnavailableError as exc:
            logger.error("Access token generation failed: %s", exc)
            raise InternalError("failed to generate access token") from exc

        logger.info(
            "Magic link redeemed",
            extra={"user_id": str(locked.user_id), "token_id": str(locked.id)},
        )
        return RedemptionResult(
            access_token=access_token,
            user_id=locked.user_id,
            email=email,
        )
