"""Magic link issuance flow.

Resolves (or creates) the account for an email, generates a secret,
stores its digest with an expiry, and hands the secret back. Everything
happens in one transaction, so a failure leaves no account or token
behind.

In dev mode (ENV=dev) the full login URL is returned and logged. In any
other mode the secret never appears in logs or responses; delivering the
link by email is out of scope.
"""

import logging
import uuid
from dataclasses import dataclass

from magic_auth.core.clock import Clock, utc_now
from magic_auth.core.config import Settings
from magic_auth.core.errors import InternalError, ValidationError
from magic_auth.services.account_resolver import normalize_email, resolve_account
from magic_auth.services.tokens import EntropyUnavailableError, generate_token
from magic_auth.services.unit_of_work import require_store, unit_of_work
from magic_auth.stores.base import AuthStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssuanceResult:
    """Outcome of a successful link request.

    Attributes:
        user_id: Account the link signs into.
        token_id: Stored token row.
        dev_login_url: Login URL carrying the secret (dev mode only).
    """

    user_id: uuid.UUID
    token_id: uuid.UUID
    dev_login_url: str | None = None

    def __repr__(self) -> str:
        return f"IssuanceResult(user_id={self.user_id}, token_id={self.token_id})"


def build_login_url(base_url: str, secret: str) -> str:
    """Append the secret as the ``token`` query parameter.

    The secret is URL-safe base64, so it needs no escaping.
    """
    separator = "&" if "?" in base_url else "?"
    return f"{base_url}{separator}token={secret}"


class MagicLinkIssuer:
    """Issues magic link tokens.

    Args:
        store: Durable store, or None when no database is configured.
        settings: Application settings (TTL, base URL, env, timeout).
        clock: Source of the issuance time.
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

    async def issue(self, email: str) -> IssuanceResult:
        """Issue a magic link for an email address.

        Args:
            email: Raw email from the request.

        Returns:
            IssuanceResult (with dev_login_url in dev mode).

        Raises:
            ServiceUnavailableError: No store, store unreachable, or timeout.
            ValidationError: Email empty after normalization.
            InternalError: Secret generation or persistence failed.
        """
        store = require_store(self._store)

        normalized = normalize_email(email)
        if not normalized:
            raise ValidationError("email is required")

        async with unit_of_work(
            store,
            timeout=self._settings.store_timeout_seconds,
            failure_message="failed to store token",
        ) as tx:
            user_id = await resolve_account(tx, normalized)

            try:
                token = generate_token()
            except EntropyUnavailableError as exc:
                logger.error("Token generation failed: %s", exc)
                raise InternalError("failed to generate token") from exc

            expires_at = self._clock() + self._settings.magic_link_ttl
            token_id = await tx.add_token(
                user_id=user_id,
                token_hash=token.digest,
                expires_at=expires_at,
            )

        if self._settings.is_dev:
            link = build_login_url(self._settings.magic_link_base_url, token.secret)
            logger.info("Dev magic link for %s: %s", normalized, link)
            return IssuanceResult(user_id=user_id, token_id=token_id, dev_login_url=link)

        logger.info(
            "Magic link requested",
            extra={"user_id": str(user_id), "expires_at": expires_at.isoformat()},
        )
        return IssuanceResult(user_id=user_id, token_id=token_id)
