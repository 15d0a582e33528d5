"""Email → account resolution with lazy account creation.

The users.email unique constraint is the arbiter for concurrent first
requests: an insert that loses the race raises DuplicateAccountError
(inside a savepoint), and the winner's row is re-read instead of
surfacing an error.
"""

import logging
import uuid

from magic_auth.core.errors import ValidationError
from magic_auth.stores.base import AuthTransaction, DuplicateAccountError, StoreError

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    """Trim whitespace and lower-case an email address."""
    return email.strip().lower()


async def resolve_account(tx: AuthTransaction, email: str) -> uuid.UUID:
    """Return the account id for an email, creating the account if needed.

    Args:
        tx: Open store transaction.
        email: Raw email as supplied by the caller.

    Returns:
        UUID of the existing or newly created account.

    Raises:
        ValidationError: If the email is empty after normalization.
        StoreError: If lookup or insert fails.
    """
    normalized = normalize_email(email)
    if not normalized:
        raise ValidationError("email is required")

    user_id = await tx.find_user_id(normalized)
    if user_id is not None:
        return user_id

    try:
        user_id = await tx.create_user(normalized)
    except DuplicateAccountError:
        logger.info("Account created concurrently, re-reading")
        user_id = await tx.find_user_id(normalized)
        if user_id is None:
            raise StoreError("account missing after duplicate insert") from None
        return user_id

    logger.info("Created account", extra={"user_id": str(user_id)})
    return user_id
