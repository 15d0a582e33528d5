"""Magic link secret generation and hashing.

A secret is 32 bytes (256 bits) from the OS CSPRNG, URL-safe base64
encoded. Only its SHA-256 digest is stored. The digest is computed over
the encoded string, so redemption can recompute it from what the caller
presents.
"""

import hashlib
import secrets
from dataclasses import dataclass

TOKEN_BYTES = 32


class EntropyUnavailableError(Exception):
    """The operating system random source could not supply bytes."""


@dataclass(frozen=True)
class GeneratedToken:
    """A freshly generated secret and its digest.

    Attributes:
        secret: URL-safe opaque string, handed to the caller only.
        digest: SHA-256 of the secret, the only value persisted.
    """

    secret: str
    digest: bytes

    def __repr__(self) -> str:
        # Keep the secret out of logs and tracebacks
        return f"GeneratedToken(digest={self.digest.hex()[:12]}...)"


def hash_token(secret: str) -> bytes:
    """Return the SHA-256 digest of an encoded secret."""
    return hashlib.sha256(secret.encode()).digest()


def generate_token() -> GeneratedToken:
    """Generate a magic link secret and its digest.

    Returns:
        GeneratedToken with the plain secret and its SHA-256 digest.

    Raises:
        EntropyUnavailableError: If the random source fails.
    """
    try:
        secret = secrets.token_urlsafe(TOKEN_BYTES)
    except (OSError, NotImplementedError) as exc:
        raise EntropyUnavailableError("random source unavailable") from exc
    return GeneratedToken(secret=secret, digest=hash_token(secret))
