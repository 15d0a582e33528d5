"""SQLAlchemy ORM models.

All models are exported from this module for convenient imports:
    from magic_auth.models import User, MagicLinkToken

- user.py: User (accounts, no FK dependencies)
- magic_link_token.py: MagicLinkToken (FK → users)
"""

from magic_auth.models.base import Base, CreatedAtMixin
from magic_auth.models.magic_link_token import MagicLinkToken
from magic_auth.models.user import User

__all__ = [
    "Base",
    "CreatedAtMixin",
    "User",
    "MagicLinkToken",
]
