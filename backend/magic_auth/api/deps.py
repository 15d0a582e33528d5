"""Shared dependencies for API endpoints.

The store, settings and clock are built once in create_app() and kept on
``app.state``; handlers receive services constructed from them.

WHY DEPENDENCY INJECTION:
- No process-wide store handle; each app instance owns its own
- Tests swap the store (or the whole service) via dependency_overrides
"""

from typing import Annotated

from fastapi import Depends, Request

from magic_auth.core.clock import Clock
from magic_auth.core.config import Settings
from magic_auth.services.issuance import MagicLinkIssuer
from magic_auth.services.redemption import MagicLinkRedeemer
from magic_auth.stores.base import AuthStore


def get_settings(request: Request) -> Settings:
    """Settings the application was created with."""
    return request.app.state.settings


def get_auth_store(request: Request) -> AuthStore | None:
    """The durable store, or None when DATABASE_URL is unset."""
    return request.app.state.auth_store


def get_clock(request: Request) -> Clock:
    """Wall clock used for issuance and expiry checks."""
    return request.app.state.clock


AppSettings = Annotated[Settings, Depends(get_settings)]
OptionalStore = Annotated[AuthStore | None, Depends(get_auth_store)]
AppClock = Annotated[Clock, Depends(get_clock)]


def get_issuer(
    store: OptionalStore, settings: AppSettings, clock: AppClock
) -> MagicLinkIssuer:
    """Issuance flow bound to this app's store."""
    return MagicLinkIssuer(store, settings, clock=clock)


def get_redeemer(
    store: OptionalStore, settings: AppSettings, clock: AppClock
) -> MagicLinkRedeemer:
    """Redemption protocol bound to this app's store."""
    return MagicLinkRedeemer(store, settings, clock=clock)


# Reusable type aliases for dependency injection
Issuer = Annotated[MagicLinkIssuer, Depends(get_issuer)]
Redeemer = Annotated[MagicLinkRedeemer, Depends(get_redeemer)]
