"""Magic link endpoints.

Endpoints:
- POST /auth/magic-link - issue a magic link for an email
- POST /auth/verify - redeem a magic link token for an access token
- POST /auth/logout - stateless acknowledgement
"""

from fastapi import APIRouter
from pydantic import BaseModel, ConfigDict, Field

from magic_auth.api.deps import Issuer, Redeemer
from magic_auth.core.responses import OkResponse
from magic_auth.models.user import EMAIL_MAX_LENGTH

router = APIRouter()


# ===================================================================
# Request / response models
# ===================================================================


class MagicLinkRequest(BaseModel):
    """Request body for POST /auth/magic-link."""

    model_config = ConfigDict(extra="forbid")

    email: str = Field(max_length=EMAIL_MAX_LENGTH)


class MagicLinkResponse(BaseModel):
    """Response body for POST /auth/magic-link.

    dev_login_url is only present when ENV=dev.
    """

    ok: bool
    dev_login_url: str | None = None


class VerifyRequest(BaseModel):
    """Request body for POST /auth/verify."""

    model_config = ConfigDict(extra="forbid")

    token: str


class UserOut(BaseModel):
    """Authenticated user returned by POST /auth/verify."""

    id: str
    email: str


class VerifyResponse(BaseModel):
    """Response body for POST /auth/verify."""

    access_token: str
    user: UserOut


# ===================================================================
# POST /auth/magic-link
# ===================================================================


@router.post(
    "/magic-link",
    response_model=MagicLinkResponse,
    response_model_exclude_none=True,
)
async def request_magic_link(
    body: MagicLinkRequest, issuer: Issuer
) -> MagicLinkResponse:
    """Issue a magic link.

    Creates the account on first contact. Returns 400 for an empty email,
    503 when the database is missing or unreachable, 500 on internal
    failure.
    """
    result = await issuer.issue(body.email)
    return MagicLinkResponse(ok=True, dev_login_url=result.dev_login_url)


# ===================================================================
# POST /auth/verify
# ===================================================================


@router.post("/verify")
async def verify_magic_link(body: VerifyRequest, redeemer: Redeemer) -> VerifyResponse:
    """Redeem a magic link token.

    Returns 400 for an empty token and 401 for any unknown, expired or
    already used token (one generic message for all three).
    """
    result = await redeemer.redeem(body.token)
    return VerifyResponse(
        access_token=result.access_token,
        user=UserOut(id=str(result.user_id), email=result.email),
    )


# ===================================================================
# POST /auth/logout
# ===================================================================


@router.post("/logout")
async def logout() -> OkResponse:
    """Acknowledge logout.

    Access tokens carry no server-side state, so there is nothing to
    invalidate.
    """
    return OkResponse(ok=True)
