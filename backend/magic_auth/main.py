"""FastAPI application entry point.

This module creates and configures the FastAPI application, including:
- Exception handlers for API errors
- Magic link auth routes under /auth
- Health check endpoint
- Store lifecycle (connectivity check at startup, pool disposal at shutdown)
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from magic_auth.api import auth
from magic_auth.core.clock import Clock, utc_now
from magic_auth.core.config import Settings
from magic_auth.core.config import settings as default_settings
from magic_auth.core.database import build_auth_store
from magic_auth.core.errors import APIError
from magic_auth.core.responses import ErrorDetail, ErrorResponse, OkResponse
from magic_auth.stores.base import AuthStore

logger = structlog.get_logger()


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Middleware to add security headers to all responses.

    Headers added:
    - X-Frame-Options: Prevents clickjacking attacks
    - X-Content-Type-Options: Prevents MIME sniffing
    - Referrer-Policy: Keeps magic link URLs out of Referer headers
    - Cache-Control: Auth responses carry secrets and must not be cached
    - Content-Security-Policy: Restricts resource loading (API returns no HTML)
    - Strict-Transport-Security: Forces HTTPS (production only)
    """

    def __init__(self, app: ASGIApp, *, hsts: bool) -> None:
        super().__init__(app)
        self._hsts = hsts

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        """Add security headers to response."""
        response = await call_next(request)

        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "no-referrer"

        if request.url.path.startswith("/auth/"):
            response.headers["Cache-Control"] = "no-store, max-age=0"

        # API-only backend: responses should not load any resources
        if not request.url.path.startswith(("/docs", "/redoc")):
            response.headers["Content-Security-Policy"] = (
                "default-src 'none'; frame-ancestors 'none'"
            )

        # HSTS only outside dev (assumes HTTPS via reverse proxy)
        if self._hsts:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )

        return response


def api_error_handler(_request: Request, exc: APIError) -> JSONResponse:
    """Handle custom API errors.

    Args:
        request: The incoming request.
        exc: The APIError that was raised.

    Returns:
        JSONResponse with error envelope and appropriate status code.
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=exc.code,
                message=exc.message,
                details=exc.details,
            )
        ).model_dump(),
    )


def validation_error_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle Pydantic validation errors from FastAPI.

    Converts FastAPI's 422 validation errors to our 400 format.

    Args:
        request: The incoming request.
        exc: The RequestValidationError from Pydantic.

    Returns:
        JSONResponse with VALIDATION_ERROR code and field-level details.
    """
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(
            error=ErrorDetail(
                code="VALIDATION_ERROR",
                message="Request validation failed",
                details=[
                    {"loc": list(e["loc"]), "msg": e["msg"], "type": e["type"]}
                    for e in exc.errors()
                ],
            )
        ).model_dump(),
    )


def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions.

    Returns 500 INTERNAL_ERROR without exposing stack traces.

    Args:
        request: The incoming request.
        exc: The unhandled exception.

    Returns:
        JSONResponse with generic error message (500).
    """
    logger.exception("Unhandled exception", exc_info=exc, path=str(request.url.path))

    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(
                code="INTERNAL_ERROR",
                message="An unexpected error occurred",
            )
        ).model_dump(),
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Verify the store at startup and release its pool at shutdown.

    A configured but unreachable database aborts startup
    (StoreUnavailableError propagates to the ASGI server).
    """
    store: AuthStore | None = app.state.auth_store
    if store is None:
        logger.warning("DATABASE_URL not set; starting without database")
    else:
        await store.ping()
        logger.info("Database connected")

    yield

    if store is not None:
        await store.close()


def create_app(
    settings: Settings | None = None,
    *,
    auth_store: AuthStore | None = None,
    clock: Clock = utc_now,
) -> FastAPI:
    """Create and configure the FastAPI application.

    WHY FACTORY FUNCTION:
    - Enables testing with different configurations and stores
    - Clear separation between app creation and startup

    Args:
        settings: Settings to use. Defaults to the environment-loaded ones.
        auth_store: Store to use. Defaults to the PostgreSQL store built
            from DATABASE_URL, or no store when it is unset.
        clock: Wall clock for issuance and expiry checks.

    Returns:
        Configured FastAPI application instance.
    """
    settings = settings or default_settings
    if auth_store is None:
        auth_store = build_auth_store(settings)

    app = FastAPI(
        title="Magic Link Auth API",
        version="1.0.0",
        description="Passwordless sign-in with single-use magic links",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.auth_store = auth_store
    app.state.clock = clock

    app.add_middleware(SecurityHeadersMiddleware, hsts=not settings.is_dev)

    # Register exception handlers
    # Order matters: specific handlers first, then catch-all
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, internal_error_handler)

    app.include_router(auth.router, prefix="/auth", tags=["auth"])

    # Health check endpoint (never touches the store)
    @app.get("/healthz")
    def health_check() -> OkResponse:
        """Health check endpoint for monitoring.

        Returns:
            {"ok": true} if the process is serving requests.
        """
        return OkResponse(ok=True)

    return app


# Create the application instance
# Used by uvicorn: uvicorn magic_auth.main:app
app = create_app()
