"""Tests for the FastAPI application, exception handlers and lifespan."""

from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from magic_auth.core.errors import (
    InternalError,
    ServiceUnavailableError,
    UnauthorizedError,
    ValidationError,
)
from magic_auth.main import create_app
from magic_auth.stores.base import StoreUnavailableError


@pytest.fixture
def app(dev_settings, memory_store, clock):
    """Create test application instance."""
    return create_app(dev_settings, auth_store=memory_store, clock=clock)


@pytest.fixture
async def app_client(app):
    """Create async HTTP client for testing."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


class TestHealthEndpoint:
    """Tests for the health check endpoint."""

    @pytest.mark.asyncio
    async def test_healthz_returns_ok(self, app_client):
        """Health endpoint returns {"ok": true}."""
        response = await app_client.get("/healthz")

        assert response.status_code == 200
        assert response.json() == {"ok": True}

    @pytest.mark.asyncio
    async def test_healthz_ignores_store_outage(self, app_client, memory_store):
        """Health endpoint never touches the store."""
        memory_store.unavailable = True

        response = await app_client.get("/healthz")

        assert response.status_code == 200


class TestExceptionHandlers:
    """Tests for exception handlers.

    These tests verify that our custom exceptions are properly
    converted to HTTP responses with the correct error envelope.
    """

    @pytest.mark.asyncio
    async def test_validation_error_returns_400(self, app, app_client):
        """ValidationError should return 400 with error envelope."""

        @app.get("/test/validation-error")
        async def raise_validation_error():
            raise ValidationError("Invalid input", details=[{"field": "test"}])

        response = await app_client.get("/test/validation-error")

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert error["details"] == [{"field": "test"}]

    @pytest.mark.asyncio
    async def test_unauthorized_error_returns_401(self, app, app_client):
        """UnauthorizedError should return 401 with error envelope."""

        @app.get("/test/unauthorized-error")
        async def raise_unauthorized_error():
            raise UnauthorizedError()

        response = await app_client.get("/test/unauthorized-error")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHORIZED"

    @pytest.mark.asyncio
    async def test_service_unavailable_error_returns_503(self, app, app_client):
        """ServiceUnavailableError should return 503 with error envelope."""

        @app.get("/test/unavailable-error")
        async def raise_unavailable_error():
            raise ServiceUnavailableError()

        response = await app_client.get("/test/unavailable-error")

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "SERVICE_UNAVAILABLE"

    @pytest.mark.asyncio
    async def test_internal_error_returns_500(self, app, app_client):
        """InternalError should return 500 with error envelope."""

        @app.get("/test/internal-error")
        async def raise_internal_error():
            raise InternalError()

        response = await app_client.get("/test/internal-error")

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "INTERNAL_ERROR"

    @pytest.mark.asyncio
    async def test_unhandled_exception_returns_generic_500(self, app):
        """Unhandled exceptions return 500 without leaking details."""

        @app.get("/test/crash")
        async def crash():
            raise RuntimeError("secret internal detail")

        # Starlette re-raises after the handler responds; keep the response
        transport = ASGITransport(app=app, raise_app_exceptions=False)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            response = await ac.get("/test/crash")

        assert response.status_code == 500
        assert response.json()["error"] == {
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred",
            "details": None,
        }
        assert "secret internal detail" not in response.text


class TestSecurityHeaders:
    """Tests for SecurityHeadersMiddleware."""

    @pytest.mark.asyncio
    async def test_common_headers_present(self, app_client):
        """Every response carries framing, sniffing and referrer headers."""
        response = await app_client.get("/healthz")

        assert response.headers["X-Frame-Options"] == "DENY"
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["Referrer-Policy"] == "no-referrer"
        assert "default-src 'none'" in response.headers["Content-Security-Policy"]

    @pytest.mark.asyncio
    async def test_auth_responses_not_cacheable(self, app_client):
        """Auth responses carry secrets and must not be cached."""
        response = await app_client.post("/auth/logout")

        assert response.headers["Cache-Control"].startswith("no-store")

    @pytest.mark.asyncio
    async def test_no_hsts_in_dev(self, app_client):
        """HSTS is not sent in dev mode (plain HTTP on localhost)."""
        response = await app_client.get("/healthz")

        assert "Strict-Transport-Security" not in response.headers

    @pytest.mark.asyncio
    async def test_hsts_outside_dev(self, prod_client):
        """HSTS is sent outside dev mode."""
        response = await prod_client.get("/healthz")

        assert "max-age=" in response.headers["Strict-Transport-Security"]


class TestLifespan:
    """Tests for startup and shutdown."""

    @pytest.mark.asyncio
    async def test_startup_pings_and_shutdown_closes(self, memory_store, dev_settings):
        """A configured store is pinged at startup and closed at shutdown."""
        memory_store.ping = AsyncMock()
        memory_store.close = AsyncMock()
        app = create_app(dev_settings, auth_store=memory_store)

        async with app.router.lifespan_context(app):
            memory_store.ping.assert_awaited_once()
            memory_store.close.assert_not_awaited()

        memory_store.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unreachable_store_aborts_startup(self, memory_store, dev_settings):
        """A configured but unreachable database is fatal at startup."""
        memory_store.unavailable = True
        app = create_app(dev_settings, auth_store=memory_store)

        with pytest.raises(StoreUnavailableError):
            async with app.router.lifespan_context(app):
                pass

    @pytest.mark.asyncio
    async def test_starts_without_store(self, settings_factory):
        """Without DATABASE_URL the app starts with no store."""
        app = create_app(settings_factory(database_url=""))

        async with app.router.lifespan_context(app):
            assert app.state.auth_store is None
