"""Application configuration loaded from environment variables.

Settings for the HTTP listener, the PostgreSQL store and magic link
issuance. Uses pydantic-settings for validation and .env file support.
"""

from datetime import timedelta

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import make_url

DEFAULT_MAGIC_LINK_TTL_MINUTES = 15

_ASYNC_DRIVER = "postgresql+asyncpg"
_DEV_ENVIRONMENT = "dev"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # API
    # 0.0.0.0 binds to all network interfaces (required for Docker containers)
    api_host: str = "0.0.0.0"  # nosec B104
    port: int = 6174

    # Database. Empty means "no store": store-backed routes answer 503.
    database_url: str = ""
    store_timeout_seconds: float = 5.0

    # Application
    env: str = "prod"
    log_level: str = "INFO"

    # Magic links
    magic_link_base_url: str = "http://localhost:3000/auth/verify"
    magic_link_ttl_minutes: int = DEFAULT_MAGIC_LINK_TTL_MINUTES

    @field_validator("magic_link_ttl_minutes", mode="before")
    @classmethod
    def fallback_ttl(cls, value: object) -> int:
        """Fall back to the default TTL for non-positive or non-numeric input."""
        try:
            minutes = int(str(value).strip())
        except ValueError:
            return DEFAULT_MAGIC_LINK_TTL_MINUTES
        if minutes <= 0:
            return DEFAULT_MAGIC_LINK_TTL_MINUTES
        return minutes

    @model_validator(mode="after")
    def check_timeouts(self) -> "Settings":
        """Reject a store timeout that would abort every unit of work."""
        if self.store_timeout_seconds <= 0:
            msg = (
                "STORE_TIMEOUT_SECONDS must be positive. "
                f"Got: {self.store_timeout_seconds}"
            )
            raise ValueError(msg)
        return self

    @property
    def is_dev(self) -> bool:
        """True when debug links may be echoed and logged."""
        return self.env == _DEV_ENVIRONMENT

    @property
    def magic_link_ttl(self) -> timedelta:
        """Lifetime of a freshly issued magic link token."""
        return timedelta(minutes=self.magic_link_ttl_minutes)

    @property
    def async_database_url(self) -> str:
        """DATABASE_URL rewritten for SQLAlchemy's asyncpg driver.

        Accepts the libpq forms (``postgres://``, ``postgresql://``) commonly
        handed out by hosting providers. ``sslmode`` is renamed to ``ssl``,
        the parameter asyncpg understands.
        """
        url = make_url(self.database_url)
        if url.drivername in ("postgres", "postgresql"):
            url = url.set(drivername=_ASYNC_DRIVER)
        sslmode = url.query.get("sslmode")
        if sslmode is not None:
            url = url.difference_update_query(["sslmode"]).update_query_dict(
                {"ssl": sslmode}
            )
        return url.render_as_string(hide_password=False)


settings = Settings()
