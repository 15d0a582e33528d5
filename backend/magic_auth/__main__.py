"""Run the API with uvicorn: ``python -m magic_auth``."""

import logging

import uvicorn

from magic_auth.core.config import settings


def main() -> None:
    """Serve magic_auth.main:app on API_HOST:PORT."""
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger(__name__).info(
        "listening on %s:%s", settings.api_host, settings.port
    )
    uvicorn.run(
        "magic_auth.main:app",
        host=settings.api_host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
