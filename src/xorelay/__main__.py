"""Entry point for running XO Relay via ``python -m xorelay``."""

from __future__ import annotations

import uvicorn

from .config import configure_logging, settings


def main() -> None:
    """Start the FastAPI-powered XO Relay server."""

    configure_logging(settings.log_level)
    uvicorn.run(
        "xorelay.ui:app",
        host=settings.host,
        port=settings.port,
        reload=False,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
