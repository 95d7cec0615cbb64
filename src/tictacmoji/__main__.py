"""Entry point for running the match server via ``python -m tictacmoji``."""

from __future__ import annotations

import logging

import uvicorn

from .config import get_settings, setup_logging


def main() -> None:
    """Start the FastAPI-powered TicTacMoji match server."""

    settings = get_settings()
    setup_logging(settings.log_level)
    logging.getLogger(__name__).info(
        "TicTacMoji server starting on %s:%s", settings.host, settings.port
    )
    uvicorn.run(
        "tictacmoji.server:app",
        host=settings.host,
        port=settings.port,
        reload=False,
        log_level=settings.log_level.lower(),
        ws_ping_interval=20.0,
        ws_ping_timeout=20.0,
    )


if __name__ == "__main__":
    main()
