"""Runtime configuration read from environment variables."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass(frozen=True)
class Settings:
    """Tunables for the match server."""

    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "INFO"
    # Seconds between liveness sweeps; 0 disables the sweep.
    heartbeat_seconds: float = 30.0
    countdown_tick_seconds: float = 1.0
    countdown_from: int = 3

    @classmethod
    def from_env(cls) -> "Settings":
        port = os.environ.get("TICTACMOJI_PORT") or os.environ.get("PORT") or "8080"
        return cls(
            host=os.environ.get("TICTACMOJI_HOST", "0.0.0.0"),
            port=int(port),
            log_level=os.environ.get("TICTACMOJI_LOG_LEVEL", "INFO").upper(),
            heartbeat_seconds=float(
                os.environ.get("TICTACMOJI_HEARTBEAT_SECONDS", "30")
            ),
            countdown_tick_seconds=float(
                os.environ.get("TICTACMOJI_COUNTDOWN_TICK_SECONDS", "1.0")
            ),
            countdown_from=int(os.environ.get("TICTACMOJI_COUNTDOWN_FROM", "3")),
        )


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
    )
