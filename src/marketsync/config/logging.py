"""Logging setup shared by the CLI entry points."""

from __future__ import annotations

import logging

from .env import env_str
from .errors import InvalidConfigurationError


def configure_logging(*, level: int = logging.INFO, force: bool = False) -> None:
    """Initialise the root logger once with a terse format.

    Pass ``force=True`` to reconfigure during tests or specialised entry points.
    """

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
        force=force,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))


def get_log_level(default: int = logging.INFO) -> int:
    raw = env_str("LOG_LEVEL")
    if raw is None:
        return default
    level = logging.getLevelName(raw.upper())
    if not isinstance(level, int):
        raise InvalidConfigurationError("LOG_LEVEL", raw, "unknown logging level")
    return level
