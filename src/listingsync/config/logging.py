"""Logging setup for the listingsync CLI."""

from __future__ import annotations

import logging
import os

LOG_LEVEL_ENV = "LISTINGSYNC_LOG_LEVEL"
_QUIET_LOGGERS = ("httpx", "httpcore", "hishel", "alembic.runtime.migration")


def resolve_log_level(default: int = logging.INFO) -> int:
    """Read ``LISTINGSYNC_LOG_LEVEL`` as a level name; unknown names fall back to ``default``."""

    raw = os.getenv(LOG_LEVEL_ENV)
    if raw is None or not raw.strip():
        return default
    level = logging.getLevelName(raw.strip().upper())
    return level if isinstance(level, int) else default


def configure_logging(*, level: int | None = None, force: bool = False) -> None:
    """Initialise the root logger with a terse format suitable for CLI output.

    Sync transitions and bulk outcomes log at INFO. Transport libraries are held
    at WARNING unless DEBUG is requested, since httpx logs every request at INFO.
    """

    resolved = resolve_log_level() if level is None else level
    logging.basicConfig(
        level=resolved,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
        force=force,
    )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(resolved, logging.WARNING))
