"""Logging setup for DevMon."""

import logging
import os
import sys

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def resolve_log_level(name: str | None) -> int:
    """Map a level name to its logging constant; unknown or empty means INFO."""
    name = (name or "").strip().upper()
    if name in _LEVELS:
        return logging.getLevelName(name)
    return logging.INFO


def configure_logging(environ=None) -> int:
    """Configure root logging for the engine, scheduler and dashboard.

    Environment Variables:
        DEVMON_LOG_LEVEL: DEBUG shows every probe and scheduling decision,
                          INFO adds state transitions and alerts (default),
                          WARNING keeps warning-level alerts and errors.
        DEVMON_LOG_FILE: Optional path; records are appended there as well
                         as written to stderr.

    Returns:
        The effective root log level
    """
    if environ is None:
        environ = os.environ

    level = resolve_log_level(environ.get("DEVMON_LOG_LEVEL"))

    handlers = [logging.StreamHandler(sys.stderr)]
    log_file = (environ.get("DEVMON_LOG_FILE") or "").strip()
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        handlers=handlers,
        force=True,
    )

    logging.getLogger(__name__).info(
        "Logging configured: level=%s, file=%s",
        logging.getLevelName(level),
        log_file or "-",
    )
    return level
