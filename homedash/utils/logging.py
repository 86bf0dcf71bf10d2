"""Logging utilities for the homedash API.

This module handles structured logging to the console and, when LOG_FILE is
configured, to a JSON lines history file.
"""

import json
import logging
import time

from ..core.config import Settings, settings

# Configure standard logging
logging.basicConfig(level=logging.INFO, format="%(message)s")
logger = logging.getLogger("api")

# Levels routed to the console error stream.
ERROR_LEVELS = ("ERROR", "CRIT", "SECURITY")

# JSON lines history file; empty for console only
log_file = settings.LOG_FILE


def configure_logging(app_settings: Settings):
    """Points the history file at the LOG_FILE of the given settings."""
    global log_file
    log_file = app_settings.LOG_FILE


def log_structured(
    level: str, message: str, category: str = "SYSTEM", source: str = "api"
):
    """Logs a structured message to the console and the history file.

    Args:
        level: The severity level (e.g., DEBUG, INFO, WARN, ERROR).
        message: The message to log.
        category: The functional category of the log entry.
        source: The component generating the log.
    """
    if level == "DEBUG":
        logger.debug("[%s] %s", category, message)
        return

    if log_file:
        entry = {
            "timestamp": time.strftime("%Y-%m-%d %H:%M:%S"),
            "level": level,
            "category": category,
            "source": source,
            "message": message,
        }
        try:
            with open(log_file, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry) + "\n")
        except OSError as err:
            logger.error("Log file write failed: %s", err)

    # Output to console
    if level in ERROR_LEVELS:
        logger.error("[%s] [%s] %s", level, category, message)
    elif level == "WARN":
        logger.warning("[%s] [%s] %s", level, category, message)
    else:
        logger.info("[%s] [%s] %s", level, category, message)
