"""
Logging Configuration
Sets up the loggers for the application namespaces.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOGGER_NAMESPACES = ("core", "adapters", "cli")


def parse_level(value: str | int) -> int:
    """Accept `"debug"`, `"INFO"`, `10`... and return a logging level."""

    if isinstance(value, int):
        return value
    level = logging.getLevelName(value.strip().upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {value}")
    return level


def setup_logging(level: str | int = logging.WARNING, log_file: Path | str | None = None) -> None:
    """
    Configures the loggers for the `core`, `adapters` and `cli` namespaces.

    Args:
        level: Logging level (e.g. logging.DEBUG, "info")
        log_file: Optional path to save logs to a file.
    """
    level = parse_level(level)

    # Format: Time - Module - Level - Message
    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )

    handlers: list[logging.Handler] = []

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    handlers.append(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    for name in LOGGER_NAMESPACES:
        logger = logging.getLogger(name)
        logger.setLevel(level)
        # Avoid duplicate logs when the CLI callback runs more than once.
        if logger.handlers:
            logger.handlers.clear()
        for handler in handlers:
            logger.addHandler(handler)
        logger.propagate = False

    logging.getLogger("core").debug("Logging initialized.")
