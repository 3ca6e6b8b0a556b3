"""Logging configuration shared by the service and the CLI.

Everything logs through the ``fwupdater`` hierarchy (``fwupdater.reporter``,
``fwupdater.orchestrator``, ``fwupdater.cli``, ...). ``setup_logger`` owns the
handlers of the root of that hierarchy: calling it again replaces them, so the
service and the CLI can each configure it for their own output.
"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

ROOT_LOGGER = "fwupdater"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"


def build_formatter() -> logging.Formatter:
    return logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)


def setup_logger(
    level: int = logging.INFO,
    log_file: Optional[str] = None,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 3,
    name: str = ROOT_LOGGER,
) -> logging.Logger:
    """Attach a console handler and, with ``log_file``, a rotating file handler.

    Args:
        level: Level for the logger and its handlers (see Settings.log_level_value)
        log_file: Rotating log file; console only when None
        max_bytes: Size before rotation (10MB)
        backup_count: Rotated files kept
        name: Logger to configure; child loggers propagate to it

    Returns:
        The configured logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
            )
        )

    formatter = build_formatter()
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger
