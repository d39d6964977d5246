"""Logging for the storeguard package.

Every module logs through ``logging.getLogger(__name__)``, so the whole
engine hangs below the ``storeguard`` package logger. Handlers are attached
once, to that package logger; modules never configure logging themselves.

Fail-closed answers (loading snapshots, unknown modules, roles outside the
catalog) are logged by the decision loggers at DEBUG. Their level can be
raised or lowered on its own to trace denials without turning the whole
package to DEBUG.
"""

import logging
import logging.handlers
import os
from typing import Any, Optional

PACKAGE_LOGGER = "storeguard"

# Modules that log every fail-closed decision
DECISION_LOGGERS = (
    "storeguard.core.rbac.checker",
    "storeguard.core.rbac.overrides",
    "storeguard.core.workflow.machine",
)

LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _level(level: str) -> int:
    level_upper = level.upper()
    if level_upper not in LEVELS:
        raise ValueError(f"Invalid log level: {level}. Must be one of: {', '.join(LEVELS)}")
    return getattr(logging, level_upper)


def setup_logger(
    name: str = PACKAGE_LOGGER,
    log_dir: str = "/var/log/storeguard",
    level: str = "INFO",
    decision_level: Optional[str] = None,
    file_logging: bool = False,
    console_logging: bool = True,
    max_bytes: int = 10485760,  # 10MB
    backup_count: int = 5,
) -> logging.Logger:
    """Attach handlers to the package logger.

    Args:
        name: Logger to configure; children of the package logger are
            configured under their own name
        log_dir: Directory for the rotating log file
        level: Level of the configured logger
        decision_level: Level of the decision loggers; None leaves them
            inheriting ``level``
        file_logging: Write ``<log_dir>/<name>.log``
        console_logging: Write to stderr
        max_bytes: Maximum log file size before rotation
        backup_count: Number of rotated files to keep

    Returns:
        The configured logger

    Raises:
        ValueError: If a level is not a standard logging level
    """
    logger = logging.getLogger(name)
    logger.setLevel(_level(level))

    if decision_level is not None:
        decision = _level(decision_level)
        for decision_name in DECISION_LOGGERS:
            logging.getLogger(decision_name).setLevel(decision)

    # Reconfiguring only changes levels
    if logger.handlers:
        return logger

    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] [%(name)s] %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )

    if file_logging:
        os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            os.path.join(log_dir, f"{name}.log"), maxBytes=max_bytes, backupCount=backup_count
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if console_logging:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger


def configure_logging(settings: Any) -> logging.Logger:
    """Configure the package logger from application settings."""
    return setup_logger(
        name=PACKAGE_LOGGER,
        log_dir=settings.log_dir,
        level=settings.log_level,
        decision_level=settings.decision_log_level,
        file_logging=settings.file_logging,
    )


def get_logger(name: str) -> logging.Logger:
    """Get a logger below the package logger.

    ``get_logger("snapshots")`` and ``get_logger("storeguard.snapshots")``
    return the same logger.
    """
    if name != PACKAGE_LOGGER and not name.startswith(PACKAGE_LOGGER + "."):
        name = f"{PACKAGE_LOGGER}.{name}"
    return logging.getLogger(name)
