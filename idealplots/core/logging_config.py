"""
Logging configuration for the Ideal Plots backend.

Every module logs through `logging.getLogger(__name__)`; this module only
installs the root handler once at process start-up.
"""

import logging
import sys
from typing import Optional

from pydantic import BaseModel


class LogConfig(BaseModel):
    """Logging configuration settings."""

    level: str = "INFO"
    format: str = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"
    quiet_loggers: tuple = ("sqlalchemy.engine", "asyncio")


_configured = False


def setup_logging(config: Optional[LogConfig] = None) -> None:
    """Install a console handler on the root logger (idempotent)."""
    global _configured
    if _configured:
        return

    config = config or LogConfig()
    root = logging.getLogger()
    root.setLevel(config.level.upper())

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(config.format, datefmt=config.date_format))
    root.addHandler(handler)

    for name in config.quiet_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)

    _configured = True
    logging.getLogger(__name__).info("Logging configured at level %s", config.level.upper())
