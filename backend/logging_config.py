"""Centralized logging configuration."""

import logging

from config import settings

# Statement and pool chatter from SQLAlchemy drowns out store logs at DEBUG.
QUIET_LOGGERS = (
    "sqlalchemy.engine",
    "sqlalchemy.pool",
    "sqlalchemy.dialects",
    "sqlalchemy.orm",
)


def setup_logging(level: str | None = None) -> None:
    """Configure the root logger.

    Uses ``level`` when given, otherwise settings.LOG_LEVEL. SQLAlchemy's
    own loggers are held at WARNING regardless.
    """
    logging.basicConfig(
        format="%(asctime)s %(levelname)-8s %(name)s  %(message)s",
        datefmt="%H:%M:%S",
        level=getattr(logging, (level or settings.LOG_LEVEL).upper()),
        force=True,
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
