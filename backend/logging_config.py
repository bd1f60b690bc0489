"""Centralized logging configuration."""

import logging

from config import settings

# Third-party loggers that drown out sync output at INFO
NOISY_LOGGERS = (
    "sqlalchemy.engine",
    "sqlalchemy.pool",
    "httpx",
    "httpcore",
    "urllib3",
    "keyring",
)


def setup_logging(level: str | None = None) -> None:
    """Configure logging for the application.

    Args:
        level: Root level name overriding ``settings.LOG_LEVEL`` (the sync
            script passes ``"DEBUG"`` for ``--verbose``).

    Noisy third-party loggers stay at WARNING whatever the root level.
    """
    level_name = (level or settings.LOG_LEVEL).upper()
    logging.basicConfig(
        format="%(asctime)s %(levelname)-8s %(name)s  %(message)s",
        datefmt="%H:%M:%S",
        level=getattr(logging, level_name),
        force=True,
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
