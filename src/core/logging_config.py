"""Logging setup for the application and scripts."""

import logging

from src.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Configure root logger once (idempotent: basicConfig is a no-op if handlers exist)."""
    logging.basicConfig(level=level or settings.log_level, format=LOG_FORMAT)
    # SQL echo goes through sqlalchemy.engine; keep it quiet unless debugging
    if not settings.debug:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
