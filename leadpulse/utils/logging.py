"""Logging setup shared by the API process and scripts."""

import logging
from typing import Optional

from .config import get_settings

LOG_FORMAT = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"


def setup_logging(level: Optional[str] = None) -> None:
    """Configure root logging from LOG_LEVEL unless a level is given."""
    level_name = (level or get_settings().LOG_LEVEL).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format=LOG_FORMAT,
    )
    # SQLAlchemy engine logging is controlled by SQL_DEBUG instead
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
