"""Process-wide logging setup."""

from __future__ import annotations

import logging

from .config import settings
from .request_context import attach_request_id_filter

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s"

_configured = False


def setup_logging(level: str | None = None) -> None:
    """Configure the root logger once; later calls only adjust the level."""
    global _configured
    resolved = getattr(logging, (level or settings.log_level).upper(), logging.INFO)
    if not _configured:
        logging.basicConfig(level=resolved, format=LOG_FORMAT)
        attach_request_id_filter()
        # SQLAlchemy engine logging is controlled by DATABASE_ECHO
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
        _configured = True
    logging.getLogger().setLevel(resolved)
