# backend/agenda/init_db.py
"""Create all tables on the configured database (development and tests)."""

import logging
from typing import Optional

from sqlalchemy.engine import Engine

from . import models  # noqa: F401  registers every table on Base.metadata
from .database import Base, engine

logger = logging.getLogger(__name__)


def init_db(bind: Optional[Engine] = None) -> None:
    target = bind or engine
    Base.metadata.create_all(bind=target)
    logger.info("Database tables ensured on %s", target.url.render_as_string(hide_password=True))


if __name__ == "__main__":
    init_db()
