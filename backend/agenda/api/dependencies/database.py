# backend/agenda/api/dependencies/database.py
"""
Database-related dependencies.
"""

from typing import Generator

from fastapi import Request
from sqlalchemy.orm import Session

from ...database import get_db as original_get_db


def get_db(request: Request) -> Generator[Session, None, None]:
    """
    Get database session dependency.

    Uses ``app.state.session_factory`` when the application was built with
    one, otherwise the module-level ``SessionLocal``.

    Yields:
        Database session that will be closed after use
    """
    yield from original_get_db(getattr(request.app.state, "session_factory", None))
