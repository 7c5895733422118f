# backend/agenda/repositories/base_repository.py
"""
Base repository for the Agenda booking engine.

Repositories own queries and flushes. They never commit: the service layer
owns transaction boundaries so that an appointment, its coupon usage and its
outbox event land in one commit.
"""

import logging
from typing import Any, Generic, Optional, Type, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query, Session

from ..core.exceptions import RepositoryException
from ..database import get_dialect_name

# Type variable for generic model support
T = TypeVar("T")

logger = logging.getLogger(__name__)


class BaseRepository(Generic[T]):
    """
    Common data access patterns shared by the concrete repositories.

    Attributes:
        db: SQLAlchemy session (managed by the service layer)
        model: SQLAlchemy model class
    """

    def __init__(self, db: Session, model: Type[T]):
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    @property
    def dialect_name(self) -> str:
        return get_dialect_name(self.db)

    def lock_row(self, id: str) -> Optional[T]:
        """
        Re-read one row and hold a write lock on it until the transaction ends.

        PostgreSQL takes a row lock with ``SELECT ... FOR UPDATE``. SQLite has
        no row locks, so a no-op ``UPDATE`` on the row claims the database
        write lock instead; a concurrent transaction blocks here (up to the
        busy timeout) until this one commits or rolls back, and then reads
        what it wrote.
        """
        query = self.db.query(self.model).filter(self.model.id == id)
        if self.dialect_name == "postgresql":
            query = query.with_for_update()
        else:
            # updated_at is assigned to itself so its onupdate default does not fire
            self.db.query(self.model).filter(self.model.id == id).update(
                {self.model.updated_at: self.model.updated_at}, synchronize_session=False
            )
        return query.populate_existing().first()

    def query(self) -> Query:
        return self.db.query(self.model)

    def create(self, **kwargs: Any) -> T:
        """
        Create a new entity.

        Note: Does NOT commit - transaction management is handled by service layer.
        """
        try:
            entity = self.model(**kwargs)
            self.db.add(entity)
            self.db.flush()  # Get ID without committing
            return entity
        except IntegrityError as exc:
            self.logger.error("Integrity error creating %s: %s", self.model.__name__, exc)
            raise RepositoryException(f"Integrity constraint violated: {exc}") from exc
        except SQLAlchemyError as e:
            self.logger.error("Error creating %s: %s", self.model.__name__, e)
            raise RepositoryException(f"Failed to create {self.model.__name__}: {e}") from e

    def add(self, entity: T) -> T:
        """Stage an already-built entity and flush it; constraint errors propagate."""
        self.db.add(entity)
        self.db.flush()
        return entity

    def flush(self) -> None:
        self.db.flush()

    def find_one_by(self, **kwargs: Any) -> Optional[T]:
        try:
            return self.db.query(self.model).filter_by(**kwargs).first()
        except SQLAlchemyError as e:
            self.logger.error("Error finding %s: %s", self.model.__name__, e)
            raise RepositoryException(f"Failed to find {self.model.__name__}: {e}") from e
