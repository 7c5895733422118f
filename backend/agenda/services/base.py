# backend/agenda/services/base.py
"""
Base service for the Agenda booking engine.

Provides the pieces every service shares:
- Transaction ownership (repositories only flush)
- Operation logging
- Timing via ``@measure_operation`` feeding Prometheus
- An injected clock so booking rules can be tested at fixed instants
"""

from contextlib import contextmanager
from functools import wraps
import logging
import time
from typing import Any, Callable, Iterator, Optional, TypeVar, cast

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import ServiceException
from ..core.timezone_utils import Clock, utc_now
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

# PostgreSQL deadlock and serialization failure
_RETRYABLE_SQLSTATES = {"40P01", "40001"}


def is_retryable_write_conflict(exc: BaseException) -> bool:
    """True for unique-index collisions and lock conflicts worth one fresh retry."""
    if isinstance(exc, IntegrityError):
        return True
    if isinstance(exc, OperationalError) and "database is locked" in str(exc.orig):
        # SQLite busy timeout expired waiting for the write lock
        return True
    if isinstance(exc, DBAPIError):
        sqlstate = getattr(exc.orig, "pgcode", None) or getattr(exc.orig, "sqlstate", None)
        return sqlstate in _RETRYABLE_SQLSTATES
    return False


class BaseService:
    """
    Base class for all service layer components.

    Args:
        db: Database session (one per request)
        clock: Returns the current aware UTC instant; defaults to the wall clock
    """

    def __init__(self, db: Session, clock: Optional[Clock] = None):
        self.db = db
        self.clock: Clock = clock or utc_now
        self.logger = logging.getLogger(self.__class__.__name__)

    def now(self):
        return self.clock()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        Commit on success, roll back on any failure.

        Write conflicts (``IntegrityError``, deadlocks) are re-raised untouched so
        callers can decide to retry; other database errors become
        ``ServiceException`` and never leak driver detail to clients.
        """
        try:
            yield self.db
            self.db.commit()
            self.logger.debug("Transaction committed successfully")
        except SQLAlchemyError as e:
            self.db.rollback()
            if is_retryable_write_conflict(e):
                self.logger.info("Transaction hit a write conflict: %s", type(e).__name__)
                raise
            self.logger.error("Transaction failed: %s", e, exc_info=True)
            raise ServiceException(f"Database operation failed: {e}") from e
        except Exception:
            self.db.rollback()
            raise

    @staticmethod
    def measure_operation(operation_name: str) -> Callable[[F], F]:
        """
        Decorator to measure operation performance.

        Usage:
            @BaseService.measure_operation("create_appointment")
            def create(self, scope, request):
                ...
        """

        def decorator(func: F) -> F:
            @wraps(func)
            def wrapper(self: "BaseService", *args: Any, **kwargs: Any) -> Any:
                start_time = time.perf_counter()
                status = "error"
                error_type: Optional[str] = None
                try:
                    result = func(self, *args, **kwargs)
                    status = "success"
                    return result
                except Exception as e:
                    error_type = type(e).__name__
                    raise
                finally:
                    elapsed = time.perf_counter() - start_time
                    if elapsed > settings.slow_operation_threshold_s:
                        self.logger.warning(
                            "Slow operation detected: %s took %.2fs", operation_name, elapsed
                        )
                    prometheus_metrics.record_service_operation(
                        service=self.__class__.__name__,
                        operation=operation_name,
                        duration=elapsed,
                        status=status,
                        error_type=error_type,
                    )

            return cast(F, wrapper)

        return decorator

    def log_operation(self, operation: str, **context: Any) -> None:
        """Log an operation with structured context."""
        self.logger.info("Operation: %s", operation, extra={"operation": operation, **context})
