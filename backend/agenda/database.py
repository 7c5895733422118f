# backend/agenda/database.py
from datetime import datetime
import logging
from typing import Any, Callable, Generator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeMeta, Session, declarative_base, sessionmaker
from sqlalchemy.pool import QueuePool

from .core.config import settings

logger = logging.getLogger(__name__)


def build_engine(url: str, **overrides: Any) -> Engine:
    """Create an engine with per-dialect pool settings."""
    if url.startswith("sqlite"):
        options: dict[str, Any] = {
            "connect_args": {
                "check_same_thread": False,
                "timeout": settings.sqlite_busy_timeout_s,
            }
        }
    else:
        options = {
            "pool_size": 20,  # Number of persistent connections
            "max_overflow": 10,  # Maximum overflow connections
            "pool_timeout": 30,  # Timeout for getting connection
            "pool_recycle": 3600,  # Recycle connections after 1 hour
            "pool_pre_ping": True,  # Test connections before using
        }
    options.update(overrides)
    new_engine = create_engine(url, echo=settings.database_echo, **options)
    _install_listeners(new_engine)
    return new_engine


def _install_listeners(target: Engine) -> None:
    @event.listens_for(target, "connect")
    def receive_connect(dbapi_connection: Any, connection_record: Any) -> None:
        connection_record.info["connect_time"] = datetime.now()
        if target.dialect.name == "sqlite":
            # RESTRICT on services.id only holds with foreign keys enabled
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()
        logger.debug("Database connection established")

    @event.listens_for(target, "checkout")
    def receive_checkout(
        dbapi_connection: Any, connection_record: Any, connection_proxy: Any
    ) -> None:
        logger.debug("Connection checked out from pool")


engine: Engine = build_engine(settings.get_database_url())

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)

Base: DeclarativeMeta = declarative_base()


def get_db(
    session_factory: Optional[Callable[[], Session]] = None,
) -> Generator[Session, None, None]:
    """Get database session with proper cleanup."""
    db = (session_factory or SessionLocal)()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_db_pool_status() -> dict[str, int]:
    """Get current database pool statistics."""
    pool = engine.pool
    if not isinstance(pool, QueuePool):
        return {"size": 0, "checked_in": 0, "checked_out": 0, "total": 0, "overflow": 0}
    return {
        "size": pool.size(),
        "checked_in": pool.checkedin(),
        "checked_out": pool.checkedout(),
        "total": pool.size() + pool.overflow(),
        "overflow": pool.overflow(),
    }


def get_dialect_name(session: Session, default: str = "sqlite") -> str:
    """Return the dialect name of the engine bound to ``session``."""
    try:
        bind = session.get_bind()
    except Exception:
        return default
    dialect = getattr(bind, "dialect", None)
    return getattr(dialect, "name", None) or default
