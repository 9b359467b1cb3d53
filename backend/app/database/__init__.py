"""
Database engine, session factory, and metadata shared across the application.
"""

from __future__ import annotations

from datetime import datetime
import logging
from typing import Any, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import UnboundExecutionError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from app.core.config import settings

logger = logging.getLogger(__name__)


def _is_sqlite(db_url: str) -> bool:
    return db_url.startswith("sqlite")


def build_engine_kwargs(db_url: str) -> dict[str, Any]:
    """Engine options per dialect; every store call carries a timeout."""
    if _is_sqlite(db_url):
        return {
            "connect_args": {
                "check_same_thread": False,
                "timeout": settings.db_connect_timeout_s,
            },
            "future": True,
        }
    return {
        "pool_size": 5,
        "max_overflow": 10,
        # Fail fast when the pool is exhausted instead of queueing requests
        "pool_timeout": 2,
        "pool_recycle": 300,
        "pool_pre_ping": True,
        "future": True,
        "connect_args": {
            "connect_timeout": settings.db_connect_timeout_s,
            "options": f"-c statement_timeout={settings.db_statement_timeout_ms}",
            "application_name": "studio_core",
        },
    }


def create_db_engine(db_url: str) -> Engine:
    return create_engine(db_url, **build_engine_kwargs(db_url))


engine: Engine = create_db_engine(settings.database_url)


@event.listens_for(engine, "connect")
def receive_connect(dbapi_connection: Any, connection_record: Any) -> None:
    connection_record.info["connect_time"] = datetime.now()
    logger.debug("Database connection established")


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)

Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """Get database session with proper cleanup."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db(bind: Engine | None = None) -> None:
    """Create all tables (and the PostgreSQL exclusion constraint) on the given engine."""
    import app.models  # noqa: F401  (populate metadata)

    target = bind or engine
    Base.metadata.create_all(target)
    logger.info("Database schema ensured on %s", target.dialect.name)


def get_dialect_name(session: Session, default: str = "sqlite") -> str:
    """Dialect of the engine a session is bound to; ``default`` when unbound."""
    try:
        bind = session.get_bind()
    except UnboundExecutionError:
        return default
    return getattr(getattr(bind, "dialect", None), "name", None) or default
