"""Database engine and session factory.

Repositories commit per call. Concurrent deliveries of the same webhook are
arbitrated by the unique constraints on orders and customers, not by locks.
"""

from collections.abc import Generator
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from ordersync.core.config import settings

_is_sqlite = settings.APP_DATABASE_DSN.startswith("sqlite")

engine = create_engine(
    settings.APP_DATABASE_DSN,
    connect_args={"check_same_thread": False} if _is_sqlite else {},
    # Server connections may be dropped between webhook bursts.
    pool_pre_ping=not _is_sqlite,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base: Any = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """Yield a request-scoped session for FastAPI dependencies."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
