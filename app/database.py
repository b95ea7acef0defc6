"""
Engine, session factory and declarative base.

Services own their transactions; get_db only scopes one session to a request.
"""
from typing import Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from app.core.config import settings


def build_engine(url: str, **kwargs) -> Engine:
    if url.startswith("postgresql"):
        return create_engine(url, pool_pre_ping=True, **kwargs)
    # SQLite: shared across the threadpool, writers wait on the database lock
    return create_engine(url, connect_args={"check_same_thread": False, "timeout": 30}, **kwargs)


engine = build_engine(settings.database_url)
SessionLocal = sessionmaker(bind=engine, autoflush=False)
Base = declarative_base()


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind: Optional[Engine] = None) -> None:
    """Create every ledger and payroll table that does not exist yet."""
    import app.models  # noqa: F401  registers all tables on Base.metadata
    Base.metadata.create_all(bind=bind or engine)
