"""
Database session, engine and the per-operation transaction scope.
"""
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from infrabook.config import settings


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        # Tests and local dev; the API serves requests from a thread pool
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_size": 8,
        "max_overflow": 10,
        "pool_pre_ping": True,
        "pool_recycle": 300,
        "pool_timeout": 30,
    }


engine = create_engine(settings.database_url, **_engine_kwargs(settings.database_url))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """
    One lifecycle operation = one transaction. Commits when the block exits cleanly;
    any exception rolls back everything written inside the block and propagates.
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
