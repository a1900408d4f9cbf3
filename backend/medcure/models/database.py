"""
Engine, session factory and transaction helpers.

SQLite is the default for development and tests; Postgres is used in
production, where batch rows are locked with SELECT ... FOR UPDATE during
allocation.
"""

from contextlib import contextmanager
from typing import Generator, Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session

from medcure.config.settings import settings
from medcure.models.models import Base


def build_engine(database_url: str, **kwargs) -> Engine:
    """SQLite connections are shared across FastAPI worker threads."""
    if database_url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    else:
        kwargs.setdefault("pool_pre_ping", True)
    return create_engine(database_url, **kwargs)


engine = build_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency: one session per request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope() -> Iterator[Session]:
    """Transactional scope for work outside a request (Celery tasks, scripts)."""
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_tables(bind: Engine = None):
    Base.metadata.create_all(bind=bind or engine)
