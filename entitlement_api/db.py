from datetime import datetime, timezone

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from .config import settings


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        # request handlers run in a threadpool
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


engine = create_engine(settings.DATABASE_URL, **_engine_kwargs(settings.DATABASE_URL))
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def init_db(bind=None):
    """Create database tables defined on Base subclasses.

    This is a convenience wrapper used by development scripts and tests. In
    production you should run migrations (Alembic) instead of create_all.
    """
    from . import models  # noqa: F401  registers tables on Base.metadata

    Base.metadata.create_all(bind=bind or engine)
