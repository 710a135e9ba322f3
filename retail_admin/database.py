"""Database engine and declarative base."""
import uuid

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from retail_admin.config import settings


def build_engine(url: str, **kwargs):
    """Create an engine, relaxing SQLite's same-thread check.

    The order sweeper runs its store calls from a worker thread, so SQLite
    connections must be shareable across threads.
    """
    if url.startswith("sqlite"):
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        kwargs["connect_args"] = connect_args
    return create_engine(url, **kwargs)


engine = build_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def generate_id() -> str:
    """Primary keys are UUID strings, matching the hosted backend's ids."""
    return str(uuid.uuid4())


def get_db():
    """Dependency to get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
