"""Database engine helpers."""

from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine


def build_engine(url: str, **kwargs) -> Engine:
    """Create an engine; SQLite connections are shared across request threads."""
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, connect_args=connect_args, **kwargs)


def init_db(engine: Engine) -> None:
    """Create all tables registered on the SQLModel metadata."""
    # Import models so their tables are registered
    from app.models import annotation, book, usage, user  # noqa: F401

    SQLModel.metadata.create_all(engine)
