"""Database engine and session factory for the local page cache."""
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

# Base class for SQLAlchemy models
Base = declarative_base()


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create a SQLAlchemy engine suited to the cache backend.

    SQLite connections are shared across threads, and in-memory databases
    are pinned to a single connection so every session sees the same data.

    Args:
        database_url: SQLAlchemy database URL
        echo: Log emitted SQL

    Returns:
        Configured engine
    """
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, echo=echo, **kwargs)

    return create_engine(
        database_url,
        pool_pre_ping=True,  # Verify connections before using
        pool_size=10,
        max_overflow=20,
        echo=echo
    )


def build_session_factory(engine: Engine) -> sessionmaker:
    """Create the session factory bound to an engine."""
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def init_db(bind: Engine) -> None:
    """Initialize database - create all tables."""
    # Registers the ORM tables on Base.metadata
    import pagesync.infrastructure.db.models  # noqa: F401

    Base.metadata.create_all(bind=bind)

