"""Database bootstrap helpers.

The engine and session factory are built by the app factory and handed to the
SQL repositories; there is no module-level engine.
"""

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from merchantpay.common.config import Settings


class Base(DeclarativeBase):
    """Declarative base for SQLAlchemy models."""

    pass


def build_engine(settings: Settings) -> Engine:
    """Create the process-wide engine with bounded checkout and statement time."""

    connect_args = {}
    if settings.postgres_dsn.startswith("postgresql"):
        # Server-side cap so a stuck query surfaces as a storage failure.
        connect_args["options"] = f"-c statement_timeout={settings.db_statement_timeout_ms}"
    return create_engine(
        settings.postgres_dsn,
        pool_pre_ping=True,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout_seconds,
        connect_args=connect_args,
    )


def build_session_factory(engine: Engine) -> sessionmaker[Session]:
    # `expire_on_commit=False` keeps ORM objects readable after commit.
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)
