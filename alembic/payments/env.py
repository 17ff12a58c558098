"""Alembic environment for the payments database."""

from alembic import context
from merchantpay.common.config import load_settings
from merchantpay.common.db import Base, build_engine
from merchantpay.services.payments import models  # noqa: F401  registers tables

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    context.configure(
        url=load_settings().postgres_dsn,
        target_metadata=target_metadata,
        literal_binds=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    engine = build_engine(load_settings())
    try:
        with engine.connect() as connection:
            context.configure(connection=connection, target_metadata=target_metadata)
            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
