from __future__ import annotations

import os
import sys
from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool
from sqlalchemy.engine import Connection

# Ensure `urs.*` is importable when running alembic from the repository root.
sys.path.append(os.path.abspath(os.getcwd()))

from urs.core.config import settings  # noqa: E402
from urs.core.db.base import Base  # noqa: E402
from urs.core.db.session import import_model_modules  # noqa: E402
from urs.shared.exceptions import ConfigurationError  # noqa: E402

# Only the URS registry is versioned here; SIAR tables live on a separate metadata.
import_model_modules()

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata
VERSION_TABLE = "urs_alembic_version"


def urs_url() -> str:
    url = (settings.urs_database_url or config.get_main_option("sqlalchemy.url") or "").strip()
    if not url:
        raise ConfigurationError("Missing required env: URS_DATABASE_URL")
    return url


def _configure(**kwargs) -> None:
    context.configure(
        target_metadata=target_metadata,
        version_table=VERSION_TABLE,
        compare_type=True,
        transaction_per_migration=True,
        **kwargs,
    )


def run_migrations_offline() -> None:
    _configure(url=urs_url(), literal_binds=True, dialect_opts={"paramstyle": "named"})
    with context.begin_transaction():
        context.run_migrations()


def _run_with(connection: Connection) -> None:
    # SQLite cannot ALTER most constraints in place.
    _configure(connection=connection, render_as_batch=connection.dialect.name == "sqlite")
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    engine = create_engine(urs_url(), poolclass=pool.NullPool)
    try:
        with engine.connect() as connection:
            _run_with(connection)
    finally:
        engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
