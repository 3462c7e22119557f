from __future__ import annotations

from logging.config import fileConfig
from typing import Any, cast
import logging

from alembic import context
from sqlalchemy import engine_from_config, pool

from ratiomix.core.config import settings
from ratiomix.models import Base
import ratiomix.models  # noqa: F401 (registers SourcePlaylist/SourceTrack on Base.metadata)

config = context.config
if config.config_file_name is not None:
    try:
        fileConfig(config.config_file_name, disable_existing_loggers=False)
    except Exception:
        logging.basicConfig(level=settings.LOG_LEVEL)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    context.configure(
        url=settings.DATABASE_URL_SYNC,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    section = config.config_ini_section
    cfg = cast(dict[str, Any], config.get_section(section) or {})
    cfg["sqlalchemy.url"] = settings.DATABASE_URL_SYNC

    connectable = engine_from_config(
        cfg,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata, compare_type=True)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
