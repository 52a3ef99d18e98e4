# alembic/env.py
from __future__ import annotations

from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool

from spentiva.core.config import settings
from spentiva.db.base import Base
import spentiva.db.models  # noqa: F401

config = context.config
if config.config_file_name:
    fileConfig(config.config_file_name)

# DATABASE_URL from the environment wins over alembic.ini
db_url = settings.DATABASE_URL or config.get_main_option("sqlalchemy.url")

target_metadata = Base.metadata


def run_migrations_offline():
    context.configure(url=db_url, target_metadata=target_metadata, literal_binds=True)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    connectable = create_engine(db_url, poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata, compare_type=True)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
