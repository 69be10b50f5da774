"""
migrations/env.py — Alembic environment.

The database URL comes from the same config classes the app uses:
TestingConfig when TEST_RUN is set, otherwise the class named by APP_ENV
(development by default). settleup.config loads the .env files.
"""

from __future__ import annotations

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from settleup.app.extensions import db
from settleup.app.models import (  # noqa: F401  populate db.metadata
    activity,
    expense,
    group,
    invitation,
    membership,
    settlement,
    split,
    user,
)
from settleup.config import config_by_name

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

_env_name = "testing" if os.getenv("TEST_RUN") else os.getenv("APP_ENV", "development")
_url = config_by_name[_env_name].SQLALCHEMY_DATABASE_URI
if not _url:
    raise RuntimeError(f"No database URL configured for {_env_name!r}; set DATABASE_URL.")
config.set_main_option("sqlalchemy.url", _url)

_options = {"target_metadata": db.metadata, "compare_type": True}


def run_offline() -> None:
    context.configure(url=_url, literal_binds=True, dialect_opts={"paramstyle": "named"}, **_options)
    with context.begin_transaction():
        context.run_migrations()


def run_online() -> None:
    engine = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with engine.connect() as connection:
        context.configure(connection=connection, **_options)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_offline()
else:
    run_online()
