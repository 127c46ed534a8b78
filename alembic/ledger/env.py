"""Migrations for one outlet ledger database, selected with ``-x outlet=<slug>``."""

from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

import stockhub.models  # noqa: F401
from stockhub.core.config import settings
from stockhub.core.outlets import canonicalize_outlet
from stockhub.db.base import LedgerBase

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

outlet_arg = context.get_x_argument(as_dictionary=True).get("outlet")
if not outlet_arg:
    raise SystemExit("Pass the target outlet, e.g. alembic --name ledger -x outlet=kuwait-city upgrade head")
outlet = canonicalize_outlet(outlet_arg)

database_url = getattr(settings, outlet.profile.database_setting)
config.set_main_option("sqlalchemy.url", database_url.replace("%", "%%"))
target_metadata = LedgerBase.metadata


def run_migrations_offline() -> None:
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
