"""Alembic environment for the account store: Warden settings supply the URL, models supply metadata."""

from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine
from sqlalchemy.pool import NullPool

from warden.core.config import settings
from warden.models import Base

config = context.config
# alembic.ini carries no logging sections; only configure logging when it does.
if config.config_file_name is not None and config.has_section("loggers"):
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def get_url() -> str:
    """`alembic -x url=...` overrides DATABASE_URL (e.g. to migrate a scratch SQLite file)."""
    return context.get_x_argument(as_dictionary=True).get("url") or settings.DATABASE_URL


def _configure_options(url: str) -> dict:
    # SQLite cannot ALTER most constraints in place; batch mode recreates the table.
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "render_as_batch": url.startswith("sqlite"),
    }


def run_migrations_offline() -> None:
    url = get_url()
    context.configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_options(url),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    url = get_url()
    connectable = create_engine(url, poolclass=NullPool)
    with connectable.connect() as connection:
        context.configure(connection=connection, **_configure_options(url))
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
