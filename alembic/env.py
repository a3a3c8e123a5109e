"""
alembic/env.py — Migration environment for the tracker tables.

The target database is DATABASE_URL (same variable as the app), unless a
one-off URL is passed on the command line:

    alembic upgrade head
    alembic -x db_url=sqlite:///./copy.db upgrade head

SQLite cannot ALTER most column properties, so migrations run in batch mode
there (copy-and-move tables).
"""

from logging.config import fileConfig

from alembic import context

from tracker import database
from tracker.models import (  # noqa: F401  (imported for Base registration)
    MatchRow,
    SessionPlayerRow,
    SessionRow,
)

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = database.Base.metadata


def _target_url() -> str:
    return context.get_x_argument(as_dictionary=True).get("db_url") or database.DATABASE_URL


def _configure_kwargs(url: str) -> dict:
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "render_as_batch": url.startswith("sqlite"),
    }


def run_migrations_offline(url: str) -> None:
    """Writes the migration SQL instead of executing it."""
    context.configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_kwargs(url),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online(url: str) -> None:
    # Reuse the app engine for the default URL so the SQLite pragmas match
    migration_engine = (
        database.engine if url == database.DATABASE_URL else database.make_engine(url)
    )
    try:
        with migration_engine.connect() as connection:
            context.configure(connection=connection, **_configure_kwargs(url))
            with context.begin_transaction():
                context.run_migrations()
    finally:
        if migration_engine is not database.engine:
            migration_engine.dispose()


url = _target_url()
config.set_main_option("sqlalchemy.url", url)
if context.is_offline_mode():
    run_migrations_offline(url)
else:
    run_migrations_online(url)
