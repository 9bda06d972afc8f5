import logging
import sys
from logging.config import fileConfig
from pathlib import Path

from alembic import context

# Project modules live one directory up from the migration scripts.
BASE_DIR = Path(__file__).resolve().parents[1]
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

from config import get_settings  # noqa: E402
from database import Base, engine  # noqa: E402
import models  # noqa: E402,F401  registers tables on Base.metadata

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

logger = logging.getLogger("alembic.env")

database_url = get_settings().database_url
config.set_main_option("sqlalchemy.url", database_url)


def _migration_options(dialect_name: str) -> dict:
    # SQLite cannot ALTER most constraints in place.
    return {
        "target_metadata": Base.metadata,
        "render_as_batch": dialect_name == "sqlite",
        "compare_type": True,
    }


def run_migrations_offline() -> None:
    context.configure(
        url=database_url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_migration_options(database_url.split(":", 1)[0].split("+", 1)[0]),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    # Reuse the application engine so the SQLite pragmas apply to migrations too.
    with engine.connect() as connection:
        context.configure(
            connection=connection, **_migration_options(connection.dialect.name)
        )
        with context.begin_transaction():
            context.run_migrations()


offline = context.is_offline_mode()
logger.info(f"alembic_env: offline={offline} dialect={engine.dialect.name}")
if offline:
    run_migrations_offline()
else:
    run_migrations_online()
