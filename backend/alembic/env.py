from logging.config import fileConfig

from dotenv import load_dotenv
from sqlalchemy import engine_from_config
from sqlalchemy import pool
from alembic import context

from infrabook.config import settings
from infrabook.db.base import Base
from infrabook.db.tables import ALL_TABLE_NAMES
from infrabook.models.answer import Answer  # noqa: F401
from infrabook.models.capability_token import CapabilityToken  # noqa: F401
from infrabook.models.guest_intent import GuestIntent  # noqa: F401
from infrabook.models.infrastructure import Infrastructure  # noqa: F401
from infrabook.models.infrastructure_manager import InfrastructureManager  # noqa: F401
from infrabook.models.question import QuestionDefinition  # noqa: F401
from infrabook.models.slot import SlotRecord  # noqa: F401

load_dotenv()

# Every model table must be created by a migration, and nothing else.
_registered = set(Base.metadata.tables)
_expected = set(ALL_TABLE_NAMES)
assert _registered == _expected, (
    f"Model tables {_registered} must match infrabook.db.tables.ALL_TABLE_NAMES {_expected}."
)

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata
config.set_main_option("sqlalchemy.url", settings.database_url)


def run_migrations_offline() -> None:
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
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
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            render_as_batch=connection.dialect.name == "sqlite",
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
