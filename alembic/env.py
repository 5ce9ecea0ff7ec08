"""
Alembic environment - migrations run against settings.database_url.
"""
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from prescripto.config import settings
from prescripto.database import Base
# Import models so they are registered on the metadata
from prescripto.auth import models as auth_models  # noqa: F401
from prescripto.patients import models as patient_models  # noqa: F401
from prescripto.doctors import models as doctor_models  # noqa: F401
from prescripto.appointments import models as appointment_models  # noqa: F401
from prescripto.medical_records import models as record_models  # noqa: F401
from prescripto.core import audit_models  # noqa: F401

config = context.config
config.set_main_option("sqlalchemy.url", settings.database_url)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


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
