"""Alembic helpers used by the maintenance scripts and the test-suite."""

from __future__ import annotations

from typing import Any, Optional

from alembic import command
from alembic.autogenerate import api as ag_api
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from sqlalchemy.engine import Engine

from ..config import ROOT_DIR, get_settings

ALEMBIC_DIR = ROOT_DIR / "alembic"
ALEMBIC_INI = ROOT_DIR / "alembic.ini"


def alembic_config(database_url: Optional[str] = None) -> Config:
    """Return an Alembic config pointing at the project's migration scripts.

    ``alembic.ini`` is used when present so its logging setup applies; the
    script location and database URL are always set explicitly.
    """
    cfg = Config(str(ALEMBIC_INI)) if ALEMBIC_INI.exists() else Config()
    cfg.set_main_option("script_location", str(ALEMBIC_DIR))
    url = database_url or get_settings().db_url
    # ConfigParser interpolation treats '%' specially.
    cfg.set_main_option("sqlalchemy.url", url.replace("%", "%%"))
    return cfg


def upgrade_db(database_url: Optional[str] = None, revision: str = "head") -> None:
    """Apply migrations up to ``revision``."""
    command.upgrade(alembic_config(database_url), revision)


def downgrade_db(database_url: Optional[str] = None, revision: str = "base") -> None:
    command.downgrade(alembic_config(database_url), revision)


def schema_drift(engine: Engine) -> list[Any]:
    """Return the autogenerate operations separating the database from the models.

    An empty list means the migrated schema matches the declared metadata.
    """
    from ..models import Base

    with engine.connect() as connection:
        context = MigrationContext.configure(
            connection=connection,
            opts={
                "compare_type": True,
                "compare_server_default": True,
                "render_as_batch": connection.dialect.name == "sqlite",
            },
        )
        migration = ag_api.produce_migrations(context, Base.metadata)
    upgrade_ops = migration.upgrade_ops
    if upgrade_ops is None:
        raise RuntimeError("Alembic produced no upgrade operations")
    return list(upgrade_ops.ops or [])


__all__ = [
    "ALEMBIC_DIR",
    "alembic_config",
    "downgrade_db",
    "schema_drift",
    "upgrade_db",
]
