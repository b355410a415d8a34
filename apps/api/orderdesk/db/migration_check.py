from __future__ import annotations

from pathlib import Path
from typing import Optional

from alembic.config import Config
from alembic.script import ScriptDirectory
from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine

from orderdesk.config import is_production_mode, settings
from orderdesk.db.base import Base

ALEMBIC_VERSION_TABLE = "alembic_version"


def alembic_config() -> Config:
    ini_path = Path(__file__).resolve().parents[2] / "alembic.ini"
    return Config(str(ini_path))


def get_alembic_head_revision() -> str:
    return ScriptDirectory.from_config(alembic_config()).get_current_head()


def get_current_db_revision(engine: Engine) -> Optional[str]:
    if not inspect(engine).has_table(ALEMBIC_VERSION_TABLE):
        return None
    with engine.connect() as connection:
        row = connection.execute(text(f"SELECT version_num FROM {ALEMBIC_VERSION_TABLE} LIMIT 1"))
        return row.scalar_one_or_none()


def assert_db_is_up_to_date(engine: Engine) -> None:
    current = get_current_db_revision(engine)
    head = get_alembic_head_revision()
    if current != head:
        raise RuntimeError(
            f"Database schema at revision {current!r}, expected {head!r}. "
            "Run: alembic upgrade head"
        )


def prepare_schema(engine: Engine) -> None:
    """
    Demo and pilot deployments may create tables directly from the models.
    Production requires migrations to have been applied out of band.
    """
    if is_production_mode():
        if settings.auto_create_schema:
            raise RuntimeError(
                "ORDERDESK_AUTO_CREATE_SCHEMA must be disabled in ORDERDESK_APP_MODE=production"
            )
        assert_db_is_up_to_date(engine)
        return
    if settings.auto_create_schema:
        Base.metadata.create_all(bind=engine)
