"""
Database configuration and session management
"""
import logging
from pathlib import Path
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from alembic.config import Config
from alembic.script import ScriptDirectory

from cryptotrack.core.config import settings

logger = logging.getLogger(__name__)

# Create base class for models
Base = declarative_base()


def build_engine(database_url: Optional[str] = None) -> Engine:
    """Create a database engine for the given URL (defaults to DATABASE_URL)."""
    url = database_url or settings.DATABASE_URL
    if "sqlite" in url:
        return create_engine(
            url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
            echo=False
        )
    return create_engine(
        url,
        pool_pre_ping=True,
        echo=False
    )


def build_session_factory(engine: Engine) -> sessionmaker:
    """Create a session factory bound to an engine."""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


async def init_db(engine: Engine):
    """Initialize database by validating Alembic revision state."""
    project_root = Path(__file__).resolve().parents[2]
    alembic_ini = project_root / "alembic.ini"
    alembic_dir = project_root / "alembic"

    if not alembic_ini.exists() or not alembic_dir.exists():
        raise RuntimeError("Alembic configuration is missing. Cannot initialize database safely.")

    alembic_cfg = Config(str(alembic_ini))
    alembic_cfg.set_main_option("script_location", str(alembic_dir))
    script = ScriptDirectory.from_config(alembic_cfg)
    heads = script.get_heads()
    if len(heads) != 1:
        raise RuntimeError("Expected a single Alembic head revision.")
    expected_head = heads[0]

    current_revision = None
    try:
        with engine.connect() as conn:
            row = conn.execute(text("SELECT version_num FROM alembic_version LIMIT 1")).fetchone()
            current_revision = row[0] if row else None
    except SQLAlchemyError:
        current_revision = None

    if current_revision != expected_head:
        raise RuntimeError(
            f"Database revision mismatch. Current={current_revision}, Expected={expected_head}. "
            "Run `python -m alembic upgrade head` before starting the app."
        )
    logger.info("Database revision verified at head: %s", expected_head)
