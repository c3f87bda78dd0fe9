"""
Database migration runner for Alembic migrations.
"""
import logging
from pathlib import Path
from alembic.config import Config
from alembic import command
from sqlalchemy import create_engine, text

logger = logging.getLogger(__name__)

ADVISORY_LOCK_ID = 987654321
ALEMBIC_INI = Path(__file__).resolve().parents[2] / "alembic.ini"


def build_alembic_config(database_url: str) -> Config:
    alembic_cfg = Config(str(ALEMBIC_INI))
    alembic_cfg.set_main_option("script_location", str(ALEMBIC_INI.parent / "alembic"))
    alembic_cfg.set_main_option("sqlalchemy.url", database_url)
    return alembic_cfg


def run_migrations(database_url: str = None):
    """
    Run Alembic migrations to head revision.

    On PostgreSQL an advisory lock serializes concurrent app instances so
    only one of them migrates.
    """
    from app.core import config as app_config

    database_url = database_url or app_config.DATABASE_URL
    if not database_url:
        raise ValueError("DATABASE_URL is not set")

    logger.info("RUN_MIGRATIONS=1 -> running alembic upgrade head")
    alembic_cfg = build_alembic_config(database_url)

    use_lock = database_url.startswith("postgresql")
    engine = create_engine(database_url, pool_pre_ping=True)
    lock_conn = None

    try:
        if use_lock:
            # keep the connection open to hold the lock
            lock_conn = engine.connect()
            lock_conn.execute(text(f"SELECT pg_advisory_lock({ADVISORY_LOCK_ID})"))
            lock_conn.commit()
            logger.info("Migration lock acquired")

        command.upgrade(alembic_cfg, "head")
        logger.info("Migrations complete")

    except Exception:
        logger.exception("Migration failed")
        raise
    finally:
        if lock_conn is not None:
            try:
                lock_conn.execute(text(f"SELECT pg_advisory_unlock({ADVISORY_LOCK_ID})"))
                lock_conn.commit()
            except Exception as unlock_error:
                logger.warning(f"Could not release migration lock: {unlock_error}")
            finally:
                lock_conn.close()
        engine.dispose()
