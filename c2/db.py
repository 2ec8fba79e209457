"""
Database initialization and migration helpers.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import c2.config as config


class DB:
    """Database state holder (avoids global scoping issues)."""

    engine = None
    SessionLocal = None


def _sqlite_lower(value):
    if value is None:
        return None
    return str(value).lower()


def _install_sqlite_hooks(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Cascade deletes from contacts to embeddings depend on this
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()
        # Built-in lower() only folds ASCII
        dbapi_connection.create_function("lower", 1, _sqlite_lower, deterministic=True)


def create_db_engine(database_url: str) -> Engine:
    """Create an engine with the per-dialect connection setup applied."""
    engine_kwargs = {"pool_pre_ping": True}
    is_sqlite = database_url.lower().startswith("sqlite")
    if is_sqlite:
        engine_kwargs["connect_args"] = {"check_same_thread": False, "timeout": 30}
        if database_url in {"sqlite://", "sqlite:///:memory:"}:
            # One shared connection, otherwise each pooled connection is a new database
            engine_kwargs["poolclass"] = StaticPool
    engine = create_engine(database_url, **engine_kwargs)
    if is_sqlite:
        _install_sqlite_hooks(engine)
    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    # Service methods hand back ORM rows after their session closes
    return sessionmaker(bind=engine, expire_on_commit=False)


def _get_alembic_config(database_url: str):
    try:
        from alembic.config import Config
    except ImportError as exc:
        raise RuntimeError("Alembic is required for migrations") from exc

    base_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    alembic_cfg = Config(os.path.join(base_dir, "alembic.ini"))
    alembic_cfg.set_main_option("script_location", os.path.join(base_dir, "alembic"))
    alembic_cfg.set_main_option("sqlalchemy.url", database_url.replace("%", "%%"))
    # Leave the service's logging setup alone when migrating at startup
    alembic_cfg.attributes["configure_logger"] = False
    return alembic_cfg


def _get_schema_revisions(engine, database_url: str) -> tuple[Optional[str], Optional[str]]:
    from alembic.runtime.migration import MigrationContext
    from alembic.script import ScriptDirectory

    alembic_cfg = _get_alembic_config(database_url)
    script = ScriptDirectory.from_config(alembic_cfg)
    head_revision = script.get_current_head()
    with engine.connect() as conn:
        context = MigrationContext.configure(conn)
        current_revision = context.get_current_revision()
    return current_revision, head_revision


def get_schema_revisions() -> tuple[Optional[str], Optional[str]]:
    if DB.engine is None:
        return None, None
    return _get_schema_revisions(DB.engine, DB.engine.url.render_as_string(hide_password=False))


def _ensure_schema_up_to_date(engine, database_url: str) -> None:
    from alembic import command

    current_rev, head_rev = _get_schema_revisions(engine, database_url)
    if current_rev == head_rev:
        return

    if config.AUTO_MIGRATE_ON_STARTUP:
        alembic_cfg = _get_alembic_config(database_url)
        with engine.begin() as connection:
            # Share the service connection so in-memory SQLite migrates the same database
            alembic_cfg.attributes["connection"] = connection
            command.upgrade(alembic_cfg, "head")
        new_current, _ = _get_schema_revisions(engine, database_url)
        if new_current != head_rev:
            raise RuntimeError("Database migration did not reach expected revision")
    else:
        raise RuntimeError(
            f"Database schema out of date (current={current_rev}, expected={head_rev}). "
            "Run 'alembic upgrade head' or set AUTO_MIGRATE_ON_STARTUP=true."
        )


def init_db(db_path: Optional[str] = None) -> sessionmaker:
    """Initialize database connection and bring the schema to head."""
    config.validate_and_prepare_config()

    database_url = config.resolve_database_url(db_path)
    if database_url is None:
        raise RuntimeError("DATABASE_URL could not be resolved")

    if database_url.startswith("sqlite:///"):
        Path(database_url[len("sqlite:///"):]).parent.mkdir(parents=True, exist_ok=True)

    config.logger.info("Connecting to database...")
    DB.engine = create_db_engine(database_url)
    DB.SessionLocal = create_session_factory(DB.engine)

    if (
        config.AUTO_CREATE_EXTENSIONS
        and config.DB_BACKEND_EFFECTIVE == "postgres"
        and config.VECTOR_BACKEND_EFFECTIVE == "pgvector"
    ):
        config.logger.info("Ensuring pgvector extension...")
        with DB.engine.connect() as conn:
            conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
            conn.commit()
    else:
        config.logger.info("Skipping pgvector extension creation")

    _ensure_schema_up_to_date(DB.engine, database_url)

    config.logger.info("Database initialized")
    return DB.SessionLocal


def dispose_db() -> None:
    if DB.engine is not None:
        DB.engine.dispose()
    DB.engine = None
    DB.SessionLocal = None
