"""
Shared configuration for the C2 contact service.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("c2")


def _get_bool(env_name: str, default: bool) -> bool:
    value = os.environ.get(env_name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int(env_name: str, default: int) -> int:
    value = os.environ.get(env_name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_float(env_name: str, default: float) -> float:
    value = os.environ.get(env_name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _derive_effective_backends(db_backend: str, vector_backend: str) -> tuple[str, str]:
    db_effective = db_backend if db_backend in {"postgres", "sqlite"} else "sqlite"
    if not vector_backend:
        vector_backend = "pgvector" if db_effective == "postgres" else "json"
    vector_effective = (
        vector_backend if vector_backend in {"pgvector", "json", "none"} else "none"
    )
    if db_effective == "sqlite" and vector_effective == "pgvector":
        vector_effective = "json"
    return db_effective, vector_effective


# Storage location
C2_HOME = Path(os.environ.get("C2_HOME", str(Path.home() / ".c2")))

# Database settings
DB_BACKEND = os.environ.get("DB_BACKEND", "sqlite").strip().lower()
VECTOR_BACKEND = os.environ.get("VECTOR_BACKEND", "").strip().lower()
DB_PATH = os.environ.get("DB_PATH", str(C2_HOME / "contacts.db"))
DATABASE_URL = os.environ.get("DATABASE_URL")
DB_BACKEND_EFFECTIVE, VECTOR_BACKEND_EFFECTIVE = _derive_effective_backends(
    DB_BACKEND,
    VECTOR_BACKEND,
)

# Embedding settings
EMBEDDINGS_ENABLED = _get_bool("EMBEDDINGS_ENABLED", True)
EMBEDDING_PROVIDER = os.environ.get("EMBEDDING_PROVIDER", "ollama").strip().lower()
AI_BASE_URL = os.environ.get("AI_BASE_URL", "http://localhost:11434/v1")
EMBEDDINGS_MODEL = os.environ.get("EMBEDDINGS_MODEL", "mxbai-embed-large")
OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY")
EMBEDDING_DIM = _get_int("EMBEDDING_DIM", 1024)

# Provider retry/backoff
EMBEDDING_TIMEOUT_SECONDS = _get_float("EMBEDDING_TIMEOUT_SECONDS", 10.0)
EMBEDDING_RETRY_MAX = _get_int("EMBEDDING_RETRY_MAX", 2)
EMBEDDING_RETRY_BACKOFF_SECONDS = _get_float("EMBEDDING_RETRY_BACKOFF_SECONDS", 0.5)
EMBEDDING_RETRY_JITTER_SECONDS = _get_float("EMBEDDING_RETRY_JITTER_SECONDS", 0.25)
EMBEDDING_FAILURE_THRESHOLD = _get_int("EMBEDDING_FAILURE_THRESHOLD", 5)
EMBEDDING_COOLDOWN_SECONDS = _get_int("EMBEDDING_COOLDOWN_SECONDS", 60)
EMBEDDING_MAX_CONCURRENCY = _get_int("EMBEDDING_MAX_CONCURRENCY", 8)
EMBEDDING_BACKFILL_BATCH_LIMIT = _get_int("EMBEDDING_BACKFILL_BATCH_LIMIT", 100)

# Search
SEMANTIC_SIMILARITY_THRESHOLD = _get_float("SEMANTIC_SIMILARITY_THRESHOLD", 0.5)
SEMANTIC_TOP_K = _get_int("SEMANTIC_TOP_K", 10)
DEFAULT_LIST_LIMIT = _get_int("DEFAULT_LIST_LIMIT", 50)

# Database initialization controls
AUTO_CREATE_EXTENSIONS = _get_bool("AUTO_CREATE_EXTENSIONS", True)
AUTO_MIGRATE_ON_STARTUP = _get_bool("AUTO_MIGRATE_ON_STARTUP", True)

# Logging
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").strip().upper()
LOG_FILE = os.environ.get("LOG_FILE", str(C2_HOME / "mcp.log"))

# Transport
MCP_TRANSPORT = os.environ.get("MCP_TRANSPORT", "stdio").strip().lower()
HOST = os.environ.get("HOST", "127.0.0.1")
PORT = _get_int("PORT", 8080)

SERVICE_NAME = "c2-contact-service"
SERVICE_VERSION = "1.0.0"


def resolve_database_url(db_path: Optional[str] = None) -> Optional[str]:
    """Return the SQLAlchemy URL for the configured backend."""
    if DATABASE_URL and not db_path:
        return DATABASE_URL
    if DB_BACKEND_EFFECTIVE == "sqlite":
        path = db_path or DB_PATH
        if path == ":memory:":
            return "sqlite://"
        return f"sqlite:///{path}"
    return DATABASE_URL


def configure_logging(log_file: Optional[str] = LOG_FILE) -> None:
    """Attach the file handler; stderr output from basicConfig stays in place."""
    logger.setLevel(getattr(logging, LOG_LEVEL, logging.INFO))
    if not log_file:
        return
    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    for handler in logger.handlers:
        if isinstance(handler, logging.FileHandler) and Path(handler.baseFilename) == path.resolve():
            return
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter("[%(asctime)s] [%(levelname)s] %(message)s"))
    logger.addHandler(handler)


def validate_and_prepare_config() -> None:
    """Validate configuration and apply derived settings at startup."""
    global DATABASE_URL, DB_BACKEND_EFFECTIVE, VECTOR_BACKEND_EFFECTIVE

    errors = []
    if DB_BACKEND not in {"postgres", "sqlite"}:
        errors.append("DB_BACKEND must be 'postgres' or 'sqlite'")

    if VECTOR_BACKEND and VECTOR_BACKEND not in {"pgvector", "json", "none"}:
        errors.append("VECTOR_BACKEND must be 'pgvector', 'json', or 'none'")

    if DB_BACKEND == "sqlite" and VECTOR_BACKEND == "pgvector":
        errors.append("VECTOR_BACKEND=pgvector requires DB_BACKEND=postgres")

    if EMBEDDING_PROVIDER not in {"ollama", "openai", "none"}:
        errors.append("EMBEDDING_PROVIDER must be 'ollama', 'openai', or 'none'")

    if EMBEDDING_DIM <= 0:
        errors.append("EMBEDDING_DIM must be a positive integer")

    if DEFAULT_LIST_LIMIT < 0:
        errors.append("DEFAULT_LIST_LIMIT must not be negative")

    if not DATABASE_URL:
        if DB_BACKEND == "sqlite":
            if not DB_PATH:
                errors.append("DB_PATH environment variable is required for sqlite")
            else:
                DATABASE_URL = resolve_database_url()
        else:
            errors.append("DATABASE_URL environment variable is required")
    else:
        is_sqlite_url = DATABASE_URL.lower().startswith("sqlite")
        if DB_BACKEND == "sqlite" and not is_sqlite_url:
            errors.append("DATABASE_URL must be a sqlite URL when DB_BACKEND=sqlite")
        if DB_BACKEND == "postgres" and is_sqlite_url:
            errors.append("DATABASE_URL must be a postgres URL when DB_BACKEND=postgres")

    DB_BACKEND_EFFECTIVE, VECTOR_BACKEND_EFFECTIVE = _derive_effective_backends(
        DB_BACKEND,
        VECTOR_BACKEND,
    )

    if VECTOR_BACKEND_EFFECTIVE == "pgvector":
        from c2.models import PGVECTOR_AVAILABLE

        if not PGVECTOR_AVAILABLE:
            errors.append("pgvector package is required when VECTOR_BACKEND=pgvector")

    if errors:
        raise RuntimeError("Configuration invalid: " + "; ".join(errors))
