"""
Application context shared by the contact services.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import sessionmaker

import c2.config as config
from c2.db import init_db
from c2.services.embeddings import EmbeddingClient


@dataclass(frozen=True)
class AppContext:
    session_factory: sessionmaker
    embedder: Optional[EmbeddingClient] = None
    embeddings_enabled: bool = True
    vector_backend: str = config.VECTOR_BACKEND_EFFECTIVE
    logger: logging.Logger = config.logger

    @property
    def semantic_enabled(self) -> bool:
        return (
            self.embeddings_enabled
            and self.embedder is not None
            and self.embedder.enabled
            and self.vector_backend != "none"
        )

    def close(self) -> None:
        if self.embedder is not None:
            self.embedder.close()


def build_app_context(
    db_path: Optional[str] = None,
    ai_base_url: Optional[str] = None,
    embeddings_model: Optional[str] = None,
    embeddings_enabled: Optional[bool] = None,
) -> AppContext:
    """Initialize the database and wire the embedding client for a server process."""
    session_factory = init_db(db_path)

    enabled = config.EMBEDDINGS_ENABLED if embeddings_enabled is None else embeddings_enabled
    enabled = enabled and config.EMBEDDING_PROVIDER != "none"
    embedder = None
    if enabled:
        embedder = EmbeddingClient(
            base_url=ai_base_url or config.AI_BASE_URL,
            model=embeddings_model or config.EMBEDDINGS_MODEL,
        )
        config.logger.info(
            "embeddings_enabled",
            extra={"provider": embedder.provider, "model": embedder.model, "endpoint": embedder.endpoint},
        )
    else:
        config.logger.info("embeddings_disabled")

    return AppContext(
        session_factory=session_factory,
        embedder=embedder,
        embeddings_enabled=enabled,
        vector_backend=config.VECTOR_BACKEND_EFFECTIVE,
    )


__all__ = ["AppContext", "build_app_context"]
