"""
Root endpoint with service metadata.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

import c2.config as config
from c2.services.contact_service import ContactService
from app.deps import get_contact_service


router = APIRouter()


@router.get("/")
async def root(service: ContactService = Depends(get_contact_service)):
    """Root endpoint with service info."""
    context = service.context
    embedder = context.embedder
    return {
        "service": config.SERVICE_NAME,
        "version": config.SERVICE_VERSION,
        "description": "Contact management with hybrid lexical and semantic search",
        "db_backend": config.DB_BACKEND_EFFECTIVE,
        "vector_backend": context.vector_backend,
        "embeddings_enabled": context.semantic_enabled,
        "embedding_model": embedder.model if embedder is not None else None,
        "endpoints": {
            "health": "/health",
            "health_tools": "/health/tools",
            "mcp": "/mcp",
        },
    }
