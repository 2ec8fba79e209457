"""
Health and dependency endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from fastmcp import FastMCP
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

import c2.config as config
from c2.db import _get_schema_revisions
from c2.mcp import tool_inventory_status
from c2.services.contact_service import ContactService
from app.deps import get_contact_service, get_mcp_server


router = APIRouter()


def _check_db_health(service: ContactService) -> dict:
    engine = service.context.session_factory.kw.get("bind")
    if engine is None:
        return {"ok": False, "error": "db_not_initialized"}

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
            ext_version = None
            pgvector_installed = True
            if engine.dialect.name == "postgresql" and service.context.vector_backend == "pgvector":
                ext_version = conn.execute(
                    text("SELECT extversion FROM pg_extension WHERE extname = 'vector'")
                ).scalar()
                pgvector_installed = bool(ext_version)
    except SQLAlchemyError as exc:
        return {"ok": False, "error": str(exc)}

    current_rev, head_rev = _get_schema_revisions(
        engine,
        engine.url.render_as_string(hide_password=False),
    )
    schema_ok = head_rev is None or current_rev == head_rev
    return {
        "ok": schema_ok and pgvector_installed,
        "pgvector_installed": pgvector_installed,
        "pgvector_version": ext_version,
        "schema_revision": current_rev,
        "schema_expected": head_rev,
        "schema_up_to_date": schema_ok,
    }


def _check_embedding_health(service: ContactService) -> dict:
    context = service.context
    embedder = context.embedder
    if not context.semantic_enabled:
        return {"status": "disabled", "provider": config.EMBEDDING_PROVIDER}

    breaker = getattr(embedder, "circuit_breaker", None)
    breaker_status = breaker.status() if breaker is not None else None
    status = "cooldown" if breaker_status and breaker_status.get("open") else "ready"
    return {
        "status": status,
        "provider": getattr(embedder, "provider", None),
        "model": getattr(embedder, "model", None),
        "circuit_breaker": breaker_status,
    }


@router.get("/health")
async def health(service: ContactService = Depends(get_contact_service)):
    """Health check endpoint."""
    db_health = _check_db_health(service)
    embedding_status = _check_embedding_health(service)
    if not db_health.get("ok"):
        raise HTTPException(
            status_code=503,
            detail={"database": db_health, "embedding_provider": embedding_status},
        )

    return {
        "status": "healthy",
        "service": config.SERVICE_NAME,
        "version": config.SERVICE_VERSION,
        "database": db_health,
        "embedding_provider": embedding_status,
    }


@router.get("/health/tools")
async def health_tools(mcp: FastMCP = Depends(get_mcp_server)):
    """Tool inventory health check."""
    tool_inventory = await tool_inventory_status(mcp)
    if tool_inventory.get("tool_count", 0) == 0:
        raise HTTPException(status_code=503, detail={"tool_inventory": tool_inventory})

    return {
        "status": "healthy",
        "service": config.SERVICE_NAME,
        "tool_inventory": tool_inventory,
    }
