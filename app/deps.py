"""
Dependency helpers for the FastAPI app.
"""

from __future__ import annotations

from fastapi import Request
from fastmcp import FastMCP

from c2.services.contact_service import ContactService


def get_contact_service(request: Request) -> ContactService:
    service = getattr(request.app.state, "contact_service", None)
    if service is None:
        raise RuntimeError("Contact service not initialized")
    return service


def get_mcp_server(request: Request) -> FastMCP:
    mcp = getattr(request.app.state, "mcp", None)
    if mcp is None:
        raise RuntimeError("MCP server not initialized")
    return mcp
