"""
FastAPI app wiring for the HTTP transport.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastmcp import FastMCP

import c2.config as config
from c2.services.contact_service import ContactService
from app.routes.health import router as health_router
from app.routes.root import router as root_router


class MCPRouteNormalizerASGI:
    """Pure ASGI middleware - no response buffering, SSE-safe."""
    def __init__(self, wrapped_app):
        self.wrapped_app = wrapped_app

    async def __call__(self, scope, receive, send):
        if scope["type"] == "http" and scope.get("path") == "/mcp":
            scope = dict(scope)
            scope["path"] = "/mcp/"
        await self.wrapped_app(scope, receive, send)


def create_app(service: ContactService, mcp: FastMCP):
    """Build the ASGI app serving health routes and the MCP endpoint at /mcp."""
    mcp_stream_app = mcp.http_app(
        path="/",
        transport="streamable-http",
        stateless_http=True,
        json_response=True,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Run the MCP session manager; release the embedding client on shutdown."""
        try:
            async with mcp_stream_app.lifespan(mcp_stream_app):
                yield
        finally:
            service.context.close()
            config.logger.info("http_app_shutdown")

    app = FastAPI(title="C2 Contacts", redirect_slashes=False, lifespan=lifespan)
    app.state.contact_service = service
    app.state.mcp = mcp

    app.include_router(health_router)
    app.include_router(root_router)
    app.mount("/mcp/", mcp_stream_app)

    return MCPRouteNormalizerASGI(app)
