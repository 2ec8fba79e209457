"""
C2 Contacts - contact management MCP server with hybrid lexical and semantic search.
"""

from __future__ import annotations

import argparse
import sys
from typing import Optional, Sequence

import c2.config as config
from c2.context import build_app_context
from c2.mcp import create_mcp_server
from c2.services.contact_service import ContactService

logger = config.logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Contact management MCP server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python server.py                                   # stdio transport, ~/.c2/contacts.db
  python server.py --db-path ./contacts.db --disable-embeddings
  python server.py --transport http --port 8080
  python server.py --backfill-embeddings
        """,
    )
    parser.add_argument(
        "--db-path",
        default=None,
        help="SQLite database file (default: DB_PATH, or ':memory:')",
    )
    parser.add_argument(
        "--ai-base-url",
        default=None,
        help="Embedding provider base URL (default: AI_BASE_URL)",
    )
    parser.add_argument(
        "--embeddings-model",
        default=None,
        help="Embedding model name (default: EMBEDDINGS_MODEL)",
    )
    parser.add_argument(
        "--disable-embeddings",
        action="store_true",
        help="Run with lexical search only",
    )
    parser.add_argument(
        "--backfill-embeddings",
        action="store_true",
        help="Embed contacts that have no embedding yet before serving",
    )
    parser.add_argument(
        "--transport",
        choices=["stdio", "http"],
        default=config.MCP_TRANSPORT if config.MCP_TRANSPORT in {"stdio", "http"} else "stdio",
        help="MCP transport (default: MCP_TRANSPORT or stdio)",
    )
    parser.add_argument("--host", default=config.HOST, help="HTTP bind host (default: HOST)")
    parser.add_argument("--port", type=int, default=config.PORT, help="HTTP port (default: PORT)")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point."""
    args = build_parser().parse_args(argv)
    config.configure_logging()

    embeddings_enabled = False if args.disable_embeddings else None
    try:
        context = build_app_context(
            db_path=args.db_path,
            ai_base_url=args.ai_base_url,
            embeddings_model=args.embeddings_model,
            embeddings_enabled=embeddings_enabled,
        )
    except RuntimeError as exc:
        logger.error(f"Startup failed: {exc}")
        return 1

    logger.info(
        f"Starting C2 contacts server (transport={args.transport}, "
        f"embeddings={'on' if context.semantic_enabled else 'off'})",
        extra={
            "transport": args.transport,
            "db_backend": config.DB_BACKEND_EFFECTIVE,
            "vector_backend": context.vector_backend,
            "embeddings_enabled": context.semantic_enabled,
            "db_path": args.db_path or config.DB_PATH,
        },
    )

    service = ContactService(context)
    if args.backfill_embeddings:
        stats = service.backfill_embeddings()
        logger.info("embedding_backfill_startup", extra=stats)
    mcp = create_mcp_server(service)

    if args.transport == "http":
        import uvicorn

        from app.main import create_app

        uvicorn.run(create_app(service, mcp), host=args.host, port=args.port)
        return 0

    try:
        mcp.run()
    except KeyboardInterrupt:
        logger.info("server_interrupted")
    finally:
        context.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
