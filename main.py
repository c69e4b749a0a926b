"""
WorkJunction booking service entry point.

Runs the FastAPI booking API under uvicorn, or creates the database schema.

Usage:
    API server:     python main.py serve
    Create schema:  python main.py init-db
"""

import logging
import sys

from workjunction.config import settings

logger = logging.getLogger(__name__)


def _run_server() -> None:
    """Start the HTTP API on the configured host and port."""
    import uvicorn

    from workjunction.api.app import create_app

    uvicorn.run(
        create_app(),
        host=settings.server.host,
        port=settings.server.port,
        log_level=settings.log_level.lower(),
    )


def _init_db() -> None:
    """Create tables and indexes without starting the server."""
    from workjunction.store.database import build_engine, init_db

    engine = build_engine()
    init_db(engine)
    engine.dispose()


if __name__ == "__main__":
    command = sys.argv[1] if len(sys.argv) > 1 else "serve"
    if command == "init-db":
        _init_db()
    elif command == "serve":
        _run_server()
    else:
        logger.error("Unknown command %r, expected 'serve' or 'init-db'", command)
        sys.exit(2)
