"""
Entrypoint for the Suggestion Engine service.
This file wires the FastAPI application together by importing the core package,
which initializes shared state and registers all routes.
"""

from __future__ import annotations

import argparse
import os

import core  # noqa: F401  # Ensure route modules are imported for side effects
from core.app_state import app, config, logger  # noqa: F401


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Suggestion Engine service")
    parser.add_argument("--host", default=None, help=f"Bind host (default: {config.APP_HOST})")
    parser.add_argument("--port", type=int, default=None, help=f"Bind port (default: {config.APP_PORT})")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload (development)")
    parser.add_argument(
        "--verbose-engine",
        action="store_true",
        help="Print phase banners for every engine operation",
    )
    args = parser.parse_args()

    if args.verbose_engine:
        os.environ["VERBOSE_ENGINE_LOGS"] = "true"
        config.VERBOSE_ENGINE_LOGS = True

    import uvicorn

    host = args.host or config.APP_HOST
    port = args.port or config.APP_PORT
    logger.info("Starting with uvicorn on %s:%d", host, port)
    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        reload=args.reload or config.APP_RELOAD,
    )
