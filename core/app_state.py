"""
Suggestion Engine Service - Shared FastAPI application state
===========================================================

Creates the FastAPI application, configures logging and mounts the
suggestion session router. Route modules in this package attach their
endpoints to ``app`` when imported.

Author: Suggestion Engine Team
Version: 1.0.0
"""

import logging

from fastapi import FastAPI
from starlette.middleware.gzip import GZipMiddleware

from config import config
from suggestion_engine import __version__
from suggestions_router import close_session_store, get_session_store, router as suggestions_router

# Setup logging
logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(),
    ]
)

# Silence noisy third-party loggers to avoid cluttering output
_noisy_loggers = [
    'aiohttp.access',
    'aiohttp.client',
    'asyncio',
]
for _logger_name in _noisy_loggers:
    logging.getLogger(_logger_name).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Suggestion Engine",
    description="Position mapping and conflict resolution for inline writing suggestions",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc"
)

# Add GZip compression middleware (compresses responses > 1000 bytes)
app.add_middleware(GZipMiddleware, minimum_size=1000)

# Routers
app.include_router(suggestions_router)


@app.on_event("startup")
async def startup_event():
    """Build the session store early to surface configuration problems at boot"""
    store = get_session_store()
    logger.info(
        "Suggestion engine ready (max sessions=%d, source=%s, rule-based=%s)",
        store.max_sessions,
        config.SOURCE.api_url or "-",
        config.SOURCE.rule_based_enabled,
    )


@app.on_event("shutdown")
async def shutdown_event():
    """Cancel pending refreshes and close source connections"""
    logger.info("Shutting down Suggestion Engine...")
    await close_session_store()
