"""FastAPI application main entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

from .middleware import register_error_handlers  # noqa: E402
from .routes import graph  # noqa: E402
from ..services.config import get_config  # noqa: E402
from ..services.seed import init_and_seed  # noqa: E402

config = get_config()

logging.basicConfig(
    level=config.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler to run startup tasks."""
    logger.info("Running startup: initializing story database...")
    try:
        init_and_seed(seed_demo=config.seed_demo_data)
        logger.info("Startup complete: story database ready")
    except Exception as exc:
        logger.exception("Startup failed: %s", exc)
        logger.error("App starting without an initialized database")
    yield


app = FastAPI(
    title="Story Graph API",
    description="Read-only storyline graphs for the admin graph viewer",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization"],
)

register_error_handlers(app)

app.include_router(graph.router, tags=["graph"])


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


logger.info(f"CORS allowed origins: {config.cors_allowed_origins}")

__all__ = ["app"]
