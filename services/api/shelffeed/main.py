"""
Shelf Feed API — entry point.

Startup sequence:
  1. Configure OTel tracing (→ Jaeger via OTLP)
  2. Initialise DB connection pool (TiDB) and create tables if not present
  3. Connect to Redis (feed request generations)
  4. Expose Prometheus /metrics endpoint
"""
import logging

from contextlib import asynccontextmanager
from fastapi import FastAPI
from prometheus_client import make_asgi_app

from shelffeed.config import settings
from shelffeed.database import init_db
from shelffeed.telemetry import setup_tracing, instrument_app
from shelffeed.clients.redis_client import close_redis, init_redis
from shelffeed.routers import feed, library, posts, users

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)

# Set up tracing before the app is created so all imports are instrumented
setup_tracing()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage startup and shutdown of all external connections."""
    logger.info("Starting Shelf Feed API (env=%s)", settings.environment)

    await init_db()
    try:
        await init_redis()
    except Exception as exc:
        # Feeds still work; last-request-wins tracking is off until restart
        logger.warning("Redis unavailable at startup: %s", exc)

    logger.info("All services connected. API ready.")
    yield

    logger.info("Shutting down...")
    await close_redis()


app = FastAPI(
    title="Shelf Feed API",
    description=(
        "Social layer over a personal reading library: follow graph, "
        "chronological feeds computed on read, and fuzzy user search."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

# ── Routers ────────────────────────────────────────────────────────────────
app.include_router(feed.router, tags=["Feed"])
app.include_router(users.router, prefix="/users", tags=["Users"])
app.include_router(posts.router, prefix="/posts", tags=["Posts"])
app.include_router(library.router, tags=["Library"])

# ── Prometheus metrics endpoint ────────────────────────────────────────────
# Mounted at /metrics — scraped by Prometheus
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)

# ── OTel FastAPI instrumentation ──────────────────────────────────────────
instrument_app(app)


@app.get("/health", tags=["Health"])
async def health():
    return {"status": "ok", "service": settings.service_name}
