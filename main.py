"""
Unified backend entry point.

Architecture:
- One Python process, one asyncio event loop
- Two peer services running concurrently:
  1. FastAPI (HTTP server for the admin broadcast API and health checks)
  2. APScheduler reminder poller and daily devotional job

We use FastAPI's lifespan to manage startup/shutdown, but at runtime
both services are equal peers in the event loop. The lifespan pattern
gives us uvicorn's signal handling and --reload for free.

Run with: python main.py [--no-scheduler] [--port PORT]
"""

import logging
import os
import sys
from contextlib import asynccontextmanager
from pathlib import Path

# Set up import paths before any local imports
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from dotenv import load_dotenv

# Load .env.local first (if exists), then .env as fallback
# .env.local is gitignored and used for local dev overrides
load_dotenv(project_root / ".env.local")  # Local overrides (gitignored)
load_dotenv()  # Fallback to .env

import sentry_sdk
from fastapi import FastAPI

from core.config import check_required_env_vars, get_api_port, is_dev_mode
from core.database import close_engine, create_tables, is_configured
from core.notifications.scheduler import (
    get_scheduler_status,
    init_scheduler,
    shutdown_scheduler,
)

# Import routes using full paths
from web_api.routes.broadcasts import router as broadcasts_router
from web_api.routes.custom_reminders import router as custom_reminders_router

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

SENTRY_DSN = os.environ.get("SENTRY_DSN")
if SENTRY_DSN:
    sentry_sdk.init(
        dsn=SENTRY_DSN,
        environment=os.environ.get("RAILWAY_ENVIRONMENT", "development"),
        traces_sample_rate=0.0,
    )
    logger.info("Sentry error reporting enabled")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    FastAPI lifespan context manager.

    Starts the reminder scheduler alongside FastAPI in the same event loop.
    """
    ok, warnings = check_required_env_vars()
    for warning in warnings:
        print(warning)
    if not ok:
        raise RuntimeError("Missing required environment variables")

    if is_dev_mode() and is_configured():
        await create_tables()

    if os.getenv("DISABLE_SCHEDULER", "").lower() in ("true", "1", "yes"):
        print("Reminder scheduler disabled (--no-scheduler flag or DISABLE_SCHEDULER=true)")
    elif not is_configured():
        print("Warning: DATABASE_URL not set, reminder scheduler will not start")
    else:
        init_scheduler()

    yield  # FastAPI runs here, scheduler runs alongside it

    # Graceful shutdown of all peer services
    print("Shutting down peer services...")
    shutdown_scheduler()
    await close_engine()  # Close database connections


# Create FastAPI app with lifespan
app = FastAPI(
    title="Prayer Reminder Engine API",
    lifespan=lifespan,
)

# Include routers
app.include_router(broadcasts_router)
app.include_router(custom_reminders_router)


@app.get("/")
async def root():
    return {"status": "ok"}


@app.get("/health")
async def health():
    """Health check endpoint with scheduler status."""
    return {
        "status": "healthy",
        "scheduler": get_scheduler_status(),
    }


if __name__ == "__main__":
    import argparse
    import uvicorn

    parser = argparse.ArgumentParser(description="Prayer Reminder Engine Server")
    parser.add_argument(
        "--no-scheduler",
        action="store_true",
        help="Disable the reminder scheduler (useful for running multiple dev servers)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=get_api_port(),
        help="Port to run the server on (default: API_PORT or 8000)",
    )
    args = parser.parse_args()

    # Set env var so it persists across uvicorn reloads
    if args.no_scheduler:
        os.environ["DISABLE_SCHEDULER"] = "true"

    # Pass app object directly (not string) to avoid module reimport issues
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=args.port,
    )
