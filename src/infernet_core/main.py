"""FastAPI application entry point for Infernet Core."""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from infernet_core import __version__
from infernet_core.api.routes import router, get_auth_session, get_registry
from infernet_core.config import get_settings

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Background task handle
_maintenance_task: asyncio.Task | None = None


def run_maintenance() -> dict:
    """One maintenance pass: reclaim expired challenges, mark silent providers offline."""
    swept = get_auth_session().sweep_expired()
    stale = get_registry().mark_stale()
    return {"challenges_swept": swept, "providers_marked_offline": stale}


async def maintenance_loop() -> None:
    """Background loop running ``run_maintenance`` on the sweep interval.

    Expiry is still enforced lazily at verification; this loop only
    bounds the size of the pending store and keeps provider status fresh.
    """
    settings = get_settings()
    logger.info(f"Maintenance loop started: every {settings.challenge_sweep_interval}s")

    while True:
        try:
            await asyncio.sleep(settings.challenge_sweep_interval)
            result = run_maintenance()
            if result["challenges_swept"] or result["providers_marked_offline"]:
                logger.info(
                    f"Maintenance: swept {result['challenges_swept']} challenges, "
                    f"marked {len(result['providers_marked_offline'])} providers offline"
                )
        except asyncio.CancelledError:
            logger.info("Maintenance loop shutting down")
            break
        except Exception as e:
            logger.error(f"Maintenance loop error: {e}")
            await asyncio.sleep(5)  # Back off on error


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    global _maintenance_task

    # Startup
    logger.info(f"Starting Infernet Core Server v{__version__}")
    settings = get_settings()
    logger.info(f"Debug mode: {settings.debug}")
    logger.info(f"Store: {'supabase' if settings.use_supabase else 'in-memory'}")

    if settings.maintenance_enabled:
        _maintenance_task = asyncio.create_task(maintenance_loop())
    else:
        logger.info("Maintenance loop disabled (set MAINTENANCE_ENABLED=true to enable)")

    yield

    # Shutdown
    if _maintenance_task:
        logger.info("Stopping maintenance loop...")
        _maintenance_task.cancel()
        try:
            await _maintenance_task
        except asyncio.CancelledError:
            pass
        _maintenance_task = None

    logger.info("Shutting down Infernet Core Server")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Infernet Core",
        description="Nostr challenge authentication and GPU provider discovery",
        version=__version__,
        lifespan=lifespan,
        debug=settings.debug,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)

    return app


# Create app instance for uvicorn
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "infernet_core.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
