import logging
import os
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from staydesk.config import Settings, settings as default_settings

# ─── Logging setup (file + console) ───
_LOG_DIR = Path(__file__).resolve().parent.parent / "logs"
_LOG_DIR.mkdir(exist_ok=True)

_log_level = getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO)

logging.basicConfig(
    level=_log_level,
    format="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    handlers=[
        logging.StreamHandler(),
        RotatingFileHandler(
            _LOG_DIR / "staydesk.log",
            maxBytes=10 * 1024 * 1024,  # 10 MB
            backupCount=5,
            encoding="utf-8",
        ),
    ],
)

# Quiet noisy libraries
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
logging.getLogger("apscheduler").setLevel(logging.WARNING)

from staydesk.database import build_engine, build_session_factory
from staydesk.exception_handlers import register_exception_handlers
from staydesk.routers import availability, bookings, payments, pricing
from staydesk.services.event_dispatcher import EventDispatcher
from staydesk.services.idempotency_service import IdempotencyService

logger = logging.getLogger(__name__)


def configure_state(app: FastAPI, settings: Settings) -> None:
    """Build the storage handles once and hang them on app.state."""
    engine = build_engine(settings)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.events = EventDispatcher(app.state.session_factory)
    app.state.idempotency = IdempotencyService(ttl_hours=settings.idempotency_ttl_hours)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    if not hasattr(app.state, "engine"):
        configure_state(app, settings)

    # Startup: launch background scheduler
    scheduler = None
    if settings.scheduler_enabled:
        try:
            from apscheduler.schedulers.asyncio import AsyncIOScheduler
            from apscheduler.triggers.cron import CronTrigger
            from apscheduler.triggers.interval import IntervalTrigger

            scheduler = AsyncIOScheduler()
            session_factory = app.state.session_factory

            async def _complete_finished_stays():
                from staydesk.services.booking_service import booking_service
                async with session_factory() as db:
                    count = await booking_service.complete_finished_stays(db)
                    if count:
                        logger.info(f"Stay completion: {count} bookings completed")

            async def _purge_idempotency_keys():
                async with session_factory() as db:
                    count = await app.state.idempotency.purge_expired(db)
                    if count:
                        logger.info(f"Idempotency: {count} expired keys removed")

            scheduler.add_job(
                _complete_finished_stays,
                IntervalTrigger(minutes=settings.stay_completion_interval_minutes),
                id="complete_finished_stays",
            )
            scheduler.add_job(_purge_idempotency_keys, CronTrigger(hour=2, minute=0), id="purge_idempotency_keys")

            scheduler.start()
            logger.info("Background scheduler started")
        except ImportError:
            logger.warning("APScheduler not installed — background jobs disabled")
        except Exception as e:
            logger.error(f"Scheduler failed to start: {e}")

    # Demo data for local development
    if settings.seed_on_startup:
        try:
            from staydesk.seed import seed
            await seed(app.state.session_factory)
        except Exception as e:
            logger.warning(f"Auto-seed skipped: {e}")

    yield

    # Shutdown
    if scheduler:
        scheduler.shutdown(wait=False)
        logger.info("Background scheduler stopped")
    await app.state.events.drain()
    await app.state.engine.dispose()
    logger.info("Database engine disposed")


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or default_settings
    app = FastAPI(
        title="StayDesk",
        description="Hotel booking administration — pricing, allocation, booking lifecycle and payments",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    app.include_router(pricing.router, prefix="/api/pricing", tags=["pricing"])
    app.include_router(availability.router, prefix="/api/availability", tags=["availability"])
    app.include_router(bookings.router, prefix="/api/bookings", tags=["bookings"])
    app.include_router(payments.router, prefix="/api", tags=["payments"])

    @app.get("/api/health")
    async def health_check():
        return {"status": "ok", "service": "staydesk"}

    return app


app = create_app()
