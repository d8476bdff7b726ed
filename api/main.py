"""
Tumble Subscriptions: FastAPI Backend
Subscription benefits, laundry orders and recurring pickups
"""

import json
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import settings
from db.database import engine, SessionLocal
from routers import orders, services, subscriptions
from services.realtime import RealtimeNotifier
from services.recurring_scheduler import RecurringScheduler

logger = logging.getLogger(__name__)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "time": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def configure_logging() -> None:
    handler = logging.StreamHandler()
    if settings.LOG_FORMAT.lower() == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s"))
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(settings.LOG_LEVEL.upper())


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    configure_logging()
    logger.info("Tumble API starting...")

    app.state.notifier = RealtimeNotifier(settings)
    scheduler = None
    if settings.SCHEDULER_ENABLED:
        scheduler = RecurringScheduler(SessionLocal, settings, app.state.notifier)
        await scheduler.start()
    app.state.scheduler = scheduler

    yield

    if scheduler is not None:
        await scheduler.stop()
    await app.state.notifier.drain()
    await engine.dispose()
    logger.info("Tumble API shut down.")


app = FastAPI(
    title="Tumble Subscriptions API",
    description="Laundry pickup subscriptions, benefit accounting and recurring orders",
    version="1.0.0",
    lifespan=lifespan,
)

# ── CORS ───────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ────────────────────────────────────────────────
app.include_router(orders.router, prefix="/api/orders", tags=["Orders"])
app.include_router(subscriptions.router, prefix="/api/subscriptions", tags=["Subscriptions"])
app.include_router(services.router, prefix="/api/services", tags=["Services"])


@app.get("/health")
async def health_check():
    return {"status": "healthy", "service": "Tumble API"}
