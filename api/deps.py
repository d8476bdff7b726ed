"""Shared FastAPI dependencies."""

from fastapi import Request

from config import Settings, get_settings
from services.realtime import RealtimeNotifier


def get_app_settings() -> Settings:
    return get_settings()


def get_notifier(request: Request) -> RealtimeNotifier | None:
    """Notifier owned by the app lifespan (None when not started)."""
    return getattr(request.app.state, "notifier", None)
