"""Recurring-order preferences: lookup, defaults and upsert."""

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config import Settings
from models.user import Address
from models.subscription import SubscriptionPreferences
from services import catalog
from services.errors import InvalidAddress, PreferencesNotFound

logger = logging.getLogger(__name__)

DEFAULT_PICKUP_DAY = "monday"
DEFAULT_LEAD_TIME_DAYS = 1


async def get_preferences(db: AsyncSession, user_id: uuid.UUID) -> SubscriptionPreferences:
    """Raises PreferencesNotFound when the user never saved preferences."""
    result = await db.execute(
        select(SubscriptionPreferences).where(SubscriptionPreferences.user_id == user_id)
    )
    prefs = result.scalar_one_or_none()
    if prefs is None:
        raise PreferencesNotFound(user_id)
    return prefs


async def default_services(db: AsyncSession, settings: Settings) -> list[dict]:
    """One unit of the quota service, or nothing if the catalog lacks it."""
    info = await catalog.lookup_by_name(db, settings.QUOTA_SERVICE_NAME)
    if info is None:
        return []
    return [{"service_id": info.id, "quantity": 1}]


async def default_preferences(db: AsyncSession, user_id: uuid.UUID, settings: Settings) -> dict:
    return {
        "user_id": user_id,
        "default_pickup_address_id": None,
        "default_delivery_address_id": None,
        "preferred_pickup_time_slot": settings.DEFAULT_TIME_SLOT,
        "preferred_delivery_time_slot": settings.DEFAULT_TIME_SLOT,
        "preferred_pickup_day": DEFAULT_PICKUP_DAY,
        "default_services": await default_services(db, settings),
        "auto_schedule_enabled": True,
        "lead_time_days": DEFAULT_LEAD_TIME_DAYS,
        "special_instructions": "",
    }


async def _check_address(db: AsyncSession, user_id: uuid.UUID, address_id: int | None, kind: str) -> None:
    if address_id is None:
        return
    address = await db.get(Address, address_id)
    if address is None or address.user_id != user_id:
        raise InvalidAddress(address_id, kind)


async def upsert_preferences(
    db: AsyncSession,
    user_id: uuid.UUID,
    data: dict,
    settings: Settings,
) -> SubscriptionPreferences:
    """
    Create or replace the user's preferences.

    Both default addresses must belong to the user (InvalidAddress otherwise).
    Empty time slots fall back to the default slot; an empty service list
    falls back to one quota-service unit.
    """
    await _check_address(db, user_id, data.get("default_pickup_address_id"), "pickup")
    await _check_address(db, user_id, data.get("default_delivery_address_id"), "delivery")

    services = data.get("default_services") or await default_services(db, settings)
    values = {
        "default_pickup_address_id": data.get("default_pickup_address_id"),
        "default_delivery_address_id": data.get("default_delivery_address_id"),
        "preferred_pickup_time_slot": data.get("preferred_pickup_time_slot") or settings.DEFAULT_TIME_SLOT,
        "preferred_delivery_time_slot": data.get("preferred_delivery_time_slot") or settings.DEFAULT_TIME_SLOT,
        "preferred_pickup_day": data.get("preferred_pickup_day") or DEFAULT_PICKUP_DAY,
        "default_services": [
            {"service_id": s["service_id"], "quantity": s["quantity"]} for s in services
        ],
        "auto_schedule_enabled": data.get("auto_schedule_enabled", True),
        "lead_time_days": data.get("lead_time_days", DEFAULT_LEAD_TIME_DAYS),
        "special_instructions": data.get("special_instructions") or "",
    }

    try:
        prefs = await get_preferences(db, user_id)
        for key, value in values.items():
            setattr(prefs, key, value)
    except PreferencesNotFound:
        prefs = SubscriptionPreferences(user_id=user_id, **values)
        db.add(prefs)

    await db.commit()
    await db.refresh(prefs)
    logger.info("Saved preferences for user %s (auto_schedule=%s)", user_id, prefs.auto_schedule_enabled)
    return prefs
