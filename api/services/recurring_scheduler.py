"""
Recurring Scheduler: books orders from stored subscription preferences.

Per tick, for every user with auto-scheduling on and both default addresses set:
  1. Quota:     no pickups left this period → skip
  2. Date:      today + lead_time_days, rolled forward to the preferred weekday
               (a date past the current period end → skip)
  3. Duplicate: a non-cancelled order already on that date → skip
  4. Create:    default services through the benefit split, delivery 2 days later

Users run sequentially, each in its own session. One user's failure is logged
and never aborts the batch. The loop fires at minute 0 of every hour (UTC)
plus once shortly after start.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import select, and_, func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config import Settings
from models.order import Order
from models.subscription import Subscription, SubscriptionPreferences
from services.errors import NoActiveSubscription, PreferencesNotFound
from services.order_factory import OrderDraft, create_order, price_request
from services.preferences import get_preferences
from services.realtime import RealtimeNotifier
from services.usage import get_current_subscription, in_period, usage_for_subscription

logger = logging.getLogger(__name__)

WEEKDAYS = {
    "monday": 0,
    "tuesday": 1,
    "wednesday": 2,
    "thursday": 3,
    "friday": 4,
    "saturday": 5,
    "sunday": 6,
}
DEFAULT_WEEKDAY = "monday"


@dataclass
class TickReport:
    created: list[int] = field(default_factory=list)
    skipped: dict[str, str] = field(default_factory=dict)   # user_id -> reason
    failed: dict[str, str] = field(default_factory=dict)    # user_id -> error


def next_pickup_date(today: date, preferred_day: str | None, lead_time_days: int) -> date:
    """
    First date on or after today + lead_time_days that falls on the preferred weekday.

    Unknown day names fall back to Monday.
    """
    target = today + timedelta(days=max(lead_time_days or 0, 0))
    weekday = WEEKDAYS.get((preferred_day or "").strip().lower(), WEEKDAYS[DEFAULT_WEEKDAY])
    return target + timedelta(days=(weekday - target.weekday()) % 7)


def seconds_until_next_hour(now: datetime) -> float:
    next_run = now.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)
    return (next_run - now).total_seconds()


async def order_exists_for_date(db: AsyncSession, user_id: uuid.UUID, pickup_date: date) -> bool:
    count = (await db.execute(
        select(func.count(Order.id)).where(
            and_(
                Order.user_id == user_id,
                Order.pickup_date == pickup_date,
                Order.status != "cancelled",
            )
        )
    )).scalar() or 0
    return count > 0


async def get_schedulable_users(db: AsyncSession) -> list[uuid.UUID]:
    """Users with auto-scheduling on, both default addresses set and an active subscription."""
    result = await db.execute(
        select(SubscriptionPreferences.user_id)
        .join(
            Subscription,
            and_(
                Subscription.user_id == SubscriptionPreferences.user_id,
                Subscription.status == "active",
            ),
        )
        .where(
            SubscriptionPreferences.auto_schedule_enabled.is_(True),
            SubscriptionPreferences.default_pickup_address_id.is_not(None),
            SubscriptionPreferences.default_delivery_address_id.is_not(None),
        )
        .distinct()
    )
    return list(result.scalars().all())


class RecurringScheduler:
    def __init__(
        self,
        session_factory: async_sessionmaker,
        settings: Settings,
        notifier: RealtimeNotifier | None = None,
    ):
        self.session_factory = session_factory
        self.settings = settings
        self.notifier = notifier
        self._task: asyncio.Task | None = None
        self._stop_event = asyncio.Event()

    # ── Lifecycle ──────────────────────────────────────────

    async def start(self) -> None:
        if self._task and not self._task.done():
            logger.warning("Recurring scheduler already running")
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._loop())
        logger.info("Recurring scheduler started, running every hour")

    async def stop(self) -> None:
        """Stop between ticks; a tick already running is allowed to finish."""
        self._stop_event.set()
        if self._task:
            await self._task
            self._task = None
        logger.info("Recurring scheduler stopped")

    async def _wait(self, seconds: float) -> bool:
        """Sleep unless stopped first. Returns True when stop was requested."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
            return True
        except asyncio.TimeoutError:
            return False

    async def _loop(self) -> None:
        if await self._wait(self.settings.SCHEDULER_STARTUP_DELAY_SEC):
            return
        while True:
            try:
                await self.run_tick()
            except Exception:
                logger.exception("Recurring scheduler tick failed")
            if await self._wait(seconds_until_next_hour(datetime.now(timezone.utc))):
                return

    # ── Tick ───────────────────────────────────────────────

    async def run_tick(self, today: date | None = None) -> TickReport:
        today = today or datetime.now(timezone.utc).date()
        report = TickReport()
        logger.info("Processing auto-scheduled orders for %s", today.isoformat())

        async with self.session_factory() as db:
            user_ids = await get_schedulable_users(db)
        logger.info("Found %d users with auto-scheduling enabled", len(user_ids))

        for user_id in user_ids:
            try:
                async with self.session_factory() as db:
                    outcome = await self.schedule_user(db, user_id, today)
            except Exception as e:
                logger.exception("Error creating order for user %s", user_id)
                report.failed[str(user_id)] = str(e)
                continue

            if isinstance(outcome, int):
                report.created.append(outcome)
            else:
                report.skipped[str(user_id)] = outcome

        logger.info(
            "Finished auto-scheduled orders: created=%d skipped=%d failed=%d",
            len(report.created), len(report.skipped), len(report.failed),
        )
        return report

    async def schedule_user(self, db: AsyncSession, user_id: uuid.UUID, today: date) -> int | str:
        """
        Quota check, pickup date, duplicate check and order creation for one user.

        Returns:
            the new order id, or a skip reason string
        """
        try:
            prefs = await get_preferences(db, user_id)
        except PreferencesNotFound:
            return "no preferences"
        if not prefs.auto_schedule_enabled:
            return "auto-scheduling disabled"
        if prefs.default_pickup_address_id is None or prefs.default_delivery_address_id is None:
            return "missing default address"

        try:
            subscription = await get_current_subscription(db, user_id, statuses=("active",), lock=True)
        except NoActiveSubscription:
            return "no active subscription"

        usage = await usage_for_subscription(db, subscription, self.settings.QUOTA_SERVICE_NAME)
        if usage.pickups_remaining <= 0:
            logger.info("User %s has no pickups remaining this period", user_id)
            return "no pickups remaining"

        pickup_date = next_pickup_date(today, prefs.preferred_pickup_day, prefs.lead_time_days)
        if not in_period(subscription, pickup_date):
            logger.info("Next pickup %s for user %s falls outside the current period", pickup_date.isoformat(), user_id)
            return "pickup date outside current period"
        if await order_exists_for_date(db, user_id, pickup_date):
            logger.info("Order already exists for user %s on %s", user_id, pickup_date.isoformat())
            return "order already exists"

        priced = await price_request(
            db, subscription, list(prefs.default_services or []), self.settings, pickup_date=pickup_date,
        )
        draft = OrderDraft(
            user_id=user_id,
            subscription_id=subscription.id,
            pickup_address_id=prefs.default_pickup_address_id,
            delivery_address_id=prefs.default_delivery_address_id,
            pickup_date=pickup_date,
            delivery_date=pickup_date + timedelta(days=self.settings.DELIVERY_OFFSET_DAYS),
            pickup_time_slot=prefs.preferred_pickup_time_slot or self.settings.DEFAULT_TIME_SLOT,
            delivery_time_slot=prefs.preferred_delivery_time_slot or self.settings.DEFAULT_TIME_SLOT,
            special_instructions=prefs.special_instructions,
            status="pending",
            history_note="Auto-scheduled order created",
        )
        order = await create_order(db, draft, priced, self.notifier)
        logger.info(
            "Created auto-scheduled order %s for user %s (pickup: %s)",
            order.id, user_id, pickup_date.isoformat(),
        )
        return order.id
