"""
Subscription lifecycle: fetch, create and cancel.

A user holds at most one active or paused subscription; the check runs at
creation with the user row locked. The billing period is fixed at creation
to [today, today + 1 month); rollover belongs to billing and is not done here.
Cancelling only flips the status. Orders already linked keep their link, and
new orders stop drawing on the subscription.
"""

import calendar
import logging
import uuid
from datetime import date, datetime, timezone

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from models.subscription import Subscription, SubscriptionPlan
from models.user import User
from services.errors import (
    InvalidPlan, NoActiveSubscription, SubscriptionExists, SubscriptionNotFound, UserNotFound,
)
from services.usage import CURRENT_STATUSES

logger = logging.getLogger(__name__)


def add_one_month(day: date) -> date:
    """Same day next month, clamped to that month's last day (Jan 31 → Feb 28)."""
    year, month = (day.year + 1, 1) if day.month == 12 else (day.year, day.month + 1)
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


async def _load(db: AsyncSession, subscription_id: int) -> Subscription:
    result = await db.execute(
        select(Subscription)
        .where(Subscription.id == subscription_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def get_latest_subscription(db: AsyncSession, user_id: uuid.UUID) -> Subscription:
    """Newest subscription in any status. Raises NoActiveSubscription when there is none."""
    result = await db.execute(
        select(Subscription)
        .where(Subscription.user_id == user_id)
        .order_by(Subscription.created_at.desc(), Subscription.id.desc())
        .limit(1)
    )
    subscription = result.scalar_one_or_none()
    if subscription is None:
        raise NoActiveSubscription(user_id)
    return subscription


async def create_subscription(
    db: AsyncSession,
    user_id: uuid.UUID,
    plan_id: int,
    today: date | None = None,
) -> Subscription:
    """
    Start an active subscription on an active plan.

    Raises:
        UserNotFound, SubscriptionExists, InvalidPlan
    """
    today = today or datetime.now(timezone.utc).date()

    # Lock the user so two concurrent creates cannot both pass the check
    user = (await db.execute(
        select(User).where(User.id == user_id).with_for_update()
    )).scalar_one_or_none()
    if user is None:
        raise UserNotFound(user_id)

    existing = (await db.execute(
        select(func.count(Subscription.id)).where(
            Subscription.user_id == user_id,
            Subscription.status.in_(CURRENT_STATUSES),
        )
    )).scalar() or 0
    if existing > 0:
        raise SubscriptionExists(user_id)

    plan = await db.get(SubscriptionPlan, plan_id)
    if plan is None or not plan.is_active:
        raise InvalidPlan(plan_id)

    subscription = Subscription(
        user_id=user_id,
        plan_id=plan_id,
        status="active",
        current_period_start=today,
        current_period_end=add_one_month(today),
    )
    db.add(subscription)
    await db.commit()

    logger.info(
        "Created subscription %s for user %s on plan %s (%s to %s)",
        subscription.id, user_id, plan.name,
        subscription.current_period_start.isoformat(), subscription.current_period_end.isoformat(),
    )
    return await _load(db, subscription.id)


async def cancel_subscription(db: AsyncSession, user_id: uuid.UUID, subscription_id: int) -> Subscription:
    """
    Mark the user's subscription cancelled.

    Raises:
        SubscriptionNotFound: unknown id, another user's subscription, or already cancelled
    """
    result = await db.execute(
        select(Subscription)
        .where(
            Subscription.id == subscription_id,
            Subscription.user_id == user_id,
            Subscription.status != "cancelled",
        )
        .with_for_update()
    )
    subscription = result.scalar_one_or_none()
    if subscription is None:
        raise SubscriptionNotFound(subscription_id)

    subscription.status = "cancelled"
    await db.commit()
    logger.info("User %s cancelled subscription %s", user_id, subscription_id)
    return await _load(db, subscription_id)
