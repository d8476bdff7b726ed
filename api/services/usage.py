"""
Subscription usage: billing-period resolution and derived quota usage.

Usage is never stored. Every read aggregates the non-cancelled orders linked
to the subscription whose pickup_date falls in [period_start, period_end):

  pickups_used      = distinct orders
  quota_units_used  = Σ quantity of covered (price 0) quota-service items

Both dimensions are capped by the same plan integer (pickups_per_month) and
checked independently.
"""

import uuid
from dataclasses import dataclass
from datetime import date

from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from models.order import Order, OrderItem
from models.service import Service
from models.subscription import Subscription, SubscriptionPlan
from services.errors import NoActiveSubscription

CURRENT_STATUSES = ("active", "paused")


@dataclass
class SubscriptionUsage:
    subscription_id: int
    period_start: date
    period_end: date
    quota: int
    pickups_used: int
    quota_units_used: int

    @property
    def pickups_remaining(self) -> int:
        return max(0, self.quota - self.pickups_used)

    @property
    def quota_units_remaining(self) -> int:
        return max(0, self.quota - self.quota_units_used)


def resolve_period(subscription: Subscription) -> tuple[date, date]:
    """Stored half-open period bounds; rollover is owned by billing, not here."""
    return subscription.current_period_start, subscription.current_period_end


def in_period(subscription: Subscription, day: date) -> bool:
    period_start, period_end = resolve_period(subscription)
    return period_start <= day < period_end


async def get_current_subscription(
    db: AsyncSession,
    user_id: uuid.UUID,
    statuses: tuple[str, ...] = CURRENT_STATUSES,
    lock: bool = False,
) -> Subscription:
    """
    Newest subscription for the user in one of the given statuses.

    With lock=True the row is selected FOR UPDATE so concurrent quota
    allocations for the same subscription serialize until commit.

    Raises:
        NoActiveSubscription
    """
    query = (
        select(Subscription)
        .where(and_(Subscription.user_id == user_id, Subscription.status.in_(statuses)))
        .order_by(Subscription.created_at.desc(), Subscription.id.desc())
        .limit(1)
    )
    if lock:
        query = query.with_for_update()
    result = await db.execute(query)
    subscription = result.scalar_one_or_none()
    if subscription is None:
        raise NoActiveSubscription(user_id)
    return subscription


async def get_plan_quota(db: AsyncSession, subscription: Subscription) -> int:
    plan = await db.get(SubscriptionPlan, subscription.plan_id)
    return plan.pickups_per_month if plan else 0


def _period_filter(user_id: uuid.UUID, subscription_id: int, period_start: date, period_end: date):
    return and_(
        Order.user_id == user_id,
        Order.subscription_id == subscription_id,
        Order.pickup_date >= period_start,
        Order.pickup_date < period_end,
        Order.status != "cancelled",
    )


async def compute_usage(
    db: AsyncSession,
    user_id: uuid.UUID,
    subscription_id: int,
    period: tuple[date, date],
    quota: int,
    quota_service_name: str,
) -> SubscriptionUsage:
    """Aggregate pickups and covered quota units for one billing period."""
    period_start, period_end = period
    in_period = _period_filter(user_id, subscription_id, period_start, period_end)

    pickups_used = (await db.execute(
        select(func.count(func.distinct(Order.id))).where(in_period)
    )).scalar() or 0

    quota_units_used = (await db.execute(
        select(func.coalesce(func.sum(OrderItem.quantity), 0))
        .select_from(Order)
        .join(OrderItem, OrderItem.order_id == Order.id)
        .join(Service, Service.id == OrderItem.service_id)
        .where(
            in_period,
            Service.name == quota_service_name,
            OrderItem.price == 0,
        )
    )).scalar() or 0

    return SubscriptionUsage(
        subscription_id=subscription_id,
        period_start=period_start,
        period_end=period_end,
        quota=quota,
        pickups_used=int(pickups_used),
        quota_units_used=int(quota_units_used),
    )


async def usage_for_subscription(
    db: AsyncSession,
    subscription: Subscription,
    quota_service_name: str,
) -> SubscriptionUsage:
    """PeriodResolver + UsageAccountant for an already-loaded subscription."""
    quota = await get_plan_quota(db, subscription)
    return await compute_usage(
        db,
        subscription.user_id,
        subscription.id,
        resolve_period(subscription),
        quota,
        quota_service_name,
    )
