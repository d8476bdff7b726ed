"""
Order Factory: the single write path for new orders.

Both the manual API path and the recurring scheduler end here:
  1. price_request(): catalog lookup + usage + benefit split
  2. create_order(): order row, every (split) item and one status-history row,
     committed as one transaction; rolled back as a whole on failure
  3. fire-and-forget realtime notification after commit
"""

import logging
import random
import string
import uuid
from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config import Settings
from models.order import Order, OrderItem, OrderStatusHistory
from models.subscription import Subscription
from services import catalog
from services.benefits import BenefitResult, PickupCharge, RequestedLine, apply_benefits
from services.errors import NoActiveSubscription, OrderCreationError, OrderNotFound, ServiceNotFound
from services.realtime import RealtimeNotifier, status_message
from services.usage import get_current_subscription, in_period, usage_for_subscription

logger = logging.getLogger(__name__)


@dataclass
class OrderDraft:
    user_id: uuid.UUID
    subscription_id: int | None
    pickup_address_id: int
    delivery_address_id: int
    pickup_date: date
    delivery_date: date | None
    pickup_time_slot: str | None = None
    delivery_time_slot: str | None = None
    special_instructions: str | None = None
    status: str = "scheduled"
    created_by: uuid.UUID | None = None   # None = SYSTEM
    history_note: str = "Order created"


def generate_order_number() -> str:
    """Human-readable order number: TUM-YYMMDD-XXXX."""
    date_part = datetime.utcnow().strftime("%y%m%d")
    rand_part = "".join(random.choices(string.ascii_uppercase + string.digits, k=4))
    return f"TUM-{date_part}-{rand_part}"


async def resolve_lines(db: AsyncSession, items: list[dict]) -> list[RequestedLine]:
    """
    Turn {service_id, quantity, notes} selections into priced requested lines.

    Unknown or inactive services are skipped, not fatal.
    """
    lines: list[RequestedLine] = []
    for item in items:
        service_id = item.get("service_id")
        try:
            info = await catalog.lookup(db, service_id)
        except ServiceNotFound:
            logger.warning("Skipping unknown service_id=%s", service_id)
            continue
        if not info.is_active:
            logger.warning("Skipping inactive service %s (id=%s)", info.name, info.id)
            continue
        lines.append(RequestedLine(
            service_id=info.id,
            service_name=info.name,
            quantity=int(item.get("quantity", 0)),
            unit_price=info.unit_price,
            notes=item.get("notes"),
        ))
    return lines


async def price_request(
    db: AsyncSession,
    subscription: Subscription | None,
    items: list[dict],
    settings: Settings,
    tip: float = 0.0,
    pickup_date: date | None = None,
) -> BenefitResult:
    """
    Resolve lines, read current usage and apply subscription benefits.

    A pickup_date outside the subscription's current period gets no coverage:
    bags and the pickup are charged in full.
    """
    remaining_units = 0
    pickups_remaining = None
    if subscription is not None and pickup_date is not None and not in_period(subscription, pickup_date):
        pickups_remaining = 0
    elif subscription is not None:
        usage = await usage_for_subscription(db, subscription, settings.QUOTA_SERVICE_NAME)
        remaining_units = usage.quota_units_remaining
        pickups_remaining = usage.pickups_remaining

    pickup = None
    pickup_service = await catalog.lookup_by_name(db, settings.PICKUP_SERVICE_NAME)
    if pickup_service is not None:
        pickup = PickupCharge(pickup_service.id, pickup_service.unit_price, pickups_remaining)

    lines = await resolve_lines(db, items)
    return apply_benefits(
        lines,
        remaining_units,
        catalog.quota_eligibility(settings.QUOTA_SERVICE_NAME),
        settings.TAX_RATE,
        pickup=pickup,
        tip=tip,
    )


async def load_order(db: AsyncSession, order_id: int, user_id: uuid.UUID | None = None) -> Order:
    """Fetch an order with items and history freshly from the database."""
    query = select(Order).where(Order.id == order_id).execution_options(populate_existing=True)
    if user_id is not None:
        query = query.where(Order.user_id == user_id)
    order = (await db.execute(query)).scalar_one_or_none()
    if order is None:
        raise OrderNotFound(order_id)
    return order


async def create_order(
    db: AsyncSession,
    draft: OrderDraft,
    priced: BenefitResult,
    notifier: RealtimeNotifier | None = None,
) -> Order:
    """
    Persist the order, its items and the initial status-history row.

    Commits the session's transaction; on any database error it is rolled
    back and OrderCreationError is raised, so partial orders never exist.
    """
    order = Order(
        order_number=generate_order_number(),
        user_id=draft.user_id,
        subscription_id=draft.subscription_id,
        pickup_address_id=draft.pickup_address_id,
        delivery_address_id=draft.delivery_address_id,
        pickup_date=draft.pickup_date,
        delivery_date=draft.delivery_date,
        pickup_time_slot=draft.pickup_time_slot,
        delivery_time_slot=draft.delivery_time_slot,
        special_instructions=draft.special_instructions,
        status=draft.status,
        subtotal=priced.subtotal,
        tax=priced.tax,
        tip=priced.tip,
        total=priced.total,
        items=[
            OrderItem(
                service_id=line.service_id,
                quantity=line.quantity,
                price=line.price,
                notes=line.notes,
            )
            for line in priced.lines
        ],
        status_history=[
            OrderStatusHistory(
                status=draft.status,
                notes=draft.history_note,
                updated_by=draft.created_by,
            )
        ],
    )

    try:
        db.add(order)
        await db.flush()
        order_id = order.id
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("Order creation rolled back: user_id=%s", draft.user_id)
        raise OrderCreationError(f"Failed to create order for user {draft.user_id}") from e

    order = await load_order(db, order_id)

    if notifier is not None:
        notifier.notify(draft.user_id, order.id, order.status, "Order created successfully")

    return order


async def place_order(
    db: AsyncSession,
    draft: OrderDraft,
    items: list[dict],
    settings: Settings,
    notifier: RealtimeNotifier | None = None,
    tip: float = 0.0,
) -> tuple[Order, BenefitResult]:
    """
    Manual order path.

    The active subscription row is locked FOR UPDATE before usage is read and
    stays locked until create_order() commits, so two concurrent orders for
    the same subscription cannot both spend the same remaining quota.
    """
    try:
        subscription = await get_current_subscription(db, draft.user_id, statuses=("active",), lock=True)
    except NoActiveSubscription:
        subscription = None

    priced = await price_request(db, subscription, items, settings, tip=tip, pickup_date=draft.pickup_date)
    # Orders outside the current period never draw on (or count against) its quota
    if subscription is not None and in_period(subscription, draft.pickup_date):
        draft.subscription_id = subscription.id
    else:
        draft.subscription_id = None
    order = await create_order(db, draft, priced, notifier)
    logger.info(
        "Order %s created for user %s: covered_units=%d subtotal=%.2f total=%.2f",
        order.order_number, draft.user_id, priced.covered_units, priced.subtotal, priced.total,
    )
    return order, priced


async def change_status(
    db: AsyncSession,
    order_id: int,
    status: str,
    notes: str | None = None,
    actor_id: uuid.UUID | None = None,
    notifier: RealtimeNotifier | None = None,
) -> tuple[Order, str]:
    """
    Move an order to a new status and append a history row.

    Cancelling needs no quota bookkeeping: usage is recomputed from
    non-cancelled orders on every read.

    Returns:
        (reloaded order, previous status)
    """
    order = await load_order(db, order_id)
    old_status = order.status
    order.status = status
    db.add(OrderStatusHistory(
        order_id=order.id,
        status=status,
        notes=notes or status_message(status),
        updated_by=actor_id,
    ))
    await db.commit()

    order = await load_order(db, order_id)
    logger.info("Order %s status %s -> %s", order.order_number, old_status, status)
    if notifier is not None:
        notifier.notify(order.user_id, order.id, status, status_message(status))
    return order, old_status
