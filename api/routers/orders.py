"""Order management API endpoints."""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config import Settings
from db.database import get_db
from deps import get_app_settings, get_notifier
from models.order import Order
from schemas import (
    OrderCreate, OrderCreateResponse, OrderDetailResponse, OrderResponse,
    OrderStatus, OrderStatusUpdate,
)
from services.errors import OrderCreationError, OrderNotFound
from services.order_factory import OrderDraft, change_status, load_order, place_order
from services.realtime import RealtimeNotifier

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/", response_model=OrderCreateResponse, status_code=201)
async def create_order(
    data: OrderCreate,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    notifier: RealtimeNotifier | None = Depends(get_notifier),
):
    """Create an order, covering eligible items from the active subscription."""
    draft = OrderDraft(
        user_id=data.user_id,
        subscription_id=None,
        pickup_address_id=data.pickup_address_id,
        delivery_address_id=data.delivery_address_id,
        pickup_date=data.pickup_date,
        delivery_date=data.delivery_date,
        pickup_time_slot=data.pickup_time_slot,
        delivery_time_slot=data.delivery_time_slot,
        special_instructions=data.special_instructions,
        created_by=data.user_id,
    )
    items = [item.model_dump() for item in data.items]
    try:
        order, priced = await place_order(db, draft, items, settings, notifier, tip=data.tip)
    except OrderCreationError:
        raise HTTPException(status_code=500, detail="Failed to create order")

    return OrderCreateResponse(
        order=OrderDetailResponse.model_validate(order),
        requires_payment=priced.requires_payment,
        covered_units=priced.covered_units,
    )


@router.get("/user/{user_id}", response_model=list[OrderResponse])
async def get_user_orders(
    user_id: uuid.UUID,
    status: OrderStatus | None = None,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    """Recent orders for a user, newest first."""
    query = select(Order).where(Order.user_id == user_id)
    if status:
        query = query.where(Order.status == status.value)
    query = query.order_by(Order.created_at.desc(), Order.id.desc()).offset(offset).limit(limit)
    result = await db.execute(query)
    return result.scalars().all()


@router.get("/{order_id}", response_model=OrderDetailResponse)
async def get_order(order_id: int, db: AsyncSession = Depends(get_db)):
    """Order with items and full status history."""
    try:
        return await load_order(db, order_id)
    except OrderNotFound:
        raise HTTPException(status_code=404, detail="Order not found")


@router.patch("/{order_id}/status")
async def update_order_status(
    order_id: int,
    data: OrderStatusUpdate,
    db: AsyncSession = Depends(get_db),
    notifier: RealtimeNotifier | None = Depends(get_notifier),
):
    """Update order status with a history row and a realtime notification."""
    try:
        order, old_status = await change_status(
            db, order_id, data.status.value, data.notes, data.actor_id, notifier,
        )
    except OrderNotFound:
        raise HTTPException(status_code=404, detail="Order not found")

    return {"order_id": order.id, "old_status": old_status, "new_status": order.status}
