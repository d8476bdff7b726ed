"""Subscription plans, lifecycle, usage and recurring-order preferences."""

import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config import Settings
from db.database import get_db
from deps import get_app_settings
from models.subscription import SubscriptionPlan
from schemas import (
    PlanResponse, PreferencesResponse, PreferencesUpdate,
    SubscriptionCreate, SubscriptionResponse, UsageResponse,
)
from services.errors import (
    InvalidAddress, InvalidPlan, NoActiveSubscription, PreferencesNotFound,
    SubscriptionExists, SubscriptionNotFound, UserNotFound,
)
from services.preferences import default_preferences, get_preferences, upsert_preferences
from services.subscriptions import cancel_subscription, create_subscription, get_latest_subscription
from services.usage import get_current_subscription, usage_for_subscription

router = APIRouter()


@router.get("/plans", response_model=list[PlanResponse])
async def list_plans(db: AsyncSession = Depends(get_db)):
    result = await db.execute(
        select(SubscriptionPlan)
        .where(SubscriptionPlan.is_active.is_(True))
        .order_by(SubscriptionPlan.price_per_month)
    )
    return result.scalars().all()


@router.get("/user/{user_id}", response_model=SubscriptionResponse)
async def get_subscription(user_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    """The user's most recent subscription with its plan."""
    try:
        return await get_latest_subscription(db, user_id)
    except NoActiveSubscription:
        raise HTTPException(status_code=404, detail="No active subscription found")


@router.post("/user/{user_id}", response_model=SubscriptionResponse, status_code=201)
async def create_user_subscription(
    user_id: uuid.UUID,
    data: SubscriptionCreate,
    db: AsyncSession = Depends(get_db),
):
    """Start a subscription; the billing period runs one month from today."""
    try:
        return await create_subscription(db, user_id, data.plan_id)
    except UserNotFound:
        raise HTTPException(status_code=404, detail="User not found")
    except (SubscriptionExists, InvalidPlan) as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/user/{user_id}/{subscription_id}/cancel", response_model=SubscriptionResponse)
async def cancel_user_subscription(
    user_id: uuid.UUID,
    subscription_id: int,
    db: AsyncSession = Depends(get_db),
):
    try:
        return await cancel_subscription(db, user_id, subscription_id)
    except SubscriptionNotFound:
        raise HTTPException(status_code=404, detail="Subscription not found or already cancelled")


@router.get("/user/{user_id}/usage", response_model=UsageResponse)
async def get_usage(
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    """Pickups and covered bags used in the current billing period."""
    try:
        subscription = await get_current_subscription(db, user_id)
    except NoActiveSubscription:
        raise HTTPException(status_code=404, detail="No active subscription")

    usage = await usage_for_subscription(db, subscription, settings.QUOTA_SERVICE_NAME)
    return UsageResponse(
        subscription_id=usage.subscription_id,
        current_period_start=usage.period_start,
        current_period_end=usage.period_end,
        pickups_used=usage.pickups_used,
        pickups_allowed=usage.quota,
        pickups_remaining=usage.pickups_remaining,
        bags_used=usage.quota_units_used,
        bags_allowed=usage.quota,
        bags_remaining=usage.quota_units_remaining,
    )


@router.get("/user/{user_id}/preferences", response_model=PreferencesResponse)
async def get_user_preferences(
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    """Stored preferences, or the defaults when none were saved yet."""
    try:
        return await get_preferences(db, user_id)
    except PreferencesNotFound:
        return await default_preferences(db, user_id, settings)


@router.put("/user/{user_id}/preferences", response_model=PreferencesResponse)
async def update_user_preferences(
    user_id: uuid.UUID,
    data: PreferencesUpdate,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    payload = data.model_dump(mode="json")
    try:
        return await upsert_preferences(db, user_id, payload, settings)
    except InvalidAddress as e:
        raise HTTPException(status_code=400, detail=str(e))
