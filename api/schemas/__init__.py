"""Pydantic schemas for API request/response models."""

from __future__ import annotations
import uuid
from datetime import date, datetime
from enum import Enum
from pydantic import BaseModel, Field


# ── Enums ──────────────────────────────────────────────────

class OrderStatus(str, Enum):
    PENDING = "pending"
    SCHEDULED = "scheduled"
    PICKED_UP = "picked_up"
    IN_PROCESS = "in_process"
    READY = "ready"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PickupDay(str, Enum):
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"


# ── Service Schemas ────────────────────────────────────────

class ServiceResponse(BaseModel):
    id: int
    name: str
    description: str | None
    base_price: float
    is_active: bool

    class Config:
        from_attributes = True


# ── Order Schemas ──────────────────────────────────────────

class OrderItemRequest(BaseModel):
    service_id: int
    quantity: int = Field(..., ge=0)
    notes: str | None = None


class OrderCreate(BaseModel):
    user_id: uuid.UUID
    pickup_address_id: int
    delivery_address_id: int
    pickup_date: date
    delivery_date: date | None = None
    pickup_time_slot: str | None = None
    delivery_time_slot: str | None = None
    special_instructions: str | None = None
    items: list[OrderItemRequest] = Field(..., min_length=1)
    tip: float = Field(0.0, ge=0)


class OrderItemResponse(BaseModel):
    id: int
    service_id: int
    service_name: str | None = None
    quantity: int
    price: float
    notes: str | None = None

    class Config:
        from_attributes = True


class OrderStatusHistoryResponse(BaseModel):
    id: int
    status: str
    notes: str | None
    updated_by: uuid.UUID | None
    created_at: datetime

    class Config:
        from_attributes = True


class OrderResponse(BaseModel):
    id: int
    order_number: str
    user_id: uuid.UUID
    subscription_id: int | None
    pickup_address_id: int
    delivery_address_id: int
    status: str
    pickup_date: date
    delivery_date: date | None
    pickup_time_slot: str | None
    delivery_time_slot: str | None
    special_instructions: str | None
    subtotal: float
    tax: float
    tip: float
    total: float
    items: list[OrderItemResponse] = []
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class OrderDetailResponse(OrderResponse):
    status_history: list[OrderStatusHistoryResponse] = []


class OrderCreateResponse(BaseModel):
    order: OrderDetailResponse
    requires_payment: bool
    covered_units: int


class OrderStatusUpdate(BaseModel):
    status: OrderStatus
    notes: str | None = None
    actor_id: uuid.UUID | None = None


# ── Subscription Schemas ───────────────────────────────────

class PlanResponse(BaseModel):
    id: int
    name: str
    description: str | None
    price_per_month: float
    pickups_per_month: int
    is_active: bool

    class Config:
        from_attributes = True


class SubscriptionCreate(BaseModel):
    plan_id: int


class SubscriptionResponse(BaseModel):
    id: int
    user_id: uuid.UUID
    plan_id: int
    status: str
    current_period_start: date
    current_period_end: date
    stripe_subscription_id: str | None = None
    created_at: datetime
    updated_at: datetime
    plan: PlanResponse

    class Config:
        from_attributes = True


class UsageResponse(BaseModel):
    subscription_id: int
    current_period_start: date
    current_period_end: date
    pickups_used: int
    pickups_allowed: int
    pickups_remaining: int
    bags_used: int
    bags_allowed: int
    bags_remaining: int


class ServiceSelection(BaseModel):
    service_id: int
    quantity: int = Field(..., ge=1)


class PreferencesUpdate(BaseModel):
    default_pickup_address_id: int | None = None
    default_delivery_address_id: int | None = None
    preferred_pickup_time_slot: str | None = None
    preferred_delivery_time_slot: str | None = None
    preferred_pickup_day: PickupDay = PickupDay.MONDAY
    default_services: list[ServiceSelection] | None = None
    auto_schedule_enabled: bool = True
    lead_time_days: int = Field(1, ge=0, le=30)
    special_instructions: str = ""


class PreferencesResponse(BaseModel):
    user_id: uuid.UUID
    default_pickup_address_id: int | None
    default_delivery_address_id: int | None
    preferred_pickup_time_slot: str
    preferred_delivery_time_slot: str
    preferred_pickup_day: str
    default_services: list[ServiceSelection]
    auto_schedule_enabled: bool
    lead_time_days: int
    special_instructions: str

    class Config:
        from_attributes = True
