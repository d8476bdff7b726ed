"""Subscription ORM models: plans, subscriptions and recurring-order preferences."""

import uuid
from datetime import date, datetime
from sqlalchemy import String, Integer, Numeric, Boolean, Date, DateTime, ForeignKey, Text, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship
from db.database import Base


class SubscriptionPlan(Base):
    __tablename__ = "subscription_plans"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    price_per_month: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False)
    # Pickup quota and covered standard-bag quota per billing period
    pickups_per_month: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)


class Subscription(Base):
    __tablename__ = "subscriptions"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    plan_id: Mapped[int] = mapped_column(ForeignKey("subscription_plans.id"), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="active")  # active, paused, cancelled
    current_period_start: Mapped[date] = mapped_column(Date, nullable=False)
    current_period_end: Mapped[date] = mapped_column(Date, nullable=False)
    stripe_subscription_id: Mapped[str | None] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    user = relationship("User", back_populates="subscriptions")
    plan = relationship("SubscriptionPlan", lazy="selectin")


class SubscriptionPreferences(Base):
    __tablename__ = "subscription_preferences"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False,
    )
    default_pickup_address_id: Mapped[int | None] = mapped_column(ForeignKey("addresses.id", ondelete="SET NULL"))
    default_delivery_address_id: Mapped[int | None] = mapped_column(ForeignKey("addresses.id", ondelete="SET NULL"))
    preferred_pickup_time_slot: Mapped[str] = mapped_column(String(50), default="8:00 AM - 12:00 PM")
    preferred_delivery_time_slot: Mapped[str] = mapped_column(String(50), default="8:00 AM - 12:00 PM")
    preferred_pickup_day: Mapped[str] = mapped_column(String(10), default="monday")
    # [{"service_id": 1, "quantity": 2}, ...]
    default_services: Mapped[list] = mapped_column(JSON().with_variant(JSONB(), "postgresql"), default=list)
    auto_schedule_enabled: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    lead_time_days: Mapped[int] = mapped_column(Integer, default=1)
    special_instructions: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)
