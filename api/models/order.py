"""Order, OrderItem and OrderStatusHistory ORM models: pickup/delivery lifecycle."""

import uuid
from datetime import date, datetime
from sqlalchemy import String, Integer, Numeric, Date, DateTime, ForeignKey, Text, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from db.database import Base


ORDER_STATUSES = (
    "pending", "scheduled", "picked_up", "in_process", "ready",
    "out_for_delivery", "delivered", "failed", "cancelled",
)


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (
        Index("idx_orders_user_subscription_period", "user_id", "subscription_id", "pickup_date"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    order_number: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    subscription_id: Mapped[int | None] = mapped_column(ForeignKey("subscriptions.id"))

    # Schedule
    pickup_address_id: Mapped[int] = mapped_column(ForeignKey("addresses.id"), nullable=False)
    delivery_address_id: Mapped[int] = mapped_column(ForeignKey("addresses.id"), nullable=False)
    pickup_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    delivery_date: Mapped[date | None] = mapped_column(Date)
    pickup_time_slot: Mapped[str | None] = mapped_column(String(50))
    delivery_time_slot: Mapped[str | None] = mapped_column(String(50))
    special_instructions: Mapped[str | None] = mapped_column(Text)

    status: Mapped[str] = mapped_column(String(20), default="pending", index=True)

    # Pricing
    subtotal: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), default=0.0)
    tax: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), default=0.0)
    tip: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), default=0.0)
    total: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), default=0.0)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    items = relationship("OrderItem", back_populates="order", lazy="selectin", order_by="OrderItem.id")
    status_history = relationship(
        "OrderStatusHistory", back_populates="order", lazy="selectin",
        order_by="OrderStatusHistory.id.desc()",
    )


class OrderItem(Base):
    __tablename__ = "order_items"
    __table_args__ = (
        Index("idx_order_items_order_service", "order_id", "service_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    service_id: Mapped[int] = mapped_column(ForeignKey("services.id"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False)  # 0 = covered
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    # Relationships
    order = relationship("Order", back_populates="items")
    service = relationship("Service", lazy="selectin")

    @property
    def service_name(self) -> str | None:
        return self.service.name if self.service else None


class OrderStatusHistory(Base):
    __tablename__ = "order_status_history"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    updated_by: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("users.id"))  # NULL = SYSTEM
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    # Relationships
    order = relationship("Order", back_populates="status_history")
