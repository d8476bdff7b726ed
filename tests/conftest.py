"""Shared fixtures: in-memory SQLite database, seeded catalog and subscribers."""

import os
import sys
from datetime import date
from types import SimpleNamespace

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "api"))

# Must be set before config/db are imported
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["CENTRIFUGO_API_KEY"] = ""

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from config import get_settings
from db.database import Base
from models import Address, Service, Subscription, SubscriptionPlan, SubscriptionPreferences, User

PERIOD_START = date(2026, 10, 1)
PERIOD_END = date(2026, 11, 1)
TODAY = date(2026, 10, 19)  # Monday
IN_PERIOD = date(2026, 10, 20)


class FakeNotifier:
    """Records notify() calls instead of publishing."""

    def __init__(self):
        self.calls = []

    def notify(self, user_id, order_id, status, message, data=None):
        self.calls.append({
            "user_id": user_id,
            "order_id": order_id,
            "status": status,
            "message": message,
        })


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_conn, _record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest_asyncio.fixture
async def catalog_services(db):
    """name -> id for the seeded catalog."""
    rows = [
        Service(name="standard_bag", description="Wash & fold bag", base_price=30.00),
        Service(name="rush_bag", description="Rush service add-on", base_price=10.00),
        Service(name="pickup_service", description="Pickup and delivery", base_price=10.00),
        Service(name="bedding_bag", description="Comforters and bedding", base_price=25.00, is_active=False),
    ]
    db.add_all(rows)
    await db.commit()
    return {row.name: row.id for row in rows}


@pytest_asyncio.fixture
async def make_subscriber(db, catalog_services):
    """Factory: user + two addresses + plan + subscription (+ preferences)."""
    counter = {"n": 0}

    async def _make(
        quota: int = 6,
        status: str = "active",
        with_subscription: bool = True,
        with_preferences: bool = True,
        pickup_day: str = "monday",
        lead_time_days: int = 1,
        auto_schedule: bool = True,
        default_services: list[dict] | None = None,
    ) -> SimpleNamespace:
        counter["n"] += 1
        user = User(email=f"user{counter['n']}@example.com", full_name=f"Test User {counter['n']}")
        db.add(user)
        await db.flush()

        pickup = Address(user_id=user.id, street_address="1 Main St", city="Austin", state="TX", zip_code="78701")
        delivery = Address(user_id=user.id, street_address="2 Main St", city="Austin", state="TX", zip_code="78701")
        db.add_all([pickup, delivery])
        await db.flush()

        subscription = None
        if with_subscription:
            plan = SubscriptionPlan(name=f"Plan {quota}", price_per_month=99.00, pickups_per_month=quota)
            db.add(plan)
            await db.flush()
            subscription = Subscription(
                user_id=user.id,
                plan_id=plan.id,
                status=status,
                current_period_start=PERIOD_START,
                current_period_end=PERIOD_END,
            )
            db.add(subscription)

        prefs = None
        if with_preferences:
            prefs = SubscriptionPreferences(
                user_id=user.id,
                default_pickup_address_id=pickup.id,
                default_delivery_address_id=delivery.id,
                preferred_pickup_day=pickup_day,
                default_services=default_services
                if default_services is not None
                else [{"service_id": catalog_services["standard_bag"], "quantity": 2}],
                auto_schedule_enabled=auto_schedule,
                lead_time_days=lead_time_days,
            )
            db.add(prefs)

        await db.commit()
        return SimpleNamespace(
            user=user,
            pickup_address=pickup,
            delivery_address=delivery,
            subscription=subscription,
            preferences=prefs,
        )

    return _make
