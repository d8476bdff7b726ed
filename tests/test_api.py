"""HTTP-level tests for the orders, subscriptions and services routers."""

import httpx
import pytest
import pytest_asyncio

from conftest import IN_PERIOD
from db.database import get_db
from main import app
from models.subscription import SubscriptionPlan


@pytest_asyncio.fixture
async def client(session_factory):
    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


def _order_payload(sub, services, standard=0, rush=0):
    items = []
    if standard:
        items.append({"service_id": services["standard_bag"], "quantity": standard})
    if rush:
        items.append({"service_id": services["rush_bag"], "quantity": rush})
    return {
        "user_id": str(sub.user.id),
        "pickup_address_id": sub.pickup_address.id,
        "delivery_address_id": sub.delivery_address.id,
        "pickup_date": IN_PERIOD.isoformat(),
        "items": items,
    }


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_create_order_split_and_read_back(client, catalog_services, make_subscriber):
    sub = await make_subscriber(quota=6)
    resp = await client.post("/api/orders/", json=_order_payload(sub, catalog_services, standard=7))
    assert resp.status_code == 201
    body = resp.json()
    assert body["requires_payment"] is True
    assert body["covered_units"] == 6
    order = body["order"]
    assert order["subtotal"] == 30.00
    assert order["total"] == 31.80

    detail = (await client.get(f"/api/orders/{order['id']}")).json()
    listed = (await client.get(f"/api/orders/user/{sub.user.id}")).json()
    assert detail["total"] == listed[0]["total"] == order["total"]
    assert detail["items"] == listed[0]["items"] == order["items"]
    assert detail["status_history"][0]["status"] == "scheduled"


@pytest.mark.asyncio
async def test_create_order_requires_items(client, catalog_services, make_subscriber):
    sub = await make_subscriber()
    payload = _order_payload(sub, catalog_services)
    resp = await client.post("/api/orders/", json=payload)
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_create_order_bad_address_is_500(client, catalog_services, make_subscriber):
    sub = await make_subscriber()
    payload = _order_payload(sub, catalog_services, standard=1)
    payload["pickup_address_id"] = 99999
    resp = await client.post("/api/orders/", json=payload)
    assert resp.status_code == 500


@pytest.mark.asyncio
async def test_get_unknown_order_404(client):
    resp = await client.get("/api/orders/4242")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_list_orders_filters_and_limits(client, catalog_services, make_subscriber):
    sub = await make_subscriber()
    for _ in range(3):
        await client.post("/api/orders/", json=_order_payload(sub, catalog_services, rush=1))

    assert len((await client.get(f"/api/orders/user/{sub.user.id}?limit=2")).json()) == 2
    assert len((await client.get(f"/api/orders/user/{sub.user.id}?status=delivered")).json()) == 0
    assert (await client.get(f"/api/orders/user/{sub.user.id}?limit=500")).status_code == 422


@pytest.mark.asyncio
async def test_cancel_frees_quota(client, catalog_services, make_subscriber):
    sub = await make_subscriber(quota=6)
    created = (await client.post("/api/orders/", json=_order_payload(sub, catalog_services, standard=4))).json()
    usage = (await client.get(f"/api/subscriptions/user/{sub.user.id}/usage")).json()
    assert usage["bags_used"] == 4
    assert usage["pickups_used"] == 1

    resp = await client.patch(
        f"/api/orders/{created['order']['id']}/status",
        json={"status": "cancelled", "notes": "Customer request"},
    )
    assert resp.status_code == 200
    assert resp.json() == {"order_id": created["order"]["id"], "old_status": "scheduled", "new_status": "cancelled"}

    usage = (await client.get(f"/api/subscriptions/user/{sub.user.id}/usage")).json()
    assert usage["bags_used"] == 0
    assert usage["bags_remaining"] == 6
    assert usage["pickups_remaining"] == 6


@pytest.mark.asyncio
async def test_status_update_rejects_unknown_status(client, catalog_services, make_subscriber):
    sub = await make_subscriber()
    created = (await client.post("/api/orders/", json=_order_payload(sub, catalog_services, rush=1))).json()
    resp = await client.patch(f"/api/orders/{created['order']['id']}/status", json={"status": "lost"})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_usage_without_subscription_404(client, catalog_services, make_subscriber):
    sub = await make_subscriber(with_subscription=False)
    resp = await client.get(f"/api/subscriptions/user/{sub.user.id}/usage")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_preferences_defaults_then_upsert(client, catalog_services, make_subscriber):
    sub = await make_subscriber(with_preferences=False)
    url = f"/api/subscriptions/user/{sub.user.id}/preferences"

    defaults = (await client.get(url)).json()
    assert defaults["preferred_pickup_day"] == "monday"
    assert defaults["lead_time_days"] == 1
    assert defaults["auto_schedule_enabled"] is True
    assert defaults["default_services"] == [{"service_id": catalog_services["standard_bag"], "quantity": 1}]

    resp = await client.put(url, json={
        "default_pickup_address_id": sub.pickup_address.id,
        "default_delivery_address_id": sub.delivery_address.id,
        "preferred_pickup_day": "thursday",
        "lead_time_days": 3,
    })
    assert resp.status_code == 200
    saved = resp.json()
    assert saved["preferred_pickup_day"] == "thursday"
    assert saved["preferred_pickup_time_slot"] == "8:00 AM - 12:00 PM"
    assert saved["default_services"] == [{"service_id": catalog_services["standard_bag"], "quantity": 1}]

    resp = await client.put(url, json={"preferred_pickup_day": "friday", "auto_schedule_enabled": False})
    assert resp.json()["preferred_pickup_day"] == "friday"
    assert (await client.get(url)).json()["auto_schedule_enabled"] is False


@pytest.mark.asyncio
async def test_preferences_reject_foreign_address(client, catalog_services, make_subscriber):
    owner = await make_subscriber(with_preferences=False)
    other = await make_subscriber(with_preferences=False)
    resp = await client.put(
        f"/api/subscriptions/user/{owner.user.id}/preferences",
        json={"default_pickup_address_id": other.pickup_address.id},
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_plans_and_services(client, catalog_services, make_subscriber):
    await make_subscriber(quota=4)
    plans = (await client.get("/api/subscriptions/plans")).json()
    assert [p["pickups_per_month"] for p in plans] == [4]

    names = {s["name"] for s in (await client.get("/api/services/")).json()}
    assert names == {"standard_bag", "rush_bag", "pickup_service"}


@pytest.mark.asyncio
async def test_subscription_lifecycle(client, db, make_subscriber):
    sub = await make_subscriber(with_subscription=False)
    plan = SubscriptionPlan(name="Basic", price_per_month=49.00, pickups_per_month=4)
    db.add(plan)
    await db.commit()
    url = f"/api/subscriptions/user/{sub.user.id}"

    assert (await client.get(url)).status_code == 404

    resp = await client.post(url, json={"plan_id": plan.id})
    assert resp.status_code == 201
    created = resp.json()
    assert created["status"] == "active"
    assert created["plan"]["pickups_per_month"] == 4
    assert created["current_period_start"] < created["current_period_end"]

    assert (await client.post(url, json={"plan_id": plan.id})).status_code == 400
    assert (await client.get(url)).json()["id"] == created["id"]

    resp = await client.post(f"{url}/{created['id']}/cancel")
    assert resp.status_code == 200
    assert resp.json()["status"] == "cancelled"
    assert (await client.post(f"{url}/{created['id']}/cancel")).status_code == 404
    assert (await client.get(f"{url}/usage")).status_code == 404


@pytest.mark.asyncio
async def test_subscribe_to_unknown_plan(client, make_subscriber):
    sub = await make_subscriber(with_subscription=False)
    resp = await client.post(f"/api/subscriptions/user/{sub.user.id}", json={"plan_id": 9999})
    assert resp.status_code == 400
