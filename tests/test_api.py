"""
HTTP surface: routing, camelCase payloads, error mapping and idempotent checkout.
"""
import uuid

import pytest

ORDER_BODY = {
    "customerName": "سارة",
    "customerPhone": "0795550000",
    "deliveryAddress": "إربد، شارع الجامعة",
    "restaurantId": "rest-1",
    "items": [{"name": "منسف", "quantity": 1, "price": "12.00"}],
    "deliveryFee": "3.00",
}


async def _create_order(client, **overrides):
    r = await client.post("/api/orders", json={**ORDER_BODY, **overrides})
    assert r.status_code == 201, r.text
    return r.json()


async def _create_driver(client, phone="0780000001"):
    r = await client.post("/api/drivers", json={"name": "Driver", "phone": phone})
    assert r.status_code == 201, r.text
    return r.json()


# ─── Orders ────────────────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_create_and_get_order(client):
    order = await _create_order(client)

    assert order["status"] == "pending"
    assert order["totalAmount"] == "15.00"
    assert order["orderNumber"].startswith("ORD-")

    r = await client.get(f"/api/orders/{order['id']}")
    assert r.status_code == 200
    assert r.json()["items"][0]["name"] == "منسف"


@pytest.mark.asyncio
async def test_create_order_validation(client):
    r = await client.post("/api/orders", json={**ORDER_BODY, "items": []})
    assert r.status_code == 422

    r = await client.post("/api/orders", json={**ORDER_BODY, "totalAmount": "99.00"})
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_unknown_order_is_404(client):
    r = await client.get("/api/orders/does-not-exist")
    assert r.status_code == 404
    assert "not found" in r.json()["detail"]


@pytest.mark.asyncio
async def test_list_orders_filters(client):
    a = await _create_order(client, restaurantId="rest-a")
    b = await _create_order(client, restaurantId="rest-b", customerPhone="0790000002")
    await client.patch(f"/api/orders/{b['id']}/status", json={"status": "confirmed"})

    r = await client.get("/api/orders", params={"restaurantId": "rest-a"})
    assert [o["id"] for o in r.json()] == [a["id"]]

    r = await client.get("/api/orders", params={"status": "pending,confirmed"})
    assert {o["id"] for o in r.json()} == {a["id"], b["id"]}

    r = await client.get("/api/orders", params={"status": "confirmed"})
    assert [o["id"] for o in r.json()] == [b["id"]]

    r = await client.get("/api/orders/customer/0790000002")
    assert [o["id"] for o in r.json()] == [b["id"]]

    r = await client.get("/api/orders", params={"status": "lost"})
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_status_patch_and_invalid_transition(client):
    order = await _create_order(client)

    r = await client.patch(f"/api/orders/{order['id']}/status", json={"status": "confirmed"})
    assert r.status_code == 200
    assert r.json()["status"] == "confirmed"

    r = await client.patch(f"/api/orders/{order['id']}/status", json={"status": "delivered"})
    assert r.status_code == 409

    r = await client.get(f"/api/orders/{order['id']}")
    assert r.json()["status"] == "confirmed"


@pytest.mark.asyncio
async def test_cancel_and_track(client):
    order = await _create_order(client)

    r = await client.patch(f"/api/orders/{order['id']}/cancel", json={"reason": "changed mind"})
    assert r.status_code == 200
    assert r.json()["status"] == "cancelled"

    r = await client.get(f"/api/orders/{order['id']}/track")
    body = r.json()
    assert [t["status"] for t in body["tracking"]] == ["pending", "cancelled"]
    assert body["driverLocation"] is None

    r = await client.patch(f"/api/orders/{order['id']}/cancel", json={})
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_assign_driver_conflict(client):
    order = await _create_order(client)
    first = await _create_driver(client, "0780000001")
    second = await _create_driver(client, "0780000002")

    r = await client.put(f"/api/orders/{order['id']}/assign-driver", json={"driverId": first["id"]})
    assert r.status_code == 200
    assert r.json()["driverId"] == first["id"]

    r = await client.put(f"/api/orders/{order['id']}/assign-driver", json={"driverId": second["id"]})
    assert r.status_code == 409


@pytest.mark.asyncio
async def test_generic_put_update(client):
    order = await _create_order(client)
    driver = await _create_driver(client)

    r = await client.put(f"/api/orders/{order['id']}", json={"driverId": driver["id"], "status": "preparing"})
    assert r.status_code == 200
    assert r.json()["driverId"] == driver["id"]
    assert r.json()["status"] == "preparing"


# ─── Drivers ───────────────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_driver_accept_and_complete_flow(client):
    order = await _create_order(client)
    driver = await _create_driver(client)

    r = await client.get(f"/api/drivers/{driver['id']}/available-orders")
    assert [o["id"] for o in r.json()] == [order["id"]]

    r = await client.post(f"/api/drivers/{driver['id']}/accept-order", json={"orderId": order["id"]})
    assert r.status_code == 200
    assert r.json()["status"] == "confirmed"

    for status in ("preparing", "ready", "on_way"):
        r = await client.patch(f"/api/orders/{order['id']}/status", json={"status": status})
        assert r.status_code == 200, r.text

    r = await client.post(f"/api/drivers/{driver['id']}/complete-order", json={"orderId": order["id"]})
    assert r.status_code == 200
    assert r.json()["status"] == "delivered"

    r = await client.get(f"/api/drivers/{driver['id']}")
    assert r.json()["earnings"] == "10.00"
    assert r.json()["isAvailable"] is True

    r = await client.get(f"/api/drivers/{driver['id']}/stats", params={"period": "week"})
    assert r.json()["totalOrders"] == 1

    r = await client.get(f"/api/drivers/{driver['id']}/orders", params={"status": "delivered"})
    assert [o["id"] for o in r.json()] == [order["id"]]


@pytest.mark.asyncio
async def test_second_driver_gets_conflict(client):
    order = await _create_order(client)
    first = await _create_driver(client, "0780000001")
    second = await _create_driver(client, "0780000002")

    r = await client.post(f"/api/drivers/{first['id']}/accept-order", json={"orderId": order["id"]})
    assert r.status_code == 200
    r = await client.post(f"/api/drivers/{second['id']}/accept-order", json={"orderId": order["id"]})
    assert r.status_code == 409


@pytest.mark.asyncio
async def test_wrong_driver_cannot_complete(client):
    order = await _create_order(client)
    owner = await _create_driver(client, "0780000001")
    other = await _create_driver(client, "0780000002")
    await client.post(f"/api/drivers/{owner['id']}/accept-order", json={"orderId": order["id"]})

    r = await client.post(f"/api/drivers/{other['id']}/complete-order", json={"orderId": order["id"]})
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_availability_toggle_hides_orders(client):
    await _create_order(client)
    driver = await _create_driver(client)

    r = await client.put(f"/api/drivers/{driver['id']}/status", json={"status": "offline"})
    assert r.status_code == 200
    assert r.json()["isAvailable"] is False
    r = await client.get(f"/api/drivers/{driver['id']}/available-orders")
    assert r.json() == []

    r = await client.put(
        f"/api/drivers/{driver['id']}/status",
        json={"status": "available", "latitude": 31.95, "longitude": 35.91},
    )
    assert r.json()["currentLocation"] == "31.95,35.91"
    r = await client.get(f"/api/drivers/{driver['id']}/available-orders")
    assert len(r.json()) == 1

    r = await client.get("/api/drivers", params={"available": "true"})
    assert [d["id"] for d in r.json()] == [driver["id"]]


@pytest.mark.asyncio
async def test_driver_errors(client):
    await _create_driver(client)
    r = await client.post("/api/drivers", json={"name": "Dup", "phone": "0780000001"})
    assert r.status_code == 409

    r = await client.get("/api/drivers/ghost")
    assert r.status_code == 404

    r = await client.put("/api/drivers/ghost", json={"name": "x"})
    assert r.status_code == 404

    r = await client.get("/api/drivers/ghost/stats")
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_driver_update_without_driver_id_is_forbidden(client):
    order = await _create_order(client)

    r = await client.patch(
        f"/api/orders/{order['id']}/status",
        json={"status": "confirmed", "updatedByType": "driver"},
    )
    assert r.status_code == 403

    r = await client.get(f"/api/orders/{order['id']}")
    assert r.json()["status"] == "pending"


@pytest.mark.asyncio
async def test_delete_driver_deactivates(client):
    order = await _create_order(client)
    driver = await _create_driver(client)

    r = await client.delete(f"/api/drivers/{driver['id']}")
    assert r.status_code == 204

    r = await client.get(f"/api/drivers/{driver['id']}")
    assert r.json()["isActive"] is False
    assert r.json()["isAvailable"] is False

    r = await client.post(f"/api/drivers/{driver['id']}/accept-order", json={"orderId": order["id"]})
    assert r.status_code == 409

    r = await client.delete("/api/drivers/ghost")
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_driver_dashboard(client):
    held = await _create_order(client)
    open_order = await _create_order(client)
    driver = await _create_driver(client)
    await client.post(f"/api/drivers/{driver['id']}/accept-order", json={"orderId": held["id"]})
    await client.put(f"/api/drivers/{driver['id']}/status", json={"status": "available"})

    r = await client.get(f"/api/drivers/{driver['id']}/dashboard")
    assert r.status_code == 200
    body = r.json()
    assert body["stats"]["todayOrders"] == 1
    assert body["stats"]["completedToday"] == 0
    assert [o["id"] for o in body["currentOrders"]] == [held["id"]]
    assert [o["id"] for o in body["availableOrders"]] == [open_order["id"]]

    r = await client.get("/api/drivers/ghost/dashboard")
    assert r.status_code == 404


# ─── Notifications ─────────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_notifications_poll_and_mark_read(client):
    await _create_order(client)

    r = await client.get("/api/notifications", params={"recipientType": "restaurant", "recipientId": "rest-1"})
    notes = r.json()
    assert len(notes) == 1
    assert notes[0]["type"] == "new_order"

    r = await client.put(f"/api/notifications/{notes[0]['id']}/read")
    assert r.status_code == 200
    assert r.json()["isRead"] is True

    r = await client.get("/api/notifications", params={"recipientType": "restaurant", "unread": "true"})
    assert r.json() == []

    r = await client.put("/api/notifications/missing/read")
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_create_notification(client):
    r = await client.post("/api/notifications", json={
        "type": "broadcast",
        "title": "تنبيه",
        "message": "صيانة الليلة",
        "recipientType": "admin",
    })
    assert r.status_code == 201
    assert r.json()["isRead"] is False


# ─── Idempotency ───────────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_idempotency_key_replays_checkout(client, storage):
    headers = {"Idempotency-Key": str(uuid.uuid4())}

    r1 = await client.post("/api/orders", json=ORDER_BODY, headers=headers)
    r2 = await client.post("/api/orders", json=ORDER_BODY, headers=headers)

    assert r1.status_code == 201
    assert r2.status_code == 201
    assert r2.headers.get("X-Idempotency-Replay") == "true"
    assert r2.json()["id"] == r1.json()["id"]
    assert len(await storage.list_orders()) == 1


@pytest.mark.asyncio
async def test_failed_checkout_is_not_cached(client, storage):
    headers = {"Idempotency-Key": str(uuid.uuid4())}

    r1 = await client.post("/api/orders", json={**ORDER_BODY, "items": []}, headers=headers)
    r2 = await client.post("/api/orders", json=ORDER_BODY, headers=headers)

    assert r1.status_code == 422
    assert r2.status_code == 201
    assert "X-Idempotency-Replay" not in r2.headers


# ─── Health ────────────────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_health(client):
    r = await client.get("/health")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "healthy"
    assert body["dependencies"] == {"storage": "ok", "redis": "ok"}


@pytest.mark.asyncio
async def test_root(client):
    r = await client.get("/")
    assert r.json()["service"] == "delivery-api"
