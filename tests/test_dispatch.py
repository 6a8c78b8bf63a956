from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import update

from services.order_service.models import Employee, Order
from services.dispatch_service.service import ReservationSweeper


@pytest.fixture
def seed_employee(database):
    async def _seed(name, referral_code):
        async with database.session() as session:
            async with session.begin():
                session.add(Employee(name=name, referral_code=referral_code))
    return _seed


@pytest.fixture
def paid_order(place_order, notify):
    async def _paid(payment_id="9001", **kwargs):
        order_id = await place_order(**kwargs)
        await notify(order_id, "approved", payment_id=payment_id)
        return order_id
    return _paid


class TestDispatchAuth:

    @pytest.mark.parametrize("method,path", [
        ("get", "/dispatch/orders"),
        ("patch", "/dispatch/orders/x/ship"),
        ("patch", "/dispatch/orders/x/unship"),
        ("post", "/dispatch/reservations/expire"),
    ])
    async def test_routes_require_token(self, client, method, path):
        resp = await client.request(method.upper(), path)
        assert resp.status_code == 401

    async def test_garbage_token_is_rejected(self, client):
        resp = await client.get("/dispatch/orders", headers={"Authorization": "Bearer not-a-jwt"})
        assert resp.status_code == 401


class TestDispatchQueue:

    async def test_pending_queue_lists_paid_orders_only(self, client, auth_headers, seed_stock, place_order, paid_order):
        await seed_stock(A=10)
        unpaid = await place_order()
        first = await paid_order(payment_id="1")
        second = await paid_order(payment_id="2")

        resp = await client.get("/dispatch/orders", headers=auth_headers)

        assert resp.status_code == 200
        ids = [o["id"] for o in resp.json()]
        assert unpaid not in ids
        assert ids == [second, first]

    async def test_order_view_shape(self, client, auth_headers, seed_stock, paid_order, seed_employee):
        await seed_stock(A=10)
        await seed_employee("Luis Gómez", "LUIS10")
        order_id = await paid_order(referralCode="LUIS10")

        resp = await client.get("/dispatch/orders", params={"status": "pending"}, headers=auth_headers)

        order = resp.json()[0]
        assert order["id"] == order_id
        assert order["status"] == "paid"
        assert order["totalAmount"] == 20.0
        assert order["customerDetails"]["email"] == "ana@example.com"
        assert order["items"][0]["productId"] == "A"
        assert order["items"][0]["lineTotal"] == 20.0
        assert order["paymentDetails"]["externalPaymentStatus"] == "approved"
        assert order["shippingDetails"]["method"] == "Por definir"
        assert order["referralCode"] == "LUIS10"
        assert order["referringAgentName"] == "Luis Gómez"

    async def test_unknown_referral_code_has_no_agent(self, client, auth_headers, seed_stock, paid_order):
        await seed_stock(A=10)
        await paid_order(referralCode="NOBODY")

        resp = await client.get("/dispatch/orders", headers=auth_headers)

        assert resp.json()[0]["referringAgentName"] is None

    async def test_invalid_queue_name(self, client, auth_headers):
        resp = await client.get("/dispatch/orders", params={"status": "lost"}, headers=auth_headers)
        assert resp.status_code == 400


class TestShipping:

    async def test_ship_and_unship(self, client, auth_headers, seed_stock, paid_order, load_order):
        await seed_stock(A=10)
        order_id = await paid_order()

        resp = await client.patch(
            f"/dispatch/orders/{order_id}/ship",
            json={"trackingNumber": "TRK-123"},
            headers=auth_headers,
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "shipped"
        assert body["shippingDetails"]["trackingNumber"] == "TRK-123"
        assert body["shippedAt"] is not None

        shipped = await client.get("/dispatch/orders", params={"status": "shipped"}, headers=auth_headers)
        assert [o["id"] for o in shipped.json()] == [order_id]
        pending = await client.get("/dispatch/orders", headers=auth_headers)
        assert pending.json() == []

        resp = await client.patch(f"/dispatch/orders/{order_id}/unship", headers=auth_headers)
        assert resp.status_code == 200
        assert resp.json()["status"] == "paid"

        order = await load_order(order_id)
        assert order.shipped_at is None
        assert order.tracking_number is None

    async def test_ship_without_body(self, client, auth_headers, seed_stock, paid_order):
        await seed_stock(A=10)
        order_id = await paid_order()

        resp = await client.patch(f"/dispatch/orders/{order_id}/ship", headers=auth_headers)

        assert resp.status_code == 200
        assert resp.json()["shippingDetails"]["trackingNumber"] is None

    async def test_ship_requires_paid_status(self, client, auth_headers, seed_stock, place_order, load_order):
        await seed_stock(A=10)
        order_id = await place_order()

        resp = await client.patch(f"/dispatch/orders/{order_id}/ship", headers=auth_headers)

        assert resp.status_code == 400
        assert resp.json()["currentStatus"] == "pending_payment"
        assert (await load_order(order_id)).status == "pending_payment"

    async def test_unship_requires_shipped_status(self, client, auth_headers, seed_stock, paid_order):
        await seed_stock(A=10)
        order_id = await paid_order()

        resp = await client.patch(f"/dispatch/orders/{order_id}/unship", headers=auth_headers)

        assert resp.status_code == 400
        assert resp.json()["currentStatus"] == "paid"

    async def test_unknown_order(self, client, auth_headers):
        resp = await client.patch("/dispatch/orders/nope/ship", headers=auth_headers)
        assert resp.status_code == 404


class TestReservationSweeper:

    async def _backdate(self, database, order_id, minutes):
        async with database.session() as session:
            async with session.begin():
                await session.execute(
                    update(Order)
                    .where(Order.id == order_id)
                    .values(created_at=datetime.now(timezone.utc) - timedelta(minutes=minutes))
                )

    async def test_expires_only_old_unpaid_orders(self, database, seed_stock, stock_of, place_order, paid_order, load_order):
        await seed_stock(A=10)
        stale = await place_order()
        fresh = await place_order()
        paid = await paid_order()
        await self._backdate(database, stale, 120)
        await self._backdate(database, paid, 120)
        assert await stock_of("A") == 4

        async with database.session() as session:
            expired = await ReservationSweeper.expire_stale_reservations(session, 30)

        assert expired == [stale]
        assert (await load_order(stale)).status == "failed"
        assert (await load_order(fresh)).status == "pending_payment"
        assert (await load_order(paid)).status == "paid"
        assert await stock_of("A") == 6

    async def test_second_sweep_is_a_noop(self, database, seed_stock, stock_of, place_order):
        await seed_stock(A=10)
        stale = await place_order()
        await self._backdate(database, stale, 120)

        async with database.session() as session:
            assert await ReservationSweeper.expire_stale_reservations(session, 30) == [stale]
        async with database.session() as session:
            assert await ReservationSweeper.expire_stale_reservations(session, 30) == []
        assert await stock_of("A") == 10

    async def test_expire_endpoint(self, client, auth_headers, database, seed_stock, stock_of, place_order):
        await seed_stock(A=10)
        stale = await place_order()
        await self._backdate(database, stale, 120)

        resp = await client.post(
            "/dispatch/reservations/expire",
            json={"olderThanMinutes": 60},
            headers=auth_headers,
        )

        assert resp.status_code == 200
        assert resp.json() == {"expiredOrderIds": [stale]}
        assert await stock_of("A") == 10
