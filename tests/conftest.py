"""
Shared fixtures: every test gets its own SQLite file database, a fake
payment gateway and an httpx client bound to a freshly built app.
"""
import asyncio
import logging
from decimal import Decimal

import httpx
import pytest

from main import create_app
from shared.config.database import Database
from shared.config.settings import Settings
from shared.errors import GatewayError
from services.auth_service.service import AuthService
from services.inventory_service.repository import InventoryRepository
from services.order_service.models import Order
from services.order_service.repository import OrderRepository
from services.payment_service.schemas import CheckoutSession, PaymentInfo


class FakeGateway:
    """In-memory stand-in for the payment processor."""

    def __init__(self):
        self.session_requests = []
        self.payments = {}
        self.create_error = None
        self.payment_error = None
        self.closed = False

    async def create_session(self, request):
        await asyncio.sleep(0)
        if self.create_error is not None:
            raise self.create_error
        self.session_requests.append(request)
        session_id = f"pref-{len(self.session_requests)}"
        return CheckoutSession(
            session_id=session_id,
            redirect_url=f"https://gateway.test/checkout?pref_id={session_id}",
        )

    async def get_payment(self, payment_id):
        await asyncio.sleep(0)
        if self.payment_error is not None:
            raise self.payment_error
        if payment_id not in self.payments:
            raise GatewayError("Payment not found", status_code=404)
        return self.payments[payment_id]

    def set_payment(self, payment_id, status, order_id=None):
        self.payments[payment_id] = PaymentInfo(
            payment_id=payment_id,
            status=status,
            external_reference=order_id,
        )

    async def aclose(self):
        self.closed = True


@pytest.fixture(autouse=True, scope="session")
def quiet_otel_loggers():
    for name in ("opentelemetry.trace", "opentelemetry.sdk.trace.export"):
        logging.getLogger(name).setLevel(logging.CRITICAL + 1)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}",
        jwt_secret_key="test-secret-key",
        frontend_url="https://shop.test",
        backend_url="https://api.shop.test",
        rate_limit_enabled=False,
        metrics_enabled=False,
    )


@pytest.fixture
async def database(settings):
    db = Database(settings.database_url)
    await db.connect()
    yield db
    await db.close()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def app(settings, database, gateway):
    return create_app(settings, database=database, gateway=gateway)


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c


@pytest.fixture
def seed_stock(database):
    async def _seed(**stock):
        async with database.session() as session:
            async with session.begin():
                for product_id, quantity in stock.items():
                    await InventoryRepository.set_stock(session, product_id, quantity)
    return _seed


@pytest.fixture
def stock_of(database):
    async def _stock_of(product_id):
        async with database.session() as session:
            return await InventoryRepository.get_stock(session, product_id)
    return _stock_of


@pytest.fixture
def load_order(database):
    async def _load(order_id) -> Order:
        async with database.session() as session:
            return await OrderRepository.get(session, order_id)
    return _load


@pytest.fixture
def order_payload():
    def _payload(items=None, total=None, **overrides):
        items = items if items is not None else [
            {"productId": "A", "name": "Vitamina C", "presentation": "60 caps", "quantity": 2, "unitPrice": 10.00},
        ]
        if total is None:
            total = float(sum(Decimal(str(i["unitPrice"])) * i["quantity"] for i in items))
        body = {
            "customerDetails": {"name": "Ana Pérez", "email": "ana@example.com", "phone": "5512345678"},
            "items": items,
            "totalAmount": total,
        }
        body.update(overrides)
        return body
    return _payload


@pytest.fixture
def place_order(client, gateway, order_payload):
    """Creates an order through the API and returns its id."""
    async def _place(**kwargs):
        resp = await client.post("/orders", json=order_payload(**kwargs))
        assert resp.status_code == 201, resp.text
        return gateway.session_requests[-1].external_reference
    return _place


@pytest.fixture
def notify(client, gateway):
    """Registers a payment status at the fake gateway and delivers its webhook."""
    async def _notify(order_id, status, payment_id="9001"):
        gateway.set_payment(payment_id, status, order_id)
        resp = await client.post(
            "/payment-notifications",
            params={"source_news": "webhooks", "orderId": order_id},
            json={"type": "payment", "data": {"id": payment_id}},
        )
        assert resp.status_code == 200
        return resp
    return _notify


@pytest.fixture
async def dispatcher_token(client, database):
    async with database.session() as session:
        await AuthService.provision_dispatcher(session, "bodega", "s3cret-pass")
    resp = await client.post("/auth/dispatcher-login", json={"username": "bodega", "password": "s3cret-pass"})
    assert resp.status_code == 200, resp.text
    return resp.json()["accessToken"]


@pytest.fixture
def auth_headers(dispatcher_token):
    return {"Authorization": f"Bearer {dispatcher_token}"}
