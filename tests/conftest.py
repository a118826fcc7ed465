import json
import os

os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret")
os.environ.setdefault("INTERNAL_API_KEY", "test-internal-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.pop("OTLP_ENDPOINT", None)

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker

from main import app
from services.auth_service.models import User
from services.order_service.main import order_app
from services.payment_service.gateway import PaymentGateway, PaymentIntent, get_payment_gateway
from services.payment_service.main import payment_app
from services.product_service.main import product_app
from services.product_service.models import Product
from services.session_service.main import session_app
from shared.config.database import build_engine, get_db, init_models
from shared.errors import WebhookSignatureInvalid
from shared.security import INTERNAL_API_KEY, create_access_token

VALID_SIGNATURE = "t=1,v1=valid"


class FakeGateway(PaymentGateway):
    """In-memory payment processor honouring idempotency keys like Stripe does."""

    def __init__(self):
        self.intents: dict[str, PaymentIntent] = {}
        self.by_idempotency_key: dict[str, PaymentIntent] = {}
        self.calls: list[dict] = []
        self.create_error: Exception | None = None

    async def create_intent(self, amount_cents, currency, metadata, idempotency_key, timeout=None):
        self.calls.append({
            "method": "create_intent",
            "amount_cents": amount_cents,
            "currency": currency,
            "metadata": metadata,
            "idempotency_key": idempotency_key,
        })
        if self.create_error is not None:
            raise self.create_error
        if idempotency_key in self.by_idempotency_key:
            return self.by_idempotency_key[idempotency_key]

        n = len(self.intents) + 1
        intent = PaymentIntent(
            intent_id=f"pi_test_{n}",
            client_secret=f"pi_test_{n}_secret_{n}",
            status="requires_payment_method",
        )
        self.intents[intent.intent_id] = intent
        self.by_idempotency_key[idempotency_key] = intent
        return intent

    async def retrieve_intent(self, intent_id, timeout=None):
        self.calls.append({"method": "retrieve_intent", "intent_id": intent_id})
        return self.intents[intent_id]

    def construct_event(self, payload, signature):
        if signature != VALID_SIGNATURE:
            raise WebhookSignatureInvalid()
        return json.loads(payload)

    def created(self) -> list[dict]:
        return [call for call in self.calls if call["method"] == "create_intent"]


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}", echo=False)
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    async def _make(email=None):
        counter["n"] += 1
        user = User(email=email or f"customer{counter['n']}@example.com")
        db.add(user)
        await db.commit()
        return user.id

    return _make


@pytest.fixture
def make_product(db):
    counter = {"n": 0}

    async def _make(product_id=None, price_cents=500, currency="EUR", is_active=True, sku=None, name=None):
        counter["n"] += 1
        product = Product(
            id=product_id,
            sku=sku or f"SKU-{counter['n']:04d}",
            name=name or f"Product {product_id}",
            price_cents=price_cents,
            currency=currency,
            is_active=is_active,
        )
        db.add(product)
        await db.commit()
        return product.id

    return _make


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
async def client(session_factory, gateway):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    sub_apps = (product_app, session_app, order_app, payment_app)
    for sub_app in sub_apps:
        sub_app.dependency_overrides[get_db] = override_get_db
    payment_app.dependency_overrides[get_payment_gateway] = lambda: gateway

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    for sub_app in sub_apps:
        sub_app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    return {"X-Internal-API-Key": INTERNAL_API_KEY}


@pytest.fixture
def auth_headers():
    def _headers(user_id: int) -> dict:
        token = create_access_token(user_id)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def webhook_signature():
    return VALID_SIGNATURE
