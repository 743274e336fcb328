"""
Test Configuration — Fixtures for async DB, test client, fake upstreams and seed data.

Uses per-test transactions with SAVEPOINT/rollback so each test gets a
clean database state while sharing the same session-level schema.
"""

import json
import uuid
from collections.abc import Callable

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine

from api.deps import RequestContext, get_channel_http_client, get_current_user, get_db, get_tenant_db
from api.main import app
from core.security import seal_credentials
from db.session import Base

# Use in-memory SQLite for tests (no RLS, no JSONB).
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

ACCOUNT_ID = "00000000-0000-0000-0000-000000000001"
OTHER_ACCOUNT_ID = "00000000-0000-0000-0000-000000000002"

SIIGO_API = "https://siigo.test"
SHOPIFY_DOMAIN = "fluxi-test.myshopify.com"
WOO_STORE = "https://woo.test"


@pytest.fixture(scope="session")
async def test_engine():
    """Create a test database engine and build all tables once."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)

    # pysqlite's implicit transaction handling breaks SAVEPOINT; emit BEGIN ourselves
    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def test_db(test_engine):
    """Create a test session wrapped in a transaction that rolls back after each test."""
    async with test_engine.connect() as conn:
        trans = await conn.begin()
        # Session commits release a SAVEPOINT instead of ending the outer transaction
        session = AsyncSession(
            bind=conn,
            expire_on_commit=False,
            join_transaction_mode="create_savepoint",
        )

        yield session

        await session.close()
        await trans.rollback()


@pytest.fixture
def mock_user():
    """Mock authenticated request context."""
    return RequestContext(
        user_id="test-user-id",
        account_id=uuid.UUID(ACCOUNT_ID),
        role="admin",
    )


class FakeUpstream:
    """Callable handed to httpx.MockTransport. Records every request it answers."""

    def __init__(self):
        self.handler: Callable[[httpx.Request], httpx.Response] | None = None
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.handler is None:
            return httpx.Response(503, text="no upstream configured")
        return self.handler(request)

    def paths(self) -> list[str]:
        return [request.url.path for request in self.requests]


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
async def client(test_db, mock_user, upstream):
    """Create an async test client with dependency overrides."""

    async def override_get_db():
        yield test_db

    def override_get_current_user():
        return mock_user

    async def override_get_tenant_db():
        """Skip set_config (SQLite doesn't support it), return session directly."""
        return test_db

    async def override_get_channel_http_client():
        async with httpx.AsyncClient(transport=httpx.MockTransport(upstream)) as http_client:
            yield http_client

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user
    app.dependency_overrides[get_tenant_db] = override_get_tenant_db
    app.dependency_overrides[get_channel_http_client] = override_get_channel_http_client

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


# ─── Fake Siigo API ─────────────────────────────────────────────────────────


def _siigo_product(external_id: str, code: str | None, name: str, price="1000", stock=5, active=True) -> dict:
    return {
        "id": external_id,
        "code": code,
        "name": name,
        "description": f"{name} description",
        "active": active,
        "available_quantity": stock,
        "prices": [{"currency_code": "COP", "price_list": [{"position": 1, "value": price}]}],
    }


@pytest.fixture
def siigo_product():
    """Factory for a Siigo /v1/products result entry."""
    return _siigo_product


@pytest.fixture
def siigo_api():
    """Factory: a MockTransport handler serving `products` the way Siigo pages them."""

    def build(products: list[dict], *, auth_status: int = 200, fail_page: int | None = None, total: int | None = None):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/auth":
                if auth_status != 200:
                    return httpx.Response(auth_status, text="invalid credentials")
                body = json.loads(request.content)
                assert body["username"] and body["access_key"]
                return httpx.Response(200, json={"access_token": "siigo-token", "expires_in": 86400})

            if request.url.path == "/v1/products":
                assert request.headers["Authorization"] == "Bearer siigo-token"
                assert request.headers.get("Partner-Id")
                page = int(request.url.params.get("page", "1"))
                size = int(request.url.params.get("page_size", "100"))
                if fail_page == page:
                    return httpx.Response(500, text="upstream exploded")
                chunk = products[(page - 1) * size : page * size]
                return httpx.Response(
                    200,
                    json={
                        "pagination": {
                            "page": page,
                            "page_size": size,
                            "total_results": len(products) if total is None else total,
                        },
                        "results": chunk,
                    },
                )
            return httpx.Response(404)

        return handler

    return build


# ─── Seed data ──────────────────────────────────────────────────────────────


@pytest.fixture
async def seeded_db(test_db):
    """Seed two accounts and one channel of each type for the first account."""
    from db.models import Account, Channel

    account_id = uuid.UUID(ACCOUNT_ID)
    other_account_id = uuid.UUID(OTHER_ACCOUNT_ID)

    test_db.add_all(
        [
            Account(account_id=account_id, name="Tienda Uno", slug="tienda-uno", email="ops@tienda-uno.co"),
            Account(account_id=other_account_id, name="Tienda Dos", slug="tienda-dos", email="ops@tienda-dos.co"),
        ]
    )
    await test_db.flush()

    siigo = Channel(
        account_id=account_id,
        name="Siigo ERP",
        channel_type="siigo",
        credentials=seal_credentials({"username": "api@tienda-uno.co", "access_key": "siigo-secret"}),
        config={"api_url": SIIGO_API, "partner_id": "FluxiTest"},
        status="pending",
    )
    shopify = Channel(
        account_id=account_id,
        name="Shopify Store",
        channel_type="shopify",
        credentials=seal_credentials({"access_token": "shpat_test"}),
        config={"shop_domain": SHOPIFY_DOMAIN},
        status="pending",
    )
    woocommerce = Channel(
        account_id=account_id,
        name="WooCommerce Store",
        channel_type="woocommerce",
        credentials=seal_credentials({"consumer_key": "ck_test", "consumer_secret": "cs_test"}),
        config={"store_url": WOO_STORE},
        status="pending",
    )
    foreign = Channel(
        account_id=other_account_id,
        name="Other Siigo",
        channel_type="siigo",
        credentials=seal_credentials({"username": "x@y.co", "access_key": "k"}),
        config={"api_url": SIIGO_API},
        status="pending",
    )
    test_db.add_all([siigo, shopify, woocommerce, foreign])
    await test_db.flush()
    await test_db.commit()

    return {
        "account_id": account_id,
        "other_account_id": other_account_id,
        "siigo": siigo,
        "shopify": shopify,
        "woocommerce": woocommerce,
        "foreign": foreign,
    }
