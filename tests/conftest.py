import os

os.environ.setdefault("SESSION_SECRET_KEY", "test-session-secret")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import httpx
import pytest
from decimal import Decimal
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from storefront.core.catalog_client import CatalogClient
from storefront.core.payment_gateway import RazorpayGateway
from storefront.db.base import Base
from storefront.db.documents import DocumentStore
from storefront.db.models import Document  # noqa: F401
from storefront.schemas.cart import CartLineItem
from storefront.services.cart import CartStore


DATABASE_URL = "sqlite+aiosqlite:///:memory:"

CATALOG = {
    "P1": {"stock": 3, "sku": "MAIN-SKU"},
    "P2": {"stock": 0, "basesku": "BASE-P2"},
    "X": {"stock": 10},
    "A": {"stock": 8, "sku": "SKU-A"},
}


@pytest.fixture
async def engine():
    engine = create_async_engine(DATABASE_URL, echo=False, future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def db_session(engine):
    AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with AsyncSessionLocal() as session:
        yield session


@pytest.fixture
def document_store(db_session):
    return DocumentStore(db_session)


def catalog_handler(request: httpx.Request) -> httpx.Response:
    product_id = request.url.path.rsplit("/", 1)[-1]
    if product_id not in CATALOG:
        return httpx.Response(404, json={"detail": "Not found"})
    return httpx.Response(200, json={"id": product_id, **CATALOG[product_id]})


@pytest.fixture
async def catalog():
    client = CatalogClient(base_url="http://catalog.test", transport=httpx.MockTransport(catalog_handler))
    yield client
    await client.close()


@pytest.fixture
async def gateway():
    gateway = RazorpayGateway(key_id="rzp_test_key", key_secret="")
    yield gateway
    await gateway.close()


@pytest.fixture
def storage():
    return {}


@pytest.fixture
def cart(storage):
    return CartStore(storage)


def make_item(product_id: str = "A", price="100", quantity: int = 1, **extra) -> CartLineItem:
    return CartLineItem(id=product_id, title=f"Product {product_id}", price=Decimal(price), quantity=quantity, **extra)


@pytest.fixture
def item():
    return make_item
