"""
Shared fixtures: in-memory storage, a SQLite-backed SqlStorage and an HTTP
client wired to the app with storage and Redis swapped for local fakes.
"""
import os
from decimal import Decimal

os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import httpx
import pytest
import pytest_asyncio
from fakeredis import aioredis as fake_aioredis
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from delivery_api import models  # noqa: F401
from delivery_api.core import redis_client
from delivery_api.db.database import Base
from delivery_api.schemas.driver import DriverCreate
from delivery_api.schemas.order import OrderCreate, OrderItem
from delivery_api.storage import get_storage
from delivery_api.storage.memory import MemoryStorage
from delivery_api.storage.sql import SqlStorage


def make_order_payload(**overrides) -> OrderCreate:
    data = {
        "customer_name": "أحمد",
        "customer_phone": "0791234567",
        "delivery_address": "عمّان، شارع الجامعة",
        "restaurant_id": "rest-1",
        "items": [
            OrderItem(name="شاورما دجاج", quantity=2, price=Decimal("7.50")),
            OrderItem(name="عصير برتقال", quantity=1, price=Decimal("5.00")),
        ],
        "delivery_fee": Decimal("5.00"),
    }
    data.update(overrides)
    return OrderCreate(**data)


def make_driver_payload(**overrides) -> DriverCreate:
    data = {"name": "Driver One", "phone": "0780000001"}
    data.update(overrides)
    return DriverCreate(**data)


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest_asyncio.fixture
async def sql_storage(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'delivery.db'}")

    # pysqlite defers BEGIN; emit it ourselves so SAVEPOINTs behave
    @event.listens_for(engine.sync_engine, "connect")
    def _do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    yield SqlStorage(factory)
    await engine.dispose()


@pytest_asyncio.fixture
async def fake_redis(monkeypatch):
    client = fake_aioredis.FakeRedis(decode_responses=True)
    monkeypatch.setattr(redis_client, "_redis_client", client)
    yield client
    await client.aclose()


@pytest_asyncio.fixture
async def client(storage, fake_redis):
    from delivery_api.main import app

    app.dependency_overrides[get_storage] = lambda: storage
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def order_payload():
    return make_order_payload


@pytest.fixture
def driver_payload():
    return make_driver_payload
