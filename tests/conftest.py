"""
Test Suite Configuration
"""
import os

# Required endpoints must exist before authorstack.main builds its module-level app
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("DOCUMENT_STORE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")

import json
from datetime import date
from decimal import Decimal
from typing import AsyncGenerator, Callable

import fakeredis
import httpx
import pytest

from authorstack.ai.openrouter import OpenRouterClient
from authorstack.books.service import BookService
from authorstack.config.settings import (
    AISettings,
    DatabaseSettings,
    DocumentStoreSettings,
    FeatureSettings,
    RateLimitSettings,
    RedisSettings,
    Settings,
    StripeSettings,
)
from authorstack.container import ServiceContainer
from authorstack.database.connection import Database
from authorstack.database.documents import DocumentBase
from authorstack.database.models import Base, Platform
from authorstack.sales.schemas import SaleRecordIn
from authorstack.sales.store import SalesStore
from authorstack.sales.sync_log import SyncLog
from authorstack.serving.cache import RedisCache

MEMORY_URL = "sqlite+aiosqlite:///:memory:"


class FakeClock:
    """Controllable time source for window-based limiters"""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_sale(
    user_id: str = "u1",
    book_id: str = "b1",
    platform: Platform = Platform.KDP,
    day: date = date(2024, 1, 1),
    revenue: str = "9.99",
    units: int = 1,
) -> SaleRecordIn:
    return SaleRecordIn(
        user_id=user_id,
        book_id=book_id,
        platform=platform,
        date=day,
        revenue=Decimal(revenue),
        units=units,
    )


def chat_completion(content) -> dict:
    """OpenRouter response body whose first choice carries ``content``"""
    if not isinstance(content, str):
        content = json.dumps(content)
    return {
        "id": "gen-test",
        "choices": [{"message": {"role": "assistant", "content": content}}],
        "usage": {"total_tokens": 42},
    }


def make_ai_client(handler: Callable[[httpx.Request], httpx.Response], api_key="test-key") -> OpenRouterClient:
    settings = AISettings(api_key=api_key)
    http_client = httpx.AsyncClient(
        base_url=settings.base_url,
        transport=httpx.MockTransport(handler),
    )
    return OpenRouterClient(settings, http_client=http_client)


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings"""
    return Settings(
        app_env="testing",
        debug=True,
        database=DatabaseSettings(url=MEMORY_URL),
        documents=DocumentStoreSettings(url=MEMORY_URL),
        redis=RedisSettings(url="redis://localhost:6379/15"),
        ai=AISettings(api_key=None),
        rate_limit=RateLimitSettings(enabled=False),
        features=FeatureSettings(ai_forecasting=True),
        stripe=StripeSettings(webhook_secret=None),
    )


@pytest.fixture
async def database() -> AsyncGenerator[Database, None]:
    """In-memory relational store with the sales tables"""
    db = Database.from_url(MEMORY_URL, name="sales")
    await db.create_all(Base)
    yield db
    await db.close()


@pytest.fixture
async def documents() -> AsyncGenerator[Database, None]:
    """In-memory document store with the books table"""
    db = Database.from_url(MEMORY_URL, name="documents")
    await db.create_all(DocumentBase)
    yield db
    await db.close()


@pytest.fixture
def redis_server() -> fakeredis.FakeServer:
    return fakeredis.FakeServer()


@pytest.fixture
async def redis_client(redis_server):
    client = fakeredis.FakeAsyncRedis(server=redis_server, decode_responses=True)
    yield client
    await client.aclose()


@pytest.fixture
def cache(redis_client) -> RedisCache:
    return RedisCache(redis_client, prefix="authorstack")


@pytest.fixture
def sales_store(database, cache) -> SalesStore:
    return SalesStore(database, cache, aggregates_ttl=60)


@pytest.fixture
def sync_log(database) -> SyncLog:
    return SyncLog(database)


@pytest.fixture
def book_service(documents, cache) -> BookService:
    return BookService(documents, cache, ttl=300)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def unconfigured_ai_client() -> OpenRouterClient:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("AI provider must not be called without an API key")

    return make_ai_client(handler, api_key=None)


@pytest.fixture
async def container(test_settings, database, documents, cache, unconfigured_ai_client) -> ServiceContainer:
    return ServiceContainer.build(
        test_settings,
        database=database,
        documents=documents,
        cache=cache,
        ai_client=unconfigured_ai_client,
    )


@pytest.fixture
async def api_client(container) -> AsyncGenerator[httpx.AsyncClient, None]:
    """HTTP client bound to the app in-process; lifespan is not run"""
    from authorstack.main import create_app

    app = create_app(container=container)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def auth_headers() -> dict:
    return {"X-User-Id": "u1"}
