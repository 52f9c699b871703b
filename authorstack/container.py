"""
Service Container

Builds every client and service from Settings once, at startup. Services
receive their collaborators explicitly; nothing is reached through module
globals.
"""

from dataclasses import dataclass
from typing import Optional

import structlog

from authorstack.ai.openrouter import OpenRouterClient
from authorstack.ai.service import AIService
from authorstack.books.service import BookService
from authorstack.config.settings import Settings
from authorstack.database.connection import Database
from authorstack.database.documents import DocumentBase
from authorstack.database.models import Base
from authorstack.ingestion.sync import SyncService
from authorstack.sales.dashboard import DashboardService
from authorstack.sales.store import SalesStore
from authorstack.sales.sync_log import SyncLog
from authorstack.serving.cache import RedisCache
from authorstack.serving.rate_limit import RateLimiter

logger = structlog.get_logger(__name__)


@dataclass
class ServiceContainer:
    settings: Settings
    database: Database
    documents: Database
    cache: RedisCache
    api_limiter: RateLimiter
    ai_limiter: RateLimiter
    ai_client: OpenRouterClient
    sales: SalesStore
    sync_log: SyncLog
    books: BookService
    dashboard: DashboardService
    ingestion: SyncService
    ai: AIService

    @classmethod
    def build(
        cls,
        settings: Settings,
        database: Optional[Database] = None,
        documents: Optional[Database] = None,
        cache: Optional[RedisCache] = None,
        ai_client: Optional[OpenRouterClient] = None,
    ) -> "ServiceContainer":
        """
        Wire the object graph. Pre-built clients may be passed in (tests pass
        SQLite databases, a fake Redis and a mocked AI transport).
        """
        database = database or Database.from_url(
            settings.database.url, name="sales", echo=settings.database.echo
        )
        documents = documents or Database.from_url(
            settings.documents.url, name="documents", echo=settings.documents.echo
        )
        cache = cache or RedisCache.from_settings(settings.redis)
        ai_client = ai_client or OpenRouterClient(settings.ai)

        prefix = settings.redis.key_prefix
        limits = settings.rate_limit
        api_limiter = RateLimiter(
            cache.client,
            max_requests=limits.api_requests,
            window_seconds=limits.api_window_seconds,
            prefix=f"{prefix}:ratelimit",
        )
        ai_limiter = RateLimiter(
            cache.client,
            max_requests=limits.ai_requests,
            window_seconds=limits.ai_window_seconds,
            prefix=f"{prefix}:ai-ratelimit",
        )

        ttl = settings.cache_ttl
        sales = SalesStore(database, cache, aggregates_ttl=ttl.sales)
        sync_log = SyncLog(database)
        books = BookService(documents, cache, ttl=ttl.book)

        return cls(
            settings=settings,
            database=database,
            documents=documents,
            cache=cache,
            api_limiter=api_limiter,
            ai_limiter=ai_limiter,
            ai_client=ai_client,
            sales=sales,
            sync_log=sync_log,
            books=books,
            dashboard=DashboardService(sales, sync_log, books, cache, ttl=ttl.dashboard),
            ingestion=SyncService(sales, sync_log, settings.features),
            ai=AIService(
                ai_client,
                ai_limiter,
                sales,
                books,
                cache,
                settings.features,
                insight_ttl=ttl.ai_insight,
            ),
        )

    async def startup(self, create_tables: bool = False) -> None:
        """
        Connect every required store. Raises on the first unreachable one.
        """
        await self.database.connect()
        await self.documents.connect()
        await self.cache.connect()

        if create_tables:
            await self.database.create_all(Base)
            await self.documents.create_all(DocumentBase)

        if not self.ai_client.is_configured():
            logger.warning("OPENROUTER_API_KEY not set, AI endpoints disabled")

    async def shutdown(self) -> None:
        await self.ai_client.close()
        await self.cache.close()
        await self.documents.close()
        await self.database.close()
