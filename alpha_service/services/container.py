"""
服务装配
每个进程创建一次，挂在 app.state 上；测试可直接构造新实例或替换其中的服务。
"""

import logging
from typing import Optional

import httpx

from alpha_service.config import AlphaServiceSettings
from alpha_service.layers.acquisition import AcquisitionLayer
from alpha_service.layers.cache import TTLCache
from alpha_service.layers.http import ResilientHttpClient
from alpha_service.layers.processing import ProcessingLayer
from alpha_service.services.correlation_service import CorrelationService
from alpha_service.services.earnings_service import EarningsService
from alpha_service.services.events_service import EventsService
from alpha_service.services.market_data_service import MarketDataService
from alpha_service.services.universe_service import UniverseService

logger = logging.getLogger(__name__)


class ServiceContainer:
    """持有共享缓存、HTTP 客户端与全部业务服务"""

    def __init__(
        self,
        settings: AlphaServiceSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        cache: Optional[TTLCache] = None,
    ):
        self.settings = settings
        self.cache = cache or TTLCache()
        self.http = ResilientHttpClient(
            httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT, transport=transport),
            max_retries=settings.HTTP_MAX_RETRIES,
            backoff_base=settings.HTTP_BACKOFF_BASE,
        )
        self.processing = ProcessingLayer()
        self.acquisition = AcquisitionLayer(
            self.http,
            finnhub_api_key=settings.FINNHUB_API_KEY,
            finnhub_base_url=settings.FINNHUB_BASE_URL,
            stooq_history_url=settings.STOOQ_HISTORY_URL,
            wiki_user_agent=settings.WIKI_USER_AGENT,
        )
        self.market_data = MarketDataService(
            self.cache,
            self.acquisition,
            self.processing,
            price_ttl=settings.PRICE_CACHE_TTL,
            universe_ttl=settings.UNIVERSE_CACHE_TTL,
            earnings_ttl=settings.EARNINGS_CACHE_TTL,
        )
        self.universe = UniverseService(
            self.cache,
            self.market_data,
            self.acquisition,
            self.processing,
            universe_ttl=settings.UNIVERSE_CACHE_TTL,
        )
        self.correlation = CorrelationService(
            self.market_data, concurrency=settings.FETCH_CONCURRENCY
        )
        self.earnings = EarningsService(
            self.market_data, self.universe, concurrency=settings.FETCH_CONCURRENCY
        )
        self.events = EventsService(settings.MACRO_EVENTS_PATH)

    async def aclose(self) -> None:
        await self.http.aclose()
        logger.info("HTTP 客户端已关闭")
