"""
依赖注入：从 app.state.services 取出进程级服务实例
测试中可通过 app.dependency_overrides 替换
"""

from fastapi import Request

from alpha_service.layers.cache import TTLCache
from alpha_service.services.container import ServiceContainer
from alpha_service.services.correlation_service import CorrelationService
from alpha_service.services.earnings_service import EarningsService
from alpha_service.services.events_service import EventsService
from alpha_service.services.market_data_service import MarketDataService
from alpha_service.services.universe_service import UniverseService


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


def get_cache(request: Request) -> TTLCache:
    return get_services(request).cache


def get_market_data_service(request: Request) -> MarketDataService:
    return get_services(request).market_data


def get_universe_service(request: Request) -> UniverseService:
    return get_services(request).universe


def get_correlation_service(request: Request) -> CorrelationService:
    return get_services(request).correlation


def get_earnings_service(request: Request) -> EarningsService:
    return get_services(request).earnings


def get_events_service(request: Request) -> EventsService:
    return get_services(request).events
