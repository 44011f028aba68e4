"""
行情数据服务
整合获取、缓存、处理三层：日 K 线（Finnhub → Stooq 降级）、指数成分股、财报日历
"""

import logging
from typing import List

from alpha_service.dates import add_days, to_unix_seconds, today_utc
from alpha_service.exceptions import ProviderError
from alpha_service.layers.acquisition import AcquisitionLayer
from alpha_service.layers.cache import TTLCache
from alpha_service.layers.processing import ProcessingLayer
from alpha_service.models.market import Candle, EarningsEvent

logger = logging.getLogger(__name__)


class MarketDataService:
    """行情数据业务服务"""

    def __init__(
        self,
        cache: TTLCache,
        acquisition: AcquisitionLayer,
        processing: ProcessingLayer,
        price_ttl: float,
        universe_ttl: float,
        earnings_ttl: float,
    ):
        self._cache = cache
        self._acq = acquisition
        self._proc = processing
        self._price_ttl = price_ttl
        self._universe_ttl = universe_ttl
        self._earnings_ttl = earnings_ttl

    # ── 日 K 线 ───────────────────────────────────────────

    async def get_daily_candles(self, symbol: str, start_date: str, end_date: str) -> List[Candle]:
        """
        获取日 K 线（按 symbol + 日期区间缓存）

        Finnhub 返回 403（套餐不含该接口）时透明降级到 Stooq；
        其他失败不做降级，直接向上抛出。
        """
        upper = symbol.upper()
        key = f"finnhub:candles:{upper}:{start_date}:{end_date}"

        async def load() -> List[Candle]:
            try:
                payload = await self._acq.fetch_stock_candles(
                    upper, to_unix_seconds(start_date), to_unix_seconds(end_date)
                )
                return self._proc.parse_finnhub_candles(payload)
            except ProviderError as exc:
                if not exc.access_denied:
                    raise
                logger.info(f"Finnhub 无日线权限，{upper} 降级到 Stooq")
                return await self._stooq_candles(upper, start_date, end_date)

        return await self._cache.get_or_set(key, self._price_ttl, load)

    async def _stooq_candles(self, symbol: str, start_date: str, end_date: str) -> List[Candle]:
        text = await self._acq.fetch_stooq_csv(symbol)
        candles = self._proc.parse_stooq_csv(text)
        return self._proc.filter_date_range(candles, start_date, end_date)

    async def get_recent_daily_candles(self, symbol: str, lookback_days: int = 60) -> List[Candle]:
        end = today_utc()
        return await self.get_daily_candles(symbol, add_days(end, -lookback_days), end)

    # ── 成分股 / 财报日历 ─────────────────────────────────

    async def get_index_constituents(self, index_symbol: str) -> List[str]:
        async def load() -> List[str]:
            payload = await self._acq.fetch_index_constituents(index_symbol)
            return self._proc.parse_constituents(payload)

        return await self._cache.get_or_set(
            f"finnhub:index:{index_symbol}", self._universe_ttl, load
        )

    async def get_earnings_calendar(self, start_date: str, end_date: str) -> List[EarningsEvent]:
        async def load() -> List[EarningsEvent]:
            payload = await self._acq.fetch_earnings_calendar(start_date, end_date)
            return self._proc.parse_earnings_calendar(payload)

        return await self._cache.get_or_set(
            f"finnhub:earnings:{start_date}:{end_date}", self._earnings_ttl, load
        )
