"""
财报日历服务
股票池过滤后的财报事件，并附带基于近期 K 线的预期波动
"""

import logging
from typing import List, Optional

from alpha_service.constants import EARNINGS_PRICE_LOOKBACK_DAYS
from alpha_service.exceptions import ProviderError
from alpha_service.layers.analysis import calculate_expected_move
from alpha_service.layers.concurrency import map_with_concurrency
from alpha_service.models.market import EarningsEvent, EarningsItem, EarningsResult
from alpha_service.services.market_data_service import MarketDataService
from alpha_service.services.universe_service import UniverseService

logger = logging.getLogger(__name__)

ACCESS_LIMITED_WARNING = "Finnhub plan does not include earnings calendar access. Showing no events."
PARTIAL_WARNING = "Some expected move values could not be computed due to data limits."


def normalize_hour(hour: Optional[str]) -> str:
    normalized = (hour or "dmh").lower()
    if normalized in ("bmo", "amc"):
        return normalized
    return "dmh"


class EarningsService:
    """财报日历业务服务"""

    def __init__(
        self,
        market_data: MarketDataService,
        universe: UniverseService,
        concurrency: int = 5,
    ):
        self._market = market_data
        self._universe = universe
        self._concurrency = concurrency

    async def get_earnings(
        self,
        start_date: str,
        end_date: str,
        scope: str = "both",
        symbol: Optional[str] = None,
    ) -> EarningsResult:
        """
        获取财报事件

        财报日历无权限（403）时降级为空列表并返回 warning；
        单只股票预期波动计算失败时置 0 并标记 partial。
        """
        universe = await self._universe.resolve_universe(scope)

        access_limited = False
        try:
            calendar = await self._market.get_earnings_calendar(start_date, end_date)
        except ProviderError as exc:
            if not exc.access_denied:
                raise
            logger.warning("Finnhub 套餐不含财报日历，返回空结果")
            access_limited = True
            calendar = []

        allowed = set(universe.symbols)
        wanted = symbol.upper() if symbol else None
        filtered = [
            e for e in calendar
            if e.symbol.upper() in allowed and (wanted is None or e.symbol.upper() == wanted)
        ]

        failures: List[str] = []

        async def enrich(event: EarningsEvent) -> EarningsItem:
            upper = event.symbol.upper()
            pct = abs_move = 0.0
            try:
                candles = await self._market.get_recent_daily_candles(
                    upper, EARNINGS_PRICE_LOOKBACK_DAYS
                )
                move = calculate_expected_move(candles)
                pct, abs_move = move.expected_move_pct, move.expected_move_abs
            except Exception as exc:
                logger.warning(f"{upper} 预期波动计算失败: {exc}")
                failures.append(upper)
            return EarningsItem(
                symbol=upper,
                company_name=upper,
                date=event.date,
                hour=normalize_hour(event.hour),
                eps_estimate=event.eps_estimate,
                revenue_estimate=event.revenue_estimate,
                expected_move_pct=pct,
                expected_move_abs=abs_move,
            )

        items = await map_with_concurrency(filtered, self._concurrency, enrich)
        # 日期升序，同日按预期波动降序
        items.sort(key=lambda i: -i.expected_move_pct)
        items.sort(key=lambda i: i.date)

        warning = None
        if access_limited:
            warning = ACCESS_LIMITED_WARNING
        elif failures:
            warning = PARTIAL_WARNING

        return EarningsResult(
            items=items,
            partial=access_limited or bool(failures),
            warning=warning,
        )
