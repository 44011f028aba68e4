"""
相关性编排服务
并发拉取多只股票日 K → 计算收益率 → 按日期对齐 → 构建（滞后 / 滚动）相关矩阵
"""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from alpha_service.constants import MIN_OBSERVATIONS
from alpha_service.exceptions import InsufficientDataError
from alpha_service.layers.analysis import (
    align_series_by_date,
    build_correlation_matrix,
    build_lagged_results,
    rolling_correlation,
    to_daily_returns,
)
from alpha_service.layers.concurrency import map_with_concurrency
from alpha_service.models.market import (
    AlignedSeries,
    CorrelationResult,
    LaggedCorrelationResult,
    ReturnPoint,
    RollingCorrelationResult,
)
from alpha_service.services.market_data_service import MarketDataService

logger = logging.getLogger(__name__)


def normalize_symbols(symbols: Sequence[str]) -> List[str]:
    """大写 + 去重，保持首次出现的顺序"""
    return list(dict.fromkeys(s.strip().upper() for s in symbols))


class CorrelationService:
    """相关性计算服务"""

    def __init__(
        self,
        market_data: MarketDataService,
        concurrency: int = 5,
        min_observations: int = MIN_OBSERVATIONS,
    ):
        self._market = market_data
        self._concurrency = concurrency
        self._min_observations = min_observations

    async def _load_returns(
        self, symbols: List[str], start_date: str, end_date: str
    ) -> Tuple[Dict[str, List[ReturnPoint]], List[str]]:
        """
        并发获取每只股票的收益率序列

        单只股票获取失败（任何原因）或收益率点数 < 2 时记为剔除，不影响其他股票。
        返回 (按输入顺序的收益率字典, 剔除列表)
        """

        async def fetch(symbol: str) -> Optional[List[ReturnPoint]]:
            try:
                candles = await self._market.get_daily_candles(symbol, start_date, end_date)
            except Exception as exc:
                logger.warning(f"{symbol} 行情获取失败，已剔除: {exc}")
                return None
            returns = to_daily_returns(candles)
            if len(returns) < 2:
                logger.info(f"{symbol} 有效收益率不足 2 个，已剔除")
                return None
            return returns

        fetched = await map_with_concurrency(symbols, self._concurrency, fetch)

        series: Dict[str, List[ReturnPoint]] = {}
        dropped: List[str] = []
        for symbol, returns in zip(symbols, fetched):
            if returns is None:
                dropped.append(symbol)
            else:
                series[symbol] = returns
        return series, dropped

    def _check_sufficient(self, aligned: AlignedSeries) -> None:
        if len(aligned.symbols) < 2:
            raise InsufficientDataError("Not enough valid symbols with price history")
        if len(aligned.dates) < self._min_observations:
            raise InsufficientDataError(
                f"Need at least {self._min_observations} overlapping observations. "
                "Adjust range or symbols."
            )

    async def _aligned(
        self, symbols: Sequence[str], start_date: str, end_date: str
    ) -> Tuple[AlignedSeries, List[str]]:
        series, dropped = await self._load_returns(normalize_symbols(symbols), start_date, end_date)
        aligned = align_series_by_date(series)
        self._check_sufficient(aligned)
        return aligned, dropped

    # ── 对外接口 ──────────────────────────────────────────

    async def compute_correlation(
        self, symbols: Sequence[str], start_date: str, end_date: str
    ) -> CorrelationResult:
        aligned, dropped = await self._aligned(symbols, start_date, end_date)
        matrix = build_correlation_matrix(aligned.symbols, aligned.aligned_values)
        logger.info(
            f"相关矩阵完成: {len(aligned.symbols)} 只股票, {len(aligned.dates)} 个观测, 剔除 {dropped}"
        )
        return CorrelationResult(
            matrix=matrix, observations=len(aligned.dates), dropped_symbols=dropped
        )

    async def compute_lagged_correlation(
        self,
        symbols: Sequence[str],
        start_date: str,
        end_date: str,
        lags: Sequence[int],
    ) -> LaggedCorrelationResult:
        aligned, dropped = await self._aligned(symbols, start_date, end_date)
        results = build_lagged_results(aligned.symbols, aligned.aligned_values, list(lags))
        return LaggedCorrelationResult(
            results=results, observations=len(aligned.dates), dropped_symbols=dropped
        )

    async def compute_rolling_correlation(
        self,
        left: str,
        right: str,
        start_date: str,
        end_date: str,
        window: int = 60,
    ) -> RollingCorrelationResult:
        """两只股票的滚动相关；观测数需覆盖至少一个完整窗口"""
        pair = normalize_symbols([left, right])
        series, dropped = await self._load_returns(pair, start_date, end_date)
        if len(pair) < 2 or dropped:
            raise InsufficientDataError("Not enough valid symbols with price history")

        left_symbol, right_symbol = pair
        observations = len(align_series_by_date(series).dates)
        if observations < window:
            raise InsufficientDataError(
                f"Need at least {window} overlapping observations for a {window}-day window. "
                "Adjust range or window."
            )
        points = rolling_correlation(series[left_symbol], series[right_symbol], window)
        return RollingCorrelationResult(
            left=left_symbol,
            right=right_symbol,
            window=window,
            observations=observations,
            points=points,
        )
