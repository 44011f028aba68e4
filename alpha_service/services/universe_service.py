"""
股票池服务
按指数解析成分股：Finnhub → 维基百科抓取 → 内置静态列表，首次成功即返回。
"""

import asyncio
import logging
from typing import List

from alpha_service.constants import INDEX_SYMBOLS
from alpha_service.exceptions import ProviderError
from alpha_service.layers.acquisition import AcquisitionLayer
from alpha_service.layers.cache import TTLCache
from alpha_service.layers.processing import ProcessingLayer
from alpha_service.models.market import UniverseData
from alpha_service.services.market_data_service import MarketDataService

logger = logging.getLogger(__name__)

SOURCE_FINNHUB = "Finnhub index/constituents"
SOURCE_WIKIPEDIA = "Wikipedia constituents fallback"
SOURCE_BUILTIN = "Built-in fallback universe"

STATIC_FALLBACK = {
    "sp500": [
        "AAPL", "MSFT", "AMZN", "GOOGL", "GOOG", "META", "NVDA", "TSLA", "BRK.B", "JPM",
        "V", "JNJ", "UNH", "XOM", "PG", "MA", "HD", "MRK", "AVGO", "PEP",
        "COST", "ABBV", "KO", "ADBE", "CRM", "BAC", "WMT", "MCD", "NFLX", "AMD",
        "TMO", "LIN", "CSCO", "ACN", "DHR", "ORCL", "TXN", "ABT", "QCOM", "CMCSA",
    ],
    "nasdaq100": [
        "AAPL", "MSFT", "AMZN", "GOOGL", "GOOG", "META", "NVDA", "TSLA", "AVGO", "COST",
        "NFLX", "AMD", "ADBE", "CSCO", "PEP", "CMCSA", "TMUS", "QCOM", "TXN", "AMGN",
        "INTU", "INTC", "ISRG", "BKNG", "GILD", "ADP", "LRCX", "REGN", "PANW", "SNPS",
        "KLAC", "VRTX", "MNST", "MELI", "ASML", "MU", "PDD", "CDNS", "CTAS", "PYPL",
    ],
}


class UniverseService:
    """股票池解析服务"""

    def __init__(
        self,
        cache: TTLCache,
        market_data: MarketDataService,
        acquisition: AcquisitionLayer,
        processing: ProcessingLayer,
        universe_ttl: float,
    ):
        self._cache = cache
        self._market = market_data
        self._acq = acquisition
        self._proc = processing
        self._ttl = universe_ttl

    async def resolve_universe(self, scope: str) -> UniverseData:
        """
        解析股票池

        Args:
            scope: sp500 / nasdaq100 / both（both 并行解析两个指数后取并集）
        """
        if scope not in ("sp500", "nasdaq100", "both"):
            raise ValueError(f"Unknown index scope: {scope}")

        async def load() -> UniverseData:
            if scope != "both":
                return await self._load_single(scope)

            sp500, nasdaq100 = await asyncio.gather(
                self._load_single("sp500"), self._load_single("nasdaq100")
            )
            return UniverseData(
                symbols=sorted(set(sp500.symbols) | set(nasdaq100.symbols)),
                sources=list(dict.fromkeys(sp500.sources + nasdaq100.sources)),
            )

        return await self._cache.get_or_set(f"universe:{scope}", self._ttl, load)

    async def _load_single(self, index: str) -> UniverseData:
        try:
            symbols = await self._market.get_index_constituents(INDEX_SYMBOLS[index])
            if symbols:
                return UniverseData(symbols=_dedupe(symbols), sources=[SOURCE_FINNHUB])
            logger.warning(f"Finnhub 返回空成分股列表（{index}），尝试维基百科")
        except ProviderError as exc:
            if not exc.access_denied:
                raise
            logger.info(f"Finnhub 无成分股权限（{index}），尝试维基百科")

        try:
            html = await self._acq.fetch_wikipedia_page(index)
            wiki_symbols = self._proc.extract_symbols_from_html(html)
            if wiki_symbols:
                return UniverseData(symbols=_dedupe(wiki_symbols), sources=[SOURCE_WIKIPEDIA])
            logger.warning(f"维基百科页面未解析出成分股（{index}）")
        except Exception as exc:
            logger.warning(f"维基百科成分股获取失败（{index}）: {exc}")

        logger.warning(f"使用内置股票池（{index}）")
        return UniverseData(symbols=list(STATIC_FALLBACK[index]), sources=[SOURCE_BUILTIN])


def _dedupe(symbols: List[str]) -> List[str]:
    return list(dict.fromkeys(s.upper() for s in symbols))
