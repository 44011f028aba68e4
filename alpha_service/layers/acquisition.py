"""
Layer 1 – 数据获取层
封装 Finnhub（主数据源）、Stooq（免费日线 CSV）与维基百科（成分股页面）三个上游，
只负责发请求与失败分类，解析交给处理层。
"""

import logging
from typing import Any, Dict, Optional

from alpha_service.exceptions import MissingCredentialError
from alpha_service.layers.http import ResilientHttpClient

logger = logging.getLogger(__name__)

_WIKI_URLS = {
    "sp500": "https://en.wikipedia.org/wiki/List_of_S%26P_500_companies",
    "nasdaq100": "https://en.wikipedia.org/wiki/Nasdaq-100",
}


def to_stooq_symbol(symbol: str) -> str:
    """BRK.B → brk-b.us"""
    return f"{symbol.lower().replace('.', '-')}.us"


class AcquisitionLayer:
    """数据获取层：统一的上游拉取接口"""

    def __init__(
        self,
        http: ResilientHttpClient,
        finnhub_api_key: str,
        finnhub_base_url: str = "https://finnhub.io/api/v1",
        stooq_history_url: str = "https://stooq.com/q/d/l/",
        wiki_user_agent: str = "BasicAlpha/1.0 (constituent fallback)",
    ):
        self._http = http
        self._finnhub_key = finnhub_api_key.strip()
        self._finnhub_base = finnhub_base_url.rstrip("/")
        self._stooq_url = stooq_history_url
        self._wiki_user_agent = wiki_user_agent

    # ── Finnhub ───────────────────────────────────────────

    def _api_key(self) -> str:
        if not self._finnhub_key:
            raise MissingCredentialError("FINNHUB_API_KEY is missing")
        return self._finnhub_key

    async def fetch_finnhub(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """调用 Finnhub REST 接口，返回解码后的 JSON"""
        query = {k: _format_param(v) for k, v in (params or {}).items()}
        query["token"] = self._api_key()
        return await self._http.get_json(
            f"{self._finnhub_base}{path}", params=query, source="finnhub"
        )

    async def fetch_stock_candles(self, symbol: str, start_ts: int, end_ts: int) -> Any:
        return await self.fetch_finnhub(
            "/stock/candle",
            {"symbol": symbol, "resolution": "D", "from": start_ts, "to": end_ts, "adjusted": True},
        )

    async def fetch_index_constituents(self, index_symbol: str) -> Any:
        return await self.fetch_finnhub("/index/constituents", {"symbol": index_symbol})

    async def fetch_earnings_calendar(self, start_date: str, end_date: str) -> Any:
        return await self.fetch_finnhub("/calendar/earnings", {"from": start_date, "to": end_date})

    # ── Stooq ─────────────────────────────────────────────

    async def fetch_stooq_csv(self, symbol: str) -> str:
        """Stooq 全量日线 CSV（无需鉴权），日期过滤由调用方完成"""
        return await self._http.get_text(
            self._stooq_url,
            params={"s": to_stooq_symbol(symbol), "i": "d"},
            source="stooq",
        )

    # ── 维基百科 ───────────────────────────────────────────

    async def fetch_wikipedia_page(self, index: str) -> str:
        return await self._http.get_text(
            _WIKI_URLS[index],
            headers={"User-Agent": self._wiki_user_agent},
            source="wikipedia",
        )


def _format_param(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
