"""
测试辅助：示例 K 线生成 + 基于 httpx.MockTransport 的上游（Finnhub / Stooq / 维基百科）替身
"""

import math
from datetime import date, timedelta
from typing import Dict, List, Optional

import httpx

from alpha_service.config import AlphaServiceSettings
from alpha_service.dates import to_unix_seconds
from alpha_service.models.market import Candle
from alpha_service.services.container import ServiceContainer


def make_candles(closes: List[float], start: str = "2024-01-01", step_days: int = 1) -> List[Candle]:
    first = date.fromisoformat(start)
    return [
        Candle(
            date=(first + timedelta(days=i * step_days)).isoformat(),
            open=c,
            high=c * 1.01,
            low=c * 0.99,
            close=c,
            volume=1_000_000,
        )
        for i, c in enumerate(closes)
    ]


def wave_closes(n: int, phase: float = 0.0, drift: float = 0.05) -> List[float]:
    """非单调、非常数的收盘价序列"""
    return [round(100 + 8 * math.sin(i * 0.7 + phase) + drift * i, 4) for i in range(n)]


def finnhub_payload(candles: List[Candle]) -> dict:
    return {
        "s": "ok",
        "t": [to_unix_seconds(c.date) for c in candles],
        "o": [c.open for c in candles],
        "h": [c.high for c in candles],
        "l": [c.low for c in candles],
        "c": [c.close for c in candles],
        "v": [c.volume for c in candles],
    }


def stooq_csv(candles: List[Candle]) -> str:
    lines = ["Date,Open,High,Low,Close,Volume"]
    lines += [f"{c.date},{c.open},{c.high},{c.low},{c.close},{c.volume}" for c in candles]
    return "\n".join(lines)


WIKI_SP500_HTML = """
<html><body>
<table class="wikitable"><tbody>
  <tr><th>Date</th><th>Added ticker</th><th>Reason</th></tr>
  <tr><td>AAA</td><td>BBB</td><td>merger</td></tr>
</tbody></table>
<table class="wikitable sortable" id="constituents"><tbody>
  <tr><th>Symbol</th><th>Security</th><th>GICS Sector</th></tr>
  <tr><td><a href="#">MMM</a></td><td>3M</td><td>Industrials</td></tr>
  <tr><td>AOS&#8203;</td><td>A. O. Smith</td><td>Industrials</td></tr>
  <tr><td>brk.b</td><td>Berkshire Hathaway</td><td>Financials</td></tr>
  <tr><td>MMM</td><td>3M duplicate</td><td>Industrials</td></tr>
  <tr><td>!!</td><td>Junk</td><td>-</td></tr>
</tbody></table>
</body></html>
"""


class FakeUpstream:
    """可配置的上游替身，记录所有请求"""

    def __init__(self):
        self.candles: Dict[str, List[Candle]] = {}
        self.candle_status: Dict[str, int] = {}
        self.denied_paths: set = set()
        self.constituents: Dict[str, List[str]] = {}
        self.constituents_status: Optional[int] = None
        self.earnings: List[dict] = []
        self.stooq: Dict[str, str] = {}
        self.wiki_html: Dict[str, str] = {}  # sp500 / nasdaq100 -> html
        self.requests: List[httpx.Request] = []

    def count(self, host: str, path_suffix: str = "") -> int:
        return sum(
            1 for r in self.requests if r.url.host == host and r.url.path.endswith(path_suffix)
        )

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = request.url

        if url.host == "finnhub.io":
            path = url.path[len("/api/v1"):]
            if path in self.denied_paths:
                return httpx.Response(403, text="You don't have access to this resource.")
            if path == "/stock/candle":
                symbol = url.params["symbol"]
                if symbol in self.candle_status:
                    return httpx.Response(self.candle_status[symbol], text="upstream error")
                candles = self.candles.get(symbol)
                if candles is None:
                    return httpx.Response(200, json={"s": "no_data"})
                return httpx.Response(200, json=finnhub_payload(candles))
            if path == "/index/constituents":
                if self.constituents_status:
                    return httpx.Response(self.constituents_status, text="upstream error")
                symbol = url.params["symbol"]
                return httpx.Response(
                    200, json={"symbol": symbol, "constituents": self.constituents.get(symbol, [])}
                )
            if path == "/calendar/earnings":
                return httpx.Response(200, json={"earningsCalendar": self.earnings})

        if url.host == "stooq.com":
            text = self.stooq.get(url.params["s"])
            return httpx.Response(200, text=text if text is not None else "No data")

        if url.host == "en.wikipedia.org":
            index = "nasdaq100" if "Nasdaq-100" in url.path else "sp500"
            html = self.wiki_html.get(index)
            if html is None:
                return httpx.Response(404, text="not found")
            return httpx.Response(200, text=html)

        return httpx.Response(404, text="unknown route")


def build_container(upstream: FakeUpstream, **overrides) -> ServiceContainer:
    params = {"FINNHUB_API_KEY": "test-key", "HTTP_BACKOFF_BASE": 0.0}
    params.update(overrides)
    return ServiceContainer(AlphaServiceSettings(**params), transport=httpx.MockTransport(upstream))
