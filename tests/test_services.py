"""
业务服务单元测试

覆盖范围：
  - 行情数据服务（Finnhub → Stooq 降级、缓存）
  - 股票池服务（Finnhub → 维基百科 → 内置列表）
  - 相关性编排（剔除标的、数据不足）
  - 财报日历（无权限降级、预期波动、部分失败）
  - 宏观事件日历
"""

import asyncio
import json
import os
import sys
from unittest.mock import AsyncMock, MagicMock

import pytest

# 确保项目根目录在 sys.path
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from alpha_service.config import AlphaServiceSettings  # noqa: E402
from alpha_service.dates import add_days, to_unix_seconds, today_utc  # noqa: E402
from alpha_service.exceptions import (  # noqa: E402
    FailureKind,
    InsufficientDataError,
    MissingCredentialError,
    ProviderError,
)
from alpha_service.layers.cache import TTLCache  # noqa: E402
from alpha_service.layers.processing import ProcessingLayer  # noqa: E402
from alpha_service.services.correlation_service import normalize_symbols  # noqa: E402
from alpha_service.services.earnings_service import (  # noqa: E402
    ACCESS_LIMITED_WARNING,
    PARTIAL_WARNING,
    normalize_hour,
)
from alpha_service.services.events_service import EventsService  # noqa: E402
from alpha_service.services.universe_service import (  # noqa: E402
    SOURCE_BUILTIN,
    SOURCE_FINNHUB,
    SOURCE_WIKIPEDIA,
    STATIC_FALLBACK,
    UniverseService,
)
from helpers import (  # noqa: E402
    WIKI_SP500_HTML,
    FakeUpstream,
    build_container,
    make_candles,
    stooq_csv,
    wave_closes,
)


def _denied(source="finnhub"):
    return ProviderError(FailureKind.ACCESS_DENIED, source, "no access", status=403)


# ─────────────────────────────────────────────────────────
# 1. 配置
# ─────────────────────────────────────────────────────────

class TestConfig:
    def test_defaults(self):
        s = AlphaServiceSettings(FINNHUB_API_KEY="")
        assert s.PORT == 8001
        assert s.HTTP_MAX_RETRIES == 2
        assert s.FETCH_CONCURRENCY == 5
        assert s.MACRO_EVENTS_PATH.endswith("macro_events.json")

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("FETCH_CONCURRENCY", "8")
        monkeypatch.setenv("PRICE_CACHE_TTL", "60")
        s = AlphaServiceSettings()
        assert s.FETCH_CONCURRENCY == 8
        assert s.PRICE_CACHE_TTL == 60


# ─────────────────────────────────────────────────────────
# 2. 行情数据服务
# ─────────────────────────────────────────────────────────

class TestMarketDataService:
    def test_finnhub_candles_are_cached(self):
        upstream = FakeUpstream()
        upstream.candles["AAPL"] = make_candles(wave_closes(10), start="2024-01-01")
        container = build_container(upstream)

        async def scenario():
            first = await container.market_data.get_daily_candles("aapl", "2024-01-01", "2024-01-31")
            second = await container.market_data.get_daily_candles("AAPL", "2024-01-01", "2024-01-31")
            return first, second

        first, second = asyncio.run(scenario())
        assert len(first) == 10
        assert first == second
        assert upstream.count("finnhub.io", "/stock/candle") == 1

    def test_access_denied_falls_back_to_stooq(self):
        upstream = FakeUpstream()
        upstream.denied_paths.add("/stock/candle")
        upstream.stooq["aapl.us"] = stooq_csv(make_candles(wave_closes(30), start="2024-01-01"))
        container = build_container(upstream)

        candles = asyncio.run(
            container.market_data.get_daily_candles("AAPL", "2024-01-05", "2024-01-10")
        )
        assert [c.date for c in candles] == [
            "2024-01-05", "2024-01-06", "2024-01-07", "2024-01-08", "2024-01-09", "2024-01-10",
        ]
        assert upstream.count("stooq.com") == 1

    def test_other_failures_do_not_fall_back(self):
        upstream = FakeUpstream()
        upstream.candle_status["AAPL"] = 502
        container = build_container(upstream)

        with pytest.raises(ProviderError) as exc_info:
            asyncio.run(container.market_data.get_daily_candles("AAPL", "2024-01-01", "2024-01-31"))
        assert exc_info.value.kind is FailureKind.HTTP
        assert exc_info.value.status == 502
        # 首次请求 + 2 次重试
        assert upstream.count("finnhub.io", "/stock/candle") == 3
        assert upstream.count("stooq.com") == 0

    def test_no_data_returns_empty(self):
        container = build_container(FakeUpstream())
        assert asyncio.run(
            container.market_data.get_daily_candles("ZZZ", "2024-01-01", "2024-01-31")
        ) == []

    def test_missing_api_key(self):
        upstream = FakeUpstream()
        container = build_container(upstream, FINNHUB_API_KEY="")
        with pytest.raises(MissingCredentialError):
            asyncio.run(container.market_data.get_daily_candles("AAPL", "2024-01-01", "2024-01-31"))
        assert upstream.requests == []

    def test_recent_candles_range(self):
        upstream = FakeUpstream()
        container = build_container(upstream)
        asyncio.run(container.market_data.get_recent_daily_candles("MSFT", 80))

        params = upstream.requests[0].url.params
        assert params["from"] == str(to_unix_seconds(add_days(today_utc(), -80)))
        assert params["to"] == str(to_unix_seconds(today_utc()))


# ─────────────────────────────────────────────────────────
# 3. 股票池服务
# ─────────────────────────────────────────────────────────

class TestUniverseService:
    def _service(self, constituents_side_effect, wiki_side_effect=None):
        market = MagicMock()
        market.get_index_constituents = AsyncMock(side_effect=constituents_side_effect)
        acquisition = MagicMock()
        acquisition.fetch_wikipedia_page = AsyncMock(
            side_effect=wiki_side_effect or _denied("wikipedia")
        )
        svc = UniverseService(TTLCache(), market, acquisition, ProcessingLayer(), universe_ttl=60)
        return svc, market, acquisition

    def test_finnhub_success(self):
        svc, _, acquisition = self._service(lambda symbol: ["aapl", "MSFT", "AAPL"])
        universe = asyncio.run(svc.resolve_universe("sp500"))
        assert universe.symbols == ["AAPL", "MSFT"]
        assert universe.sources == [SOURCE_FINNHUB]
        acquisition.fetch_wikipedia_page.assert_not_called()

    def test_wikipedia_fallback_on_access_denied(self):
        svc, _, _ = self._service(_denied(), wiki_side_effect=lambda index: WIKI_SP500_HTML)
        universe = asyncio.run(svc.resolve_universe("sp500"))
        assert universe.symbols == ["MMM", "AOS", "BRK.B"]
        assert universe.sources == [SOURCE_WIKIPEDIA]

    def test_builtin_fallback_when_wikipedia_fails(self):
        svc, _, _ = self._service(_denied())
        universe = asyncio.run(svc.resolve_universe("nasdaq100"))
        assert universe.symbols == STATIC_FALLBACK["nasdaq100"]
        assert universe.sources == [SOURCE_BUILTIN]

    def test_empty_finnhub_list_falls_back(self):
        svc, _, _ = self._service(lambda symbol: [], wiki_side_effect=lambda index: WIKI_SP500_HTML)
        universe = asyncio.run(svc.resolve_universe("sp500"))
        assert universe.sources == [SOURCE_WIKIPEDIA]

    def test_other_finnhub_failure_propagates(self):
        svc, _, acquisition = self._service(
            ProviderError(FailureKind.HTTP, "finnhub", "server error", status=500)
        )
        with pytest.raises(ProviderError):
            asyncio.run(svc.resolve_universe("sp500"))
        acquisition.fetch_wikipedia_page.assert_not_called()

    def test_both_is_sorted_union(self):
        def constituents(symbol):
            if symbol == "^GSPC":
                return ["MSFT", "JPM", "AAPL"]
            raise _denied()

        svc, _, _ = self._service(constituents)
        universe = asyncio.run(svc.resolve_universe("both"))
        expected = sorted({"MSFT", "JPM", "AAPL"} | set(STATIC_FALLBACK["nasdaq100"]))
        assert universe.symbols == expected
        assert universe.sources == [SOURCE_FINNHUB, SOURCE_BUILTIN]

    def test_result_is_cached(self):
        svc, market, _ = self._service(lambda symbol: ["AAPL"])

        async def scenario():
            await svc.resolve_universe("sp500")
            await svc.resolve_universe("sp500")

        asyncio.run(scenario())
        assert market.get_index_constituents.await_count == 1

    def test_unknown_scope(self):
        svc, _, _ = self._service(lambda symbol: ["AAPL"])
        with pytest.raises(ValueError):
            asyncio.run(svc.resolve_universe("dow"))


# ─────────────────────────────────────────────────────────
# 4. 相关性编排
# ─────────────────────────────────────────────────────────

class TestCorrelationService:
    def _upstream(self, n_days=40):
        upstream = FakeUpstream()
        upstream.candles["AAA"] = make_candles(wave_closes(n_days, 0.0))
        upstream.candles["BBB"] = make_candles(wave_closes(n_days, 1.1))
        upstream.candles["CCC"] = make_candles(wave_closes(n_days, 2.3, drift=-0.03))
        return upstream

    def test_normalize_symbols(self):
        assert normalize_symbols([" aapl", "MSFT", "AAPL", "msft "]) == ["AAPL", "MSFT"]

    def test_matrix_with_dropped_symbols(self):
        upstream = self._upstream()
        upstream.candle_status["DDD"] = 404
        upstream.candles["EEE"] = make_candles([100.0])
        container = build_container(upstream)

        result = asyncio.run(
            container.correlation.compute_correlation(
                ["aaa", "DDD", "BBB", "EEE", "CCC"], "2024-01-01", "2024-03-31"
            )
        )
        assert result.dropped_symbols == ["DDD", "EEE"]
        assert result.observations == 39
        assert len(result.matrix) == 9
        assert [c.x for c in result.matrix[::3]] == ["AAA", "BBB", "CCC"]

    def test_insufficient_symbols(self):
        upstream = self._upstream()
        container = build_container(upstream)
        with pytest.raises(InsufficientDataError, match="Not enough valid symbols"):
            asyncio.run(
                container.correlation.compute_correlation(["AAA", "ZZZ"], "2024-01-01", "2024-03-31")
            )

    def test_insufficient_observations(self):
        container = build_container(self._upstream(n_days=20))
        with pytest.raises(InsufficientDataError, match="30 overlapping observations"):
            asyncio.run(
                container.correlation.compute_correlation(["AAA", "BBB"], "2024-01-01", "2024-03-31")
            )

    def test_lagged(self):
        container = build_container(self._upstream())
        result = asyncio.run(
            container.correlation.compute_lagged_correlation(
                ["AAA", "BBB", "CCC"], "2024-01-01", "2024-03-31", [1, 5]
            )
        )
        assert [r.lag_days for r in result.results] == [1, 5]
        assert all(len(r.top_lead_lag_pairs) == 6 for r in result.results)
        assert result.dropped_symbols == []

    def test_rolling(self):
        container = build_container(self._upstream())
        result = asyncio.run(
            container.correlation.compute_rolling_correlation(
                "aaa", "bbb", "2024-01-01", "2024-03-31", window=20
            )
        )
        assert (result.left, result.right) == ("AAA", "BBB")
        assert result.observations == 39
        assert len(result.points) == 20

    def test_rolling_window_longer_than_history(self):
        container = build_container(self._upstream())
        with pytest.raises(InsufficientDataError):
            asyncio.run(
                container.correlation.compute_rolling_correlation(
                    "AAA", "BBB", "2024-01-01", "2024-03-31", window=60
                )
            )

    def test_rolling_requires_both_symbols(self):
        container = build_container(self._upstream())
        with pytest.raises(InsufficientDataError):
            asyncio.run(
                container.correlation.compute_rolling_correlation(
                    "AAA", "ZZZ", "2024-01-01", "2024-03-31", window=10
                )
            )


# ─────────────────────────────────────────────────────────
# 5. 财报日历
# ─────────────────────────────────────────────────────────

def _flat_candles(spread: float, n: int = 30):
    start = add_days(today_utc(), -n)
    return [
        c.model_copy(update={"high": 100.0 + spread / 2, "low": 100.0 - spread / 2})
        for c in make_candles([100.0] * n, start=start)
    ]


class TestEarningsService:
    def _upstream(self):
        upstream = FakeUpstream()
        upstream.constituents = {"^GSPC": ["AAPL", "MSFT"], "^NDX": ["AAPL", "NVDA"]}
        upstream.earnings = [
            {"symbol": "MSFT", "date": "2025-01-29", "hour": "amc"},
            {"symbol": "ZZZZ", "date": "2025-01-29", "hour": "bmo"},
            {"symbol": "AAPL", "date": "2025-01-30", "hour": "AMC", "epsEstimate": 2.35},
            {"symbol": "NVDA", "date": "2025-01-29", "hour": ""},
        ]
        upstream.candles["AAPL"] = _flat_candles(4.0)
        upstream.candles["MSFT"] = _flat_candles(2.0)
        upstream.candles["NVDA"] = _flat_candles(6.0)
        return upstream

    def test_normalize_hour(self):
        assert normalize_hour("BMO") == "bmo"
        assert normalize_hour("amc") == "amc"
        assert normalize_hour("") == "dmh"
        assert normalize_hour(None) == "dmh"
        assert normalize_hour("tns") == "dmh"

    def test_universe_filter_and_ordering(self):
        container = build_container(self._upstream())
        result = asyncio.run(container.earnings.get_earnings("2025-01-27", "2025-01-31", "both"))

        assert [i.symbol for i in result.items] == ["NVDA", "MSFT", "AAPL"]
        assert [i.hour for i in result.items] == ["dmh", "amc", "amc"]
        assert result.items[0].expected_move_pct == pytest.approx(6.0)
        assert result.items[2].eps_estimate == 2.35
        assert result.partial is False
        assert result.warning is None

    def test_symbol_filter(self):
        container = build_container(self._upstream())
        result = asyncio.run(
            container.earnings.get_earnings("2025-01-27", "2025-01-31", "sp500", symbol="aapl")
        )
        assert [i.symbol for i in result.items] == ["AAPL"]

    def test_access_limited(self):
        upstream = self._upstream()
        upstream.denied_paths.add("/calendar/earnings")
        container = build_container(upstream)
        result = asyncio.run(container.earnings.get_earnings("2025-01-27", "2025-01-31", "both"))
        assert result.items == []
        assert result.partial is True
        assert result.warning == ACCESS_LIMITED_WARNING

    def test_partial_expected_moves(self):
        upstream = self._upstream()
        upstream.candle_status["MSFT"] = 404
        container = build_container(upstream)
        result = asyncio.run(container.earnings.get_earnings("2025-01-27", "2025-01-31", "sp500"))

        msft = next(i for i in result.items if i.symbol == "MSFT")
        assert msft.expected_move_pct == 0.0
        assert msft.expected_move_abs == 0.0
        assert result.partial is True
        assert result.warning == PARTIAL_WARNING

    def test_calendar_server_error_propagates(self):
        upstream = self._upstream()
        container = build_container(upstream)
        container.market_data.get_earnings_calendar = AsyncMock(
            side_effect=ProviderError(FailureKind.HTTP, "finnhub", "boom", status=500)
        )
        with pytest.raises(ProviderError):
            asyncio.run(container.earnings.get_earnings("2025-01-27", "2025-01-31", "both"))


# ─────────────────────────────────────────────────────────
# 6. 宏观事件
# ─────────────────────────────────────────────────────────

class TestEventsService:
    def test_bundled_calendar(self):
        svc = EventsService(AlphaServiceSettings().MACRO_EVENTS_PATH)
        events = svc.get_events("2025-01-01", "2025-12-31")
        assert len(events) == 8
        assert all(e.type == "FOMC" for e in events)
        assert events[0].date == "2025-01-29"

    def test_inclusive_range(self, tmp_path):
        path = tmp_path / "events.json"
        path.write_text(json.dumps([
            {"date": "2025-03-12", "type": "CPI", "title": "CPI (Feb)", "importance": "high", "source": "bls.gov"},
            {"date": "2025-03-07", "type": "NFP", "title": "Jobs report", "importance": "medium", "source": "bls.gov"},
        ]), encoding="utf-8")
        svc = EventsService(str(path))
        assert [e.date for e in svc.get_events("2025-03-07", "2025-03-10")] == ["2025-03-07"]
        assert len(svc.get_events("2025-03-07", "2025-03-12")) == 2

    def test_calendar_read_once(self, tmp_path):
        path = tmp_path / "events.json"
        path.write_text(json.dumps([
            {"date": "2025-03-12", "type": "CPI", "title": "CPI (Feb)", "importance": "high", "source": "bls.gov"},
        ]), encoding="utf-8")
        svc = EventsService(str(path))
        assert len(svc.get_events("2025-01-01", "2025-12-31")) == 1

        # 文件被改写后仍返回首次加载的内容
        path.write_text("not json", encoding="utf-8")
        assert [e.date for e in svc.get_events("2025-01-01", "2025-12-31")] == ["2025-03-12"]

    def test_invalid_file_raises(self, tmp_path):
        path = tmp_path / "events.json"
        path.write_text(json.dumps([{"date": "2025-13-01", "type": "FOMC"}]), encoding="utf-8")
        with pytest.raises(Exception):
            EventsService(str(path)).get_events("2025-01-01", "2025-12-31")
