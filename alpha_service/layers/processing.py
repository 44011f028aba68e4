"""
Layer 3 – 数据处理层
在边界处把上游原始响应（JSON / CSV / HTML）解析为经过校验的记录，
格式不合法的记录直接丢弃，分析层永远只看到干净数据。
"""

import io
import logging
import re
from typing import Any, Dict, List, Optional

import pandas as pd
from bs4 import BeautifulSoup
from pydantic import BaseModel, ValidationError

from alpha_service.dates import from_unix_seconds, is_valid_iso_date
from alpha_service.exceptions import FailureKind, ProviderError
from alpha_service.models.market import Candle, EarningsEvent

logger = logging.getLogger(__name__)

_SYMBOL_PATTERN = re.compile(r"^[A-Z0-9.-]{1,10}$")
_INVISIBLE = re.compile("[\u200b\u00a0]")
_WHITESPACE = re.compile(r"\s+")

_CSV_COLUMNS = ["date", "open", "high", "low", "close", "volume"]
_NAME_COLUMN_BONUS = 20


class _CandlePayload(BaseModel):
    """Finnhub /stock/candle 响应结构"""

    s: str
    t: List[float] = []
    o: List[float] = []
    h: List[float] = []
    l: List[float] = []  # noqa: E741
    c: List[float] = []
    v: List[float] = []


def normalize_symbol(raw: str) -> Optional[str]:
    """把表格单元格文本规范化为股票代码，不合法返回 None"""
    cleaned = _INVISIBLE.sub("", raw.strip())
    cleaned = _WHITESPACE.sub(" ", cleaned).split(" ")[0].upper()
    if not _SYMBOL_PATTERN.match(cleaned):
        return None
    return cleaned


class ProcessingLayer:
    """数据处理层：上游响应解析 + 校验 + 过滤"""

    # ── Finnhub ───────────────────────────────────────────

    def parse_finnhub_candles(self, payload: Any) -> List[Candle]:
        """
        解析 Finnhub 日 K 响应

        状态位不为 "ok"（如 "no_data"）返回空列表；结构不合法抛出 MALFORMED。
        """
        try:
            data = _CandlePayload.model_validate(payload)
        except ValidationError as exc:
            raise ProviderError(
                FailureKind.MALFORMED, "finnhub", f"Malformed candle payload: {exc.error_count()} errors"
            ) from exc

        if data.s != "ok":
            return []

        n = len(data.t)
        if any(len(col) < n for col in (data.o, data.h, data.l, data.c, data.v)):
            raise ProviderError(
                FailureKind.MALFORMED, "finnhub", "Candle payload arrays have mismatched lengths"
            )

        return [
            Candle(
                date=from_unix_seconds(data.t[i]),
                open=data.o[i],
                high=data.h[i],
                low=data.l[i],
                close=data.c[i],
                volume=data.v[i],
            )
            for i in range(n)
        ]

    def parse_constituents(self, payload: Any) -> List[str]:
        if not isinstance(payload, dict):
            raise ProviderError(FailureKind.MALFORMED, "finnhub", "Malformed constituents payload")
        raw = payload.get("constituents") or []
        return [s.upper() for s in raw if isinstance(s, str) and s]

    def parse_earnings_calendar(self, payload: Any) -> List[EarningsEvent]:
        """逐条校验财报日历，不合法的条目丢弃"""
        if not isinstance(payload, dict):
            raise ProviderError(FailureKind.MALFORMED, "finnhub", "Malformed earnings payload")
        events = []
        for raw in payload.get("earningsCalendar") or []:
            try:
                events.append(EarningsEvent.model_validate(raw))
            except ValidationError:
                logger.debug(f"丢弃不合法的财报条目: {raw!r}")
        return events

    # ── Stooq ─────────────────────────────────────────────

    def parse_stooq_csv(self, text: str) -> List[Candle]:
        """
        解析 Stooq 日线 CSV（Date,Open,High,Low,Close,Volume）

        缺字段、非数字或日期非法的行静默丢弃；多余字段忽略，只取前 6 列。
        """
        lines = text.strip().splitlines()
        if len(lines) < 2:
            return []

        # 按最宽的一行建列，避免多出字段的行被当作坏行丢掉
        width = max(line.count(",") for line in lines) + 1
        if width < len(_CSV_COLUMNS):
            return []

        try:
            df = pd.read_csv(
                io.StringIO("\n".join(lines[1:])),
                header=None,
                names=list(range(width)),
                dtype=str,
                keep_default_na=False,
            )
        except (pd.errors.EmptyDataError, pd.errors.ParserError):
            return []

        if df.empty:
            return []

        df = df.iloc[:, : len(_CSV_COLUMNS)].fillna("")
        df.columns = _CSV_COLUMNS
        df["date"] = df["date"].str.strip()
        df = df[df["date"].map(is_valid_iso_date)].copy()

        numeric_cols = _CSV_COLUMNS[1:]
        for col in numeric_cols:
            df[col] = pd.to_numeric(df[col].str.strip(), errors="coerce")
        df = df.dropna(subset=numeric_cols)

        return [
            Candle(
                date=row.date,
                open=float(row.open),
                high=float(row.high),
                low=float(row.low),
                close=float(row.close),
                volume=float(row.volume),
            )
            for row in df.itertuples(index=False)
        ]

    def filter_date_range(self, candles: List[Candle], start_date: str, end_date: str) -> List[Candle]:
        """按日期闭区间过滤"""
        return [c for c in candles if start_date <= c.date <= end_date]

    # ── Wikipedia ─────────────────────────────────────────

    def extract_symbols_from_html(self, html: str) -> List[str]:
        """
        从维基百科成分股页面中挑选正确的表格并提取代码

        仅考虑表头含 ticker / symbol 列的 wikitable；
        得分 = 去重后有效代码数 + （含 company / security 列时）20，取最高分。
        """
        soup = BeautifulSoup(html, "html.parser")
        best: Optional[Dict[str, Any]] = None

        for table in soup.select("table.wikitable"):
            first_row = table.find("tr")
            if first_row is None:
                continue
            headers = [th.get_text().strip().lower() for th in first_row.find_all("th")]

            ticker_idx = next(
                (i for i, h in enumerate(headers) if "ticker" in h or "symbol" in h), None
            )
            if ticker_idx is None:
                continue
            has_name = any("company" in h or "security" in h for h in headers)

            symbols: List[str] = []
            for row in table.find_all("tr"):
                cells = row.find_all("td")
                if not cells:
                    continue
                cell = cells[ticker_idx] if ticker_idx < len(cells) else cells[0]
                symbol = normalize_symbol(cell.get_text())
                if symbol:
                    symbols.append(symbol)

            symbols = list(dict.fromkeys(symbols))
            if not symbols:
                continue

            score = len(symbols) + (_NAME_COLUMN_BONUS if has_name else 0)
            if best is None or score > best["score"]:
                best = {"score": score, "symbols": symbols}

        return best["symbols"] if best else []
