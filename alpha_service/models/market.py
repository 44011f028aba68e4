"""
行情与统计结果数据模型
字段在 Python 侧使用 snake_case，序列化（by_alias）时输出前端约定的 camelCase
"""

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from alpha_service.dates import IsoDate

EarningsHour = Literal["bmo", "amc", "dmh"]
IndexScope = Literal["sp500", "nasdaq100", "both"]


class MarketModel(BaseModel):
    """所有行情模型的基类：不可变 + camelCase 别名"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class Candle(MarketModel):
    date: str
    open: float
    high: float
    low: float
    close: float
    volume: float


class ReturnPoint(MarketModel):
    date: str
    value: float


class AlignedSeries(MarketModel):
    symbols: List[str]
    dates: List[str]
    aligned_values: Dict[str, List[float]]


class CorrCell(MarketModel):
    x: str
    y: str
    value: float


class LagPair(MarketModel):
    leader: str
    follower: str
    corr: float


class LagResult(MarketModel):
    lag_days: int
    matrix: List[CorrCell]
    top_lead_lag_pairs: List[LagPair]


class RollingPoint(MarketModel):
    date: str
    value: float


class ExpectedMove(MarketModel):
    expected_move_pct: float
    expected_move_abs: float


class UniverseData(MarketModel):
    symbols: List[str]
    sources: List[str]


class EarningsEvent(MarketModel):
    """上游财报日历条目（边界校验后）"""

    symbol: str
    date: str
    hour: Optional[str] = None
    eps_estimate: Optional[float] = None
    revenue_estimate: Optional[float] = None


class EarningsItem(MarketModel):
    symbol: str
    company_name: str
    date: str
    hour: EarningsHour
    eps_estimate: Optional[float] = None
    revenue_estimate: Optional[float] = None
    expected_move_pct: float
    expected_move_abs: float


class MacroEvent(MarketModel):
    date: IsoDate
    type: Literal["FOMC", "CPI", "NFP"]
    title: str = Field(min_length=1)
    importance: Literal["high", "medium"]
    source: str = Field(min_length=1)


# ── 编排结果 ──────────────────────────────────────────────

class CorrelationResult(MarketModel):
    matrix: List[CorrCell]
    observations: int
    dropped_symbols: List[str]


class LaggedCorrelationResult(MarketModel):
    results: List[LagResult]
    observations: int
    dropped_symbols: List[str]


class RollingCorrelationResult(MarketModel):
    left: str
    right: str
    window: int
    observations: int
    points: List[RollingPoint]


class EarningsResult(MarketModel):
    items: List[EarningsItem]
    partial: bool = False
    warning: Optional[str] = None
