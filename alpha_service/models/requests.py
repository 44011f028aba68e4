"""
请求参数校验模型
校验失败统一抛出 RequestValidationError，由全局处理器转换为 400
"""

from typing import Annotated, Any, List, Literal, Mapping, Optional, Type, TypeVar

from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from alpha_service.constants import (
    DEFAULT_LAGS,
    DEFAULT_ROLLING_WINDOW,
    LAG_MAX,
    LAG_MIN,
    MAX_LAGS,
    MAX_LOOKBACK_YEARS,
    MAX_ROLLING_WINDOW,
    MAX_SYMBOL_LENGTH,
    MAX_SYMBOLS,
    MIN_ROLLING_WINDOW,
    MIN_SYMBOLS,
)
from alpha_service.dates import IsoDate, years_between
from alpha_service.models.market import IndexScope

Symbol = Annotated[str, Field(min_length=1, max_length=MAX_SYMBOL_LENGTH)]
Lag = Annotated[int, Field(ge=LAG_MIN, le=LAG_MAX, strict=True)]

M = TypeVar("M", bound=BaseModel)


class DateRange(BaseModel):
    """带 from / to 的请求基类（from 是 Python 关键字，使用别名）"""

    model_config = ConfigDict(populate_by_name=True)

    from_date: IsoDate = Field(alias="from")
    to_date: IsoDate = Field(alias="to")

    @model_validator(mode="after")
    def check_range(self):
        if self.from_date > self.to_date:
            raise ValueError("'from' must not be after 'to'")
        return self


class BoundedDateRange(DateRange):
    @model_validator(mode="after")
    def check_lookback(self):
        if years_between(self.from_date, self.to_date) > MAX_LOOKBACK_YEARS:
            raise ValueError(f"Lookback cannot exceed {MAX_LOOKBACK_YEARS} years")
        return self


# ── 查询参数 ──────────────────────────────────────────────

class PricesQuery(DateRange):
    symbol: Symbol


class EarningsQuery(DateRange):
    index: IndexScope
    symbol: Optional[Symbol] = None


class EventsQuery(DateRange):
    pass


class UniverseQuery(BaseModel):
    index: IndexScope = "both"


# ── 请求体 ────────────────────────────────────────────────

class CorrelationRequest(BoundedDateRange):
    symbols: List[Symbol] = Field(min_length=MIN_SYMBOLS, max_length=MAX_SYMBOLS)
    metric: Literal["pearson_daily_returns"] = "pearson_daily_returns"


class LaggedCorrelationRequest(BoundedDateRange):
    symbols: List[Symbol] = Field(min_length=MIN_SYMBOLS, max_length=MAX_SYMBOLS)
    lags: List[Lag] = Field(
        default_factory=lambda: list(DEFAULT_LAGS), min_length=1, max_length=MAX_LAGS
    )

    @field_validator("lags")
    @classmethod
    def check_distinct_lags(cls, value: List[int]) -> List[int]:
        if len(set(value)) != len(value):
            raise ValueError("Lags must be distinct")
        return value


class RollingCorrelationRequest(BoundedDateRange):
    left: Symbol
    right: Symbol
    window: int = Field(
        default=DEFAULT_ROLLING_WINDOW, ge=MIN_ROLLING_WINDOW, le=MAX_ROLLING_WINDOW
    )


def parse_query(model: Type[M], params: Mapping[str, Any]) -> M:
    """把查询字符串解析为校验模型，失败时抛出与请求体校验一致的异常"""
    try:
        return model.model_validate(dict(params))
    except ValidationError as exc:
        raise RequestValidationError(exc.errors()) from exc
