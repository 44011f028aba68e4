"""日期工具：全部使用 YYYY-MM-DD 字符串与 UTC 零点时间戳"""

import re
from datetime import date, datetime, timedelta, timezone
from typing import Annotated

from pydantic import AfterValidator

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

_SECONDS_PER_YEAR = 365.25 * 24 * 60 * 60


def is_valid_iso_date(value: str) -> bool:
    if not isinstance(value, str) or not _ISO_DATE.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def _check_iso_date(value: str) -> str:
    if not is_valid_iso_date(value):
        raise ValueError("Invalid ISO date format (YYYY-MM-DD)")
    return value


IsoDate = Annotated[str, AfterValidator(_check_iso_date)]


def today_utc() -> str:
    return datetime.now(tz=timezone.utc).date().isoformat()


def to_unix_seconds(day: str) -> int:
    """YYYY-MM-DD → 当日 UTC 零点的 unix 秒"""
    dt = datetime.combine(date.fromisoformat(day), datetime.min.time(), tzinfo=timezone.utc)
    return int(dt.timestamp())


def from_unix_seconds(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).date().isoformat()


def add_days(day: str, days: int) -> str:
    return (date.fromisoformat(day) + timedelta(days=days)).isoformat()


def years_between(start: str, end: str) -> float:
    delta = date.fromisoformat(end) - date.fromisoformat(start)
    return abs(delta.total_seconds()) / _SECONDS_PER_YEAR
