"""
Layer 4 – 统计分析层
收益率、Pearson 相关、滞后相关、滚动相关与预期波动。
全部为纯函数；累加一律按下标从左到右进行（不用 sum()），保证数值逐位一致。
"""

import math
from typing import Dict, List, Mapping, Sequence

from alpha_service.constants import EXPECTED_MOVE_WINDOW, TOP_LEAD_LAG_PAIRS
from alpha_service.models.market import (
    AlignedSeries,
    Candle,
    CorrCell,
    ExpectedMove,
    LagPair,
    LagResult,
    ReturnPoint,
    RollingPoint,
)

_MIN_EXPECTED_MOVE_CANDLES = EXPECTED_MOVE_WINDOW + 1


def _sorted_by_date(candles: Sequence[Candle]) -> List[Candle]:
    return sorted(candles, key=lambda c: c.date)


def _mean(values: Sequence[float]) -> float:
    total = 0.0
    for v in values:
        total += v
    return total / len(values)


# ── 收益率 ────────────────────────────────────────────────

def to_daily_returns(candles: Sequence[Candle]) -> List[ReturnPoint]:
    """按日期排序后计算逐日简单收益率；前收盘为 0 的区间跳过"""
    ordered = _sorted_by_date(candles)
    returns: List[ReturnPoint] = []
    for i in range(1, len(ordered)):
        prev_close = ordered[i - 1].close
        if prev_close == 0:
            continue
        returns.append(
            ReturnPoint(date=ordered[i].date, value=(ordered[i].close - prev_close) / prev_close)
        )
    return returns


# ── 相关系数 ──────────────────────────────────────────────

def pearson_correlation(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Pearson 积矩相关系数

    长度不一致、长度 < 2 或任一序列方差为 0 时返回 0。
    """
    if len(a) != len(b) or len(a) < 2:
        return 0.0

    mean_a = _mean(a)
    mean_b = _mean(b)

    numerator = 0.0
    sum_sq_a = 0.0
    sum_sq_b = 0.0
    for x, y in zip(a, b):
        da = x - mean_a
        db = y - mean_b
        numerator += da * db
        sum_sq_a += da * da
        sum_sq_b += db * db

    denom = math.sqrt(sum_sq_a) * math.sqrt(sum_sq_b)
    if denom == 0:
        return 0.0
    return numerator / denom


def align_series_by_date(series_by_symbol: Mapping[str, Sequence[ReturnPoint]]) -> AlignedSeries:
    """取所有标的收益率序列的日期交集（升序），按日期对齐取值"""
    symbols = list(series_by_symbol.keys())
    if not symbols:
        return AlignedSeries(symbols=[], dates=[], aligned_values={})

    common = {p.date for p in series_by_symbol[symbols[0]]}
    for symbol in symbols[1:]:
        common &= {p.date for p in series_by_symbol[symbol]}

    dates = sorted(common)
    aligned_values: Dict[str, List[float]] = {}
    for symbol in symbols:
        by_date = {p.date: p.value for p in series_by_symbol[symbol]}
        aligned_values[symbol] = [by_date.get(d, 0.0) for d in dates]

    return AlignedSeries(symbols=symbols, dates=dates, aligned_values=aligned_values)


def build_correlation_matrix(
    symbols: Sequence[str], aligned_values: Mapping[str, Sequence[float]]
) -> List[CorrCell]:
    """symbols × symbols 全矩阵，对角线固定为 1"""
    cells: List[CorrCell] = []
    for x in symbols:
        for y in symbols:
            if x == y:
                cells.append(CorrCell(x=x, y=y, value=1.0))
                continue
            cells.append(
                CorrCell(x=x, y=y, value=pearson_correlation(aligned_values[x], aligned_values[y]))
            )
    return cells


# ── 滞后相关 ──────────────────────────────────────────────

def compute_lagged_correlation(a: Sequence[float], b: Sequence[float], lag: int) -> float:
    """
    领先序列 a 去掉末尾 lag 个点，跟随序列 b 去掉开头 lag 个点后求相关，
    即“今天的 a 预测 lag 天后的 b”。
    """
    if lag < 1 or len(a) <= lag or len(b) <= lag:
        return 0.0
    return pearson_correlation(a[: len(a) - lag], b[lag:])


def build_lagged_results(
    symbols: Sequence[str],
    aligned_values: Mapping[str, Sequence[float]],
    lags: Sequence[int],
) -> List[LagResult]:
    results: List[LagResult] = []
    for lag_days in lags:
        matrix: List[CorrCell] = []
        candidates: List[LagPair] = []
        for x in symbols:
            for y in symbols:
                if x == y:
                    matrix.append(CorrCell(x=x, y=y, value=1.0))
                    continue
                corr = compute_lagged_correlation(aligned_values[x], aligned_values[y], lag_days)
                matrix.append(CorrCell(x=x, y=y, value=corr))
                candidates.append(LagPair(leader=x, follower=y, corr=corr))

        # 稳定排序：|corr| 相同时保持矩阵遍历顺序
        top = sorted(candidates, key=lambda p: abs(p.corr), reverse=True)[:TOP_LEAD_LAG_PAIRS]
        results.append(LagResult(lag_days=lag_days, matrix=matrix, top_lead_lag_pairs=top))
    return results


def rolling_correlation(
    left: Sequence[ReturnPoint],
    right: Sequence[ReturnPoint],
    window_size: int = 60,
) -> List[RollingPoint]:
    """按公共日期对齐后，以 window_size 为窗口滚动计算相关，日期取窗口最后一天"""
    left_map = {p.date: p.value for p in left}
    right_map = {p.date: p.value for p in right}
    dates = sorted(d for d in left_map if d in right_map)

    aligned_left = [left_map[d] for d in dates]
    aligned_right = [right_map[d] for d in dates]

    output: List[RollingPoint] = []
    for i in range(max(window_size - 1, 0), len(dates)):
        start = i - window_size + 1
        output.append(
            RollingPoint(
                date=dates[i],
                value=pearson_correlation(aligned_left[start : i + 1], aligned_right[start : i + 1]),
            )
        )
    return output


# ── 预期波动 ──────────────────────────────────────────────

def calculate_expected_move(candles: Sequence[Candle]) -> ExpectedMove:
    """
    预期波动：最近 20 个交易日 (high - low) / 前收盘 的均值

    K 线少于 21 根或有效比值不足 20 个时返回 0。
    """
    if len(candles) < _MIN_EXPECTED_MOVE_CANDLES:
        return ExpectedMove(expected_move_pct=0.0, expected_move_abs=0.0)

    ordered = _sorted_by_date(candles)
    ratios: List[float] = []
    for i in range(1, len(ordered)):
        prev_close = ordered[i - 1].close
        if prev_close == 0:
            continue
        ratios.append((ordered[i].high - ordered[i].low) / prev_close)

    trailing = ratios[-EXPECTED_MOVE_WINDOW:]
    if len(trailing) < EXPECTED_MOVE_WINDOW:
        return ExpectedMove(expected_move_pct=0.0, expected_move_abs=0.0)

    expected_move_pct = _mean(trailing) * 100
    latest_close = ordered[-1].close
    return ExpectedMove(
        expected_move_pct=expected_move_pct,
        expected_move_abs=latest_close * (expected_move_pct / 100),
    )
