"""
相关性路由
POST /api/correlation          - 日收益率 Pearson 相关矩阵
POST /api/correlation/lagged   - 滞后（领先 / 跟随）相关
POST /api/correlation/rolling  - 两只股票的滚动相关
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from alpha_service.dependencies import get_correlation_service
from alpha_service.exceptions import InsufficientDataError
from alpha_service.models.requests import (
    CorrelationRequest,
    LaggedCorrelationRequest,
    RollingCorrelationRequest,
)
from alpha_service.models.response import ApiResponse
from alpha_service.services.correlation_service import CorrelationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/correlation", tags=["相关性"])


def _to_http_error(exc: Exception, fallback: str) -> HTTPException:
    # 数据不足属于客户端问题（调整区间或标的即可），其余一律 500
    if isinstance(exc, InsufficientDataError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    logger.error(f"{fallback}: {exc}", exc_info=True)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=str(exc) or fallback,
    )


@router.post("", response_model=ApiResponse)
async def compute_correlation(
    body: CorrelationRequest,
    svc: CorrelationService = Depends(get_correlation_service),
):
    """symbols × symbols 相关矩阵，返回观测数与被剔除的股票"""
    try:
        result = await svc.compute_correlation(body.symbols, body.from_date, body.to_date)
    except Exception as exc:
        raise _to_http_error(exc, "Failed to compute correlation")
    return ApiResponse.ok(data=result.model_dump(by_alias=True))


@router.post("/lagged", response_model=ApiResponse)
async def compute_lagged_correlation(
    body: LaggedCorrelationRequest,
    svc: CorrelationService = Depends(get_correlation_service),
):
    """
    每个 lag 返回一个完整矩阵及 |corr| 最高的 12 组领先 / 跟随组合

    - `lags` 示例: `[1, 5, 7, 30]`
    """
    try:
        result = await svc.compute_lagged_correlation(
            body.symbols, body.from_date, body.to_date, body.lags
        )
    except Exception as exc:
        raise _to_http_error(exc, "Failed to compute lagged correlation")
    return ApiResponse.ok(data=result.model_dump(by_alias=True))


@router.post("/rolling", response_model=ApiResponse)
async def compute_rolling_correlation(
    body: RollingCorrelationRequest,
    svc: CorrelationService = Depends(get_correlation_service),
):
    try:
        result = await svc.compute_rolling_correlation(
            body.left, body.right, body.from_date, body.to_date, body.window
        )
    except Exception as exc:
        raise _to_http_error(exc, "Failed to compute rolling correlation")
    return ApiResponse.ok(data=result.model_dump(by_alias=True))
