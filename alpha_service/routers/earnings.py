"""
财报日历路由
GET /api/earnings?from&to&index[&symbol]
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from alpha_service.dependencies import get_earnings_service
from alpha_service.models.requests import EarningsQuery, parse_query
from alpha_service.models.response import ApiResponse
from alpha_service.services.earnings_service import EarningsService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/earnings", tags=["财报"])


@router.get("", response_model=ApiResponse)
async def get_earnings(
    from_date: str = Query(..., alias="from"),
    to_date: str = Query(..., alias="to"),
    index: str = Query(..., description="sp500 / nasdaq100 / both"),
    symbol: Optional[str] = Query(default=None),
    svc: EarningsService = Depends(get_earnings_service),
):
    """股票池内的财报事件及预期波动；财报接口无权限时返回空列表并附 warning"""
    params = {"from": from_date, "to": to_date, "index": index}
    if symbol is not None:
        params["symbol"] = symbol
    query = parse_query(EarningsQuery, params)
    try:
        result = await svc.get_earnings(query.from_date, query.to_date, query.index, query.symbol)
    except Exception as exc:
        logger.error(f"财报日历加载失败: {exc}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(exc) or "Failed to load earnings",
        )
    return ApiResponse.ok(data=result.model_dump(by_alias=True))
