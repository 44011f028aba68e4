"""
行情路由
GET /api/prices?symbol=AAPL&from=YYYY-MM-DD&to=YYYY-MM-DD
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status

from alpha_service.dependencies import get_market_data_service
from alpha_service.models.requests import PricesQuery, parse_query
from alpha_service.models.response import ApiResponse
from alpha_service.services.market_data_service import MarketDataService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/prices", tags=["行情"])


@router.get("", response_model=ApiResponse)
async def get_prices(
    symbol: str = Query(..., description="股票代码"),
    from_date: str = Query(..., alias="from", description="开始日期 YYYY-MM-DD"),
    to_date: str = Query(..., alias="to", description="结束日期 YYYY-MM-DD"),
    svc: MarketDataService = Depends(get_market_data_service),
):
    """获取日 K 线"""
    query = parse_query(PricesQuery, {"symbol": symbol, "from": from_date, "to": to_date})
    try:
        candles = await svc.get_daily_candles(query.symbol, query.from_date, query.to_date)
    except Exception as exc:
        logger.error(f"{query.symbol} 日 K 获取失败: {exc}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(exc) or "Failed to load prices",
        )
    return ApiResponse.ok(
        data={
            "symbol": query.symbol.upper(),
            "candles": [c.model_dump(by_alias=True) for c in candles],
        },
    )
