"""
股票池路由
GET /api/universe?index=sp500|nasdaq100|both
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status

from alpha_service.dates import today_utc
from alpha_service.dependencies import get_universe_service
from alpha_service.models.requests import UniverseQuery, parse_query
from alpha_service.models.response import ApiResponse
from alpha_service.services.universe_service import UniverseService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/universe", tags=["股票池"])


@router.get("", response_model=ApiResponse)
async def get_universe(
    index: str = Query(default="both", description="sp500 / nasdaq100 / both"),
    svc: UniverseService = Depends(get_universe_service),
):
    """解析指数成分股（Finnhub → 维基百科 → 内置列表）"""
    query = parse_query(UniverseQuery, {"index": index})
    try:
        universe = await svc.resolve_universe(query.index)
    except Exception as exc:
        logger.error(f"股票池解析失败: {exc}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(exc) or "Failed to load index constituents",
        )
    return ApiResponse.ok(
        data={"symbols": universe.symbols, "asOf": today_utc(), "sources": universe.sources},
        message=f"共 {len(universe.symbols)} 只股票",
    )
