"""
宏观事件路由
GET /api/events?from&to
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status

from alpha_service.dependencies import get_events_service
from alpha_service.models.requests import EventsQuery, parse_query
from alpha_service.models.response import ApiResponse
from alpha_service.services.events_service import EventsService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/events", tags=["宏观事件"])


@router.get("", response_model=ApiResponse)
def get_events(
    from_date: str = Query(..., alias="from"),
    to_date: str = Query(..., alias="to"),
    svc: EventsService = Depends(get_events_service),
):
    query = parse_query(EventsQuery, {"from": from_date, "to": to_date})
    try:
        events = svc.get_events(query.from_date, query.to_date)
    except Exception as exc:
        logger.error(f"宏观事件加载失败: {exc}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(exc) or "Failed to load events",
        )
    return ApiResponse.ok(data={"events": [e.model_dump(by_alias=True) for e in events]})
