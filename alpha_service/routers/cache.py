"""
缓存管理路由
GET  /api/cache/stats     - 缓存统计
POST /api/cache/clear     - 清理缓存
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from alpha_service.dependencies import get_cache
from alpha_service.layers.cache import TTLCache
from alpha_service.models.response import ApiResponse

router = APIRouter(prefix="/api/cache", tags=["缓存管理"])


class ClearRequest(BaseModel):
    key: Optional[str] = None
    expired_only: bool = False


@router.get("/stats", response_model=ApiResponse)
async def cache_stats(cache: TTLCache = Depends(get_cache)):
    """获取缓存统计信息（条目数 / 进行中的加载数）"""
    return ApiResponse.ok(data=cache.stats())


@router.post("/clear", response_model=ApiResponse)
async def clear_cache(body: ClearRequest, cache: TTLCache = Depends(get_cache)):
    """按 key 删除、只清理过期条目，或清空全部缓存"""
    if body.key:
        removed = 1 if cache.delete(body.key) else 0
    elif body.expired_only:
        removed = cache.clear_expired()
    else:
        removed = cache.clear()
    return ApiResponse.ok(data={"removed": removed}, message=f"已清理 {removed} 条缓存")
