"""健康检查路由"""

import time

from fastapi import APIRouter, Depends

from alpha_service import __version__
from alpha_service.dependencies import get_cache
from alpha_service.layers.cache import TTLCache

router = APIRouter(tags=["健康检查"])


@router.get("/health")
async def health(cache: TTLCache = Depends(get_cache)):
    """服务健康检查"""
    return {
        "success": True,
        "data": {
            "status": "ok",
            "version": __version__,
            "timestamp": int(time.time()),
            "service": "alpha-service",
            "cache": cache.stats(),
        },
        "message": "服务运行正常",
    }


@router.get("/healthz")
async def healthz():
    """Kubernetes liveness probe"""
    return {"status": "ok"}


@router.get("/readyz")
async def readyz():
    """Kubernetes readiness probe"""
    return {"ready": True}
