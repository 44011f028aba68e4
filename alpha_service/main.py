"""
alpha-service 行情统计服务
独立 FastAPI 应用程序入口

启动方式:
    uvicorn alpha_service.main:app --host 0.0.0.0 --port 8001
    python -m alpha_service.main
"""

import asyncio
import contextlib
import logging
import time
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from alpha_service import __version__
from alpha_service.config import settings
from alpha_service.layers.cache import run_sweeper
from alpha_service.models.response import ApiResponse
from alpha_service.routers import cache, correlation, earnings, events, health, prices, universe
from alpha_service.services.container import ServiceContainer

# ── 日志配置 ──────────────────────────────────────────────
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# ── 生命周期管理 ──────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用启动/关闭生命周期钩子"""
    logger.info("=" * 60)
    logger.info(f"🚀 alpha-service v{__version__} 启动中")
    logger.info(f"   Finnhub   : {settings.FINNHUB_BASE_URL}")
    logger.info(f"   并发上限  : {settings.FETCH_CONCURRENCY}")
    logger.info("=" * 60)

    if not settings.FINNHUB_API_KEY:
        logger.warning("⚠️ FINNHUB_API_KEY 未配置，所有 Finnhub 请求都将失败")

    services = getattr(app.state, "services", None)
    owns_services = services is None
    if owns_services:
        services = ServiceContainer(settings)
        app.state.services = services

    sweeper = asyncio.ensure_future(run_sweeper(services.cache, services.settings.CACHE_SWEEP_INTERVAL))

    yield

    logger.info("🔄 服务正在关闭...")
    sweeper.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await sweeper
    if owns_services:
        await services.aclose()
        del app.state.services
    logger.info("✅ 服务已关闭")


# ── 应用实例 ──────────────────────────────────────────────
app = FastAPI(
    title="alpha-service 行情统计服务",
    description=(
        "面向看板的美股跨标的统计微服务：\n"
        "- 🗂️ 股票池解析（S&P 500 / Nasdaq-100，多级降级）\n"
        "- 📊 日 K 行情（Finnhub → Stooq 降级）\n"
        "- 🔗 相关矩阵 / 滞后相关 / 滚动相关\n"
        "- 📅 财报日历与预期波动、宏观事件\n\n"
        "**分层架构**\n"
        "```\n"
        "Acquisition Layer  ← 从数据提供商拉取原始数据（重试 + 失败分类）\n"
        "Cache Layer        ← 进程内 TTL 缓存（single-flight）\n"
        "Processing Layer   ← 响应解析与校验\n"
        "Analysis Layer     ← 统计计算\n"
        "```"
    ),
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS 中间件 ───────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── 请求计时中间件 ─────────────────────────────────────────
@app.middleware("http")
async def add_process_time(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    response.headers["X-Process-Time"] = f"{(time.time() - start) * 1000:.1f}ms"
    return response


# ── 异常处理 ──────────────────────────────────────────────
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content=ApiResponse.fail(
            error="Invalid request",
            message="参数校验失败",
            details=jsonable_encoder(exc.errors()),
        ).model_dump(),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=ApiResponse.fail(error=str(exc.detail)).model_dump(),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"未处理的异常: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "内部服务错误", "message": str(exc)},
    )


# ── 注册路由 ──────────────────────────────────────────────
app.include_router(health.router)
app.include_router(universe.router)
app.include_router(prices.router)
app.include_router(earnings.router)
app.include_router(events.router)
app.include_router(correlation.router)
app.include_router(cache.router)


# ── 根路由 ───────────────────────────────────────────────
@app.get("/", include_in_schema=False)
async def root():
    return {
        "service": "alpha-service",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
    }


# ── 直接运行入口 ──────────────────────────────────────────
if __name__ == "__main__":
    uvicorn.run(
        "alpha_service.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
