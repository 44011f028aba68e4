"""
服务配置模块
支持从环境变量 / .env 读取配置，所有 TTL 与超时单位均为秒
"""

import os
from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_events_path() -> str:
    """默认使用包内附带的宏观事件日历"""
    return os.path.join(os.path.dirname(os.path.abspath(__file__)), "data", "macro_events.json")


class AlphaServiceSettings(BaseSettings):
    """行情统计服务配置"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── 基础配置 ──────────────────────────────────────────
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=8001)
    DEBUG: bool = Field(default=False)
    ALLOWED_ORIGINS: List[str] = Field(
        default_factory=lambda: ["*"]
    )

    # ── 数据源配置 ─────────────────────────────────────────
    FINNHUB_API_KEY: str = Field(default="")
    FINNHUB_BASE_URL: str = Field(default="https://finnhub.io/api/v1")
    STOOQ_HISTORY_URL: str = Field(default="https://stooq.com/q/d/l/")
    WIKI_USER_AGENT: str = Field(default="BasicAlpha/1.0 (constituent fallback)")
    MACRO_EVENTS_PATH: str = Field(default_factory=_default_events_path)

    # ── HTTP 重试配置 ─────────────────────────────────────
    HTTP_MAX_RETRIES: int = Field(default=2)
    HTTP_BACKOFF_BASE: float = Field(default=0.25)   # 首次退避（秒），逐次翻倍
    HTTP_TIMEOUT: float = Field(default=15.0)        # 单次请求超时（秒）
    FETCH_CONCURRENCY: int = Field(default=5)

    # ── 缓存配置 ──────────────────────────────────────────
    UNIVERSE_CACHE_TTL: int = Field(default=24 * 60 * 60)
    EARNINGS_CACHE_TTL: int = Field(default=6 * 60 * 60)
    PRICE_CACHE_TTL: int = Field(default=24 * 60 * 60)
    CACHE_SWEEP_INTERVAL: int = Field(default=300)

    # ── 日志配置 ──────────────────────────────────────────
    LOG_LEVEL: str = Field(default="INFO")


@lru_cache
def get_settings() -> AlphaServiceSettings:
    """获取全局配置（单例）"""
    return AlphaServiceSettings()


settings = get_settings()
