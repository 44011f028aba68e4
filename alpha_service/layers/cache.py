"""
Layer 2 – 缓存层
进程内 TTL 缓存，带 single-flight：同一 key 的并发请求只触发一次 loader。
实例由 ServiceContainer 显式创建并注入，不使用模块级单例。
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict

logger = logging.getLogger(__name__)

Loader = Callable[[], Awaitable[Any]]


@dataclass
class _CacheEntry:
    value: Any
    expires_at: float


class TTLCache:
    """过期即失效的 key/value 缓存，同时追踪进行中的加载任务"""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._store: Dict[str, _CacheEntry] = {}
        self._inflight: Dict[str, "asyncio.Task[Any]"] = {}

    async def get_or_set(self, key: str, ttl: float, loader: Loader) -> Any:
        """
        命中未过期缓存直接返回；否则复用进行中的加载，或启动新的加载

        Args:
            key: 缓存键
            ttl: 有效期（秒）
            loader: 无参协程函数，失败时异常传递给所有等待者且不写缓存
        """
        entry = self._store.get(key)
        if entry is not None:
            if entry.expires_at > self._clock():
                logger.debug(f"缓存命中: {key}")
                return entry.value
            del self._store[key]

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._load(key, ttl, loader))
            self._inflight[key] = task
        else:
            logger.debug(f"复用进行中的加载: {key}")

        # 单个调用方被取消时不影响其他等待者
        return await asyncio.shield(task)

    async def _load(self, key: str, ttl: float, loader: Loader) -> Any:
        try:
            value = await loader()
            self._store[key] = _CacheEntry(value=value, expires_at=self._clock() + ttl)
            logger.debug(f"缓存写入: {key} (ttl={ttl}s)")
            return value
        finally:
            self._inflight.pop(key, None)

    def clear_expired(self) -> int:
        """清理所有过期条目，返回清理数量"""
        now = self._clock()
        expired = [k for k, e in self._store.items() if e.expires_at <= now]
        for key in expired:
            del self._store[key]
        if expired:
            logger.debug(f"清理过期缓存 {len(expired)} 条")
        return len(expired)

    def delete(self, key: str) -> bool:
        return self._store.pop(key, None) is not None

    def clear(self) -> int:
        count = len(self._store)
        self._store.clear()
        return count

    def stats(self) -> Dict[str, int]:
        return {"entries": len(self._store), "inflight": len(self._inflight)}


async def run_sweeper(cache: TTLCache, interval: float) -> None:
    """后台定期清理过期缓存，由应用生命周期启动 / 取消"""
    while True:
        await asyncio.sleep(interval)
        removed = cache.clear_expired()
        if removed:
            logger.info(f"定期清理过期缓存 {removed} 条")
