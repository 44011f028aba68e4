"""
有界并发映射
固定数量的 worker 共享一个下标游标，结果按输入顺序返回（与完成顺序无关）。
"""

import asyncio
from typing import Awaitable, Callable, List, Optional, Sequence, TypeVar

T = TypeVar("T")
R = TypeVar("R")


async def map_with_concurrency(
    items: Sequence[T],
    limit: int,
    fn: Callable[[T], Awaitable[R]],
) -> List[R]:
    """
    以最多 ``limit`` 个并发对 items 执行 fn

    fn 抛出的异常不会被吞掉：其余 worker 被取消，异常向上传递。
    需要容错的调用方应在 fn 内部自行捕获并编码失败。
    """
    if limit < 1:
        raise ValueError(f"concurrency limit must be >= 1, got {limit}")
    if not items:
        return []

    results: List[Optional[R]] = [None] * len(items)
    cursor = iter(range(len(items)))

    async def worker() -> None:
        for index in cursor:
            results[index] = await fn(items[index])

    workers = [
        asyncio.ensure_future(worker()) for _ in range(min(limit, len(items)))
    ]
    try:
        await asyncio.gather(*workers)
    except BaseException:
        for w in workers:
            w.cancel()
        raise
    return results  # type: ignore[return-value]
