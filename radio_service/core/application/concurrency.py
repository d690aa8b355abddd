"""有界并发执行工具。"""

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from typing import TypeVar

T = TypeVar("T")
R = TypeVar("R")


async def bounded_gather(
    items: Iterable[T],
    worker: Callable[[T], Awaitable[R]],
    limit: int,
) -> list[R]:
    """以最多 limit 个并发执行 worker，结果顺序与输入一致。

    worker 抛出的异常会直接向上传播；需要容错的调用方应在 worker 内部自行捕获。

    Args:
        items: 待处理的元素
        worker: 针对单个元素的异步处理函数
        limit: 最大并发数（>= 1）

    Returns:
        与 items 顺序对应的结果列表
    """
    if limit < 1:
        raise ValueError("limit must be >= 1")

    semaphore = asyncio.Semaphore(limit)

    async def run(item: T) -> R:
        async with semaphore:
            return await worker(item)

    return list(await asyncio.gather(*(run(item) for item in items)))
