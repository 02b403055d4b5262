import asyncio
from typing import Awaitable, Callable, List, Sequence, TypeVar

T = TypeVar("T")
R = TypeVar("R")


async def process_batches(items: Sequence[T], batch_size: int,
                          lookup: Callable[[T], Awaitable[R]]) -> List[R]:
    """Run ``lookup`` over ``items`` at most ``batch_size`` at a time.

    Chunks run one after another; inside a chunk every lookup runs
    concurrently and the whole chunk is awaited before the next one starts.
    Results are index-aligned with ``items``. A lookup that raises aborts the
    call, so lookups are expected to turn their own failures into a value.
    """
    if batch_size <= 0:
        raise ValueError(f"batch_size must be positive, got {batch_size}")
    results: List[R] = []
    for start in range(0, len(items), batch_size):
        chunk = items[start:start + batch_size]
        results.extend(await asyncio.gather(*(lookup(item) for item in chunk)))
    return results
