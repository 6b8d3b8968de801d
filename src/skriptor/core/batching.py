"""Chunked parallel map with early termination."""

import asyncio
from typing import Awaitable, Callable, Iterable, List, Optional, Sequence, TypeVar

T = TypeVar("T")
R = TypeVar("R")


def chunked(items: Sequence[T], size: int) -> Iterable[Sequence[T]]:
    if size < 1:
        raise ValueError("batch size must be at least 1")
    for start in range(0, len(items), size):
        yield items[start:start + size]


async def batched_gather(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[List[R]]],
    batch_size: int = 5,
    stop_when: Optional[Callable[[List[R]], bool]] = None,
) -> List[R]:
    """Run ``worker`` over ``items`` one batch at a time.

    All items of a batch run concurrently; the next batch starts only after
    the previous one finished. Results keep the order of ``items``. After
    every batch ``stop_when`` is called with the results collected so far and
    remaining batches are skipped once it returns true.

    If a worker raises, the other workers of its batch are cancelled and
    awaited before the error propagates.
    """
    results: List[R] = []
    for batch in chunked(items, batch_size):
        tasks = [asyncio.ensure_future(worker(item)) for item in batch]
        try:
            batch_results = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        for item_results in batch_results:
            results.extend(item_results)
        if stop_when is not None and stop_when(results):
            break
    return results
