import asyncio

import pytest

from skriptor.core.batching import batched_gather, chunked


def test_chunked_rejects_zero_size():
    with pytest.raises(ValueError):
        list(chunked([1, 2, 3], 0))


def test_chunked_keeps_remainder():
    assert [list(batch) for batch in chunked([1, 2, 3, 4, 5], 2)] == [[1, 2], [3, 4], [5]]


def test_batches_run_sequentially_with_bounded_concurrency():
    in_flight = 0
    peak = 0

    async def worker(item):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01 * (3 - item % 3))
        in_flight -= 1
        return [item * 10]

    results = asyncio.run(batched_gather(list(range(7)), worker, batch_size=3))

    assert results == [0, 10, 20, 30, 40, 50, 60]
    assert peak == 3


def test_stop_when_skips_remaining_batches():
    seen = []

    async def worker(item):
        seen.append(item)
        return [item, item]

    results = asyncio.run(
        batched_gather(list(range(10)), worker, batch_size=2, stop_when=lambda collected: len(collected) >= 6)
    )

    assert seen == [0, 1, 2, 3]
    assert results == [0, 0, 1, 1, 2, 2, 3, 3]


def test_failing_worker_cancels_rest_of_batch():
    cancelled = []
    finished = []

    async def worker(item):
        if item == 0:
            raise ValueError("page 1 unreadable")
        try:
            await asyncio.sleep(1)
        except asyncio.CancelledError:
            cancelled.append(item)
            raise
        finished.append(item)
        return [item]

    with pytest.raises(ValueError):
        asyncio.run(batched_gather([0, 1, 2, 3], worker, batch_size=3))

    assert sorted(cancelled) == [1, 2]
    assert finished == []
