import asyncio

import pytest

from app.features.link_checker.services.concurrency import ConcurrencyLimiter


def test_limit_must_be_positive():
    with pytest.raises(ValueError):
        ConcurrencyLimiter(0)


@pytest.mark.asyncio
async def test_never_exceeds_limit():
    limiter = ConcurrencyLimiter(3)
    peak = 0

    async def work(i):
        nonlocal peak
        peak = max(peak, limiter.active)
        await asyncio.sleep(0.01)
        return i * 2

    results = await limiter.map(work, range(20))

    assert peak == 3
    assert results == [i * 2 for i in range(20)]
    assert limiter.active == 0


@pytest.mark.asyncio
async def test_on_result_sees_every_result():
    limiter = ConcurrencyLimiter(2)
    seen = []

    async def work(i):
        await asyncio.sleep(0.001 * (5 - i))
        return i

    async def on_result(value):
        seen.append(value)

    await limiter.map(work, range(5), on_result=on_result)

    assert sorted(seen) == [0, 1, 2, 3, 4]


@pytest.mark.asyncio
async def test_slot_is_released_on_error():
    limiter = ConcurrencyLimiter(1)

    async def boom():
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        await limiter.run(boom)

    assert limiter.active == 0
    assert await asyncio.wait_for(limiter.run(asyncio.sleep, 0, result="ok"), timeout=1) == "ok"
