import asyncio

import httpx
import pytest

from ratesync.services.batch import RunBudget, describe_error, run_bounded


@pytest.mark.asyncio
async def test_results_keep_input_order():
    async def worker(n: int) -> int:
        await asyncio.sleep(0.01 * (5 - n))
        return n * 10

    outcomes = await run_bounded([1, 2, 3, 4], worker, key=str, concurrency=4)

    assert [o.value for o in outcomes] == [10, 20, 30, 40]
    assert all(o.ok for o in outcomes)


@pytest.mark.asyncio
async def test_concurrency_is_bounded():
    in_flight = 0
    peak = 0

    async def worker(n: int) -> int:
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1
        return n

    await run_bounded(list(range(10)), worker, key=str, concurrency=3)

    assert peak == 3


@pytest.mark.asyncio
async def test_worker_errors_become_outcomes():
    async def worker(n: int) -> int:
        if n == 2:
            raise RuntimeError("hotel 2 exploded")
        return n

    outcomes = await run_bounded([1, 2, 3], worker, key=str)

    assert outcomes[1].ok is False
    assert outcomes[1].error == "hotel 2 exploded"
    assert outcomes[0].value == 1
    assert outcomes[2].value == 3


@pytest.mark.asyncio
async def test_entity_timeout():
    async def worker(n: int) -> int:
        await asyncio.sleep(1)
        return n

    outcomes = await run_bounded([1], worker, key=str, entity_timeout=0.01)

    assert outcomes[0].error == "Timed out after 0.01s"


@pytest.mark.asyncio
async def test_expired_budget_skips_unstarted_items():
    ticks = iter([0.0, 0.0, 100.0, 100.0, 100.0])
    budget = RunBudget(10, clock=lambda: next(ticks))
    seen = []

    async def worker(n: int) -> int:
        seen.append(n)
        return n

    outcomes = await run_bounded([1, 2], worker, key=str, budget=budget)

    assert seen == [1]
    assert outcomes[0].ok
    assert outcomes[1].skipped is True
    assert outcomes[1].ok is False


def test_describe_error():
    request = httpx.Request("POST", "https://example.test")
    response = httpx.Response(503, request=request)

    assert describe_error(httpx.HTTPStatusError("x", request=request, response=response)) == "HTTP 503"
    assert describe_error(httpx.ConnectError("refused")) == "Could not connect to channel"
    assert describe_error(httpx.ReadTimeout("slow")) == "Channel request timed out (ReadTimeout)"
    assert describe_error(ValueError()) == "ValueError"
