"""Per-entity batch execution shared by the pricing and sync orchestrators.

Every entity is folded into an `Outcome`: a value, an error message, or a
skip marker when the run budget ran out before the entity started. Nothing
raised inside a worker escapes `run_bounded`.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Generic, TypeVar

import httpx

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class Outcome(Generic[R]):
    value: R | None = None
    error: str | None = None
    skipped: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and not self.skipped


class RunBudget:
    """Wall-clock budget for one run. `None` seconds means unlimited."""

    def __init__(self, seconds: float | None, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._started = clock()
        self._deadline = None if seconds is None else self._started + seconds

    def expired(self) -> bool:
        return self._deadline is not None and self._clock() >= self._deadline

    def elapsed_ms(self) -> int:
        return int((self._clock() - self._started) * 1000)


def describe_error(exc: BaseException) -> str:
    """Human-readable description for the per-entity error slot."""
    if isinstance(exc, TimeoutError):
        return "Timed out"
    if isinstance(exc, httpx.TimeoutException):
        return f"Channel request timed out ({type(exc).__name__})"
    if isinstance(exc, httpx.ConnectError):
        return "Could not connect to channel"
    if isinstance(exc, httpx.HTTPStatusError):
        return f"HTTP {exc.response.status_code}"
    text = str(exc).strip()
    if text:
        return text
    return type(exc).__name__


async def run_bounded(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[R]],
    *,
    key: Callable[[T], str],
    concurrency: int = 1,
    entity_timeout: float | None = None,
    budget: RunBudget | None = None,
    label: str = "entity",
) -> list[Outcome[R]]:
    """Run `worker` over `items` with at most `concurrency` in flight.

    Results come back in input order, one Outcome per item.
    """
    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def _one(item: T) -> Outcome[R]:
        async with semaphore:
            if budget is not None and budget.expired():
                logger.warning("Run budget exhausted, skipping %s %s", label, key(item))
                return Outcome(skipped=True)
            try:
                async with asyncio.timeout(entity_timeout):
                    return Outcome(value=await worker(item))
            except TimeoutError:
                logger.error("%s %s timed out after %ss", label, key(item), entity_timeout)
                return Outcome(error=f"Timed out after {entity_timeout}s")
            except Exception as exc:
                logger.exception("Error processing %s %s", label, key(item))
                return Outcome(error=describe_error(exc))

    return list(await asyncio.gather(*(_one(item) for item in items)))
