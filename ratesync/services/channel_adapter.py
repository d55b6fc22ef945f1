"""Contract between the channel manager and one external distribution channel.

Adapters speak the channel's wire protocol and nothing else: they never touch
the store. Transport failures surface as `ChannelError` (or httpx errors);
the channel manager turns them into per-connection failures.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Protocol

from ratesync.schemas.channel import ExternalBooking, InventoryUpdate, PushResult
from ratesync.schemas.domain import ChannelConnection, ChannelType

logger = logging.getLogger(__name__)

# Refresh a little before the channel says the token dies
EXPIRY_SKEW_SECONDS = 60.0


class ChannelAdapter(Protocol):
    channel_type: ChannelType

    async def push_availability(
        self, connection: ChannelConnection, updates: list[InventoryUpdate],
    ) -> PushResult: ...

    async def pull_new_bookings(
        self, connection: ChannelConnection, since: datetime,
    ) -> list[ExternalBooking]: ...

    def parse_webhook(self, payload: dict) -> ExternalBooking | None: ...


TokenFetcher = Callable[[], Awaitable[tuple[str, float]]]


class CredentialCache:
    """Time-bound access token owned by a single adapter instance.

    `fetch` returns `(token, expires_in_seconds)`. Concurrent callers share
    one refresh.
    """

    def __init__(
        self,
        fetch: TokenFetcher,
        *,
        skew_seconds: float = EXPIRY_SKEW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._fetch = fetch
        self._skew = skew_seconds
        self._clock = clock
        self._token: str | None = None
        self._expires_at = 0.0
        self._lock = asyncio.Lock()

    def _valid(self) -> bool:
        return self._token is not None and self._clock() < self._expires_at

    async def get(self) -> str:
        if self._valid():
            return self._token  # type: ignore[return-value]
        async with self._lock:
            if not self._valid():
                token, expires_in = await self._fetch()
                self._token = token
                self._expires_at = self._clock() + max(float(expires_in) - self._skew, 0.0)
                logger.info("Refreshed channel access token (expires in %ss)", expires_in)
            return self._token  # type: ignore[return-value]

    def invalidate(self) -> None:
        self._token = None
        self._expires_at = 0.0
