import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from ratesync.schemas.channel import InventorySyncResult, PullResult
from ratesync.schemas.domain import ChannelConnection, DateRange, Hotel
from ratesync.schemas.responses import ConnectionSyncResult, SyncBatchResponse, SyncSummary
from ratesync.services.batch import Outcome, RunBudget, describe_error, run_bounded
from ratesync.services.channel_manager import ChannelManager
from ratesync.services.channel_registry import ChannelConnectionRegistry

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_DAYS = 90
DEFAULT_PULL_LOOKBACK_HOURS = 24

Target = tuple[ChannelConnection, Hotel]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SyncBatchService:
    def __init__(
        self,
        registry: ChannelConnectionRegistry,
        manager: ChannelManager,
        *,
        window_days: int = DEFAULT_WINDOW_DAYS,
        pull_lookback_hours: int = DEFAULT_PULL_LOOKBACK_HOURS,
        concurrency: int = 1,
        entity_timeout: float | None = None,
        run_budget_seconds: float | None = None,
        tz: ZoneInfo | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._registry = registry
        self._manager = manager
        self._window_days = window_days
        self._pull_lookback = timedelta(hours=pull_lookback_hours)
        self._concurrency = concurrency
        self._entity_timeout = entity_timeout
        self._run_budget_seconds = run_budget_seconds
        self._tz = tz or ZoneInfo("UTC")
        self._clock = clock

    async def run(self) -> SyncBatchResponse:
        budget = RunBudget(self._run_budget_seconds)
        now = self._clock()
        today = now.astimezone(self._tz).date()
        window = DateRange(start=today, end=today + timedelta(days=self._window_days))
        since = now - self._pull_lookback

        targets = await self._registry.list_active()

        async def _worker(target: Target) -> ConnectionSyncResult:
            return await self.sync_connection(target, window, since)

        outcomes = await run_bounded(
            targets,
            _worker,
            key=lambda t: f"{t[0].channel_type} connection {t[0].id} ({t[1].name})",
            concurrency=self._concurrency,
            entity_timeout=self._entity_timeout,
            budget=budget,
            label="connection",
        )
        results = [_to_result(target, outcome) for target, outcome in zip(targets, outcomes)]

        skipped = sum(1 for r in results if r.status == "skipped")
        successful = sum(1 for r in results if r.status == "ok")
        summary = SyncSummary(
            total_connections=len(results),
            successful_syncs=successful,
            failed_syncs=len(results) - successful - skipped,
            skipped_connections=skipped,
            total_new_bookings=sum(r.bookings_pulled for r in results),
            complete=skipped == 0,
            duration_ms=budget.elapsed_ms(),
        )
        logger.info(
            "[Channel Sync] Completed in %dms - %d successful, %d failed, %d skipped, %d new bookings",
            summary.duration_ms, successful, summary.failed_syncs, skipped, summary.total_new_bookings,
        )
        return SyncBatchResponse(success=True, summary=summary, results=results)

    async def sync_connection(self, target: Target, window: DateRange, since: datetime) -> ConnectionSyncResult:
        conn, hotel = target
        # Both operations run and are recorded even when the other fails
        try:
            inventory = await self._manager.sync_inventory(conn.id, window)
        except Exception as exc:
            logger.exception("Inventory sync raised for connection %s", conn.id)
            inventory = InventorySyncResult(success=False, error_message=describe_error(exc))
        try:
            pulled = await self._manager.pull_bookings(conn.id, since)
        except Exception as exc:
            logger.exception("Booking pull raised for connection %s", conn.id)
            pulled = PullResult(success=False, error_message=describe_error(exc))

        ok = inventory.success and pulled.success
        errors = [e for e in (inventory.error_message, pulled.error_message) if e]
        logger.info("[Channel Sync] %s for %s: inventory=%s, bookings=%d",
                    conn.channel_type, hotel.name, inventory.success, pulled.bookings_created)
        return ConnectionSyncResult(
            connection_id=conn.id,
            hotel_id=hotel.id,
            hotel_name=hotel.name,
            channel=str(conn.channel_type),
            status="ok" if ok else "failed",
            inventory_sync=inventory,
            bookings_pull=pulled,
            error="; ".join(errors) or None,
        )


def _to_result(target: Target, outcome: Outcome[ConnectionSyncResult]) -> ConnectionSyncResult:
    conn, hotel = target
    if outcome.ok and outcome.value is not None:
        return outcome.value
    base = {
        "connection_id": conn.id,
        "hotel_id": hotel.id,
        "hotel_name": hotel.name,
        "channel": str(conn.channel_type),
    }
    if outcome.skipped:
        return ConnectionSyncResult(
            **base, status="skipped", error="Run budget exhausted before this connection was synced",
        )
    return ConnectionSyncResult(**base, status="failed", error=outcome.error)
