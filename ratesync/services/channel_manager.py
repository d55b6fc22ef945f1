import logging
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from enum import StrEnum

from ratesync.exceptions.custom import ChannelError, DuplicateBookingError
from ratesync.mappers.booking_mapper import find_mapping_for_room_type, is_importable, to_local_booking
from ratesync.mappers.inventory_mapper import build_inventory_updates
from ratesync.schemas.channel import (
    ExternalBooking,
    InventorySyncResult,
    PullResult,
    PushResult,
    WebhookResult,
)
from ratesync.schemas.domain import (
    ChannelConnection,
    ChannelType,
    DateRange,
    RoomMapping,
    SyncLogEntry,
    SyncOperation,
    SyncStatus,
)
from ratesync.services.batch import describe_error
from ratesync.services.channel_adapter import ChannelAdapter
from ratesync.services.store import InventoryStore

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ImportOutcome(StrEnum):
    CREATED = "created"
    DUPLICATE = "duplicate"
    CANCELLED = "cancelled"
    UNMAPPED = "unmapped"


_IMPORT_MESSAGES = {
    ImportOutcome.CREATED: "Booking imported",
    ImportOutcome.DUPLICATE: "Booking already imported",
    ImportOutcome.CANCELLED: "Cancelled booking ignored",
    ImportOutcome.UNMAPPED: "No room mapping for external room type",
}


class ChannelManager:
    """Push local inventory to channels and import the bookings they take."""

    def __init__(
        self,
        store: InventoryStore,
        adapters: Mapping[ChannelType, ChannelAdapter],
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._store = store
        self._adapters = dict(adapters)
        self._clock = clock

    def adapter_for(self, channel_type: ChannelType) -> ChannelAdapter:
        adapter = self._adapters.get(channel_type)
        if adapter is None:
            raise ChannelError(f"No adapter available for channel: {channel_type}", channel=channel_type)
        return adapter

    async def _active_connection(self, connection_id: str) -> ChannelConnection | None:
        conn = await self._store.get_connection(connection_id)
        if conn is None or not conn.is_active:
            return None
        return conn

    # --- inventory push ---

    async def sync_inventory(self, connection_id: str, date_range: DateRange) -> InventorySyncResult:
        conn = await self._active_connection(connection_id)
        if conn is None:
            return InventorySyncResult(success=False, error_message="Connection not found or inactive")

        await self._store.update_connection_sync_state(connection_id, SyncStatus.SYNCING)
        details: dict = {"start": date_range.start.isoformat(), "end": date_range.end.isoformat()}
        try:
            result = await self._push(conn, date_range, details)
        except Exception as exc:
            logger.exception("Inventory push failed for connection %s", connection_id)
            result = PushResult(success=False, error_message=describe_error(exc))

        now = self._clock()
        await self._store.record_sync_log(SyncLogEntry(
            connection_id=connection_id,
            operation=SyncOperation.PUSH_INVENTORY,
            status="SUCCESS" if result.success else "FAILED",
            error_message=result.error_message,
            details=details,
            created_at=now,
        ))
        await self._store.update_connection_sync_state(
            connection_id,
            SyncStatus.IDLE if result.success else SyncStatus.ERROR,
            error=result.error_message,
            last_sync_at=now,
        )
        return InventorySyncResult(
            success=result.success,
            updates_sent=result.updates_sent,
            error_message=result.error_message,
        )

    async def _push(self, conn: ChannelConnection, date_range: DateRange, details: dict) -> PushResult:
        mappings = await self._store.find_room_mappings(conn.id)
        if not mappings:
            return PushResult(success=False, error_message="No room mappings configured")

        adapter = self.adapter_for(conn.channel_type)
        room_ids = sorted({m.local_room_id for m in mappings})
        records = await self._store.find_inventory(room_ids, date_range)
        updates = build_inventory_updates(records, mappings)
        details.update(room_count=len(room_ids), update_count=len(updates))

        logger.info("Pushing %d inventory updates to %s for connection %s",
                    len(updates), conn.channel_type, conn.id)
        return await adapter.push_availability(conn, updates)

    # --- booking pull ---

    async def pull_bookings(self, connection_id: str, since: datetime) -> PullResult:
        started = self._clock()
        conn = await self._active_connection(connection_id)
        if conn is None:
            return PullResult(success=False, error_message="Connection not found or inactive")

        # Never skip past a window an earlier failed run left unread
        cursor = since
        if conn.last_pull_watermark is not None and conn.last_pull_watermark < since:
            cursor = conn.last_pull_watermark

        details: dict = {"since": cursor.isoformat()}
        try:
            result = await self._pull(conn, cursor, details)
        except Exception as exc:
            logger.exception("Booking pull failed for connection %s", connection_id)
            result = PullResult(success=False, error_message=describe_error(exc))

        if result.success:
            await self._store.advance_pull_watermark(connection_id, started)
        else:
            await self._store.update_connection_sync_state(
                connection_id, SyncStatus.ERROR, error=result.error_message,
            )
        details.update(created=result.bookings_created, skipped=result.bookings_skipped)
        await self._store.record_sync_log(SyncLogEntry(
            connection_id=connection_id,
            operation=SyncOperation.PULL_BOOKINGS,
            status="SUCCESS" if result.success else "FAILED",
            error_message=result.error_message,
            details=details,
            created_at=self._clock(),
        ))
        return result

    async def _pull(self, conn: ChannelConnection, cursor: datetime, details: dict) -> PullResult:
        mappings = await self._store.find_room_mappings(conn.id)
        if not mappings:
            return PullResult(success=False, error_message="No room mappings configured")

        adapter = self.adapter_for(conn.channel_type)
        externals = await adapter.pull_new_bookings(conn, cursor)
        details["pulled"] = len(externals)

        created = skipped = 0
        for external in externals:
            outcome = await self.import_booking(conn, external, mappings)
            if outcome == ImportOutcome.CREATED:
                created += 1
            else:
                skipped += 1
        logger.info("Connection %s: %d bookings pulled, %d created, %d skipped",
                    conn.id, len(externals), created, skipped)
        return PullResult(success=True, bookings_created=created, bookings_skipped=skipped)

    async def import_booking(
        self,
        conn: ChannelConnection,
        external: ExternalBooking,
        mappings: list[RoomMapping],
    ) -> ImportOutcome:
        if not is_importable(external):
            return ImportOutcome.CANCELLED
        mapping = find_mapping_for_room_type(external.external_room_type_id, mappings)
        if mapping is None:
            logger.warning("No mapping found for external room type %s on connection %s",
                           external.external_room_type_id, conn.id)
            return ImportOutcome.UNMAPPED
        if await self._store.find_booking_by_external_reference(external.external_booking_id):
            return ImportOutcome.DUPLICATE
        try:
            await self._store.insert_booking(to_local_booking(external, conn, mapping))
        except DuplicateBookingError:
            # Lost a race with a concurrent import of the same reservation
            return ImportOutcome.DUPLICATE
        return ImportOutcome.CREATED

    # --- webhooks ---

    async def process_webhook(self, channel_type: ChannelType, payload: dict) -> WebhookResult:
        try:
            adapter = self.adapter_for(channel_type)
        except ChannelError as exc:
            return WebhookResult(success=False, message=exc.message)

        external = adapter.parse_webhook(payload)
        if external is None:
            return WebhookResult(success=False, message="Invalid webhook payload")

        conn = await self._store.find_connection_by_property(channel_type, external.external_property_id)
        if conn is None or not conn.is_active:
            return WebhookResult(success=False, message="No active connection found for this property")

        mappings = await self._store.find_room_mappings(conn.id)
        outcome = await self.import_booking(conn, external, mappings)
        logger.info("Webhook %s booking %s: %s", channel_type, external.external_booking_id, outcome)
        return WebhookResult(
            success=outcome != ImportOutcome.UNMAPPED,
            booking_created=outcome == ImportOutcome.CREATED,
            message=_IMPORT_MESSAGES[outcome],
        )
