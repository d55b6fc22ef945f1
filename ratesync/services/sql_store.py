import logging
from datetime import date, datetime, timezone
from decimal import Decimal

from pydantic import BaseModel
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ratesync.exceptions.custom import DuplicateBookingError, StoreError
from ratesync.models import (
    BookingRow,
    ChannelConnectionRow,
    HotelRow,
    InventoryRow,
    RoomMappingRow,
    RoomRow,
    SeasonalRuleRow,
    SyncLogRow,
)
from ratesync.schemas.domain import (
    AvailabilityStatus,
    Booking,
    BookingStatus,
    ChannelConnection,
    ChannelType,
    DateRange,
    Hotel,
    HotelStatus,
    InventoryRecord,
    Room,
    RoomMapping,
    SeasonalRule,
    SyncLogEntry,
    SyncStatus,
)
from ratesync.services.store import UpsertOutcome

logger = logging.getLogger(__name__)


def _aware(value: datetime | None) -> datetime | None:
    """SQLite drops tzinfo; stored timestamps are always UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _hotel(row: HotelRow) -> Hotel:
    return Hotel(
        id=row.id,
        name=row.name,
        status=HotelStatus(row.status),
        lowest_price_today=row.lowest_price_today,
        lowest_price_updated_at=_aware(row.lowest_price_updated_at),
    )


def _room(row: RoomRow) -> Room:
    return Room(id=row.id, hotel_id=row.hotel_id, base_price=row.base_price, is_active=row.is_active)


def _rule(row: SeasonalRuleRow) -> SeasonalRule:
    return SeasonalRule(
        id=row.id,
        name=row.name,
        start_date=row.start_date,
        end_date=row.end_date,
        multiplier=row.multiplier,
        is_active=row.is_active,
    )


def _inventory(row: InventoryRow) -> InventoryRecord:
    return InventoryRecord(
        room_id=row.room_id,
        stay_date=row.stay_date,
        price=row.price,
        status=AvailabilityStatus(row.status),
        updated_at=_aware(row.updated_at),
    )


def _booking(row: BookingRow) -> Booking:
    return Booking(
        id=row.id,
        hotel_id=row.hotel_id,
        room_id=row.room_id,
        check_in=row.check_in,
        check_out=row.check_out,
        status=BookingStatus(row.status),
        origin=row.origin,
        external_reference=row.external_reference,
        channel_connection_id=row.channel_connection_id,
        guest_name=row.guest_name,
        guest_email=row.guest_email,
        guest_phone=row.guest_phone,
        guest_count=row.guest_count,
        total_amount=row.total_amount,
        currency=row.currency,
    )


def _connection(row: ChannelConnectionRow) -> ChannelConnection:
    return ChannelConnection(
        id=row.id,
        hotel_id=row.hotel_id,
        channel_type=ChannelType(row.channel_type),
        external_property_id=row.external_property_id,
        credentials=row.credentials or {},
        is_active=row.is_active,
        last_sync_at=_aware(row.last_sync_at),
        last_pull_watermark=_aware(row.last_pull_watermark),
        sync_status=SyncStatus(row.sync_status),
        sync_error=row.sync_error,
    )


def _mapping(row: RoomMappingRow) -> RoomMapping:
    return RoomMapping(
        connection_id=row.connection_id,
        local_room_id=row.local_room_id,
        external_room_type_id=row.external_room_type_id,
        external_rate_plan_id=row.external_rate_plan_id,
        is_active=row.is_active,
    )


_ROW_TYPES: dict[type[BaseModel], type] = {
    Hotel: HotelRow,
    Room: RoomRow,
    SeasonalRule: SeasonalRuleRow,
    InventoryRecord: InventoryRow,
    Booking: BookingRow,
    ChannelConnection: ChannelConnectionRow,
    RoomMapping: RoomMappingRow,
}


class SqlInventoryStore:
    """InventoryStore over SQLAlchemy's async ORM. One short session per call."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = session_factory

    async def seed(self, *items: BaseModel) -> None:
        """Insert domain objects as-is (fixtures, local setup scripts)."""
        async with self._sessions() as session:
            for item in items:
                row_type = _ROW_TYPES.get(type(item))
                if row_type is None:
                    raise StoreError(f"Cannot seed {type(item).__name__}")
                session.add(row_type(**item.model_dump()))
            await session.commit()

    # --- pricing side ---

    async def find_active_hotels(self) -> list[Hotel]:
        async with self._sessions() as session:
            result = await session.scalars(
                select(HotelRow).where(HotelRow.status == HotelStatus.ACTIVE.value).order_by(HotelRow.id)
            )
            return [_hotel(row) for row in result]

    async def get_hotel(self, hotel_id: str) -> Hotel | None:
        async with self._sessions() as session:
            row = await session.get(HotelRow, hotel_id)
            return _hotel(row) if row else None

    async def find_active_rooms(self, hotel_id: str) -> list[Room]:
        async with self._sessions() as session:
            result = await session.scalars(
                select(RoomRow)
                .where(RoomRow.hotel_id == hotel_id, RoomRow.is_active.is_(True))
                .order_by(RoomRow.id)
            )
            return [_room(row) for row in result]

    async def find_active_seasonal_rules(self, date_range: DateRange) -> list[SeasonalRule]:
        async with self._sessions() as session:
            result = await session.scalars(
                select(SeasonalRuleRow).where(
                    SeasonalRuleRow.is_active.is_(True),
                    SeasonalRuleRow.start_date <= date_range.end,
                    SeasonalRuleRow.end_date >= date_range.start,
                )
            )
            return [_rule(row) for row in result]

    async def upsert_inventory(
        self,
        room_id: str,
        stay_date: date,
        price: Decimal,
        status: AvailabilityStatus,
        now: datetime,
    ) -> UpsertOutcome:
        async with self._sessions() as session:
            if await self._update_unbooked(session, room_id, stay_date, price, now):
                await session.commit()
                return UpsertOutcome.UPDATED

            exists = await session.scalar(
                select(InventoryRow.id).where(
                    InventoryRow.room_id == room_id, InventoryRow.stay_date == stay_date,
                )
            )
            if exists is not None:
                # Row is present but the conditional update matched nothing: it is BOOKED
                return UpsertOutcome.SKIPPED_BOOKED

            session.add(InventoryRow(
                room_id=room_id, stay_date=stay_date, price=price, status=status.value, updated_at=now,
            ))
            try:
                await session.commit()
                return UpsertOutcome.CREATED
            except IntegrityError:
                # Lost an insert race; retry as an update of the winner's row
                await session.rollback()
                if await self._update_unbooked(session, room_id, stay_date, price, now):
                    await session.commit()
                    return UpsertOutcome.UPDATED
                return UpsertOutcome.SKIPPED_BOOKED

    async def _update_unbooked(
        self,
        session: AsyncSession,
        room_id: str,
        stay_date: date,
        price: Decimal,
        now: datetime,
    ) -> bool:
        result = await session.execute(
            update(InventoryRow)
            .where(
                InventoryRow.room_id == room_id,
                InventoryRow.stay_date == stay_date,
                InventoryRow.status != AvailabilityStatus.BOOKED.value,
            )
            .values(price=price, updated_at=now)
        )
        return result.rowcount > 0

    async def update_hotel_lowest_price(self, hotel_id: str, price: Decimal, as_of: datetime) -> None:
        async with self._sessions() as session:
            result = await session.execute(
                update(HotelRow)
                .where(HotelRow.id == hotel_id)
                .values(lowest_price_today=price, lowest_price_updated_at=as_of)
            )
            if result.rowcount == 0:
                raise StoreError(f"Hotel {hotel_id} not found", status_code=404)
            await session.commit()

    async def count_confirmed_bookings(self, hotel_id: str, date_range: DateRange) -> int:
        async with self._sessions() as session:
            count = await session.scalar(
                select(func.count())
                .select_from(BookingRow)
                .where(
                    BookingRow.hotel_id == hotel_id,
                    BookingRow.status == BookingStatus.CONFIRMED.value,
                    BookingRow.check_in >= date_range.start,
                    BookingRow.check_in <= date_range.end,
                )
            )
            return int(count or 0)

    # --- channel side ---

    async def find_active_connections(self) -> list[tuple[ChannelConnection, Hotel]]:
        async with self._sessions() as session:
            result = await session.execute(
                select(ChannelConnectionRow, HotelRow)
                .join(HotelRow, HotelRow.id == ChannelConnectionRow.hotel_id)
                .where(
                    ChannelConnectionRow.is_active.is_(True),
                    HotelRow.status == HotelStatus.ACTIVE.value,
                )
                .order_by(ChannelConnectionRow.id)
            )
            return [(_connection(conn), _hotel(hotel)) for conn, hotel in result.all()]

    async def get_connection(self, connection_id: str) -> ChannelConnection | None:
        async with self._sessions() as session:
            row = await session.get(ChannelConnectionRow, connection_id)
            return _connection(row) if row else None

    async def find_connection_by_property(
        self, channel_type: ChannelType, external_property_id: str,
    ) -> ChannelConnection | None:
        async with self._sessions() as session:
            row = await session.scalar(
                select(ChannelConnectionRow)
                .where(
                    ChannelConnectionRow.channel_type == channel_type.value,
                    ChannelConnectionRow.external_property_id == external_property_id,
                )
                .limit(1)
            )
            return _connection(row) if row else None

    async def find_room_mappings(self, connection_id: str) -> list[RoomMapping]:
        async with self._sessions() as session:
            result = await session.scalars(
                select(RoomMappingRow).where(
                    RoomMappingRow.connection_id == connection_id,
                    RoomMappingRow.is_active.is_(True),
                )
            )
            return [_mapping(row) for row in result]

    async def find_inventory(self, room_ids: list[str], date_range: DateRange) -> list[InventoryRecord]:
        if not room_ids:
            return []
        async with self._sessions() as session:
            result = await session.scalars(
                select(InventoryRow)
                .where(
                    InventoryRow.room_id.in_(room_ids),
                    InventoryRow.stay_date >= date_range.start,
                    InventoryRow.stay_date <= date_range.end,
                )
                .order_by(InventoryRow.room_id, InventoryRow.stay_date)
            )
            return [_inventory(row) for row in result]

    async def find_booking_by_external_reference(self, external_reference: str) -> Booking | None:
        async with self._sessions() as session:
            row = await session.scalar(
                select(BookingRow).where(BookingRow.external_reference == external_reference)
            )
            return _booking(row) if row else None

    async def insert_booking(self, booking: Booking) -> Booking:
        async with self._sessions() as session:
            session.add(BookingRow(**booking.model_dump()))
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                # Only a unique-reference clash means the booking is already imported
                if booking.external_reference is not None and await session.scalar(
                    select(BookingRow.id).where(BookingRow.external_reference == booking.external_reference)
                ):
                    raise DuplicateBookingError(booking.external_reference) from exc
                raise StoreError(f"Could not insert booking {booking.id}: {exc.orig}") from exc
        return booking

    async def update_connection_sync_state(
        self,
        connection_id: str,
        status: SyncStatus,
        error: str | None = None,
        last_sync_at: datetime | None = None,
    ) -> None:
        values: dict = {"sync_status": status.value, "sync_error": error}
        if last_sync_at is not None:
            values["last_sync_at"] = last_sync_at
        async with self._sessions() as session:
            result = await session.execute(
                update(ChannelConnectionRow).where(ChannelConnectionRow.id == connection_id).values(**values)
            )
            if result.rowcount == 0:
                raise StoreError(f"Connection {connection_id} not found", status_code=404)
            await session.commit()

    async def advance_pull_watermark(self, connection_id: str, watermark: datetime) -> None:
        async with self._sessions() as session:
            row = await session.get(ChannelConnectionRow, connection_id)
            if row is None:
                raise StoreError(f"Connection {connection_id} not found", status_code=404)
            current = _aware(row.last_pull_watermark)
            if current is None or watermark > current:
                row.last_pull_watermark = watermark
                await session.commit()

    async def record_sync_log(self, entry: SyncLogEntry) -> None:
        async with self._sessions() as session:
            session.add(SyncLogRow(
                connection_id=entry.connection_id,
                operation=entry.operation.value,
                status=entry.status,
                error_message=entry.error_message,
                details=entry.details,
                created_at=entry.created_at,
            ))
            await session.commit()
