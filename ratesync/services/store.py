"""Inventory Store Gateway.

`InventoryStore` is everything the pricing and channel engines need from the
persistence layer. `InMemoryInventoryStore` implements it over plain dicts;
it backs the test-suite and local dry runs. `SqlInventoryStore`
(ratesync.services.sql_store) is the database-backed implementation.

Both implementations enforce the same two invariants:
  - one inventory record per (room, date); pricing writes never change an
    existing record's availability and never touch a BOOKED record;
  - a booking's external reference is unique (DuplicateBookingError).
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import StrEnum
from typing import Protocol

from ratesync.exceptions.custom import DuplicateBookingError, StoreError
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


class UpsertOutcome(StrEnum):
    CREATED = "created"
    UPDATED = "updated"
    SKIPPED_BOOKED = "skipped_booked"


class InventoryStore(Protocol):
    # Pricing side
    async def find_active_hotels(self) -> list[Hotel]: ...

    async def get_hotel(self, hotel_id: str) -> Hotel | None: ...

    async def find_active_rooms(self, hotel_id: str) -> list[Room]: ...

    async def find_active_seasonal_rules(self, date_range: DateRange) -> list[SeasonalRule]: ...

    async def upsert_inventory(
        self,
        room_id: str,
        stay_date: date,
        price: Decimal,
        status: AvailabilityStatus,
        now: datetime,
    ) -> UpsertOutcome: ...

    async def update_hotel_lowest_price(self, hotel_id: str, price: Decimal, as_of: datetime) -> None: ...

    async def count_confirmed_bookings(self, hotel_id: str, date_range: DateRange) -> int: ...

    # Channel side
    async def find_active_connections(self) -> list[tuple[ChannelConnection, Hotel]]: ...

    async def get_connection(self, connection_id: str) -> ChannelConnection | None: ...

    async def find_connection_by_property(
        self, channel_type: ChannelType, external_property_id: str,
    ) -> ChannelConnection | None: ...

    async def find_room_mappings(self, connection_id: str) -> list[RoomMapping]: ...

    async def find_inventory(self, room_ids: list[str], date_range: DateRange) -> list[InventoryRecord]: ...

    async def find_booking_by_external_reference(self, external_reference: str) -> Booking | None: ...

    async def insert_booking(self, booking: Booking) -> Booking: ...

    async def update_connection_sync_state(
        self,
        connection_id: str,
        status: SyncStatus,
        error: str | None = None,
        last_sync_at: datetime | None = None,
    ) -> None: ...

    async def advance_pull_watermark(self, connection_id: str, watermark: datetime) -> None: ...

    async def record_sync_log(self, entry: SyncLogEntry) -> None: ...


class InMemoryInventoryStore:
    def __init__(self) -> None:
        self.hotels: dict[str, Hotel] = {}
        self.rooms: dict[str, Room] = {}
        self.rules: dict[str, SeasonalRule] = {}
        self.inventory: dict[tuple[str, date], InventoryRecord] = {}
        self.bookings: dict[str, Booking] = {}
        self.connections: dict[str, ChannelConnection] = {}
        self.mappings: list[RoomMapping] = []
        self.sync_logs: list[SyncLogEntry] = []

    # --- seeding ---

    def add_hotel(self, hotel: Hotel) -> Hotel:
        self.hotels[hotel.id] = hotel
        return hotel

    def add_room(self, room: Room) -> Room:
        self.rooms[room.id] = room
        return room

    def add_rule(self, rule: SeasonalRule) -> SeasonalRule:
        self.rules[rule.id] = rule
        return rule

    def add_booking(self, booking: Booking) -> Booking:
        self.bookings[booking.id] = booking
        return booking

    def add_connection(self, connection: ChannelConnection) -> ChannelConnection:
        self.connections[connection.id] = connection
        return connection

    def add_mapping(self, mapping: RoomMapping) -> RoomMapping:
        self.mappings.append(mapping)
        return mapping

    def put_inventory(self, record: InventoryRecord) -> InventoryRecord:
        self.inventory[(record.room_id, record.stay_date)] = record
        return record

    # --- pricing side ---

    async def find_active_hotels(self) -> list[Hotel]:
        return [h for h in self.hotels.values() if h.status == HotelStatus.ACTIVE]

    async def get_hotel(self, hotel_id: str) -> Hotel | None:
        return self.hotels.get(hotel_id)

    async def find_active_rooms(self, hotel_id: str) -> list[Room]:
        return [r for r in self.rooms.values() if r.hotel_id == hotel_id and r.is_active]

    async def find_active_seasonal_rules(self, date_range: DateRange) -> list[SeasonalRule]:
        return [
            rule for rule in self.rules.values()
            if rule.is_active and date_range.overlaps(rule.start_date, rule.end_date)
        ]

    async def upsert_inventory(
        self,
        room_id: str,
        stay_date: date,
        price: Decimal,
        status: AvailabilityStatus,
        now: datetime,
    ) -> UpsertOutcome:
        key = (room_id, stay_date)
        existing = self.inventory.get(key)
        if existing is None:
            self.inventory[key] = InventoryRecord(
                room_id=room_id, stay_date=stay_date, price=price, status=status, updated_at=now,
            )
            return UpsertOutcome.CREATED
        if existing.status == AvailabilityStatus.BOOKED:
            return UpsertOutcome.SKIPPED_BOOKED
        existing.price = price
        existing.updated_at = now
        return UpsertOutcome.UPDATED

    async def update_hotel_lowest_price(self, hotel_id: str, price: Decimal, as_of: datetime) -> None:
        hotel = self.hotels.get(hotel_id)
        if hotel is None:
            raise StoreError(f"Hotel {hotel_id} not found", status_code=404)
        hotel.lowest_price_today = price
        hotel.lowest_price_updated_at = as_of

    async def count_confirmed_bookings(self, hotel_id: str, date_range: DateRange) -> int:
        return sum(
            1 for b in self.bookings.values()
            if b.hotel_id == hotel_id
            and b.status == BookingStatus.CONFIRMED
            and date_range.contains(b.check_in)
        )

    # --- channel side ---

    async def find_active_connections(self) -> list[tuple[ChannelConnection, Hotel]]:
        active: list[tuple[ChannelConnection, Hotel]] = []
        for conn in self.connections.values():
            hotel = self.hotels.get(conn.hotel_id)
            if conn.is_active and hotel is not None and hotel.status == HotelStatus.ACTIVE:
                active.append((conn, hotel))
        return active

    async def get_connection(self, connection_id: str) -> ChannelConnection | None:
        return self.connections.get(connection_id)

    async def find_connection_by_property(
        self, channel_type: ChannelType, external_property_id: str,
    ) -> ChannelConnection | None:
        for conn in self.connections.values():
            if conn.channel_type == channel_type and conn.external_property_id == external_property_id:
                return conn
        return None

    async def find_room_mappings(self, connection_id: str) -> list[RoomMapping]:
        return [m for m in self.mappings if m.connection_id == connection_id and m.is_active]

    async def find_inventory(self, room_ids: list[str], date_range: DateRange) -> list[InventoryRecord]:
        wanted = set(room_ids)
        return [
            rec for (room_id, day), rec in self.inventory.items()
            if room_id in wanted and date_range.contains(day)
        ]

    async def find_booking_by_external_reference(self, external_reference: str) -> Booking | None:
        for booking in self.bookings.values():
            if booking.external_reference == external_reference:
                return booking
        return None

    async def insert_booking(self, booking: Booking) -> Booking:
        reference = booking.external_reference
        if reference is not None and any(b.external_reference == reference for b in self.bookings.values()):
            raise DuplicateBookingError(reference)
        if booking.id in self.bookings:
            raise StoreError(f"Booking {booking.id} already exists", status_code=409)
        self.bookings[booking.id] = booking
        return booking

    async def update_connection_sync_state(
        self,
        connection_id: str,
        status: SyncStatus,
        error: str | None = None,
        last_sync_at: datetime | None = None,
    ) -> None:
        conn = self.connections.get(connection_id)
        if conn is None:
            raise StoreError(f"Connection {connection_id} not found", status_code=404)
        conn.sync_status = status
        conn.sync_error = error
        if last_sync_at is not None:
            conn.last_sync_at = last_sync_at

    async def advance_pull_watermark(self, connection_id: str, watermark: datetime) -> None:
        conn = self.connections.get(connection_id)
        if conn is None:
            raise StoreError(f"Connection {connection_id} not found", status_code=404)
        if conn.last_pull_watermark is None or watermark > conn.last_pull_watermark:
            conn.last_pull_watermark = watermark

    async def record_sync_log(self, entry: SyncLogEntry) -> None:
        self.sync_logs.append(entry)
