from __future__ import annotations

from datetime import date, datetime, timedelta
from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel, Field, model_validator


class HotelStatus(StrEnum):
    ACTIVE = "ACTIVE"
    PENDING = "PENDING"
    SUSPENDED = "SUSPENDED"


class AvailabilityStatus(StrEnum):
    AVAILABLE = "AVAILABLE"
    BLOCKED = "BLOCKED"
    BOOKED = "BOOKED"


class BookingStatus(StrEnum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    CHECKED_OUT = "CHECKED_OUT"
    COMPLETED = "COMPLETED"


class ChannelType(StrEnum):
    BOOKING_COM = "BOOKING_COM"
    EXPEDIA = "EXPEDIA"
    AGODA = "AGODA"
    SHARETRIP = "SHARETRIP"
    GOZAYAAN = "GOZAYAAN"


LOCAL_ORIGIN = "LOCAL"


class SyncStatus(StrEnum):
    IDLE = "IDLE"
    SYNCING = "SYNCING"
    ERROR = "ERROR"


class SyncOperation(StrEnum):
    PUSH_INVENTORY = "PUSH_INVENTORY"
    PULL_BOOKINGS = "PULL_BOOKINGS"


class DateRange(BaseModel):
    """Inclusive calendar range."""

    start: date
    end: date

    @model_validator(mode="after")
    def _check_order(self) -> DateRange:
        if self.end < self.start:
            raise ValueError(f"end {self.end} is before start {self.start}")
        return self

    @classmethod
    def from_horizon(cls, start: date, days: int) -> DateRange:
        return cls(start=start, end=start + timedelta(days=days - 1))

    def days(self) -> list[date]:
        return [self.start + timedelta(days=i) for i in range((self.end - self.start).days + 1)]

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def overlaps(self, start: date, end: date) -> bool:
        return start <= self.end and end >= self.start


class Hotel(BaseModel):
    id: str
    name: str
    status: HotelStatus = HotelStatus.PENDING
    lowest_price_today: Decimal | None = None
    lowest_price_updated_at: datetime | None = None


class Room(BaseModel):
    id: str
    hotel_id: str
    base_price: Decimal
    is_active: bool = True


class InventoryRecord(BaseModel):
    room_id: str
    stay_date: date
    price: Decimal
    status: AvailabilityStatus = AvailabilityStatus.AVAILABLE
    updated_at: datetime | None = None


class SeasonalRule(BaseModel):
    id: str
    name: str
    start_date: date
    end_date: date
    multiplier: Decimal = Field(gt=0)
    is_active: bool = True

    def applies_to(self, day: date) -> bool:
        return self.is_active and self.start_date <= day <= self.end_date


class Booking(BaseModel):
    id: str
    hotel_id: str
    room_id: str | None = None
    check_in: date
    check_out: date
    status: BookingStatus = BookingStatus.PENDING
    origin: str = LOCAL_ORIGIN  # LOCAL | ChannelType value
    external_reference: str | None = None
    channel_connection_id: str | None = None
    guest_name: str | None = None
    guest_email: str | None = None
    guest_phone: str | None = None
    guest_count: int = 1
    total_amount: Decimal = Decimal("0")
    currency: str | None = None

    @property
    def nights(self) -> int:
        return max((self.check_out - self.check_in).days, 0)


class ChannelConnection(BaseModel):
    id: str
    hotel_id: str
    channel_type: ChannelType
    external_property_id: str | None = None
    credentials: dict[str, str] = {}
    is_active: bool = False
    last_sync_at: datetime | None = None
    last_pull_watermark: datetime | None = None
    sync_status: SyncStatus = SyncStatus.IDLE
    sync_error: str | None = None


class RoomMapping(BaseModel):
    connection_id: str
    local_room_id: str
    external_room_type_id: str
    external_rate_plan_id: str | None = None
    is_active: bool = True


class SyncLogEntry(BaseModel):
    connection_id: str
    operation: SyncOperation
    status: str  # "SUCCESS" | "FAILED"
    error_message: str | None = None
    details: dict = {}
    created_at: datetime
