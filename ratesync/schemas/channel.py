from datetime import date
from decimal import Decimal

from pydantic import BaseModel

from ratesync.schemas.domain import ChannelType


class InventoryUpdate(BaseModel):
    room_id: str
    external_room_type_id: str
    external_rate_plan_id: str | None = None
    stay_date: date
    available: bool
    price: Decimal | None = None


class PushResult(BaseModel):
    success: bool
    updates_sent: int = 0
    error_message: str | None = None
    raw_response: dict | None = None


class ExternalBooking(BaseModel):
    external_booking_id: str
    channel_type: ChannelType
    external_property_id: str
    external_room_type_id: str
    check_in: date
    check_out: date
    guest_name: str = "Guest"
    guest_email: str | None = None
    guest_phone: str | None = None
    guest_count: int = 1
    total_amount: Decimal = Decimal("0")
    currency: str | None = None
    status: str = "CONFIRMED"  # "CONFIRMED" | "CANCELLED" | "MODIFIED"
    raw_payload: dict = {}


class InventorySyncResult(BaseModel):
    success: bool
    updates_sent: int = 0
    error_message: str | None = None


class PullResult(BaseModel):
    success: bool
    bookings_created: int = 0
    bookings_skipped: int = 0
    error_message: str | None = None


class WebhookResult(BaseModel):
    success: bool
    booking_created: bool = False
    message: str | None = None
