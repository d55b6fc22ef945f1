"""Pure mapping from channel reservations to local bookings."""

import uuid
from collections.abc import Iterable
from decimal import Decimal, InvalidOperation

from ratesync.schemas.channel import ExternalBooking
from ratesync.schemas.domain import Booking, BookingStatus, ChannelConnection, RoomMapping

_BOOKING_NAMESPACE = uuid.UUID("6f1c3a52-2d0e-4b8e-9a57-0c1f4f7e9b21")

NON_IMPORTABLE_STATUSES = {"CANCELLED"}

# Channel status (upper-cased) → normalized external status
_STATUS_MAP = {
    "CONFIRMED": "CONFIRMED",
    "NEW": "CONFIRMED",
    "PENDING": "CONFIRMED",
    "BOOKED": "CONFIRMED",
    "MODIFIED": "MODIFIED",
    "AMENDED": "MODIFIED",
    "CANCELLED": "CANCELLED",
    "CANCELED": "CANCELLED",
}


def normalize_external_status(raw: str | None) -> str:
    """Unknown statuses fall back to CONFIRMED, matching how channels report new reservations."""
    if not isinstance(raw, str):
        return "CONFIRMED"
    return _STATUS_MAP.get(raw.strip().upper(), "CONFIRMED")


def parse_amount(value) -> Decimal:
    """Channel money fields arrive as strings or numbers; anything else counts as zero."""
    if isinstance(value, bool) or not isinstance(value, (str, int, float, Decimal)) or value == "":
        return Decimal("0")
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        return Decimal("0")
    return amount if amount.is_finite() else Decimal("0")


def parse_guest_count(value) -> int:
    try:
        return max(int(value), 1)
    except (TypeError, ValueError, OverflowError):
        return 1


def local_booking_id(channel: str, external_booking_id: str) -> str:
    """Stable local id, so the same reservation always maps to the same booking."""
    return uuid.uuid5(_BOOKING_NAMESPACE, f"{channel}:{external_booking_id}").hex


def find_mapping_for_room_type(
    external_room_type_id: str,
    mappings: Iterable[RoomMapping],
) -> RoomMapping | None:
    for mapping in mappings:
        if mapping.is_active and mapping.external_room_type_id == external_room_type_id:
            return mapping
    return None


def is_importable(external: ExternalBooking) -> bool:
    return external.status not in NON_IMPORTABLE_STATUSES


def to_local_booking(
    external: ExternalBooking,
    connection: ChannelConnection,
    mapping: RoomMapping,
) -> Booking:
    return Booking(
        id=local_booking_id(connection.channel_type, external.external_booking_id),
        hotel_id=connection.hotel_id,
        room_id=mapping.local_room_id,
        check_in=external.check_in,
        check_out=external.check_out,
        status=BookingStatus.CONFIRMED,
        origin=str(connection.channel_type),
        external_reference=external.external_booking_id,
        channel_connection_id=connection.id,
        guest_name=external.guest_name,
        guest_email=external.guest_email,
        guest_phone=external.guest_phone,
        guest_count=external.guest_count,
        total_amount=external.total_amount,
        currency=external.currency,
    )
