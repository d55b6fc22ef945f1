import json
from datetime import date, datetime, timezone
from decimal import Decimal

import httpx
import pytest
import respx
from httpx import Response

from ratesync.exceptions.custom import ChannelError
from ratesync.schemas.channel import InventoryUpdate
from ratesync.schemas.domain import ChannelConnection, ChannelType
from ratesync.services.agoda import AGODA_SANDBOX_BASE, AgodaService

SET_ARI_URL = f"{AGODA_SANDBOX_BASE}/SetAriV2"
BOOKING_LIST_URL = f"{AGODA_SANDBOX_BASE}/GetBookingList"
SINCE = datetime(2026, 10, 16, 6, 0, tzinfo=timezone.utc)


def _connection(**overrides) -> ChannelConnection:
    data = {
        "id": "conn-1",
        "hotel_id": "hotel-1",
        "channel_type": ChannelType.AGODA,
        "external_property_id": "P100",
        "credentials": {"api_key": "agoda-key"},
        "is_active": True,
    }
    data.update(overrides)
    return ChannelConnection(**data)


def _update(room_type: str, day: int, available: bool = True, price: str = "4500.00") -> InventoryUpdate:
    return InventoryUpdate(
        room_id=f"local-{room_type}",
        external_room_type_id=room_type,
        stay_date=date(2026, 11, day),
        available=available,
        price=Decimal(price),
    )


@respx.mock
@pytest.mark.asyncio
async def test_push_availability_groups_by_room_type():
    route = respx.post(SET_ARI_URL).mock(return_value=Response(200, json={"status": "OK"}))
    updates = [_update("RT1", 1), _update("RT1", 2, available=False), _update("RT2", 1)]

    async with httpx.AsyncClient() as client:
        service = AgodaService(client)
        result = await service.push_availability(_connection(), updates)

    assert result.success is True
    assert result.updates_sent == 3
    request = route.calls.last.request
    assert request.headers["Authorization"] == "Bearer agoda-key"
    body = json.loads(request.content)
    assert body["propertyId"] == "P100"
    assert body["ariUpdates"] == [
        {
            "roomTypeId": "RT1",
            "dateRanges": [
                {"date": "2026-11-01", "availability": 1, "price": 4500.0},
                {"date": "2026-11-02", "availability": 0, "price": 4500.0},
            ],
        },
        {
            "roomTypeId": "RT2",
            "dateRanges": [{"date": "2026-11-01", "availability": 1, "price": 4500.0}],
        },
    ]


@respx.mock
@pytest.mark.asyncio
async def test_push_availability_error_response_is_a_failed_result():
    respx.post(SET_ARI_URL).mock(return_value=Response(400, json={"message": "Unknown room type"}))

    async with httpx.AsyncClient() as client:
        result = await AgodaService(client).push_availability(_connection(), [_update("RT9", 1)])

    assert result.success is False
    assert result.error_message == "Unknown room type"


@respx.mock
@pytest.mark.asyncio
async def test_push_availability_error_without_body():
    respx.post(SET_ARI_URL).mock(return_value=Response(500, text="oops"))

    async with httpx.AsyncClient() as client:
        result = await AgodaService(client).push_availability(_connection(), [_update("RT1", 1)])

    assert result.success is False
    assert result.error_message == "API error: 500"


@respx.mock
@pytest.mark.asyncio
async def test_rate_limit_raises():
    respx.post(SET_ARI_URL).mock(return_value=Response(429))

    async with httpx.AsyncClient() as client:
        with pytest.raises(ChannelError) as exc_info:
            await AgodaService(client).push_availability(_connection(), [_update("RT1", 1)])

    assert exc_info.value.status_code == 429


@pytest.mark.asyncio
async def test_missing_api_key_raises():
    async with httpx.AsyncClient() as client:
        with pytest.raises(ChannelError, match="Missing API credentials"):
            await AgodaService(client).push_availability(_connection(credentials={}), [])


@respx.mock
@pytest.mark.asyncio
async def test_pull_new_bookings_parses_booking_list():
    route = respx.post(BOOKING_LIST_URL).mock(
        return_value=Response(
            200,
            json={
                "bookings": [
                    {
                        "bookingId": 987654,
                        "roomTypeId": "RT1",
                        "checkInDate": "2026-11-03",
                        "checkOutDate": "2026-11-05T00:00:00",
                        "guestName": "Tanvir Hasan",
                        "guestEmail": "tanvir@example.com",
                        "numberOfGuests": "2",
                        "totalAmount": "9000.50",
                        "currency": "BDT",
                        "status": "new",
                    },
                    {
                        "bookingId": "987655",
                        "roomTypeId": "RT2",
                        "checkInDate": "2026-11-10",
                        "checkOutDate": "2026-11-11",
                        "status": "CANCELLED",
                    },
                ]
            },
        )
    )

    async with httpx.AsyncClient() as client:
        bookings = await AgodaService(client).pull_new_bookings(_connection(), SINCE)

    assert json.loads(route.calls.last.request.content) == {
        "propertyId": "P100",
        "modifiedSince": "2026-10-16T06:00:00+00:00",
    }
    first, second = bookings
    assert first.external_booking_id == "987654"
    assert first.check_in == date(2026, 11, 3)
    assert first.check_out == date(2026, 11, 5)
    assert first.guest_count == 2
    assert first.total_amount == Decimal("9000.50")
    assert first.status == "CONFIRMED"
    assert first.external_property_id == "P100"
    assert second.guest_name == "Guest"
    assert second.currency == "BDT"
    assert second.status == "CANCELLED"


@respx.mock
@pytest.mark.asyncio
async def test_pull_skips_malformed_bookings():
    respx.post(BOOKING_LIST_URL).mock(
        return_value=Response(
            200,
            json={"bookings": [
                {"bookingId": "1", "roomTypeId": "RT1", "checkInDate": "not-a-date", "checkOutDate": ""},
                {"roomTypeId": "RT1"},
                {"bookingId": "2", "roomTypeId": "RT1", "checkInDate": "2026-11-01", "checkOutDate": "2026-11-02"},
            ]},
        )
    )

    async with httpx.AsyncClient() as client:
        bookings = await AgodaService(client).pull_new_bookings(_connection(), SINCE)

    assert [b.external_booking_id for b in bookings] == ["2"]


@respx.mock
@pytest.mark.asyncio
async def test_pull_error_raises_so_watermark_is_not_advanced():
    respx.post(BOOKING_LIST_URL).mock(return_value=Response(503, text="maintenance"))

    async with httpx.AsyncClient() as client:
        with pytest.raises(ChannelError) as exc_info:
            await AgodaService(client).pull_new_bookings(_connection(), SINCE)

    assert exc_info.value.status_code == 503


def test_parse_webhook():
    service = AgodaService(httpx.AsyncClient())

    booking = service.parse_webhook({
        "bookingId": "W-1",
        "propertyId": "P100",
        "roomTypeId": "RT1",
        "checkInDate": "2026-12-24",
        "checkOutDate": "2026-12-26",
        "status": "CONFIRMED",
    })

    assert booking is not None
    assert booking.external_property_id == "P100"
    assert booking.channel_type == ChannelType.AGODA


def test_parse_webhook_requires_booking_and_property():
    service = AgodaService(httpx.AsyncClient())

    assert service.parse_webhook({"bookingId": "W-1"}) is None
    assert service.parse_webhook({"propertyId": "P100"}) is None
    assert service.parse_webhook({"bookingId": "W-1", "propertyId": "P100", "checkInDate": "bad"}) is None
