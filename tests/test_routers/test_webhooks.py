"""Integration tests for POST /webhooks/{channel}."""

from decimal import Decimal

import pytest

from ratesync.schemas.domain import ChannelConnection, ChannelType, Hotel, HotelStatus, Room, RoomMapping

HEADERS = {"X-Webhook-Secret": "test-webhook-secret"}

PAYLOAD = {
    "bookingId": "AG-W-77",
    "propertyId": "P100",
    "roomTypeId": "RT1",
    "checkInDate": "2030-02-01",
    "checkOutDate": "2030-02-03",
    "guestName": "Nusrat Jahan",
    "totalAmount": "12000",
    "status": "CONFIRMED",
}


@pytest.fixture
async def seeded(client):
    from ratesync.main import app

    await app.state.store.seed(
        Hotel(id="h1", name="Kuakata Beach Hotel", status=HotelStatus.ACTIVE),
        Room(id="r1", hotel_id="h1", base_price=Decimal("6000.00")),
        ChannelConnection(id="c1", hotel_id="h1", channel_type=ChannelType.AGODA,
                          external_property_id="P100", credentials={"api_key": "k"}, is_active=True),
        RoomMapping(connection_id="c1", local_room_id="r1", external_room_type_id="RT1"),
    )
    return app


@pytest.mark.asyncio
async def test_webhook_imports_booking_once(client, seeded):
    first = await client.post("/webhooks/agoda", json=PAYLOAD, headers=HEADERS)
    second = await client.post("/webhooks/AGODA", json=PAYLOAD, headers=HEADERS)

    assert first.status_code == 200
    assert first.json() == {"success": True, "booking_created": True, "message": "Booking imported"}
    assert second.json() == {"success": True, "booking_created": False, "message": "Booking already imported"}
    booking = await seeded.state.store.find_booking_by_external_reference("AG-W-77")
    assert booking.room_id == "r1"
    assert booking.guest_name == "Nusrat Jahan"


@pytest.mark.asyncio
async def test_webhook_for_unmapped_room_type(client, seeded):
    response = await client.post("/webhooks/agoda", json={**PAYLOAD, "roomTypeId": "RT-X"}, headers=HEADERS)

    assert response.status_code == 200
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_webhook_requires_secret(client):
    response = await client.post("/webhooks/agoda", json=PAYLOAD, headers={"X-Webhook-Secret": "wrong"})

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_unknown_channel_is_404(client):
    response = await client.post("/webhooks/trivago", json=PAYLOAD, headers=HEADERS)

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_non_object_body_is_400(client):
    response = await client.post("/webhooks/agoda", json=[PAYLOAD], headers=HEADERS)

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_channel_without_adapter_is_reported(client):
    response = await client.post("/webhooks/expedia", json={"propertyId": "EX-1"}, headers=HEADERS)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is False
    assert "No adapter available" in body["message"]
