"""Integration tests for GET /hotels/{hotel_id}/forecast."""

from decimal import Decimal

import pytest

from ratesync.schemas.domain import DateRange, Hotel, HotelStatus, Room


@pytest.mark.asyncio
async def test_forecast_returns_prices_without_writing(client, auth_headers):
    from ratesync.main import app

    store = app.state.store
    await store.seed(
        Hotel(id="h1", name="Rangamati Lake Resort", status=HotelStatus.ACTIVE),
        Room(id="r1", hotel_id="h1", base_price=Decimal("4000.00")),
    )

    response = await client.get("/hotels/h1/forecast", params={"days": 7}, headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["hotel_id"] == "h1"
    assert Decimal(body["occupancy"]) == 0
    (room,) = body["rooms"]
    assert room["room_id"] == "r1"
    assert len(room["days"]) == 7
    assert all(Decimal(day["price"]) > 0 for day in room["days"])
    horizon = DateRange.from_horizon(app.state.pricing_batch.today(), 7)
    assert await store.find_inventory(["r1"], horizon) == []


@pytest.mark.asyncio
async def test_forecast_unknown_hotel_is_404(client, auth_headers):
    response = await client.get("/hotels/missing/forecast", headers=auth_headers)

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_forecast_days_are_bounded(client, auth_headers):
    response = await client.get("/hotels/h1/forecast", params={"days": 0}, headers=auth_headers)

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_forecast_requires_the_cron_secret(client):
    response = await client.get("/hotels/h1/forecast")

    assert response.status_code == 401
