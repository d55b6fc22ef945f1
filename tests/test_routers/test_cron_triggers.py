"""Integration tests for the /cron batch triggers."""

from decimal import Decimal

import pytest
import respx
from httpx import Response

from ratesync.config import Settings
from ratesync.runs import RunKind, RunStatus
from ratesync.schemas.domain import ChannelConnection, ChannelType, Hotel, HotelStatus, Room, RoomMapping
from ratesync.services.agoda import AGODA_SANDBOX_BASE


async def _seed_hotel(app, *, with_connection: bool = False):
    items = [
        Hotel(id="h1", name="Bandarban Hill View", status=HotelStatus.ACTIVE),
        Room(id="r1", hotel_id="h1", base_price=Decimal("3500.00")),
    ]
    if with_connection:
        items += [
            ChannelConnection(id="c1", hotel_id="h1", channel_type=ChannelType.AGODA,
                              external_property_id="P100", credentials={"api_key": "k"}, is_active=True),
            RoomMapping(connection_id="c1", local_room_id="r1", external_room_type_id="RT1"),
        ]
    await app.state.store.seed(*items)


@pytest.mark.asyncio
async def test_missing_authorization_is_rejected(client):
    response = await client.post("/cron/apply-pricing")

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_wrong_secret_is_rejected(client):
    response = await client.get("/cron/sync-channels", headers={"Authorization": "Bearer nope"})

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_unset_secret_is_a_configuration_error(client, auth_headers):
    from ratesync.main import app

    app.state.settings = Settings(cron_secret="")

    response = await client.post("/cron/apply-pricing", headers=auth_headers)

    assert response.status_code == 500
    assert response.json()["error"] == "Configuration error: CRON_SECRET not set"


@pytest.mark.asyncio
@pytest.mark.parametrize("method", ["GET", "POST"])
async def test_apply_pricing_accepts_get_and_post(client, auth_headers, method):
    from ratesync.main import app

    await _seed_hotel(app)

    response = await client.request(method, "/cron/apply-pricing", headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["run_id"]
    assert body["summary"]["hotels_processed"] == 1
    assert body["summary"]["dates_updated"] == 90
    assert body["summary"]["complete"] is True
    (result,) = body["results"]
    assert result["status"] == "ok"

    run = app.state.run_registry.get_run(body["run_id"])
    assert run.status == RunStatus.completed


@pytest.mark.asyncio
async def test_overlapping_run_is_refused(client, auth_headers):
    from ratesync.main import app

    active = app.state.run_registry.start_run(RunKind.pricing)

    response = await client.post("/cron/apply-pricing", headers=auth_headers)

    assert response.status_code == 409
    body = response.json()
    assert body["success"] is False
    assert body["run_id"] == active.run_id


@pytest.mark.asyncio
async def test_runs_of_different_kinds_do_not_block_each_other(client, auth_headers):
    from ratesync.main import app

    app.state.run_registry.start_run(RunKind.pricing)

    response = await client.post("/cron/sync-channels", headers=auth_headers)

    assert response.status_code == 200


@pytest.mark.asyncio
async def test_batch_failure_marks_run_failed(client, auth_headers):
    from ratesync.main import app

    class BrokenBatch:
        async def run(self):
            raise RuntimeError("store unreachable")

    app.state.pricing_batch = BrokenBatch()

    response = await client.post("/cron/apply-pricing", headers=auth_headers)

    assert response.status_code == 500
    body = response.json()
    assert body == {"success": False, "run_id": body["run_id"], "error": "store unreachable"}
    run = app.state.run_registry.get_run(body["run_id"])
    assert run.status == RunStatus.failed
    assert app.state.run_registry.active_run(RunKind.pricing) is None


@respx.mock
@pytest.mark.asyncio
async def test_sync_channels_pushes_and_pulls(client, auth_headers):
    from ratesync.main import app

    await _seed_hotel(app, with_connection=True)
    await client.post("/cron/apply-pricing", headers=auth_headers)
    push = respx.post(f"{AGODA_SANDBOX_BASE}/SetAriV2").mock(return_value=Response(200, json={"status": "OK"}))
    respx.post(f"{AGODA_SANDBOX_BASE}/GetBookingList").mock(
        return_value=Response(200, json={"bookings": [{
            "bookingId": "AG-500",
            "roomTypeId": "RT1",
            "checkInDate": "2030-01-10",
            "checkOutDate": "2030-01-12",
            "status": "CONFIRMED",
        }]})
    )

    response = await client.get("/cron/sync-channels", headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["summary"]["total_connections"] == 1
    assert body["summary"]["successful_syncs"] == 1
    assert body["summary"]["total_new_bookings"] == 1
    (result,) = body["results"]
    assert result["bookings_pulled"] == 1
    assert result["inventory_sync"]["success"] is True
    assert push.called
    booking = await app.state.store.find_booking_by_external_reference("AG-500")
    assert booking.hotel_id == "h1"
    assert booking.origin == "AGODA"
