import logging
from datetime import datetime

import httpx
from pydantic import ValidationError

from ratesync.exceptions.custom import ChannelError
from ratesync.mappers.booking_mapper import normalize_external_status, parse_amount, parse_guest_count
from ratesync.mappers.inventory_mapper import group_by_room_type
from ratesync.schemas.channel import ExternalBooking, InventoryUpdate, PushResult
from ratesync.schemas.domain import ChannelConnection, ChannelType

logger = logging.getLogger(__name__)

AGODA_SANDBOX_BASE = "https://sandbox-api.agoda.io/ycs/v2"
DEFAULT_CURRENCY = "BDT"


def parse_agoda_booking(data: dict, external_property_id: str) -> ExternalBooking:
    """Agoda booking/webhook body → ExternalBooking. Raises ValidationError on bad dates."""
    return ExternalBooking(
        external_booking_id=str(data["bookingId"]),
        channel_type=ChannelType.AGODA,
        external_property_id=external_property_id,
        external_room_type_id=str(data.get("roomTypeId", "")),
        check_in=str(data.get("checkInDate", ""))[:10],
        check_out=str(data.get("checkOutDate", ""))[:10],
        guest_name=data.get("guestName") or "Guest",
        guest_email=data.get("guestEmail") or None,
        guest_phone=data.get("guestPhone") or None,
        guest_count=parse_guest_count(data.get("numberOfGuests")),
        total_amount=parse_amount(data.get("totalAmount")),
        currency=data.get("currency") or DEFAULT_CURRENCY,
        status=normalize_external_status(data.get("status")),
        raw_payload=data,
    )


class AgodaService:
    """Agoda YCS adapter. Each connection carries its own API key."""

    channel_type = ChannelType.AGODA

    def __init__(self, client: httpx.AsyncClient, base_url: str = AGODA_SANDBOX_BASE):
        self._client = client
        self._base_url = base_url.rstrip("/")

    def _headers(self, connection: ChannelConnection) -> dict[str, str]:
        api_key = connection.credentials.get("api_key") or connection.credentials.get("apiKey")
        if not api_key:
            raise ChannelError("Missing API credentials", channel=self.channel_type)
        return {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    async def _post(self, path: str, connection: ChannelConnection, payload: dict) -> httpx.Response:
        resp = await self._client.post(
            f"{self._base_url}/{path}", json=payload, headers=self._headers(connection),
        )
        if resp.status_code == 429:
            raise ChannelError("Rate limit exceeded for Agoda", status_code=429, channel=self.channel_type)
        return resp

    async def push_availability(
        self, connection: ChannelConnection, updates: list[InventoryUpdate],
    ) -> PushResult:
        ari_updates = [
            {
                "roomTypeId": room_type_id,
                "dateRanges": [
                    {
                        "date": u.stay_date.isoformat(),
                        "availability": 1 if u.available else 0,
                        "price": float(u.price) if u.price is not None else None,
                    }
                    for u in room_updates
                ],
            }
            for room_type_id, room_updates in group_by_room_type(updates).items()
        ]
        payload = {"propertyId": connection.external_property_id, "ariUpdates": ari_updates}

        resp = await self._post("SetAriV2", connection, payload)
        data = _json_or_empty(resp)
        if resp.status_code >= 400:
            message = data.get("message") or f"API error: {resp.status_code}"
            logger.warning("Agoda SetAriV2 failed for property %s: %s", connection.external_property_id, message)
            return PushResult(success=False, error_message=message, raw_response=data)

        logger.info(
            "Agoda SetAriV2: %d updates across %d room types for property %s",
            len(updates), len(ari_updates), connection.external_property_id,
        )
        return PushResult(success=True, updates_sent=len(updates), raw_response=data)

    async def pull_new_bookings(
        self, connection: ChannelConnection, since: datetime,
    ) -> list[ExternalBooking]:
        payload = {
            "propertyId": connection.external_property_id,
            "modifiedSince": since.isoformat(),
        }
        resp = await self._post("GetBookingList", connection, payload)
        if resp.status_code >= 400:
            raise ChannelError(
                f"Agoda GetBookingList failed: {resp.status_code}",
                status_code=resp.status_code,
                channel=self.channel_type,
            )

        bookings: list[ExternalBooking] = []
        for raw in resp.json().get("bookings", []):
            try:
                bookings.append(parse_agoda_booking(raw, str(connection.external_property_id)))
            except (KeyError, TypeError, AttributeError, ValueError, ValidationError) as exc:
                booking_id = raw.get("bookingId") if isinstance(raw, dict) else None
                logger.warning("Skipping malformed Agoda booking %s: %s", booking_id, exc)
        logger.info("Agoda returned %d bookings since %s", len(bookings), since.isoformat())
        return bookings

    def parse_webhook(self, payload: dict) -> ExternalBooking | None:
        if not payload.get("bookingId") or not payload.get("propertyId"):
            return None
        try:
            return parse_agoda_booking(payload, str(payload["propertyId"]))
        except (TypeError, AttributeError, ValueError, ValidationError) as exc:
            logger.warning("Invalid Agoda webhook payload: %s", exc)
            return None


def _json_or_empty(resp: httpx.Response) -> dict:
    try:
        data = resp.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}
