import logging
from datetime import datetime

import httpx
from pydantic import ValidationError

from ratesync.exceptions.custom import ChannelError
from ratesync.mappers.booking_mapper import normalize_external_status, parse_amount, parse_guest_count
from ratesync.mappers.inventory_mapper import group_by_room_type
from ratesync.schemas.channel import ExternalBooking, InventoryUpdate, PushResult
from ratesync.schemas.domain import ChannelConnection, ChannelType
from ratesync.services.channel_adapter import CredentialCache

logger = logging.getLogger(__name__)

EXPEDIA_TEST_BASE = "https://test.ean.com"
TOKEN_PATH = "/identity/oauth2/v3/token"


def _object(value) -> dict:
    return value if isinstance(value, dict) else {}


def parse_expedia_reservation(data: dict, external_property_id: str) -> ExternalBooking:
    guest = _object(data.get("primaryGuest"))
    amount = _object(data.get("totalAmount"))
    name = " ".join(str(p) for p in (guest.get("givenName"), guest.get("surname")) if p)
    return ExternalBooking(
        external_booking_id=str(data["reservationId"]),
        channel_type=ChannelType.EXPEDIA,
        external_property_id=external_property_id,
        external_room_type_id=str(data.get("roomTypeId", "")),
        check_in=str(data.get("checkInDate", ""))[:10],
        check_out=str(data.get("checkOutDate", ""))[:10],
        guest_name=name or "Guest",
        guest_email=guest.get("email") or None,
        guest_phone=guest.get("phone") or None,
        guest_count=parse_guest_count(data.get("adultCount")),
        total_amount=parse_amount(amount.get("value")),
        currency=amount.get("currency"),
        status=normalize_external_status(data.get("status")),
        raw_payload=data,
    )


class ExpediaService:
    """Expedia adapter. Platform-level OAuth client credentials, one token per adapter."""

    channel_type = ChannelType.EXPEDIA

    def __init__(
        self,
        client: httpx.AsyncClient,
        client_id: str,
        client_secret: str,
        base_url: str = EXPEDIA_TEST_BASE,
        credential_cache: CredentialCache | None = None,
    ):
        self._client = client
        self._client_id = client_id
        self._client_secret = client_secret
        self._base_url = base_url.rstrip("/")
        self._credentials = credential_cache or CredentialCache(self._fetch_token)

    async def _fetch_token(self) -> tuple[str, float]:
        resp = await self._client.post(
            f"{self._base_url}{TOKEN_PATH}",
            data={"grant_type": "client_credentials"},
            auth=(self._client_id, self._client_secret),
        )
        if resp.status_code >= 400:
            raise ChannelError(
                f"Expedia token request failed: {resp.status_code}",
                status_code=resp.status_code,
                channel=self.channel_type,
            )
        data = resp.json()
        return data["access_token"], float(data.get("expires_in", 1800))

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        for attempt in range(2):
            token = await self._credentials.get()
            resp = await self._client.request(
                method,
                f"{self._base_url}{path}",
                headers={"Authorization": f"Bearer {token}", "Content-Type": "application/json"},
                **kwargs,
            )
            if resp.status_code == 401 and attempt == 0:
                logger.info("Expedia rejected cached token, refreshing")
                self._credentials.invalidate()
                continue
            break
        if resp.status_code == 429:
            raise ChannelError("Rate limit exceeded for Expedia", status_code=429, channel=self.channel_type)
        return resp

    @staticmethod
    def _property_id(connection: ChannelConnection) -> str:
        if not connection.external_property_id:
            raise ChannelError("Connection has no external property id", channel=ChannelType.EXPEDIA)
        return connection.external_property_id

    async def push_availability(
        self, connection: ChannelConnection, updates: list[InventoryUpdate],
    ) -> PushResult:
        property_id = self._property_id(connection)
        room_types = []
        for room_type_id, room_updates in group_by_room_type(updates).items():
            room_types.append({
                "roomTypeId": room_type_id,
                "ratePlanId": room_updates[0].external_rate_plan_id,
                "dates": [
                    {
                        "date": u.stay_date.isoformat(),
                        "closed": not u.available,
                        "rate": str(u.price) if u.price is not None else None,
                    }
                    for u in room_updates
                ],
            })

        resp = await self._request(
            "PUT", f"/v1/properties/{property_id}/availability", json={"roomTypes": room_types},
        )
        try:
            data = resp.json()
        except ValueError:
            data = {}
        if resp.status_code >= 400:
            message = (data.get("message") if isinstance(data, dict) else None) or f"API error: {resp.status_code}"
            return PushResult(success=False, error_message=message, raw_response=data if isinstance(data, dict) else None)

        logger.info("Expedia availability: %d updates for property %s", len(updates), property_id)
        return PushResult(success=True, updates_sent=len(updates), raw_response=data if isinstance(data, dict) else None)

    async def pull_new_bookings(
        self, connection: ChannelConnection, since: datetime,
    ) -> list[ExternalBooking]:
        property_id = self._property_id(connection)
        resp = await self._request(
            "GET", f"/v1/properties/{property_id}/reservations", params={"since": since.isoformat()},
        )
        if resp.status_code >= 400:
            raise ChannelError(
                f"Expedia reservations request failed: {resp.status_code}",
                status_code=resp.status_code,
                channel=self.channel_type,
            )

        bookings: list[ExternalBooking] = []
        for raw in resp.json().get("reservations", []):
            try:
                bookings.append(parse_expedia_reservation(raw, property_id))
            except (KeyError, TypeError, AttributeError, ValueError, ValidationError) as exc:
                reservation_id = raw.get("reservationId") if isinstance(raw, dict) else None
                logger.warning("Skipping malformed Expedia reservation %s: %s", reservation_id, exc)
        logger.info("Expedia returned %d reservations since %s", len(bookings), since.isoformat())
        return bookings

    def parse_webhook(self, payload: dict) -> ExternalBooking | None:
        reservation = payload.get("reservation")
        property_id = payload.get("propertyId")
        if not isinstance(reservation, dict) or not property_id or not reservation.get("reservationId"):
            return None
        try:
            return parse_expedia_reservation(reservation, str(property_id))
        except (TypeError, AttributeError, ValueError, ValidationError) as exc:
            logger.warning("Invalid Expedia webhook payload: %s", exc)
            return None
