import logging
from datetime import date
from decimal import Decimal

from ratesync.schemas.domain import DateRange
from ratesync.services.store import InventoryStore

logger = logging.getLogger(__name__)

DEFAULT_LOOKBACK_DAYS = 7


class OccupancyEstimator:
    """Near-term demand signal for a hotel.

    ratio = confirmed bookings checking in during [as_of, as_of + lookback)
            / (active rooms * lookback days)
    """

    def __init__(self, store: InventoryStore, lookback_days: int = DEFAULT_LOOKBACK_DAYS) -> None:
        if lookback_days <= 0:
            raise ValueError("lookback_days must be positive")
        self._store = store
        self._lookback_days = lookback_days

    @property
    def lookback_days(self) -> int:
        return self._lookback_days

    async def estimate_occupancy(self, hotel_id: str, as_of: date) -> Decimal:
        rooms = await self._store.find_active_rooms(hotel_id)
        return await self.estimate_for_rooms(hotel_id, as_of, len(rooms))

    async def estimate_for_rooms(self, hotel_id: str, as_of: date, active_room_count: int) -> Decimal:
        if active_room_count <= 0:
            return Decimal("0")

        window = DateRange.from_horizon(as_of, self._lookback_days)
        confirmed = await self._store.count_confirmed_bookings(hotel_id, window)
        capacity = active_room_count * self._lookback_days
        ratio = Decimal(confirmed) / Decimal(capacity)
        if ratio > 1:
            logger.debug(
                "Hotel %s: %d confirmed check-ins exceed %d room-nights, clamping",
                hotel_id, confirmed, capacity,
            )
            ratio = Decimal("1")
        return ratio
