import logging

from ratesync.schemas.domain import ChannelConnection, Hotel, HotelStatus
from ratesync.services.store import InventoryStore

logger = logging.getLogger(__name__)


class ChannelConnectionRegistry:
    """Connections eligible for a sync run: active, on an ACTIVE hotel."""

    def __init__(self, store: InventoryStore) -> None:
        self._store = store

    async def list_active(self) -> list[tuple[ChannelConnection, Hotel]]:
        eligible = [
            (conn, hotel)
            for conn, hotel in await self._store.find_active_connections()
            if conn.is_active and hotel.status == HotelStatus.ACTIVE
        ]
        logger.info("[Channel Sync] Found %d active connections", len(eligible))
        return eligible
