from collections import defaultdict
from collections.abc import Iterable

from ratesync.schemas.channel import InventoryUpdate
from ratesync.schemas.domain import AvailabilityStatus, InventoryRecord, RoomMapping


def active_mappings_by_room(mappings: Iterable[RoomMapping]) -> dict[str, RoomMapping]:
    """First active mapping per local room; later duplicates are ignored."""
    by_room: dict[str, RoomMapping] = {}
    for mapping in mappings:
        if mapping.is_active and mapping.local_room_id not in by_room:
            by_room[mapping.local_room_id] = mapping
    return by_room


def build_inventory_updates(
    records: Iterable[InventoryRecord],
    mappings: Iterable[RoomMapping],
) -> list[InventoryUpdate]:
    """Translate local inventory records into channel updates.

    Records for rooms without an active mapping are dropped. Only AVAILABLE
    nights are offered as sellable; BLOCKED and BOOKED nights are pushed as
    closed so the channel stops selling them.
    """
    by_room = active_mappings_by_room(mappings)
    updates: list[InventoryUpdate] = []
    for record in sorted(records, key=lambda r: (r.room_id, r.stay_date)):
        mapping = by_room.get(record.room_id)
        if mapping is None:
            continue
        updates.append(InventoryUpdate(
            room_id=record.room_id,
            external_room_type_id=mapping.external_room_type_id,
            external_rate_plan_id=mapping.external_rate_plan_id,
            stay_date=record.stay_date,
            available=record.status == AvailabilityStatus.AVAILABLE,
            price=record.price,
        ))
    return updates


def group_by_room_type(updates: Iterable[InventoryUpdate]) -> dict[str, list[InventoryUpdate]]:
    grouped: dict[str, list[InventoryUpdate]] = defaultdict(list)
    for update in updates:
        grouped[update.external_room_type_id].append(update)
    return dict(grouped)
