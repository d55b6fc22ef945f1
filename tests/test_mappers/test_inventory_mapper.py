from datetime import date
from decimal import Decimal

from ratesync.mappers.inventory_mapper import (
    active_mappings_by_room,
    build_inventory_updates,
    group_by_room_type,
)
from ratesync.schemas.domain import AvailabilityStatus, InventoryRecord, RoomMapping

MAPPINGS = [
    RoomMapping(connection_id="c1", local_room_id="r1", external_room_type_id="RT1", external_rate_plan_id="BAR"),
    RoomMapping(connection_id="c1", local_room_id="r2", external_room_type_id="RT2"),
    RoomMapping(connection_id="c1", local_room_id="r3", external_room_type_id="RT3", is_active=False),
]


def _record(room_id: str, day: int, status=AvailabilityStatus.AVAILABLE, price="1000") -> InventoryRecord:
    return InventoryRecord(room_id=room_id, stay_date=date(2026, 11, day), price=Decimal(price), status=status)


def test_active_mappings_by_room_ignores_inactive_and_duplicates():
    duplicate = RoomMapping(connection_id="c1", local_room_id="r1", external_room_type_id="RT9")

    by_room = active_mappings_by_room([*MAPPINGS, duplicate])

    assert set(by_room) == {"r1", "r2"}
    assert by_room["r1"].external_room_type_id == "RT1"


def test_build_updates_marks_only_available_nights_sellable():
    records = [
        _record("r1", 2),
        _record("r1", 1, status=AvailabilityStatus.BOOKED),
        _record("r2", 1, status=AvailabilityStatus.BLOCKED),
    ]

    updates = build_inventory_updates(records, MAPPINGS)

    assert [(u.room_id, u.stay_date.day, u.available) for u in updates] == [
        ("r1", 1, False),
        ("r1", 2, True),
        ("r2", 1, False),
    ]
    assert updates[0].external_rate_plan_id == "BAR"
    assert updates[1].price == Decimal("1000")


def test_build_updates_drops_unmapped_rooms():
    records = [_record("r3", 1), _record("r-unknown", 1)]
    assert build_inventory_updates(records, MAPPINGS) == []


def test_group_by_room_type():
    updates = build_inventory_updates(
        [_record("r1", 1), _record("r1", 2), _record("r2", 1)], MAPPINGS,
    )

    grouped = group_by_room_type(updates)

    assert list(grouped) == ["RT1", "RT2"]
    assert len(grouped["RT1"]) == 2
