"""Relational tables behind SqlInventoryStore."""

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import JSON, Boolean, Date, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ratesync.database import Base


def _uuid() -> str:
    return uuid.uuid4().hex


class HotelRow(Base):
    __tablename__ = "hotels"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PENDING", index=True)
    lowest_price_today: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    lowest_price_updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


class RoomRow(Base):
    __tablename__ = "rooms"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_uuid)
    hotel_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("hotels.id", ondelete="CASCADE"), nullable=False, index=True
    )
    base_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class SeasonalRuleRow(Base):
    __tablename__ = "seasonal_rules"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    multiplier: Mapped[Decimal] = mapped_column(Numeric(6, 3), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class InventoryRow(Base):
    __tablename__ = "room_inventory"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    room_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False
    )
    stay_date: Mapped[date] = mapped_column(Date, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="AVAILABLE")
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        UniqueConstraint("room_id", "stay_date", name="uq_inventory_room_date"),
        Index("ix_inventory_room_date", "room_id", "stay_date"),
    )


class BookingRow(Base):
    __tablename__ = "bookings"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_uuid)
    hotel_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("hotels.id", ondelete="CASCADE"), nullable=False, index=True
    )
    room_id: Mapped[str | None] = mapped_column(String(64), ForeignKey("rooms.id", ondelete="SET NULL"))
    check_in: Mapped[date] = mapped_column(Date, nullable=False)
    check_out: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PENDING")
    origin: Mapped[str] = mapped_column(String(20), nullable=False, default="LOCAL")
    external_reference: Mapped[str | None] = mapped_column(String(128), unique=True)
    channel_connection_id: Mapped[str | None] = mapped_column(String(64))
    guest_name: Mapped[str | None] = mapped_column(String(200))
    guest_email: Mapped[str | None] = mapped_column(String(200))
    guest_phone: Mapped[str | None] = mapped_column(String(50))
    guest_count: Mapped[int] = mapped_column(Integer, default=1)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))
    currency: Mapped[str | None] = mapped_column(String(3))

    __table_args__ = (
        Index("ix_bookings_hotel_status_checkin", "hotel_id", "status", "check_in"),
    )


class ChannelConnectionRow(Base):
    __tablename__ = "channel_connections"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_uuid)
    hotel_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("hotels.id", ondelete="CASCADE"), nullable=False, index=True
    )
    channel_type: Mapped[str] = mapped_column(String(20), nullable=False)
    external_property_id: Mapped[str | None] = mapped_column(String(128))
    credentials: Mapped[dict] = mapped_column(JSON, default=dict)
    is_active: Mapped[bool] = mapped_column(Boolean, default=False)
    last_sync_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    last_pull_watermark: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    sync_status: Mapped[str] = mapped_column(String(20), default="IDLE")
    sync_error: Mapped[str | None] = mapped_column(Text)


class RoomMappingRow(Base):
    __tablename__ = "channel_room_mappings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    connection_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("channel_connections.id", ondelete="CASCADE"), nullable=False, index=True
    )
    local_room_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False
    )
    external_room_type_id: Mapped[str] = mapped_column(String(128), nullable=False)
    external_rate_plan_id: Mapped[str | None] = mapped_column(String(128))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class SyncLogRow(Base):
    __tablename__ = "sync_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    connection_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("channel_connections.id", ondelete="CASCADE"), nullable=False, index=True
    )
    operation: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(10), nullable=False)
    error_message: Mapped[str | None] = mapped_column(Text)
    details: Mapped[dict] = mapped_column(JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
