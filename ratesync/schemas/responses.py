from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, computed_field

from ratesync.schemas.channel import InventorySyncResult, PullResult


class HotelPricingResult(BaseModel):
    hotel_id: str
    hotel_name: str | None = None
    status: str  # "ok" | "failed" | "skipped"
    rooms_updated: int = 0
    dates_updated: int = 0
    booked_dates_skipped: int = 0
    lowest_price_today: Decimal | None = None
    error: str | None = None


class PricingSummary(BaseModel):
    hotels_processed: int
    rooms_updated: int
    dates_updated: int
    booked_dates_skipped: int
    failed_hotels: int
    skipped_hotels: int
    complete: bool
    duration_ms: int


class PricingBatchResponse(BaseModel):
    success: bool
    run_id: str | None = None
    summary: PricingSummary
    results: list[HotelPricingResult]


class ConnectionSyncResult(BaseModel):
    connection_id: str
    hotel_id: str
    hotel_name: str | None = None
    channel: str
    status: str  # "ok" | "failed" | "skipped"
    inventory_sync: InventorySyncResult = InventorySyncResult(success=False)
    bookings_pull: PullResult = PullResult(success=False)
    error: str | None = None

    @computed_field
    @property
    def bookings_pulled(self) -> int:
        return self.bookings_pull.bookings_created


class SyncSummary(BaseModel):
    total_connections: int
    successful_syncs: int
    failed_syncs: int
    skipped_connections: int
    total_new_bookings: int
    complete: bool
    duration_ms: int


class SyncBatchResponse(BaseModel):
    success: bool
    run_id: str | None = None
    summary: SyncSummary
    results: list[ConnectionSyncResult]


class ForecastDay(BaseModel):
    stay_date: date
    price: Decimal
    total_multiplier: Decimal
    rules: list[str] = []


class RoomForecast(BaseModel):
    room_id: str
    base_price: Decimal
    days: list[ForecastDay]


class ForecastResponse(BaseModel):
    hotel_id: str
    occupancy: Decimal
    generated_at: datetime
    rooms: list[RoomForecast]


class RunStatusResponse(BaseModel):
    run_id: str
    kind: str
    status: str
    created_at: datetime
    finished_at: datetime | None = None
    lease_expires_at: datetime | None = None
    result: PricingBatchResponse | SyncBatchResponse | None = None
    error: str | None = None
