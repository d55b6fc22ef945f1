import logging
from collections.abc import Callable
from datetime import date, datetime, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

from ratesync.mappers.pricing_model import DEFAULT_POLICY, PricingPolicy, compute_price
from ratesync.schemas.domain import AvailabilityStatus, DateRange, Hotel, SeasonalRule
from ratesync.schemas.responses import HotelPricingResult, PricingBatchResponse, PricingSummary
from ratesync.services.batch import Outcome, RunBudget, run_bounded
from ratesync.services.occupancy import OccupancyEstimator
from ratesync.services.store import InventoryStore, UpsertOutcome

logger = logging.getLogger(__name__)

DEFAULT_HORIZON_DAYS = 90


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PricingBatchService:
    def __init__(
        self,
        store: InventoryStore,
        occupancy: OccupancyEstimator,
        *,
        policy: PricingPolicy = DEFAULT_POLICY,
        horizon_days: int = DEFAULT_HORIZON_DAYS,
        concurrency: int = 1,
        entity_timeout: float | None = None,
        run_budget_seconds: float | None = None,
        tz: ZoneInfo | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._store = store
        self._occupancy = occupancy
        self._policy = policy
        self._horizon_days = horizon_days
        self._concurrency = concurrency
        self._entity_timeout = entity_timeout
        self._run_budget_seconds = run_budget_seconds
        self._tz = tz or ZoneInfo("UTC")
        self._clock = clock

    @property
    def policy(self) -> PricingPolicy:
        return self._policy

    def today(self) -> date:
        return self._clock().astimezone(self._tz).date()

    async def run(self) -> PricingBatchResponse:
        budget = RunBudget(self._run_budget_seconds)
        now = self._clock()
        today = now.astimezone(self._tz).date()
        horizon = DateRange.from_horizon(today, self._horizon_days)

        hotels = await self._store.find_active_hotels()
        # Loaded once per run; the model picks the rules overlapping each night
        rules = await self._store.find_active_seasonal_rules(horizon)
        logger.info("[Pricing] Found %d active hotels, %d seasonal rules in horizon", len(hotels), len(rules))

        # Created up front so a hotel that fails midway still reports what it wrote
        progress = {h.id: HotelPricingResult(hotel_id=h.id, hotel_name=h.name, status="ok") for h in hotels}

        async def _worker(hotel: Hotel) -> HotelPricingResult:
            return await self.price_hotel(hotel, today, horizon, rules, now, result=progress[hotel.id])

        outcomes = await run_bounded(
            hotels,
            _worker,
            key=lambda h: f"{h.name} ({h.id})",
            concurrency=self._concurrency,
            entity_timeout=self._entity_timeout,
            budget=budget,
            label="hotel",
        )
        results = [_to_result(progress[hotel.id], outcome) for hotel, outcome in zip(hotels, outcomes)]

        failed = sum(1 for r in results if r.status == "failed")
        skipped = sum(1 for r in results if r.status == "skipped")
        summary = PricingSummary(
            hotels_processed=len(results) - skipped,
            rooms_updated=sum(r.rooms_updated for r in results),
            dates_updated=sum(r.dates_updated for r in results),
            booked_dates_skipped=sum(r.booked_dates_skipped for r in results),
            failed_hotels=failed,
            skipped_hotels=skipped,
            complete=skipped == 0,
            duration_ms=budget.elapsed_ms(),
        )
        logger.info(
            "[Pricing] Completed in %dms - %d rooms, %d date entries updated, %d failures, %d skipped",
            summary.duration_ms, summary.rooms_updated, summary.dates_updated, failed, skipped,
        )
        return PricingBatchResponse(success=True, summary=summary, results=results)

    async def price_hotel(
        self,
        hotel: Hotel,
        today: date,
        horizon: DateRange,
        rules: list[SeasonalRule],
        now: datetime,
        result: HotelPricingResult | None = None,
    ) -> HotelPricingResult:
        if result is None:
            result = HotelPricingResult(hotel_id=hotel.id, hotel_name=hotel.name, status="ok")

        rooms = await self._store.find_active_rooms(hotel.id)
        if not rooms:
            logger.info("[Pricing] Hotel %s has no active rooms, nothing to price", hotel.name)
            return result

        # Hotel-level signal: computed once, shared by every room
        occupancy = await self._occupancy.estimate_for_rooms(hotel.id, today, len(rooms))

        today_prices: list[Decimal] = []
        for room in rooms:
            for stay_date in horizon.days():
                # Last-minute nights carry a scarcity premium (policy.last_minute_multiplier > 1),
                # not a distressed-inventory discount.
                price = compute_price(
                    room.base_price, stay_date, occupancy, rules, today=today, policy=self._policy,
                )
                if stay_date == today:
                    today_prices.append(price)

                outcome = await self._store.upsert_inventory(
                    room.id, stay_date, price, AvailabilityStatus.AVAILABLE, now,
                )
                if outcome == UpsertOutcome.SKIPPED_BOOKED:
                    result.booked_dates_skipped += 1
                else:
                    result.dates_updated += 1
            result.rooms_updated += 1

        if today_prices:
            lowest = min(today_prices)
            await self._store.update_hotel_lowest_price(hotel.id, lowest, now)
            result.lowest_price_today = lowest
            logger.info("[Pricing] Hotel %s: lowest price today = %s (occupancy %.2f)",
                        hotel.name, lowest, occupancy)
        return result


def _to_result(progress: HotelPricingResult, outcome: Outcome[HotelPricingResult]) -> HotelPricingResult:
    if outcome.ok and outcome.value is not None:
        return outcome.value
    if outcome.skipped:
        return progress.model_copy(update={
            "status": "skipped",
            "error": "Run budget exhausted before this hotel was processed",
        })
    # Rows upserted before the failure stay written and stay counted
    return progress.model_copy(update={"status": "failed", "error": outcome.error})
