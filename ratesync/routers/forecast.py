import logging
from datetime import datetime, timezone
from typing import Annotated

from fastapi import APIRouter, HTTPException, Query

from ratesync.dependencies import CronAuth, OccupancyDep, PricingBatchDep, StoreDep
from ratesync.mappers.pricing_model import price_forecast
from ratesync.schemas.domain import DateRange
from ratesync.schemas.responses import ForecastDay, ForecastResponse, RoomForecast

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[CronAuth])


@router.get("/hotels/{hotel_id}/forecast", response_model=ForecastResponse)
async def hotel_forecast(
    hotel_id: str,
    store: StoreDep,
    occupancy: OccupancyDep,
    pricing: PricingBatchDep,
    days: Annotated[int, Query(ge=1, le=365)] = 14,
) -> ForecastResponse:
    """Prices the next run would write, without writing them."""
    hotel = await store.get_hotel(hotel_id)
    if hotel is None:
        raise HTTPException(status_code=404, detail="Hotel not found")

    today = pricing.today()
    rooms = await store.find_active_rooms(hotel_id)
    ratio = await occupancy.estimate_for_rooms(hotel_id, today, len(rooms))
    rules = await store.find_active_seasonal_rules(DateRange.from_horizon(today, days))

    forecasts = []
    for room in rooms:
        breakdowns = price_forecast(
            room.base_price, days, ratio, rules, today=today, policy=pricing.policy,
        )
        forecasts.append(RoomForecast(
            room_id=room.id,
            base_price=room.base_price,
            days=[
                ForecastDay(
                    stay_date=b.stay_date,
                    price=b.final_price,
                    total_multiplier=b.total_multiplier,
                    rules=b.applied_rules,
                )
                for b in breakdowns
            ],
        ))
    logger.info("Forecast for hotel %s: %d rooms x %d days", hotel_id, len(rooms), days)
    return ForecastResponse(
        hotel_id=hotel_id,
        occupancy=ratio,
        generated_at=datetime.now(timezone.utc),
        rooms=forecasts,
    )
