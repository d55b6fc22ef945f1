"""Pure nightly price model.

No I/O, no side effects. All arithmetic runs on Decimal so the same inputs
always produce the same price, which keeps repeated batch runs drift-free.

Factors are applied multiplicatively in a fixed order:
  1. weekend     - premium on configured weekdays
  2. demand      - step function of hotel occupancy, clamped to [min, max]
  3. lead time   - last-minute / neutral / early-bird bands
  4. seasonal    - admin rules overlapping the stay date (stacked by default)
"""

from __future__ import annotations

from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Literal

from pydantic import BaseModel, model_validator

from ratesync.exceptions.custom import InvalidPriceInputError
from ratesync.schemas.domain import SeasonalRule

CENT = Decimal("0.01")
ONE = Decimal("1")
ZERO = Decimal("0")

_DAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


class DemandBand(BaseModel):
    model_config = {"frozen": True}

    threshold: Decimal
    multiplier: Decimal
    label: str = ""


class PricingPolicy(BaseModel):
    model_config = {"frozen": True}

    weekend_days: frozenset[int] = frozenset({4, 5})  # Friday, Saturday
    weekend_multiplier: Decimal = Decimal("1.15")

    demand_bands: tuple[DemandBand, ...] = (
        DemandBand(threshold=Decimal("0"), multiplier=Decimal("0.90"), label="Flash Deal"),
        DemandBand(threshold=Decimal("0.30"), multiplier=Decimal("1.00"), label="Normal Demand"),
        DemandBand(threshold=Decimal("0.60"), multiplier=Decimal("1.10"), label="Moderate Demand"),
        DemandBand(threshold=Decimal("0.80"), multiplier=Decimal("1.30"), label="High Demand"),
    )
    demand_min: Decimal = Decimal("0.90")
    demand_max: Decimal = Decimal("1.30")

    last_minute_max_days: int = 1
    last_minute_multiplier: Decimal = Decimal("1.10")
    early_bird_min_days: int = 60
    early_bird_multiplier: Decimal = Decimal("0.95")

    seasonal_mode: Literal["stack", "max"] = "stack"

    min_total_multiplier: Decimal | None = None
    max_total_multiplier: Decimal | None = None

    @model_validator(mode="after")
    def _check_consistency(self) -> PricingPolicy:
        if not self.demand_bands:
            raise ValueError("demand_bands must not be empty")
        if self.demand_bands[0].threshold != ZERO:
            raise ValueError("first demand band must start at occupancy 0")
        for prev, band in zip(self.demand_bands, self.demand_bands[1:]):
            if band.threshold <= prev.threshold:
                raise ValueError("demand band thresholds must be strictly ascending")
            if band.multiplier < prev.multiplier:
                raise ValueError("demand band multipliers must be non-decreasing")
        if self.demand_min > self.demand_max:
            raise ValueError("demand_min must not exceed demand_max")
        if self.early_bird_min_days <= self.last_minute_max_days:
            raise ValueError("early-bird band must start after the last-minute band")
        if any(d < 0 or d > 6 for d in self.weekend_days):
            raise ValueError("weekend_days must be weekday numbers 0-6")
        multipliers = [
            self.weekend_multiplier,
            self.last_minute_multiplier,
            self.early_bird_multiplier,
            self.demand_min,
        ]
        if any(m < ZERO for m in multipliers):
            raise ValueError("multipliers must be >= 0")
        if (
            self.min_total_multiplier is not None
            and self.max_total_multiplier is not None
            and self.min_total_multiplier > self.max_total_multiplier
        ):
            raise ValueError("min_total_multiplier must not exceed max_total_multiplier")
        return self


DEFAULT_POLICY = PricingPolicy()


class PriceBreakdown(BaseModel):
    base_price: Decimal
    stay_date: date
    weekend_factor: Decimal
    demand_factor: Decimal
    lead_time_factor: Decimal
    seasonal_factor: Decimal
    total_multiplier: Decimal
    final_price: Decimal
    applied_rules: list[str] = []


def _to_decimal(value: Decimal | float | int) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() keeps 0.8 as 0.8 instead of its binary expansion
    return Decimal(str(value))


def clamp_occupancy(occupancy: Decimal | float | int) -> Decimal:
    value = _to_decimal(occupancy)
    if value.is_nan() or value < ZERO:
        return ZERO
    if value > ONE:
        return ONE
    return value


def weekend_factor(stay_date: date, policy: PricingPolicy = DEFAULT_POLICY) -> Decimal:
    if stay_date.weekday() in policy.weekend_days:
        return policy.weekend_multiplier
    return ONE


def _demand_band(occupancy: Decimal, policy: PricingPolicy) -> DemandBand:
    selected = policy.demand_bands[0]
    for band in policy.demand_bands:
        if occupancy >= band.threshold:
            selected = band
    return selected


def demand_factor(occupancy: Decimal | float | int, policy: PricingPolicy = DEFAULT_POLICY) -> Decimal:
    """Multiplier for the hotel's occupancy, never outside [demand_min, demand_max]."""
    band = _demand_band(clamp_occupancy(occupancy), policy)
    return min(max(band.multiplier, policy.demand_min), policy.demand_max)


def lead_time_factor(stay_date: date, today: date, policy: PricingPolicy = DEFAULT_POLICY) -> Decimal:
    days_until = (stay_date - today).days
    if days_until <= policy.last_minute_max_days:
        return policy.last_minute_multiplier
    if days_until >= policy.early_bird_min_days:
        return policy.early_bird_multiplier
    return ONE


def rules_for_date(stay_date: date, seasonal_rules: Iterable[SeasonalRule]) -> list[SeasonalRule]:
    return [rule for rule in seasonal_rules if rule.applies_to(stay_date)]


def seasonal_factor(
    stay_date: date,
    seasonal_rules: Iterable[SeasonalRule],
    policy: PricingPolicy = DEFAULT_POLICY,
) -> Decimal:
    matching = rules_for_date(stay_date, seasonal_rules)
    if not matching:
        return ONE
    if policy.seasonal_mode == "max":
        return max(rule.multiplier for rule in matching)
    factor = ONE
    for rule in sorted(matching, key=lambda r: r.id):
        factor *= rule.multiplier
    return factor


def _describe(multiplier: Decimal) -> str:
    pct = ((multiplier - ONE) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return f"+{pct}%" if pct > 0 else f"{pct}%"


def _applied_rules(
    stay_date: date,
    occupancy: Decimal,
    today: date,
    matching: list[SeasonalRule],
    policy: PricingPolicy,
) -> list[str]:
    labels: list[str] = []
    if stay_date.weekday() in policy.weekend_days and policy.weekend_multiplier != ONE:
        labels.append(f"{_DAY_NAMES[stay_date.weekday()]} Rate ({_describe(policy.weekend_multiplier)})")

    band = _demand_band(occupancy, policy)
    factor = demand_factor(occupancy, policy)
    if factor != ONE:
        labels.append(f"{band.label or 'Demand'} ({_describe(factor)})")

    lead = lead_time_factor(stay_date, today, policy)
    if lead != ONE:
        name = "Last Minute" if (stay_date - today).days <= policy.last_minute_max_days else "Early Bird"
        labels.append(f"{name} ({_describe(lead)})")

    for rule in matching:
        labels.append(f"{rule.name} ({_describe(rule.multiplier)})")
    return labels


def price_breakdown(
    base_price: Decimal | float | int,
    stay_date: date,
    occupancy: Decimal | float | int,
    seasonal_rules: Iterable[SeasonalRule] = (),
    *,
    today: date,
    policy: PricingPolicy = DEFAULT_POLICY,
) -> PriceBreakdown:
    """Full factor breakdown for one room-night.

    Raises InvalidPriceInputError when base_price is not positive; a zero or
    negative base is a data error upstream and must not be priced silently.
    """
    base = _to_decimal(base_price)
    if base.is_nan() or base <= ZERO:
        raise InvalidPriceInputError(f"base_price must be > 0, got {base_price}")

    rules = list(seasonal_rules)
    occ = clamp_occupancy(occupancy)

    weekend = weekend_factor(stay_date, policy)
    demand = demand_factor(occ, policy)
    lead = lead_time_factor(stay_date, today, policy)
    seasonal = seasonal_factor(stay_date, rules, policy)

    total = weekend * demand * lead * seasonal
    if policy.min_total_multiplier is not None:
        total = max(total, policy.min_total_multiplier)
    if policy.max_total_multiplier is not None:
        total = min(total, policy.max_total_multiplier)

    matching = rules_for_date(stay_date, rules)
    if policy.seasonal_mode == "max" and matching:
        matching = [max(matching, key=lambda r: r.multiplier)]

    return PriceBreakdown(
        base_price=base,
        stay_date=stay_date,
        weekend_factor=weekend,
        demand_factor=demand,
        lead_time_factor=lead,
        seasonal_factor=seasonal,
        total_multiplier=total,
        final_price=(base * total).quantize(CENT, rounding=ROUND_HALF_UP),
        applied_rules=_applied_rules(stay_date, occ, today, matching, policy),
    )


def compute_price(
    base_price: Decimal | float | int,
    stay_date: date,
    occupancy: Decimal | float | int,
    seasonal_rules: Iterable[SeasonalRule] = (),
    *,
    today: date,
    policy: PricingPolicy = DEFAULT_POLICY,
) -> Decimal:
    """Final nightly price rounded half-up to the currency's minor unit."""
    return price_breakdown(
        base_price, stay_date, occupancy, seasonal_rules, today=today, policy=policy,
    ).final_price


def price_forecast(
    base_price: Decimal | float | int,
    days: int,
    occupancy: Decimal | float | int,
    seasonal_rules: Iterable[SeasonalRule] = (),
    *,
    today: date,
    policy: PricingPolicy = DEFAULT_POLICY,
) -> list[PriceBreakdown]:
    rules = list(seasonal_rules)
    return [
        price_breakdown(
            base_price, today + timedelta(days=i), occupancy, rules, today=today, policy=policy,
        )
        for i in range(days)
    ]
