from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Protocol, Sequence

MONEY_PLACES = Decimal("0.01")
ZERO = Decimal("0.00")

SURCHARGE = 1
DISCOUNT = -1

# Default month -> seasonal fraction. Months not listed are off-season.
_DEFAULT_SEASON_TABLE: dict[int, Decimal] = {
    6: Decimal("0.20"),
    7: Decimal("0.20"),
    12: Decimal("0.20"),
    4: Decimal("0.10"),
    5: Decimal("0.10"),
    9: Decimal("0.10"),
}
_PEAK_SEASON = Decimal("0.20")

_EARLY_BIRD_RATE = Decimal("0.10")
_EARLY_BIRD_MIN_DAYS = 120

_LAST_MINUTE_RATE = Decimal("0.25")
_LAST_MINUTE_MAX_DAYS = 15  # exclusive

_GROUP_RATE = Decimal("0.08")
_GROUP_MIN_TRAVELLERS = 4

_WEEKEND_RATE = Decimal("0.08")
_WEEKEND_DAYS = {4, 5, 6}  # Friday, Saturday, Sunday

_MICROSECONDS_PER_DAY = Decimal(86_400_000_000)


@dataclass(frozen=True)
class Event:
    start_date: datetime
    season_months: frozenset[int] | None = None
    # None means "not set": the weekend rule then inspects the travel dates.
    is_weekend: bool | None = None


@dataclass(frozen=True)
class Package:
    base_price: Decimal
    early_bird_cutoff: datetime | None = None
    min_capacity: int = 1


@dataclass(frozen=True)
class PricingContext:
    """Everything a pricing rule may look at for a single quote."""

    event: Event
    package: Package
    travellers: int
    travel_dates: tuple[datetime, ...]
    now: datetime
    travel_month: int
    days_until_event: int


@dataclass(frozen=True)
class QuoteLine:
    code: str
    description: str
    amount: Decimal


@dataclass(frozen=True)
class PricingBreakdown:
    """
    Immutable decomposition of a quote's final price.

    Amount fields are money (2 dp, already signed by meaning: discounts are
    stored as positive amounts that were subtracted). Rate fields are the
    fractions of base_price each rule produced.
    """

    base_price: Decimal
    seasonal_adjustment: Decimal
    early_bird_discount: Decimal
    last_minute_surcharge: Decimal
    group_discount: Decimal
    weekend_surcharge: Decimal
    subtotal: Decimal
    addons_total: Decimal
    itineraries_total: Decimal
    final_price: Decimal
    includes_weekend: bool
    currency: str
    seasonal_multiplier: Decimal = ZERO
    early_bird_rate: Decimal = ZERO
    last_minute_rate: Decimal = ZERO
    group_rate: Decimal = ZERO
    weekend_rate: Decimal = ZERO
    days_until_event: int = 0
    lines: tuple[QuoteLine, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        """Serialize to plain JSON types (money and rates as strings)."""
        return {
            "base_price": money_str(self.base_price),
            "seasonal_multiplier": rate_str(self.seasonal_multiplier),
            "seasonal_adjustment": money_str(self.seasonal_adjustment),
            "early_bird_rate": rate_str(self.early_bird_rate),
            "early_bird_discount": money_str(self.early_bird_discount),
            "last_minute_rate": rate_str(self.last_minute_rate),
            "last_minute_surcharge": money_str(self.last_minute_surcharge),
            "group_rate": rate_str(self.group_rate),
            "group_discount": money_str(self.group_discount),
            "weekend_rate": rate_str(self.weekend_rate),
            "weekend_surcharge": money_str(self.weekend_surcharge),
            "subtotal": money_str(self.subtotal),
            "addons_total": money_str(self.addons_total),
            "itineraries_total": money_str(self.itineraries_total),
            "final_price": money_str(self.final_price),
            "includes_weekend": self.includes_weekend,
            "days_until_event": self.days_until_event,
            "currency": self.currency,
            "lines": [
                {"code": line.code, "description": line.description, "amount": money_str(line.amount)}
                for line in self.lines
            ],
        }


def to_money(value: Decimal | int | float | str) -> Decimal:
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)


def money_str(value: Decimal) -> str:
    return f"{to_money(value):.2f}"


def rate_str(value: Decimal) -> str:
    return f"{value:.2f}"


def with_default_tz(value: datetime) -> datetime:
    """Give naive datetimes UTC; aware ones keep the offset they were sent with."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def ensure_utc(value: datetime) -> datetime:
    # sqlite hands back naive datetimes; treat those as UTC.
    return with_default_tz(value).astimezone(timezone.utc)


def days_until_event(now: datetime, start_date: datetime) -> int:
    """Absolute whole-day distance between now and the event start, rounded half-up."""
    delta = abs(start_date - now)
    days = Decimal(delta // timedelta(microseconds=1)) / _MICROSECONDS_PER_DAY
    return int(days.to_integral_value(rounding=ROUND_HALF_UP))


class PricingRule(Protocol):
    code: str
    label: str
    sign: int

    def fraction(self, ctx: PricingContext) -> Decimal: ...


class SeasonalMultiplierResolver:
    code = "seasonal"
    label = "Seasonal adjustment"
    sign = SURCHARGE

    def resolve(self, event: Event, travel_month: int) -> Decimal:
        # Event season months only ever promote a month to peak; every other
        # month still goes through the default table.
        if event.season_months and travel_month in event.season_months:
            return _PEAK_SEASON
        return _DEFAULT_SEASON_TABLE.get(travel_month, ZERO)

    def fraction(self, ctx: PricingContext) -> Decimal:
        return self.resolve(ctx.event, ctx.travel_month)


class EarlyBirdDiscountRule:
    code = "early_bird"
    label = "Early bird discount"
    sign = DISCOUNT

    def calculate(self, days_until_event: int, early_bird_cutoff: datetime | None, now: datetime) -> Decimal:
        if early_bird_cutoff is not None:
            return _EARLY_BIRD_RATE if now <= early_bird_cutoff else ZERO
        return _EARLY_BIRD_RATE if days_until_event >= _EARLY_BIRD_MIN_DAYS else ZERO

    def fraction(self, ctx: PricingContext) -> Decimal:
        return self.calculate(ctx.days_until_event, ctx.package.early_bird_cutoff, ctx.now)


class LastMinuteSurchargeRule:
    code = "last_minute"
    label = "Last minute surcharge"
    sign = SURCHARGE

    def calculate(self, days_until_event: int) -> Decimal:
        return _LAST_MINUTE_RATE if days_until_event < _LAST_MINUTE_MAX_DAYS else ZERO

    def fraction(self, ctx: PricingContext) -> Decimal:
        return self.calculate(ctx.days_until_event)


class GroupDiscountRule:
    code = "group"
    label = "Group discount"
    sign = DISCOUNT

    def calculate(self, travellers: int, min_capacity: int = 1) -> Decimal:
        threshold = max(_GROUP_MIN_TRAVELLERS, min_capacity)
        return _GROUP_RATE if travellers >= threshold else ZERO

    def fraction(self, ctx: PricingContext) -> Decimal:
        return self.calculate(ctx.travellers, ctx.package.min_capacity)


class WeekendSurchargeRule:
    code = "weekend"
    label = "Weekend surcharge"
    sign = SURCHARGE

    def calculate(self, event: Event, travel_dates: Iterable[datetime]) -> Decimal:
        if event.is_weekend is not None:
            return _WEEKEND_RATE if event.is_weekend else ZERO
        if any(d.weekday() in _WEEKEND_DAYS for d in travel_dates):
            return _WEEKEND_RATE
        return ZERO

    def fraction(self, ctx: PricingContext) -> Decimal:
        return self.calculate(ctx.event, ctx.travel_dates)


DEFAULT_RULES: tuple[PricingRule, ...] = (
    SeasonalMultiplierResolver(),
    EarlyBirdDiscountRule(),
    LastMinuteSurchargeRule(),
    GroupDiscountRule(),
    WeekendSurchargeRule(),
)

# Breakdown field names for the built-in rule codes: (rate field, amount field).
_RULE_FIELDS: dict[str, tuple[str, str]] = {
    "seasonal": ("seasonal_multiplier", "seasonal_adjustment"),
    "early_bird": ("early_bird_rate", "early_bird_discount"),
    "last_minute": ("last_minute_rate", "last_minute_surcharge"),
    "group": ("group_rate", "group_discount"),
    "weekend": ("weekend_rate", "weekend_surcharge"),
}


def _pct(rate: Decimal) -> str:
    value = rate * 100
    if value == value.to_integral_value():
        return str(int(value))
    return str(value.normalize())


class QuoteAggregator:
    """
    Combines the pricing rules into a breakdown.

    Every rule's fraction is applied to the base price (additive, never
    compounded). Extra rules can be passed in; their amounts count towards the
    subtotal and appear in the breakdown lines.
    """

    def __init__(self, rules: Sequence[PricingRule] | None = None):
        self.rules: tuple[PricingRule, ...] = tuple(rules) if rules is not None else DEFAULT_RULES

    def calculate_quote(
        self,
        base_price: Decimal | int | str,
        event: Event,
        package: Package,
        travellers: int,
        travel_dates: Sequence[datetime],
        addons_total: Decimal | int | str = ZERO,
        itineraries_total: Decimal | int | str = ZERO,
        currency: str = "USD",
        *,
        now: datetime,
    ) -> PricingBreakdown:
        base = to_money(base_price)
        dates = tuple(travel_dates)
        ctx = PricingContext(
            event=event,
            package=package,
            travellers=travellers,
            travel_dates=dates,
            now=now,
            travel_month=dates[0].month,
            days_until_event=days_until_event(now, event.start_date),
        )

        fields: dict[str, object] = {}
        lines: list[QuoteLine] = [QuoteLine(code="base", description="Package base price", amount=base)]
        subtotal = base
        weekend = ZERO

        for rule in self.rules:
            rate = rule.fraction(ctx)
            exact = base * rate
            subtotal += rule.sign * exact
            amount = to_money(exact)

            if rule.code in _RULE_FIELDS:
                rate_field, amount_field = _RULE_FIELDS[rule.code]
                fields[rate_field] = rate
                fields[amount_field] = amount
            if rule.code == WeekendSurchargeRule.code:
                weekend = rate

            if rate:
                sign = "+" if rule.sign > 0 else "-"
                lines.append(
                    QuoteLine(
                        code=rule.code,
                        description=f"{rule.label} ({sign}{_pct(rate)}%)",
                        amount=rule.sign * amount,
                    )
                )

        subtotal = max(to_money(subtotal), ZERO)
        addons = to_money(addons_total)
        itineraries = to_money(itineraries_total)
        if addons:
            lines.append(QuoteLine(code="addons", description="Add-ons", amount=addons))
        if itineraries:
            lines.append(QuoteLine(code="itineraries", description="Itineraries", amount=itineraries))

        final_price = max(subtotal + addons + itineraries, ZERO)

        for rate_field, amount_field in _RULE_FIELDS.values():
            fields.setdefault(rate_field, ZERO)
            fields.setdefault(amount_field, ZERO)

        return PricingBreakdown(
            base_price=base,
            subtotal=subtotal,
            addons_total=addons,
            itineraries_total=itineraries,
            final_price=final_price,
            includes_weekend=weekend > 0,
            currency=currency,
            days_until_event=ctx.days_until_event,
            lines=tuple(lines),
            **fields,
        )


def calculation_notes(
    breakdown: PricingBreakdown,
    addon_titles: Sequence[str] = (),
    itinerary_titles: Sequence[str] = (),
) -> str:
    notes: list[str] = []
    days = breakdown.days_until_event

    if breakdown.seasonal_multiplier > 0:
        notes.append(f"Seasonal adjustment: +{_pct(breakdown.seasonal_multiplier)}%")
    if breakdown.early_bird_rate > 0:
        notes.append(f"Early bird discount: -{_pct(breakdown.early_bird_rate)}% ({days} days before event)")
    if breakdown.last_minute_rate > 0:
        notes.append(f"Last minute surcharge: +{_pct(breakdown.last_minute_rate)}% ({days} days before event)")
    if breakdown.group_rate > 0:
        notes.append(f"Group discount: -{_pct(breakdown.group_rate)}%")
    if breakdown.weekend_rate > 0:
        notes.append(f"Weekend surcharge: +{_pct(breakdown.weekend_rate)}%")
    if addon_titles:
        notes.append(f"Add-ons included: {', '.join(addon_titles)}")
    if itinerary_titles:
        notes.append(f"Itineraries included: {', '.join(itinerary_titles)}")

    return " | ".join(notes)
