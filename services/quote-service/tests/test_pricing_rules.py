from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from app import domain

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize("month", [6, 7, 12])
def test_default_peak_months(month):
    assert domain.SeasonalMultiplierResolver().resolve(domain.Event(start_date=NOW), month) == Decimal("0.20")


@pytest.mark.parametrize("month", [4, 5, 9])
def test_default_shoulder_months(month):
    assert domain.SeasonalMultiplierResolver().resolve(domain.Event(start_date=NOW), month) == Decimal("0.10")


@pytest.mark.parametrize("month", [1, 2, 3, 8, 10, 11])
def test_default_off_season_months(month):
    assert domain.SeasonalMultiplierResolver().resolve(domain.Event(start_date=NOW), month) == 0


def test_event_season_months_promote_to_peak():
    event = domain.Event(start_date=NOW, season_months=frozenset({3, 4}))
    resolver = domain.SeasonalMultiplierResolver()

    assert resolver.resolve(event, 3) == Decimal("0.20")
    assert resolver.resolve(event, 4) == Decimal("0.20")


def test_event_season_months_fall_through_to_default_table():
    event = domain.Event(start_date=NOW, season_months=frozenset({3}))
    resolver = domain.SeasonalMultiplierResolver()

    # Not in the event's season: the default table still applies.
    assert resolver.resolve(event, 7) == Decimal("0.20")
    assert resolver.resolve(event, 5) == Decimal("0.10")
    assert resolver.resolve(event, 10) == 0


def test_empty_season_months_behaves_like_none():
    event = domain.Event(start_date=NOW, season_months=frozenset())
    assert domain.SeasonalMultiplierResolver().resolve(event, 3) == 0


def test_early_bird_day_threshold_is_inclusive():
    rule = domain.EarlyBirdDiscountRule()

    assert rule.calculate(150, None, NOW) == Decimal("0.10")
    assert rule.calculate(120, None, NOW) == Decimal("0.10")
    assert rule.calculate(119, None, NOW) == 0


def test_early_bird_cutoff_takes_precedence_over_day_count():
    rule = domain.EarlyBirdDiscountRule()
    future_cutoff = NOW + timedelta(days=5)
    past_cutoff = NOW - timedelta(days=1)

    assert rule.calculate(10, future_cutoff, NOW) == Decimal("0.10")
    assert rule.calculate(10, past_cutoff, NOW) == 0
    # An expired cutoff wins even when the event is far away.
    assert rule.calculate(200, past_cutoff, NOW) == 0


def test_early_bird_cutoff_instant_qualifies():
    assert domain.EarlyBirdDiscountRule().calculate(0, NOW, NOW) == Decimal("0.10")


def test_last_minute_surcharge_boundary():
    rule = domain.LastMinuteSurchargeRule()

    assert rule.calculate(14) == Decimal("0.25")
    assert rule.calculate(1) == Decimal("0.25")
    assert rule.calculate(0) == Decimal("0.25")
    assert rule.calculate(15) == 0
    assert rule.calculate(50) == 0


def test_group_discount_threshold():
    rule = domain.GroupDiscountRule()

    assert rule.calculate(4, 1) == Decimal("0.08")
    assert rule.calculate(3, 1) == 0
    assert rule.calculate(4) == Decimal("0.08")


def test_group_discount_respects_package_min_capacity():
    rule = domain.GroupDiscountRule()

    assert rule.calculate(4, min_capacity=5) == 0
    assert rule.calculate(5, min_capacity=5) == Decimal("0.08")


def test_weekend_flag_short_circuits_dates():
    rule = domain.WeekendSurchargeRule()

    assert rule.calculate(domain.Event(start_date=NOW, is_weekend=True), []) == Decimal("0.08")
    assert rule.calculate(domain.Event(start_date=NOW, is_weekend=False), []) == 0

    saturday = datetime(2025, 10, 25, tzinfo=timezone.utc)
    assert saturday.weekday() == 5
    assert rule.calculate(domain.Event(start_date=NOW, is_weekend=False), [saturday]) == 0


def test_weekend_from_travel_dates():
    rule = domain.WeekendSurchargeRule()
    event = domain.Event(start_date=NOW)
    friday = datetime(2025, 10, 24, tzinfo=timezone.utc)
    tuesday = datetime(2025, 10, 21, tzinfo=timezone.utc)
    wednesday = datetime(2025, 10, 22, tzinfo=timezone.utc)
    assert (friday.weekday(), tuesday.weekday(), wednesday.weekday()) == (4, 1, 2)

    assert rule.calculate(event, [friday, friday + timedelta(days=1)]) == Decimal("0.08")
    assert rule.calculate(event, [tuesday, friday]) == Decimal("0.08")
    assert rule.calculate(event, [tuesday, wednesday]) == 0


def test_days_until_event_rounds_half_up():
    assert domain.days_until_event(NOW, NOW + timedelta(days=14, hours=12)) == 15
    assert domain.days_until_event(NOW, NOW + timedelta(days=14, hours=11)) == 14
    assert domain.days_until_event(NOW, NOW) == 0


def test_days_until_event_is_absolute():
    assert domain.days_until_event(NOW, NOW - timedelta(days=20)) == 20


def test_early_bird_and_last_minute_never_overlap():
    early_bird = domain.EarlyBirdDiscountRule()
    last_minute = domain.LastMinuteSurchargeRule()

    for days in range(0, 201):
        eb = early_bird.calculate(days, None, NOW)
        lm = last_minute.calculate(days)
        assert not (eb and lm), days


def test_weekend_uses_the_offset_each_date_carries():
    rule = domain.WeekendSurchargeRule()
    event = domain.Event(start_date=NOW + timedelta(days=60))
    mountain = timezone(timedelta(hours=-6))
    # Thursday 20:00 local is Friday 02:00 UTC.
    thursday_evening = datetime(2025, 10, 23, 20, 0, tzinfo=mountain)

    assert rule.calculate(event, [thursday_evening]) == 0
    assert rule.calculate(event, [domain.ensure_utc(thursday_evening)]) == Decimal("0.08")


def test_with_default_tz_only_fills_in_missing_offsets():
    plus_two = timezone(timedelta(hours=2))
    aware = datetime(2025, 12, 1, 0, 30, tzinfo=plus_two)

    assert domain.with_default_tz(aware) is aware
    assert domain.with_default_tz(datetime(2025, 12, 1)) == datetime(2025, 12, 1, tzinfo=timezone.utc)
    assert domain.ensure_utc(aware) == datetime(2025, 11, 30, 22, 30, tzinfo=timezone.utc)
    assert domain.ensure_utc(aware).tzinfo is timezone.utc
