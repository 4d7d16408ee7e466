from datetime import datetime, timezone
from decimal import Decimal

from app import persistence
from app.models import Event, Itinerary, Package


def test_event_from_row_normalizes_dates_and_months():
    row = Event(id="e", title="Final", start_date=datetime(2025, 10, 29), season_months=[], is_weekend=None)
    event = persistence.event_from_row(row)

    assert event.start_date == datetime(2025, 10, 29, tzinfo=timezone.utc)
    assert event.season_months is None
    assert event.is_weekend is None

    row = Event(id="e", title="Final", start_date=datetime(2025, 10, 29), season_months=[5, 6], is_weekend=False)
    event = persistence.event_from_row(row)
    assert event.season_months == frozenset({5, 6})
    assert event.is_weekend is False


def test_package_from_row_defaults_min_capacity():
    row = Package(id="p", event_id="e", title="Std", base_price=Decimal("1800"), min_capacity=None)
    package = persistence.package_from_row(row)

    assert package.base_price == Decimal("1800.00")
    assert package.min_capacity == 1
    assert package.early_bird_cutoff is None


def test_itineraries_total_counts_unpriced_as_free():
    rows = [
        Itinerary(id="a", event_id="e", title="Tour", base_price=Decimal("100.00")),
        Itinerary(id="b", event_id="e", title="Warm-up", base_price=None),
    ]
    assert persistence.itineraries_total(rows) == Decimal("100.00")
