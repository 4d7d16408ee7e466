"""
Seed the quote-service database with sample sports events, packages,
add-ons, itineraries and one lead.

Uses QUOTE_DATABASE_URL like the service itself. Safe to re-run: rows that
already exist are left alone.
"""

import sys
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent / "services" / "quote-service"))

from app.db import engine, session  # noqa: E402
from app.models import AddOn, Base, Event, Itinerary, Lead, Package  # noqa: E402


def _utc(y: int, m: int, d: int) -> datetime:
    return datetime(y, m, d, tzinfo=timezone.utc)


EVENTS = [
    {
        "id": "evt-ucl-2027",
        "title": "UEFA Champions League Final 2027",
        "location": "Madrid, Spain",
        "category": "Football",
        "start_date": _utc(2027, 5, 29),
        "end_date": _utc(2027, 5, 30),
        "season_months": [5, 6],
        "is_weekend": True,
    },
    {
        "id": "evt-f1-2027",
        "title": "Formula 1 Singapore Grand Prix 2027",
        "location": "Singapore",
        "category": "Motorsport",
        "start_date": _utc(2027, 9, 17),
        "end_date": _utc(2027, 9, 19),
        "season_months": [9],
        "is_weekend": None,
    },
]

# (suffix, title, base price, min capacity)
PACKAGES = [
    ("vip", "VIP Ticket + 5 Star Hotel", "2500.00", 1),
    ("std", "Standard Ticket + Hotel", "1800.00", 1),
    ("fan", "Fan Zone Package", "1200.00", 1),
    ("corp", "Corporate Hospitality Box", "6000.00", 6),
]

ADDONS = [
    ("transfer", "Airport Transfer", "80.00"),
    ("meet", "Meet & Greet", "350.00"),
]

ITINERARIES = [
    ("stadium", "City Stadium Tour", "100.00"),
    ("museum", "Sports Museum Visit", "80.00"),
    ("warmup", "Match Warm-up Access", None),
]


def seed():
    Base.metadata.create_all(engine)
    added = 0

    with session() as s:
        for ev in EVENTS:
            if s.get(Event, ev["id"]) is None:
                s.add(Event(**ev))
                added += 1

            for suffix, title, price, min_capacity in PACKAGES:
                pid = f"{suffix}-{ev['id']}"
                if s.get(Package, pid) is None:
                    s.add(Package(id=pid, event_id=ev["id"], title=title, base_price=Decimal(price), min_capacity=min_capacity))
                    added += 1

            for suffix, title, price in ADDONS:
                aid = f"addon-{suffix}-{ev['id']}"
                if s.get(AddOn, aid) is None:
                    s.add(AddOn(id=aid, event_id=ev["id"], title=title, price=Decimal(price)))
                    added += 1

            for suffix, title, price in ITINERARIES:
                iid = f"itin-{suffix}-{ev['id']}"
                if s.get(Itinerary, iid) is None:
                    s.add(Itinerary(id=iid, event_id=ev["id"], title=title, base_price=Decimal(price) if price else None))
                    added += 1

        if s.get(Lead, "lead-demo") is None:
            s.add(
                Lead(
                    id="lead-demo",
                    name="Demo Lead",
                    email="demo.lead@example.com",
                    status="NEW",
                    created_at=datetime.now(tz=timezone.utc),
                )
            )
            added += 1

        s.commit()

    print(f"Finished. Added rows: {added}")


if __name__ == "__main__":
    seed()
