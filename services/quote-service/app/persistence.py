from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Literal
from uuid import uuid4

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from . import domain
from .models import AddOn, Event as EventRow, Itinerary, Lead, LeadStatusHistory, Package as PackageRow, Quote

SortField = Literal["created_at", "expiry_date", "final_price", "travellers"]

_SORT_COLUMNS = {
    "created_at": Quote.created_at,
    "expiry_date": Quote.expiry_date,
    "final_price": Quote.final_price,
    "travellers": Quote.travellers,
}


def event_from_row(row: EventRow) -> domain.Event:
    months = frozenset(int(m) for m in (row.season_months or [])) or None
    return domain.Event(
        start_date=domain.ensure_utc(row.start_date),
        season_months=months,
        is_weekend=row.is_weekend,
    )


def package_from_row(row: PackageRow) -> domain.Package:
    cutoff = domain.ensure_utc(row.early_bird_cutoff) if row.early_bird_cutoff else None
    return domain.Package(
        base_price=domain.to_money(row.base_price),
        early_bird_cutoff=cutoff,
        min_capacity=max(1, int(row.min_capacity or 1)),
    )


def addons_for_event(s: Session, event_id: str, addon_ids: list[str]) -> list[AddOn]:
    if not addon_ids:
        return []
    stmt = select(AddOn).where(AddOn.id.in_(addon_ids), AddOn.event_id == event_id).order_by(AddOn.title)
    return list(s.scalars(stmt).all())


def itineraries_for_event(s: Session, event_id: str, itinerary_ids: list[str]) -> list[Itinerary]:
    if not itinerary_ids:
        return []
    stmt = select(Itinerary).where(Itinerary.id.in_(itinerary_ids), Itinerary.event_id == event_id).order_by(Itinerary.title)
    return list(s.scalars(stmt).all())


def addons_total(addons: list[AddOn]) -> Decimal:
    return sum((domain.to_money(a.price) for a in addons), domain.ZERO)


def itineraries_total(itineraries: list[Itinerary]) -> Decimal:
    # Itineraries without a price are included for free.
    return sum((domain.to_money(i.base_price or 0) for i in itineraries), domain.ZERO)


def save_quote(
    s: Session,
    *,
    lead: Lead,
    event_id: str,
    package_id: str,
    addon_ids: list[str],
    itinerary_ids: list[str],
    travellers: int,
    travel_dates: list[datetime],
    breakdown: domain.PricingBreakdown,
    calculation_notes: str,
    notes: str | None,
    expiry_date: datetime,
    now: datetime,
    changed_by: str,
    event_title: str,
    package_title: str,
) -> Quote:
    """Store the quote and move the lead to QUOTE_SENT in one transaction."""
    quote = Quote(
        id=str(uuid4()),
        lead_id=lead.id,
        event_id=event_id,
        package_id=package_id,
        status="SENT",
        created_at=now,
        updated_at=now,
        expiry_date=expiry_date,
        addon_ids=list(addon_ids),
        itinerary_ids=list(itinerary_ids),
        travellers=travellers,
        travel_dates=[domain.ensure_utc(d).isoformat() for d in travel_dates],
        days_until_event=breakdown.days_until_event,
        includes_weekend=breakdown.includes_weekend,
        currency=breakdown.currency,
        base_price=breakdown.base_price,
        seasonal_multiplier=breakdown.seasonal_multiplier,
        seasonal_adjustment=breakdown.seasonal_adjustment,
        early_bird_discount=breakdown.early_bird_discount,
        last_minute_surcharge=breakdown.last_minute_surcharge,
        group_discount=breakdown.group_discount,
        weekend_surcharge=breakdown.weekend_surcharge,
        addons_total=breakdown.addons_total,
        itineraries_total=breakdown.itineraries_total,
        subtotal=breakdown.subtotal,
        final_price=breakdown.final_price,
        calculation_notes=calculation_notes,
        notes=notes,
    )
    s.add(quote)

    s.add(
        LeadStatusHistory(
            id=str(uuid4()),
            lead_id=lead.id,
            from_status=lead.status,
            to_status="QUOTE_SENT",
            changed_by=changed_by,
            notes=f"Quote generated for {event_title} - {package_title}",
            created_at=now,
        )
    )
    lead.status = "QUOTE_SENT"
    s.add(lead)

    s.commit()
    return quote


def list_quotes(
    s: Session,
    *,
    lead_id: str | None = None,
    event_id: str | None = None,
    package_id: str | None = None,
    status: str | None = None,
    min_price: Decimal | None = None,
    max_price: Decimal | None = None,
    expiry_before: datetime | None = None,
    expiry_after: datetime | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 20,
    sort_by: SortField = "created_at",
    sort_order: Literal["asc", "desc"] = "desc",
) -> tuple[list[Quote], int]:
    filters = []
    if lead_id:
        filters.append(Quote.lead_id == lead_id)
    if event_id:
        filters.append(Quote.event_id == event_id)
    if package_id:
        filters.append(Quote.package_id == package_id)
    if status:
        filters.append(Quote.status == status)
    if min_price is not None:
        filters.append(Quote.final_price >= min_price)
    if max_price is not None:
        filters.append(Quote.final_price <= max_price)
    if expiry_before is not None:
        filters.append(Quote.expiry_date <= expiry_before)
    if expiry_after is not None:
        filters.append(Quote.expiry_date >= expiry_after)
    if search:
        pattern = f"%{search.strip()}%"
        filters.append(or_(Quote.notes.ilike(pattern), Quote.calculation_notes.ilike(pattern)))

    total = s.scalar(select(func.count()).select_from(Quote).where(*filters)) or 0

    column = _SORT_COLUMNS[sort_by]
    stmt = (
        select(Quote)
        .where(*filters)
        .order_by(column.asc() if sort_order == "asc" else column.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(s.scalars(stmt).all()), int(total)


def _iso(value: datetime | None) -> str | None:
    return domain.ensure_utc(value).isoformat() if value is not None else None


def quote_to_dict(q: Quote) -> dict[str, Any]:
    money = domain.money_str
    return {
        "id": q.id,
        "lead_id": q.lead_id,
        "event_id": q.event_id,
        "package_id": q.package_id,
        "status": q.status,
        "created_at": _iso(q.created_at),
        "updated_at": _iso(q.updated_at),
        "expiry_date": _iso(q.expiry_date),
        "addon_ids": list(q.addon_ids or []),
        "itinerary_ids": list(q.itinerary_ids or []),
        "travellers": q.travellers,
        "travel_dates": list(q.travel_dates or []),
        "days_until_event": q.days_until_event,
        "includes_weekend": bool(q.includes_weekend),
        "currency": q.currency,
        "base_price": money(q.base_price),
        "seasonal_multiplier": domain.rate_str(Decimal(q.seasonal_multiplier)),
        "seasonal_adjustment": money(q.seasonal_adjustment),
        "early_bird_discount": money(q.early_bird_discount),
        "last_minute_surcharge": money(q.last_minute_surcharge),
        "group_discount": money(q.group_discount),
        "weekend_surcharge": money(q.weekend_surcharge),
        "addons_total": money(q.addons_total),
        "itineraries_total": money(q.itineraries_total),
        "subtotal": money(q.subtotal),
        "final_price": money(q.final_price),
        "calculation_notes": q.calculation_notes,
        "notes": q.notes,
        "lead": _lead_summary(q.lead),
        "event": _event_summary(q.event),
        "package": _package_summary(q.package),
    }


def _lead_summary(row: Lead | None) -> dict[str, Any] | None:
    if row is None:
        return None
    return {"id": row.id, "name": row.name, "email": row.email, "phone": row.phone, "status": row.status}


def _event_summary(row: EventRow | None) -> dict[str, Any] | None:
    if row is None:
        return None
    return {"id": row.id, "title": row.title, "location": row.location, "start_date": _iso(row.start_date)}


def _package_summary(row: PackageRow | None) -> dict[str, Any] | None:
    if row is None:
        return None
    return {"id": row.id, "title": row.title, "base_price": domain.money_str(row.base_price)}
