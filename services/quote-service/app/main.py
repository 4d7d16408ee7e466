from __future__ import annotations

import logging
import math
import os
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Literal

from fastapi import Depends, FastAPI, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field

from . import domain, events, persistence
from .db import engine, session
from .models import Base, Event as EventRow, Lead, Package as PackageRow, Quote
from .security import ROLE_LEAD, issue_token, principal_label, require_admin

app = FastAPI(
    title="Sports Travel Quote Service",
    version="0.1.0",
    description="Deterministic quote pricing for sports-travel packages, quote records and admin quote management.",
)

Base.metadata.create_all(engine)

logger = logging.getLogger(__name__)

QUOTE_EXPIRY_DAYS = int(os.getenv("QUOTE_EXPIRY_DAYS", "30"))
DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "USD").strip().upper() or "USD"
SUPPORTED_CURRENCIES = {"USD", "EUR", "GBP", "INR"}

QuoteStatus = Literal["SENT", "VIEWED", "ACCEPTED", "EXPIRED", "DECLINED"]

_aggregator = domain.QuoteAggregator()


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _normalize_currency(code: str | None, *, field: str = "currency") -> str:
    c = (code or "").strip().upper() or DEFAULT_CURRENCY
    if c not in SUPPORTED_CURRENCIES:
        raise HTTPException(status_code=400, detail=f"{field} must be one of {', '.join(sorted(SUPPORTED_CURRENCIES))}")
    return c


def _ordered_travel_dates(raw: list[datetime]) -> list[datetime]:
    # Keep the caller's offset: weekday and month are read in the traveller's local time.
    dates = [domain.with_default_tz(d) for d in raw]
    if dates[-1] <= dates[0]:
        raise HTTPException(status_code=400, detail="travel_dates end must be after start")
    return dates


def _validated_travel_dates(raw: list[datetime], now: datetime) -> list[datetime]:
    dates = _ordered_travel_dates(raw)
    if domain.ensure_utc(dates[0]) < now:
        raise HTTPException(status_code=400, detail="travel_dates must not start in the past")
    return dates


def _load_event_and_package(s, event_id: str, package_id: str) -> tuple[EventRow, PackageRow]:
    event_row = s.get(EventRow, event_id)
    package_row = s.get(PackageRow, package_id)
    if event_row is None or package_row is None:
        raise HTTPException(status_code=404, detail="Event or package not found")
    if package_row.event_id != event_row.id:
        raise HTTPException(status_code=400, detail="Package does not belong to the specified event")
    return event_row, package_row


def _price(s, payload: QuotePreviewIn, *, currency: str, travel_dates: list[datetime], now: datetime):
    event_row, package_row = _load_event_and_package(s, payload.event_id, payload.package_id)
    addons = persistence.addons_for_event(s, event_row.id, payload.addon_ids)
    itineraries = persistence.itineraries_for_event(s, event_row.id, payload.itinerary_ids)

    package = persistence.package_from_row(package_row)
    breakdown = _aggregator.calculate_quote(
        package.base_price,
        persistence.event_from_row(event_row),
        package,
        payload.travellers,
        travel_dates,
        persistence.addons_total(addons),
        persistence.itineraries_total(itineraries),
        currency,
        now=now,
    )
    notes = domain.calculation_notes(
        breakdown,
        addon_titles=[a.title for a in addons],
        itinerary_titles=[i.title for i in itineraries],
    )
    return event_row, package_row, breakdown, notes


class QuotePreviewIn(BaseModel):
    event_id: str = Field(min_length=1)
    package_id: str = Field(min_length=1)
    addon_ids: list[str] = Field(default_factory=list)
    itinerary_ids: list[str] = Field(default_factory=list)
    travellers: int = Field(ge=1, le=50)
    travel_dates: list[datetime] = Field(min_length=2, max_length=2, description="[start, end]")
    currency: str | None = Field(default=None, description="USD, EUR, GBP or INR (default USD)")


class QuoteGenerateIn(QuotePreviewIn):
    lead_id: str = Field(min_length=1)
    notes: str | None = None


class QuoteUpdateIn(BaseModel):
    # Stored totals are not re-priced here; unknown fields are rejected rather than dropped.
    model_config = ConfigDict(extra="forbid")

    notes: str | None = None
    addon_ids: list[str] | None = None
    itinerary_ids: list[str] | None = None
    status: QuoteStatus | None = None
    final_price: Decimal | None = Field(default=None, ge=0)
    addons_total: Decimal | None = Field(default=None, ge=0)
    itineraries_total: Decimal | None = Field(default=None, ge=0)
    subtotal: Decimal | None = Field(default=None, ge=0)
    expiry_date: datetime | None = None
    travel_dates: list[datetime] | None = Field(default=None, min_length=2, max_length=2)
    travellers: int | None = Field(default=None, ge=1, le=50)
    calculation_notes: str | None = None
    currency: str | None = None


class TokenRequest(BaseModel):
    sub: str = "dev-user"
    role: str = Field(default=ROLE_LEAD, description="admin|lead")


@app.get("/health")
def health():
    return {"status": "ok"}


@app.post("/dev/token")
def dev_token(payload: TokenRequest):
    return {"access_token": issue_token(sub=payload.sub, role=payload.role), "token_type": "bearer"}


@app.post("/quotes/preview")
def preview_quote(payload: QuotePreviewIn):
    now = _now()
    currency = _normalize_currency(payload.currency)
    travel_dates = _validated_travel_dates(payload.travel_dates, now)

    with session() as s:
        _, _, breakdown, notes = _price(s, payload, currency=currency, travel_dates=travel_dates, now=now)

    return {
        "success": True,
        "data": {"pricing_breakdown": breakdown.to_dict(), "calculation_notes": notes},
    }


@app.post("/quotes/generate", status_code=201)
async def generate_quote(payload: QuoteGenerateIn, principal=Depends(require_admin)):
    now = _now()
    currency = _normalize_currency(payload.currency)
    travel_dates = _validated_travel_dates(payload.travel_dates, now)

    with session() as s:
        lead = s.get(Lead, payload.lead_id)
        if lead is None:
            raise HTTPException(status_code=404, detail="Lead not found")

        event_row, package_row, breakdown, notes = _price(s, payload, currency=currency, travel_dates=travel_dates, now=now)

        quote = persistence.save_quote(
            s,
            lead=lead,
            event_id=event_row.id,
            package_id=package_row.id,
            addon_ids=payload.addon_ids,
            itinerary_ids=payload.itinerary_ids,
            travellers=payload.travellers,
            travel_dates=travel_dates,
            breakdown=breakdown,
            calculation_notes=notes,
            notes=(payload.notes or "").strip() or None,
            expiry_date=now + timedelta(days=QUOTE_EXPIRY_DAYS),
            now=now,
            changed_by=principal_label(principal),
            event_title=event_row.title,
            package_title=package_row.title,
        )
        quote_out = persistence.quote_to_dict(quote)

    logger.info("Quote generated: %s for lead %s (final_price=%s %s)", quote.id, lead.id, quote_out["final_price"], currency)

    await events.publish_quote_generated(quote, lead)

    return {
        "success": True,
        "data": {
            "quote": quote_out,
            "pricing_breakdown": breakdown.to_dict(),
            "calculation_notes": notes,
        },
        "message": "Quote generated successfully",
    }


@app.get("/quotes")
def list_quotes(
    lead_id: str | None = None,
    event_id: str | None = None,
    package_id: str | None = None,
    status: str | None = None,
    min_price: Decimal | None = Query(default=None, ge=0),
    max_price: Decimal | None = Query(default=None, ge=0),
    expiry_before: datetime | None = None,
    expiry_after: datetime | None = None,
    search: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    sort_by: persistence.SortField = "created_at",
    sort_order: Literal["asc", "desc"] = "desc",
    _principal=Depends(require_admin),
):
    with session() as s:
        rows, total = persistence.list_quotes(
            s,
            lead_id=lead_id,
            event_id=event_id,
            package_id=package_id,
            status=status,
            min_price=min_price,
            max_price=max_price,
            expiry_before=domain.ensure_utc(expiry_before) if expiry_before else None,
            expiry_after=domain.ensure_utc(expiry_after) if expiry_after else None,
            search=search,
            page=page,
            limit=limit,
            sort_by=sort_by,
            sort_order=sort_order,
        )
        data = [persistence.quote_to_dict(q) for q in rows]

    return {
        "success": True,
        "data": data,
        "pagination": {"page": page, "limit": limit, "total": total, "pages": math.ceil(total / limit)},
    }


@app.get("/quotes/{quote_id}")
def get_quote(quote_id: str, _principal=Depends(require_admin)):
    with session() as s:
        q = s.get(Quote, quote_id)
        if q is None:
            raise HTTPException(status_code=404, detail="Quote not found")
        return {"success": True, "data": persistence.quote_to_dict(q)}


@app.put("/quotes/{quote_id}")
def update_quote(quote_id: str, payload: QuoteUpdateIn, principal=Depends(require_admin)):
    # Only the free-text fields may be cleared with an explicit null.
    changes = {
        k: v
        for k, v in payload.model_dump(exclude_unset=True).items()
        if v is not None or k in {"notes", "calculation_notes"}
    }
    if "currency" in changes:
        changes["currency"] = _normalize_currency(changes["currency"])
    if changes.get("expiry_date") is not None:
        changes["expiry_date"] = domain.ensure_utc(changes["expiry_date"])
    if changes.get("travel_dates") is not None:
        changes["travel_dates"] = [domain.ensure_utc(d).isoformat() for d in _ordered_travel_dates(changes["travel_dates"])]
    for key in ("final_price", "addons_total", "itineraries_total", "subtotal"):
        if changes.get(key) is not None:
            changes[key] = domain.to_money(changes[key])

    with session() as s:
        q = s.get(Quote, quote_id)
        if q is None:
            raise HTTPException(status_code=404, detail="Quote not found")
        for key, value in changes.items():
            setattr(q, key, value)
        q.updated_at = _now()
        s.add(q)
        s.commit()
        out = persistence.quote_to_dict(q)

    logger.info("Quote updated: %s by %s", quote_id, principal_label(principal))
    return {"success": True, "data": out, "message": "Quote updated successfully"}


@app.delete("/quotes/{quote_id}")
def delete_quote(quote_id: str, principal=Depends(require_admin)):
    with session() as s:
        q = s.get(Quote, quote_id)
        if q is None:
            raise HTTPException(status_code=404, detail="Quote not found")
        s.delete(q)
        s.commit()

    logger.info("Quote deleted: %s by %s", quote_id, principal_label(principal))
    return {"success": True, "message": "Quote deleted successfully"}
