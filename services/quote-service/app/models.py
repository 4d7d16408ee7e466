from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


class Event(Base):
    __tablename__ = "events"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    title: Mapped[str] = mapped_column(String)
    location: Mapped[str | None] = mapped_column(String)
    category: Mapped[str | None] = mapped_column(String, index=True)

    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    season_months: Mapped[list | None] = mapped_column(JSON)  # e.g. [5, 6]
    # NULL = unknown; the weekend rule then looks at the travel dates.
    is_weekend: Mapped[bool | None] = mapped_column(Boolean, nullable=True)


class Package(Base):
    __tablename__ = "packages"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    event_id: Mapped[str] = mapped_column(String, ForeignKey("events.id"), index=True)
    title: Mapped[str] = mapped_column(String)

    base_price: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    early_bird_cutoff: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    min_capacity: Mapped[int] = mapped_column(Integer, default=1)


class AddOn(Base):
    __tablename__ = "addons"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    event_id: Mapped[str] = mapped_column(String, ForeignKey("events.id"), index=True)
    title: Mapped[str] = mapped_column(String)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2))


class Itinerary(Base):
    __tablename__ = "itineraries"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    event_id: Mapped[str] = mapped_column(String, ForeignKey("events.id"), index=True)
    title: Mapped[str] = mapped_column(String)
    base_price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))


class Lead(Base):
    __tablename__ = "leads"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String)
    email: Mapped[str | None] = mapped_column(String, index=True)
    phone: Mapped[str | None] = mapped_column(String)

    status: Mapped[str] = mapped_column(String, index=True, default="NEW")  # NEW|CONTACTED|QUOTE_SENT|...
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)


class LeadStatusHistory(Base):
    __tablename__ = "lead_status_history"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    lead_id: Mapped[str] = mapped_column(String, ForeignKey("leads.id"), index=True)
    from_status: Mapped[str | None] = mapped_column(String)
    to_status: Mapped[str] = mapped_column(String)
    changed_by: Mapped[str] = mapped_column(String)
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))


class Quote(Base):
    __tablename__ = "quotes"

    id: Mapped[str] = mapped_column(String, primary_key=True)

    lead_id: Mapped[str] = mapped_column(String, ForeignKey("leads.id"), index=True)
    event_id: Mapped[str] = mapped_column(String, ForeignKey("events.id"), index=True)
    package_id: Mapped[str] = mapped_column(String, ForeignKey("packages.id"), index=True)

    status: Mapped[str] = mapped_column(String, index=True)  # SENT|VIEWED|ACCEPTED|EXPIRED|DECLINED
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    expiry_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)

    addon_ids: Mapped[list] = mapped_column(JSON, default=list)
    itinerary_ids: Mapped[list] = mapped_column(JSON, default=list)
    travellers: Mapped[int] = mapped_column(Integer)
    travel_dates: Mapped[list] = mapped_column(JSON)  # ISO strings
    days_until_event: Mapped[int] = mapped_column(Integer)
    includes_weekend: Mapped[bool] = mapped_column(Boolean, default=False)

    currency: Mapped[str] = mapped_column(String, default="USD")
    base_price: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    seasonal_multiplier: Mapped[Decimal] = mapped_column(Numeric(6, 4))
    seasonal_adjustment: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    early_bird_discount: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    last_minute_surcharge: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    group_discount: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    weekend_surcharge: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    addons_total: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    itineraries_total: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    final_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), index=True)

    calculation_notes: Mapped[str | None] = mapped_column(Text)
    notes: Mapped[str | None] = mapped_column(Text)

    lead: Mapped[Lead | None] = relationship(lazy="selectin")
    event: Mapped[Event | None] = relationship(lazy="selectin")
    package: Mapped[Package | None] = relationship(lazy="selectin")
