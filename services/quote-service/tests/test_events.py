import json
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from app import events
from app.models import Lead, Quote


class _FakeExchange:
    def __init__(self):
        self.published = []

    async def publish(self, msg, routing_key):
        self.published.append((routing_key, json.loads(msg.body)))


class _FakeChannel:
    def __init__(self, exchange):
        self.exchange = exchange

    async def declare_exchange(self, name, kind, durable):
        assert name == events.EVENTS_EXCHANGE
        return self.exchange


class _FakeConnection:
    def __init__(self, exchange):
        self.exchange = exchange
        self.closed = False

    async def channel(self):
        return _FakeChannel(self.exchange)

    async def close(self):
        self.closed = True


@pytest.mark.anyio
async def test_publish_sends_envelope_with_routing_key(monkeypatch):
    exchange = _FakeExchange()
    conn = _FakeConnection(exchange)

    async def _connect(url):
        return conn

    monkeypatch.setattr(events.aio_pika, "connect_robust", _connect)

    await events.publish("quote.generated", {"quote_id": "q-1", "final_price": "900.00"})

    assert conn.closed
    routing_key, body = exchange.published[0]
    assert routing_key == "quote.generated"
    assert body["type"] == "quote.generated"
    assert body["data"] == {"quote_id": "q-1", "final_price": "900.00"}


@pytest.mark.anyio
async def test_publish_is_best_effort_when_broker_down():
    # conftest makes connect_robust fail.
    await events.publish("quote.generated", {"quote_id": "q-1"})


@pytest.mark.anyio
async def test_publish_raises_in_strict_mode(monkeypatch):
    monkeypatch.setattr(events, "EVENTS_STRICT", True)

    with pytest.raises(ConnectionError):
        await events.publish("quote.generated", {"quote_id": "q-1"})


def _quote_and_lead():
    lead = Lead(id="lead-1", name="Sam Fan", email="sam@example.com", status="QUOTE_SENT")
    quote = Quote(
        id="q-1",
        lead_id="lead-1",
        event_id="evt-1",
        package_id="pkg-1",
        status="SENT",
        travellers=4,
        currency="EUR",
        final_price=Decimal("1080"),
        expiry_date=datetime(2025, 7, 1, tzinfo=timezone.utc),
    )
    return quote, lead


@pytest.mark.anyio
async def test_publish_quote_generated_builds_mailer_payload(monkeypatch):
    exchange = _FakeExchange()

    async def _connect(url):
        return _FakeConnection(exchange)

    monkeypatch.setattr(events.aio_pika, "connect_robust", _connect)

    quote, lead = _quote_and_lead()
    await events.publish_quote_generated(quote, lead)

    routing_key, body = exchange.published[0]
    assert routing_key == events.QUOTE_GENERATED == "quote.generated"
    assert body["type"] == "quote.generated"
    assert body["data"] == {
        "quote_id": "q-1",
        "lead_id": "lead-1",
        "lead_name": "Sam Fan",
        "lead_email": "sam@example.com",
        "event_id": "evt-1",
        "package_id": "pkg-1",
        "travellers": 4,
        "final_price": "1080.00",
        "currency": "EUR",
        "status": "SENT",
        "expiry_date": "2025-07-01T00:00:00+00:00",
    }


def test_quote_generated_payload_reads_naive_expiry_as_utc():
    quote, lead = _quote_and_lead()
    quote.expiry_date = datetime(2025, 7, 1, 12, 30)

    payload = events.quote_generated_payload(quote, lead)

    assert payload["expiry_date"] == "2025-07-01T12:30:00+00:00"
