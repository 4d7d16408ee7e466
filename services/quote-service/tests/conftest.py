import os
import pathlib
import sys
import tempfile

import pytest

# The app binds its engine at import time, so point it at a throwaway sqlite
# file before anything imports `app.db`.
_DB_DIR = tempfile.mkdtemp(prefix="quote-service-tests-")
os.environ["QUOTE_DATABASE_URL"] = f"sqlite+pysqlite:///{os.path.join(_DB_DIR, 'quotes.db')}"

# Ensure `services/quote-service` is on sys.path so `import app` works when
# running tests from the repo root.
sys.path.insert(0, str(pathlib.Path(__file__).resolve().parents[1]))

from app import events  # noqa: E402
from app.db import engine  # noqa: E402
from app.models import Base  # noqa: E402


@pytest.fixture(autouse=True)
def _clean_db():
    Base.metadata.create_all(engine)
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())
    yield


@pytest.fixture(autouse=True)
def _no_broker(monkeypatch):
    # Tests never have RabbitMQ; keep publishing best-effort.
    monkeypatch.setattr(events, "EVENTS_STRICT", False)

    async def _boom(*args, **kwargs):
        raise ConnectionError("rabbitmq down")

    monkeypatch.setattr(events.aio_pika, "connect_robust", _boom)

