import os

from sqlalchemy import create_engine
from sqlalchemy.orm import Session

QUOTE_DATABASE_URL = os.getenv(
    "QUOTE_DATABASE_URL",
    "sqlite+pysqlite:///./quote-service.db",
)

engine = create_engine(QUOTE_DATABASE_URL, pool_pre_ping=True)


def session() -> Session:
    # Quote rows are serialized after commit; keep their attributes loaded.
    return Session(engine, expire_on_commit=False)
