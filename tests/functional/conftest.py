from __future__ import annotations

"""Functional test bootstrap.

Each test gets its own file-backed SQLite database with migrations applied,
an ``OrderStore`` over it, and (on request) a ``TestClient`` for the API.
The anyio pytest plugin runs async controller tests on asyncio.
"""

import os
import typing as t

import pytest
from fastapi.testclient import TestClient

from rankd.config import AppConfig, DatabaseConfig, OrderingConfig
from rankd.db.base import get_engine, reset_engine
from rankd.db.migrations_runner import apply_migrations
from rankd.logic.events import get_buffered_events
from rankd.logic.order_store import OrderStore
from rankd.main import create_app

# Keep load_config() away from any developer DATABASE_URL during the suite
os.environ.pop("DATABASE_URL", None)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def db_url(tmp_path) -> str:
    return f"sqlite+pysqlite:///{tmp_path / 'ordering.db'}"


@pytest.fixture
def engine(db_url):
    eng = get_engine(db_url)
    apply_migrations(eng)
    yield eng
    reset_engine()


@pytest.fixture
def store(engine) -> OrderStore:
    get_buffered_events(clear=True)
    return OrderStore(engine)


@pytest.fixture
def seed(store) -> t.Callable[..., list[str]]:
    """Return a helper appending ids in order so they hold ranks 1..N."""

    def _seed(collection: str, ids: t.Iterable[str], attributes: t.Optional[dict] = None) -> list[str]:
        out = []
        for item_id in ids:
            attrs = (attributes or {}).get(item_id, {"name": item_id})
            store.append_item(collection, item_id=item_id, attributes=attrs)
            out.append(item_id)
        return out

    return _seed


@pytest.fixture
def executives(seed) -> list[str]:
    return seed("executives", ["A", "B", "C"])


@pytest.fixture
def app_config(db_url) -> AppConfig:
    return AppConfig(database=DatabaseConfig(dsn=db_url), ordering=OrderingConfig())


@pytest.fixture
def client(app_config, store):
    app = create_app(config=app_config, store=store)
    with TestClient(app) as c:
        yield c
