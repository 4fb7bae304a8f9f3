"""Test fixtures: a throwaway SQLite database seeded from the bundled script."""
from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Iterator, List

import pytest
from sqlalchemy import event

# Settings are read once at import time; point them at SQLite before the app loads.
_STATE_DIR = Path(tempfile.mkdtemp(prefix="smartgarden-tests-"))
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_STATE_DIR / 'app.db'}")
os.environ.setdefault("WRITE_RATE_LIMIT", "10000/minute")
os.environ.setdefault("RESET_RATE_LIMIT", "10000/minute")
os.environ.setdefault("POOL_DRAIN_GRACE_SECONDS", "1")

from fastapi.testclient import TestClient  # noqa: E402

from smartgarden.database import ConnectionPool, build_engine, get_pool  # noqa: E402
from smartgarden.services.data_access import reset_database  # noqa: E402


@pytest.fixture
def pool(tmp_path: Path) -> Iterator[ConnectionPool]:
    """A seeded pool backed by its own SQLite file."""
    engine = build_engine(f"sqlite:///{tmp_path / 'garden.db'}", pool_min=1, pool_max=3, pool_timeout=5)
    garden_pool = ConnectionPool(engine)
    assert reset_database(garden_pool), "bundled seed script failed to load"
    yield garden_pool
    garden_pool.drain(0)


@pytest.fixture
def empty_pool(tmp_path: Path) -> Iterator[ConnectionPool]:
    """A pool over an empty SQLite file, for script replay tests."""
    engine = build_engine(f"sqlite:///{tmp_path / 'empty.db'}")
    garden_pool = ConnectionPool(engine)
    yield garden_pool
    garden_pool.drain(0)


@pytest.fixture
def statements(pool: ConnectionPool) -> List[str]:
    """Every SQL statement sent to the driver after the fixture is created."""
    captured: List[str] = []

    def _capture(conn, cursor, statement, parameters, context, executemany):
        captured.append(statement.strip().upper())

    event.listen(pool.engine, "before_cursor_execute", _capture)
    yield captured
    event.remove(pool.engine, "before_cursor_execute", _capture)


@pytest.fixture
def client(pool: ConnectionPool) -> Iterator[TestClient]:
    from smartgarden.main import app

    app.dependency_overrides[get_pool] = lambda: pool
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def count_rows(pool: ConnectionPool):
    def _count(table: str) -> int:
        with pool.acquire() as conn:
            return conn.exec_driver_sql(f"SELECT COUNT(*) FROM {table}").scalar_one()

    return _count
