from datetime import datetime, timedelta, timezone

import pytest

from shop_reports.periods import resolve
from shop_reports.store import DatabaseConfig, SQLiteStore

NAIROBI = timezone(timedelta(hours=3))

# Wednesday 15 January 2025, 12:30 in Nairobi.
NOW = datetime(2025, 1, 15, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def make_store(tmp_path):
    """Factory building a SQLite store seeded with ``table=[rows]`` keywords."""

    def _make(**tables) -> SQLiteStore:
        cfg = DatabaseConfig(engine="sqlite", path=tmp_path / "shop.sqlite")
        store = SQLiteStore(cfg, local_offset_hours=3.0)
        for table, rows in tables.items():
            store.insert_rows(table, rows)
        return store

    return _make


@pytest.fixture
def january():
    """Custom range covering January 2025 (Nairobi time)."""
    return resolve("custom", "2025-01-01", "2025-01-31", now=NOW)
