"""Shared test fixtures for timebill tests."""

from datetime import date, datetime, timezone

import pytest

from timebill import db
from timebill.config import Config, LoggingConfig
from timebill.draft import DraftStore
from timebill.logging_setup import reset_logging
from timebill.models import WorkDay
from timebill.storage import MemoryStorage

FIXED_TODAY = date(2024, 1, 10)
FIXED_NOW = datetime(2024, 1, 10, 9, 30, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    reset_logging()


@pytest.fixture
def db_path(tmp_path):
    """Initialize a real SQLite database and return its path."""
    path = tmp_path / "test.db"
    db.init_db(path)
    return path


@pytest.fixture
def db_conn(db_path):
    """Yield a database connection with row factory set."""
    with db.get_db(db_path) as conn:
        yield conn


@pytest.fixture
def memory_storage():
    return MemoryStorage()


@pytest.fixture
def make_store(memory_storage):
    """Factory fixture for DraftStore with a fixed today and clock."""
    def _make_store(storage=None, **overrides):
        defaults = {
            "storage": storage if storage is not None else memory_storage,
            "today": lambda: FIXED_TODAY,
            "clock": lambda: FIXED_NOW,
        }
        defaults.update(overrides)
        return DraftStore(**defaults)
    return _make_store


@pytest.fixture
def ready_store(make_store):
    """Store whose draft has everything save_invoice() needs."""
    store = make_store()
    store.update_draft(invoice_number="INV-000001")
    store.update_from_party(name="Jane Contractor")
    store.update_to_party(name="Acme Corp")
    return store


@pytest.fixture
def make_workday():
    def _make_workday(day="2024-01-08", hours=8, is_included=True, notes=None):
        return WorkDay(date=day, hours=hours, is_included=is_included, notes=notes)
    return _make_workday


@pytest.fixture
def make_config(tmp_path):
    """Factory fixture that creates Config instances with tmp paths."""
    def _make_config(**overrides):
        defaults = {
            "db_path": tmp_path / "timebill.db",
            "output_dir": tmp_path / "invoices",
            "logging": LoggingConfig(output="console"),
        }
        defaults.update(overrides)
        return Config(**defaults)
    return _make_config


@pytest.fixture
def config_file(tmp_path):
    """Write a minimal config.toml pointing at tmp paths and return its path."""
    path = tmp_path / "config.toml"
    path.write_text(
        f'db_path = "{tmp_path / "timebill.db"}"\n'
        f'output_dir = "{tmp_path / "invoices"}"\n'
        'timezone = "UTC"\n'
        "\n"
        "[logging]\n"
        'level = "WARNING"\n'
    )
    return path
