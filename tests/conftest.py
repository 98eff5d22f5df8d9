"""Shared test fixtures for cgmview tests."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

import pytest

# ---------------------------------------------------------------------------
# Test hermeticity
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _force_hermetic_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENCRYPTION_KEY", "")
    monkeypatch.setenv("DEVICESTATUS_ADVANCED", "false")
    monkeypatch.setenv("DISPLAY_UNITS", "mg/dl")

# Allow running tests without `pip install -e .` by making `src/` importable.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_SRC_DIR = _PROJECT_ROOT / "src"
if str(_SRC_DIR) not in sys.path:
    sys.path.insert(0, str(_SRC_DIR))

from cgmview.core.config.settings import Settings  # noqa: E402
from cgmview.core.storage.models import Query, QueryError, RecordId  # noqa: E402

# Fixed refresh instant used across loader tests: 2026-03-01T12:00:00Z
NOW = 1772366400000


def rid(value: str) -> RecordId:
    """Shorthand for a structured record identity."""
    return RecordId(value)


class FixedClock:
    """Callable clock returning a settable epoch-millisecond instant."""

    def __init__(self, mills: int = NOW) -> None:
        self.mills = mills
        self.reads = 0

    def __call__(self) -> int:
        self.reads += 1
        return self.mills


class FailingSource:
    """RecordSource / ProfileSource whose queries always fail."""

    def __init__(self, message: str = "connection refused") -> None:
        self._message = message
        self.calls = 0

    async def list(self, query: Query) -> list[dict[str, Any]]:
        self.calls += 1
        raise QueryError(self._message)

    async def last(self) -> list[dict[str, Any]]:
        self.calls += 1
        raise QueryError(self._message)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def settings() -> Settings:
    return Settings(devicestatus_advanced=False)


@pytest.fixture
def advanced_settings() -> Settings:
    return Settings(devicestatus_advanced=True)


# ---------------------------------------------------------------------------
# In-memory storage fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def record_db():
    """Create an in-memory RecordDatabase for testing."""
    from cgmview.core.storage.database import RecordDatabase

    db = RecordDatabase(":memory:")
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def field_encryptor():
    """Create a FieldEncryptor with a test key."""
    from cryptography.fernet import Fernet

    from cgmview.core.storage.encryption import FieldEncryptor

    return FieldEncryptor(Fernet.generate_key().decode())


@pytest.fixture
def record_repository(record_db, field_encryptor):
    """Create a RecordRepository backed by in-memory SQLite."""
    from cgmview.core.storage.repository import RecordRepository

    return RecordRepository(record_db, field_encryptor)
