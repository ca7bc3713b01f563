"""Pytest configuration and fixtures."""

import os
import secrets

import pytest

# Unique per run so tokens from elsewhere never validate
TEST_JWT_SECRET = f"test-only-{secrets.token_urlsafe(32)}"

os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SECRET_KEY", "test-secret-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", TEST_JWT_SECRET)

from shiftpay.gateway import MockPaymentGateway  # noqa: E402
from shiftpay.storage import (  # noqa: E402
    SETTLEMENTS_TABLE,
    SHIFTS_TABLE,
    TIMESHEETS_TABLE,
    InMemoryDataStore,
)

EMPLOYER_ID = "employer-0001"
WORKER_ID = "worker-0001"


class RecordingGateway(MockPaymentGateway):
    """Mock gateway that remembers every call."""

    def __init__(self):
        self.calls: list[tuple] = []

    async def authorize_hold(self, idempotency_key, shift_id, amount):
        self.calls.append(("hold", idempotency_key, shift_id, amount))
        return await super().authorize_hold(idempotency_key, shift_id, amount)

    async def release_funds(self, idempotency_key, shift_id, amount, payout):
        self.calls.append(("release", idempotency_key, shift_id, amount, payout))
        return await super().release_funds(idempotency_key, shift_id, amount, payout)


@pytest.fixture
def store():
    """Empty in-memory store with the production uniqueness constraints."""
    return InMemoryDataStore()


@pytest.fixture
def gateway():
    return RecordingGateway()


@pytest.fixture
def make_shift(store):
    """Seed a shift: $15/h, 09:00-18:30, overtime x1.5, open."""

    def _make(**overrides) -> dict:
        row = {
            "employer_id": EMPLOYER_ID,
            "job_title": "Warehouse Packer",
            "location": "Jurong West",
            "shift_date": "2026-03-02",
            "start_time": "2026-03-02T09:00:00+00:00",
            "end_time": "2026-03-02T18:30:00+00:00",
            "hourly_rate": "15.00",
            "workers_needed": 1,
            "overtime_multiplier": "1.5",
            "status": "open",
        }
        row.update(overrides)
        return store.seed(SHIFTS_TABLE, row)

    return _make


@pytest.fixture
def make_timesheet(store):
    """Seed a timesheet: 9.5h clocked, no break, employer confirmed."""

    def _make(shift_id: str | None, **overrides) -> dict:
        row = {
            "shift_id": shift_id,
            "worker_id": WORKER_ID,
            "clock_in_time": "2026-03-02T09:00:00+00:00",
            "clock_out_time": "2026-03-02T18:30:00+00:00",
            "break_duration_minutes": 0,
            "employer_confirmed": True,
            "worker_confirmed": True,
            "is_disputed": False,
            "superseded": False,
        }
        row.update(overrides)
        return store.seed(TIMESHEETS_TABLE, row)

    return _make


@pytest.fixture
def make_settlement(store):
    """Seed a settlement saga row."""

    def _make(shift_id: str, timesheet_id: str, state: str = "pending", **overrides) -> dict:
        row = {"shift_id": shift_id, "timesheet_id": timesheet_id, "state": state}
        row.update(overrides)
        return store.seed(SETTLEMENTS_TABLE, row)

    return _make
