"""In-memory data store for testing and local development.

Enforces the same uniqueness constraints the Supabase migrations declare,
so idempotency paths behave the same in tests as against Postgres.
"""

import copy
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

from .base import (
    GATEWAY_TRANSACTIONS_TABLE,
    INVOICES_TABLE,
    OUTBOX_TABLE,
    PAYMENTS_TABLE,
    SETTLEMENTS_TABLE,
    TIMESHEETS_TABLE,
    WORKER_EARNINGS_TABLE,
    ConstraintViolationError,
    Filters,
    Row,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UniqueConstraint:
    """Unique index over *columns*, optionally partial (rows matching *where*)."""

    table: str
    columns: tuple[str, ...]
    where: dict = field(default_factory=dict)

    @property
    def name(self) -> str:
        return f"{self.table}_{'_'.join(self.columns)}_key"

    def applies_to(self, row: Row) -> bool:
        return all(row.get(col) == val for col, val in self.where.items())

    def key(self, row: Row) -> tuple:
        return tuple(row.get(col) for col in self.columns)


# Mirrors supabase/migrations/001_shift_escrow.sql
DEFAULT_CONSTRAINTS: tuple[UniqueConstraint, ...] = (
    UniqueConstraint(PAYMENTS_TABLE, ("shift_id",), {"status": "released"}),
    UniqueConstraint(SETTLEMENTS_TABLE, ("shift_id",)),
    UniqueConstraint(TIMESHEETS_TABLE, ("shift_id", "worker_id"), {"superseded": False}),
    UniqueConstraint(INVOICES_TABLE, ("invoice_number",)),
    UniqueConstraint(WORKER_EARNINGS_TABLE, ("payment_id",)),
    UniqueConstraint(OUTBOX_TABLE, ("dedupe_key",)),
    UniqueConstraint(GATEWAY_TRANSACTIONS_TABLE, ("idempotency_key",)),
)


def _matches(row: Row, filters: Filters | None) -> bool:
    if not filters:
        return True
    return all(row.get(col) == val for col, val in filters.items())


class InMemoryDataStore:
    """Dict-of-lists store implementing the DataStore protocol."""

    def __init__(self, constraints: tuple[UniqueConstraint, ...] = DEFAULT_CONSTRAINTS):
        """Initialize empty storage."""
        self._tables: dict[str, list[Row]] = {}
        self._constraints = constraints
        self.write_count = 0

    def _utc_now(self) -> str:
        """Get current UTC timestamp."""
        return datetime.now(timezone.utc).isoformat()

    def _rows(self, table: str) -> list[Row]:
        return self._tables.setdefault(table, [])

    def _check_unique(self, table: str, candidate: Row, ignore: Row | None = None) -> None:
        for constraint in self._constraints:
            if constraint.table != table or not constraint.applies_to(candidate):
                continue
            key = constraint.key(candidate)
            for existing in self._rows(table):
                if existing is ignore:
                    continue
                if constraint.applies_to(existing) and constraint.key(existing) == key:
                    raise ConstraintViolationError(
                        f"duplicate key value violates unique constraint \"{constraint.name}\"",
                        code="23505",
                    )

    # === Reads ===

    async def fetch_one(self, table: str, filters: Filters) -> Row | None:
        """Get the first row matching all filters."""
        for row in self._rows(table):
            if _matches(row, filters):
                return copy.deepcopy(row)
        return None

    async def fetch_many(
        self,
        table: str,
        filters: Filters | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Row]:
        """List rows with optional filters."""
        rows = [copy.deepcopy(r) for r in self._rows(table) if _matches(r, filters)]
        if order_by:
            rows.sort(key=lambda r: (r.get(order_by) is None, r.get(order_by) or ""), reverse=descending)
        if limit is not None:
            rows = rows[:limit]
        return rows

    # === Writes ===

    async def insert(self, table: str, record: Row) -> Row:
        """Insert a row, filling id and timestamps like column defaults would."""
        now = self._utc_now()
        row = copy.deepcopy(record)
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("created_at", now)
        row.setdefault("updated_at", now)

        self._check_unique(table, row)
        self._rows(table).append(row)
        self.write_count += 1
        return copy.deepcopy(row)

    async def update(self, table: str, filters: Filters, patch: Row) -> Row | None:
        """Patch every matching row; return the first one."""
        matched = [r for r in self._rows(table) if _matches(r, filters)]
        if not matched:
            return None

        for row in matched:
            self._check_unique(table, {**row, **patch}, ignore=row)

        now = self._utc_now()
        for row in matched:
            row.update(copy.deepcopy(patch))
            if "updated_at" not in patch:
                row["updated_at"] = now
        self.write_count += 1
        return copy.deepcopy(matched[0])

    # === Helpers for tests and local tooling ===

    def seed(self, table: str, record: Row) -> Row:
        """Insert synchronously without counting as a service write."""
        now = self._utc_now()
        row = copy.deepcopy(record)
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("created_at", now)
        row.setdefault("updated_at", now)
        self._check_unique(table, row)
        self._rows(table).append(row)
        return copy.deepcopy(row)

    def all(self, table: str) -> list[Row]:
        """Snapshot of every row in *table*."""
        return copy.deepcopy(self._rows(table))
