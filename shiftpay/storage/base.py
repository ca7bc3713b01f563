"""
Data store contract.

The services talk to persistence only through ``DataStore``: record CRUD
with equality row filters. Not-found is a ``None`` result, never an
exception. Write failures raise a typed ``DataStoreError`` so callers can
tell a constraint violation (often an idempotent replay) from a transport
failure (propagate).
"""

from typing import Any, Protocol

# =============================================================================
# Table Names (keep in sync with supabase/migrations)
# =============================================================================

SHIFTS_TABLE = "shifts"
TIMESHEETS_TABLE = "timesheets"
PAYMENTS_TABLE = "payments"
SETTLEMENTS_TABLE = "settlements"
NOTIFICATIONS_TABLE = "notifications"
OUTBOX_TABLE = "notification_outbox"
INVOICES_TABLE = "invoices"
WORKER_EARNINGS_TABLE = "worker_earnings"
GATEWAY_TRANSACTIONS_TABLE = "gateway_transactions"

Row = dict[str, Any]
Filters = dict[str, Any]


# =============================================================================
# Errors
# =============================================================================


class DataStoreError(Exception):
    """Raised when a store operation fails."""

    def __init__(self, message: str, code: str | None = None):
        self.code = code
        super().__init__(message)


class ConstraintViolationError(DataStoreError):
    """Raised when a write breaks a uniqueness, foreign-key or check constraint."""

    pass


class StoreTransportError(DataStoreError):
    """Raised when the store could not be reached or returned nothing usable."""

    pass


# =============================================================================
# Protocol
# =============================================================================


class DataStore(Protocol):
    """Protocol for persistence backends."""

    async def fetch_one(self, table: str, filters: Filters) -> Row | None:
        """Get a single row matching all filters, or None."""
        ...

    async def fetch_many(
        self,
        table: str,
        filters: Filters | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Row]:
        """List rows matching all filters."""
        ...

    async def insert(self, table: str, record: Row) -> Row:
        """Insert a row and return it as stored."""
        ...

    async def update(self, table: str, filters: Filters, patch: Row) -> Row | None:
        """Apply *patch* to rows matching *filters*.

        Returns the first updated row, or None when nothing matched. A
        filter on the current status makes this a compare-and-set.
        """
        ...
