"""Persistence for shiftpay.

Provides the DataStore protocol with an in-memory implementation for
tests and local development and a Supabase implementation for production.
"""

from shiftpay.storage.base import (
    GATEWAY_TRANSACTIONS_TABLE,
    INVOICES_TABLE,
    NOTIFICATIONS_TABLE,
    OUTBOX_TABLE,
    PAYMENTS_TABLE,
    SETTLEMENTS_TABLE,
    SHIFTS_TABLE,
    TIMESHEETS_TABLE,
    WORKER_EARNINGS_TABLE,
    ConstraintViolationError,
    DataStore,
    DataStoreError,
    StoreTransportError,
)
from shiftpay.storage.memory import DEFAULT_CONSTRAINTS, InMemoryDataStore, UniqueConstraint
from shiftpay.storage.supabase import SupabaseDataStore

__all__ = [
    # Protocol
    "DataStore",
    "DataStoreError",
    "ConstraintViolationError",
    "StoreTransportError",
    # Implementations
    "InMemoryDataStore",
    "SupabaseDataStore",
    "UniqueConstraint",
    "DEFAULT_CONSTRAINTS",
    # Tables
    "SHIFTS_TABLE",
    "TIMESHEETS_TABLE",
    "PAYMENTS_TABLE",
    "SETTLEMENTS_TABLE",
    "NOTIFICATIONS_TABLE",
    "OUTBOX_TABLE",
    "INVOICES_TABLE",
    "WORKER_EARNINGS_TABLE",
    "GATEWAY_TRANSACTIONS_TABLE",
]
