"""Supabase-backed data store.

The supabase-py client is synchronous; every call runs in a worker thread
so the services can await it without blocking the event loop.
"""

import asyncio
import logging
from typing import Callable

import httpx
from postgrest.exceptions import APIError
from supabase import Client

from .base import (
    ConstraintViolationError,
    DataStoreError,
    Filters,
    Row,
    StoreTransportError,
)

logger = logging.getLogger(__name__)

# Postgres SQLSTATE class 23 = integrity constraint violation
_CONSTRAINT_CODE_PREFIX = "23"
# PostgREST "no rows" for single-object requests
_NO_ROWS_CODE = "PGRST116"


def translate_api_error(err: APIError) -> DataStoreError:
    """Map a PostgREST error onto the store's typed failures."""
    code = str(err.code or "")
    message = err.message or str(err)
    if code.startswith(_CONSTRAINT_CODE_PREFIX):
        return ConstraintViolationError(message, code=code)
    if code == "42501":
        logger.error("Row-level security blocked the request: %s", message)
    return DataStoreError(message, code=code or None)


class SupabaseDataStore:
    """DataStore implementation over a supabase-py ``Client``."""

    def __init__(self, client: Client):
        self._client = client

    async def _run(self, query: Callable):
        try:
            return await asyncio.to_thread(query)
        except APIError as e:
            if str(e.code or "") == _NO_ROWS_CODE:
                return None
            raise translate_api_error(e) from e
        except httpx.HTTPError as e:
            raise StoreTransportError(f"Supabase request failed: {e}") from e

    def _filtered(self, builder, filters: Filters | None):
        for column, value in (filters or {}).items():
            if value is None:
                builder = builder.is_(column, "null")
            else:
                builder = builder.eq(column, value)
        return builder

    async def fetch_one(self, table: str, filters: Filters) -> Row | None:
        """Get a single row matching all filters."""

        def _query():
            builder = self._client.table(table).select("*")
            return self._filtered(builder, filters).limit(1).execute()

        result = await self._run(_query)
        if result is None or not result.data:
            return None
        return result.data[0]

    async def fetch_many(
        self,
        table: str,
        filters: Filters | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Row]:
        """List rows matching all filters."""

        def _query():
            builder = self._filtered(self._client.table(table).select("*"), filters)
            if order_by:
                builder = builder.order(order_by, desc=descending)
            if limit is not None:
                builder = builder.limit(limit)
            return builder.execute()

        result = await self._run(_query)
        if result is None:
            return []
        return result.data or []

    async def insert(self, table: str, record: Row) -> Row:
        """Insert a row and return it as stored."""

        def _insert():
            return self._client.table(table).insert(record).execute()

        result = await self._run(_insert)
        if result is None or not result.data:
            raise StoreTransportError(f"Insert into {table} returned no data")
        return result.data[0]

    async def update(self, table: str, filters: Filters, patch: Row) -> Row | None:
        """Apply *patch* to matching rows; None when nothing matched."""

        def _update():
            builder = self._client.table(table).update(patch)
            return self._filtered(builder, filters).execute()

        result = await self._run(_update)
        if result is None or not result.data:
            return None
        return result.data[0]
