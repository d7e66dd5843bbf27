"""
Base store — shared Supabase client access for all stores.

All table-backed stores inherit from this class to get standardised
insert / upsert / select / update / delete primitives. PostgREST
failures surface as StoreError.
Version: 1.0.0
"""

import logging
from typing import Any, Dict, List, Optional

from postgrest.exceptions import APIError

from dsz_sync.core.config import settings
from dsz_sync.core.exceptions import StoreError
from dsz_sync.clients.supabase_client import SupabaseClient

logger = logging.getLogger("base_store")


class BaseStore:
    """Base class for all Supabase stores providing shared CRUD operations."""

    def __init__(self, supabase_client: SupabaseClient | None = None) -> None:
        self._supabase_client = supabase_client or SupabaseClient(settings)

    @property
    def _client(self):
        return self._supabase_client.client

    def _execute(self, query, table: str, action: str):
        """Run a built query, translating PostgREST errors."""
        try:
            return query.execute()
        except APIError as e:
            logger.info("supabase error table=%s action=%s detail=%s", table, action, str(e))
            raise StoreError(f"Supabase {action} on {table} failed: {e}") from e

    def _insert(self, table: str, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Insert rows and return what the database stored."""
        if not rows:
            return []
        response = self._execute(self._client.table(table).insert(rows), table, "insert")
        return response.data or []

    def _upsert(
        self, table: str, rows: List[Dict[str, Any]], on_conflict: str | None = None
    ) -> List[Dict[str, Any]]:
        """Upsert rows (insert or update on conflict)."""
        if not rows:
            return []
        if on_conflict:
            query = self._client.table(table).upsert(rows, on_conflict=on_conflict)
        else:
            query = self._client.table(table).upsert(rows)
        response = self._execute(query, table, "upsert")
        return response.data or []

    def _select(
        self,
        table: str,
        columns: str = "*",
        filters: Dict[str, Any] | None = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Select rows with optional equality filters."""
        query = self._client.table(table).select(columns)
        for key, value in (filters or {}).items():
            query = query.eq(key, value)
        if limit is not None:
            query = query.limit(limit)
        response = self._execute(query, table, "select")
        return response.data or []

    def _select_one(
        self, table: str, filters: Dict[str, Any], columns: str = "*"
    ) -> Optional[Dict[str, Any]]:
        rows = self._select(table, columns, filters, limit=1)
        return rows[0] if rows else None

    def _update(
        self, table: str, filters: Dict[str, Any], payload: Dict[str, Any]
    ) -> List[Dict[str, Any]]:
        """Update rows matching the filters."""
        query = self._client.table(table).update(payload)
        for key, value in filters.items():
            query = query.eq(key, value)
        response = self._execute(query, table, "update")
        return response.data or []

    def _delete(self, table: str, filters: Dict[str, Any]) -> None:
        query = self._client.table(table).delete()
        for key, value in filters.items():
            query = query.eq(key, value)
        self._execute(query, table, "delete")
