"""
Supabase-backed record store.

A small typed-table facade over supabase-py used by the import pipelines
and the catalog helpers. Filters are equality matches; ``None`` filters
match SQL NULL.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from postgrest.exceptions import APIError
from supabase import Client, create_client


class RecordStoreError(Exception):
    """Raised when a query against the record store fails."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code


class RecordNotFoundError(RecordStoreError):
    """Raised when a record addressed by key does not exist."""
    pass


@dataclass
class QueryPage:
    """A page of rows plus the total number of matching rows."""
    rows: List[Dict[str, Any]]
    total: int
    offset: int = 0
    limit: int = 0
    extra: Dict[str, Any] = field(default_factory=dict)


def _apply_filters(query, filters: Optional[Dict[str, Any]]):
    for column, value in (filters or {}).items():
        if value is None:
            query = query.is_(column, "null")
        else:
            query = query.eq(column, value)
    return query


def _escape_ilike(term: str) -> str:
    # PostgREST or-filters use commas and parentheses as separators
    return term.replace(",", " ").replace("(", " ").replace(")", " ").strip()


class RecordStore:
    """Typed-table operations used by the pipelines."""

    def __init__(self, client: Client, logger: Optional[logging.Logger] = None):
        """
        Initialize record store.

        Args:
            client: Supabase client
            logger: Logger instance
        """
        self.client = client
        self.logger = logger or logging.getLogger(__name__)

    def _execute(self, query, context: str):
        try:
            return query.execute()
        except APIError as e:
            raise RecordStoreError(f"{context}: {e.message}", code=e.code) from e

    def select(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        columns: str = "*",
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        query = _apply_filters(self.client.table(table).select(columns), filters)
        if order_by:
            query = query.order(order_by, desc=descending)
        if limit:
            query = query.limit(limit)

        result = self._execute(query, f"Select from {table} failed")
        return list(result.data or [])

    def select_one(
        self,
        table: str,
        filters: Dict[str, Any],
        columns: str = "*"
    ) -> Optional[Dict[str, Any]]:
        """
        Fetch the first row matching all filters.

        Returns:
            The row, or None when nothing matches
        """
        rows = self.select(table, filters, columns=columns, limit=1)
        return rows[0] if rows else None

    def count(self, table: str, filters: Optional[Dict[str, Any]] = None) -> int:
        query = _apply_filters(self.client.table(table).select("id", count="exact"), filters)
        result = self._execute(query.limit(1), f"Count on {table} failed")
        return result.count or 0

    def insert(self, table: str, record: Dict[str, Any], columns: str = "*") -> Dict[str, Any]:
        """
        Insert one row.

        Returns:
            The inserted row as returned by the database
        """
        result = self._execute(
            self.client.table(table).insert(record),
            f"Insert into {table} failed"
        )
        if not result.data:
            raise RecordStoreError(f"Insert into {table} returned no data")
        return result.data[0]

    def upsert(self, table: str, record: Dict[str, Any], on_conflict: str) -> Dict[str, Any]:
        """
        Insert or update one row keyed by a unique column.

        Returns:
            The stored row
        """
        result = self._execute(
            self.client.table(table).upsert(record, on_conflict=on_conflict),
            f"Upsert into {table} failed"
        )
        if not result.data:
            raise RecordStoreError(f"Upsert into {table} returned no data")
        return result.data[0]

    def resolve_or_create(
        self,
        table: str,
        key_column: str,
        record: Dict[str, Any]
    ) -> Tuple[Dict[str, Any], bool]:
        """
        Return the row whose ``key_column`` matches, creating it if absent.

        A concurrent insert of the same key is treated as "already exists":
        the insert is ignored and the existing row is read back.

        Args:
            table: Table name
            key_column: Unique column identifying the row
            record: Values to insert when the row does not exist

        Returns:
            Tuple of (row, created)
        """
        key_value = record[key_column]
        existing = self.select_one(table, {key_column: key_value})
        if existing:
            return existing, False

        result = self._execute(
            self.client.table(table).upsert(record, on_conflict=key_column, ignore_duplicates=True),
            f"Upsert into {table} failed for {key_column}={key_value}"
        )
        if result.data:
            return result.data[0], True

        existing = self.select_one(table, {key_column: key_value})
        if not existing:
            raise RecordStoreError(
                f"Upsert into {table} returned no data for {key_column}={key_value}"
            )
        return existing, False

    def update(
        self,
        table: str,
        filters: Dict[str, Any],
        values: Dict[str, Any]
    ) -> List[Dict[str, Any]]:
        query = _apply_filters(self.client.table(table).update(values), filters)
        result = self._execute(query, f"Update of {table} failed")
        return list(result.data or [])

    def delete(self, table: str, filters: Dict[str, Any]) -> int:
        if not filters:
            raise ValueError("Refusing to delete without filters")

        query = _apply_filters(self.client.table(table).delete(), filters)
        result = self._execute(query, f"Delete from {table} failed")
        return len(result.data or [])

    def search(
        self,
        table: str,
        columns: str,
        search_columns: Sequence[str],
        term: str = "",
        order_by: Optional[str] = None,
        offset: int = 0,
        limit: int = 20
    ) -> QueryPage:
        """
        Case-insensitive substring search with offset pagination.

        Args:
            table: Table name
            columns: Select expression
            search_columns: Columns matched with ``ilike``
            term: Search term; empty matches everything
            order_by: Ascending sort column
            offset: Zero-based row offset
            limit: Page size

        Returns:
            QueryPage with the rows and the exact match count
        """
        query = self.client.table(table).select(columns, count="exact")

        term = _escape_ilike(term or "")
        if term:
            query = query.or_(",".join(f"{column}.ilike.%{term}%" for column in search_columns))

        if order_by:
            query = query.order(order_by)

        query = query.range(offset, offset + limit - 1)
        result = self._execute(query, f"Search on {table} failed")
        return QueryPage(
            rows=list(result.data or []),
            total=result.count or 0,
            offset=offset,
            limit=limit
        )


def create_record_store(config, logger: Optional[logging.Logger] = None) -> RecordStore:
    """Create a record store from any config carrying Supabase settings."""
    return RecordStore(create_client(config.supabase_url, config.supabase_key), logger=logger)
