"""
In-memory collaborators shared by the test suite.
"""

import itertools
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

FOLDER = "application/vnd.google-apps.folder"


class FakeRecordStore:
    """Dict-backed stand-in for RecordStore with the same method surface."""

    def __init__(self, tables: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        self.tables = {name: [dict(row) for row in rows] for name, rows in (tables or {}).items()}
        self.calls: List[tuple] = []
        self.fail_hook: Optional[Callable[[str, str, Dict[str, Any]], None]] = None
        self._seq = itertools.count(1)

    def _rows(self, table: str) -> List[Dict[str, Any]]:
        return self.tables.setdefault(table, [])

    @staticmethod
    def _matches(row: Dict[str, Any], filters: Optional[Dict[str, Any]]) -> bool:
        return all(row.get(key) == value for key, value in (filters or {}).items())

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return [dict(row) for row in self._rows(table)]

    def select(self, table, filters=None, columns="*", order_by=None, descending=False, limit=None):
        self.calls.append(("select", table, dict(filters or {})))
        rows = [dict(row) for row in self._rows(table) if self._matches(row, filters)]
        if order_by:
            rows.sort(key=lambda row: row.get(order_by) or 0, reverse=descending)
        return rows[:limit] if limit else rows

    def select_one(self, table, filters, columns="*"):
        rows = self.select(table, filters, columns=columns, limit=1)
        return rows[0] if rows else None

    def count(self, table, filters=None):
        return len([row for row in self._rows(table) if self._matches(row, filters)])

    def insert(self, table, record, columns="*"):
        if self.fail_hook:
            self.fail_hook("insert", table, record)
        seq = next(self._seq)
        row = {"id": f"{table}-{seq}", "created_at": seq, **record}
        self._rows(table).append(row)
        return dict(row)

    def upsert(self, table, record, on_conflict):
        if self.fail_hook:
            self.fail_hook("upsert", table, record)
        for row in self._rows(table):
            if row.get(on_conflict) == record[on_conflict]:
                row.update(record)
                return dict(row)
        return self.insert(table, record)

    def resolve_or_create(self, table, key_column, record):
        existing = self.select_one(table, {key_column: record[key_column]})
        if existing:
            return existing, False
        return self.insert(table, record), True

    def update(self, table, filters, values):
        updated = []
        for row in self._rows(table):
            if self._matches(row, filters):
                row.update(values)
                updated.append(dict(row))
        return updated

    def delete(self, table, filters):
        before = self._rows(table)
        kept = [row for row in before if not self._matches(row, filters)]
        self.tables[table] = kept
        return len(before) - len(kept)


class FakeDrive:
    """Drive client serving a fixed folder tree and file contents."""

    def __init__(self, tree: Dict[str, List[Dict[str, Any]]], fail_downloads=()):
        self.tree = tree
        self.fail_downloads = set(fail_downloads)
        self.listed: List[str] = []
        self.downloaded: List[str] = []

    def list_children(self, folder_id):
        self.listed.append(folder_id)
        for child in self.tree.get(folder_id, []):
            yield child

    def download_file(self, file_id):
        if file_id in self.fail_downloads:
            raise IOError(f"download failed for {file_id}")
        self.downloaded.append(file_id)
        return f"bytes-{file_id}".encode()


def folder(folder_id: str, name: str) -> Dict[str, Any]:
    return {"id": folder_id, "name": name, "mimeType": FOLDER}


def image(file_id: str, name: str, size: Optional[int] = 10) -> Dict[str, Any]:
    return {"id": file_id, "name": name, "mimeType": "image/jpeg", "size": size}


@pytest.fixture
def record_store():
    """Empty in-memory record store."""
    return FakeRecordStore()
