"""
Shared fixtures: an in-memory stand-in for the Supabase query builder.

Supports the subset of the PostgREST builder the backend uses: select (with
an embedded ``prospect_intel(*)`` join), eq, ilike, order, limit, single,
maybe_single, insert, upsert(on_conflict=...), update and execute().
"""

import copy
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pytest


class FakeResponse:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table_name = table
        self.op = "select"
        self.payload: Any = None
        self.on_conflict: Optional[str] = None
        self.columns = "*"
        self.filters: List[tuple] = []
        self.order_by: Optional[tuple] = None
        self.limit_n: Optional[int] = None
        self.single_mode: Optional[str] = None

    # -- builders -------------------------------------------------------

    def select(self, columns: str = "*"):
        self.columns = columns
        return self

    def insert(self, payload):
        self.op, self.payload = "insert", payload
        return self

    def upsert(self, payload, on_conflict: Optional[str] = None):
        self.op, self.payload, self.on_conflict = "upsert", payload, on_conflict
        return self

    def update(self, payload):
        self.op, self.payload = "update", payload
        return self

    def eq(self, column, value):
        self.filters.append(("eq", column, value))
        return self

    def ilike(self, column, pattern):
        self.filters.append(("ilike", column, pattern))
        return self

    def order(self, column, desc: bool = False):
        self.order_by = (column, desc)
        return self

    def limit(self, n: int):
        self.limit_n = n
        return self

    def single(self):
        self.single_mode = "single"
        return self

    def maybe_single(self):
        self.single_mode = "maybe_single"
        return self

    # -- execution ------------------------------------------------------

    def _matches(self, row: Dict[str, Any]) -> bool:
        for kind, column, value in self.filters:
            if kind == "eq" and row.get(column) != value:
                return False
            if kind == "ilike":
                regex = "^" + re.escape(value).replace("%", ".*") + "$"
                if not re.match(regex, str(row.get(column) or ""), re.IGNORECASE):
                    return False
        return True

    def execute(self):
        self.db.calls.append((self.table_name, self.op, copy.deepcopy(self.payload)))
        if self.table_name in self.db.fail_tables:
            raise RuntimeError(f"{self.table_name} unavailable")

        rows = self.db.tables.setdefault(self.table_name, [])
        if self.op == "select":
            return self._select(rows)
        if self.op == "insert":
            return FakeResponse([self._insert(rows, r) for r in self._payload_rows()])
        if self.op == "upsert":
            return FakeResponse([self._upsert(rows, r) for r in self._payload_rows()])
        if self.op == "update":
            updated = []
            for row in rows:
                if self._matches(row):
                    row.update(copy.deepcopy(self.payload))
                    updated.append(copy.deepcopy(row))
            return FakeResponse(updated)
        raise AssertionError(f"unsupported op {self.op}")

    def _payload_rows(self) -> List[Dict[str, Any]]:
        payload = self.payload
        return payload if isinstance(payload, list) else [payload]

    def _insert(self, rows, row):
        stored = copy.deepcopy(row)
        stored.setdefault("id", str(uuid.uuid4()))
        stored.setdefault("created_at", datetime.now(timezone.utc).isoformat())
        rows.append(stored)
        return copy.deepcopy(stored)

    def _upsert(self, rows, row):
        keys = (self.on_conflict or "id").split(",")
        for existing in rows:
            if all(k in row and existing.get(k) == row.get(k) for k in keys):
                existing.update(copy.deepcopy(row))
                return copy.deepcopy(existing)
        return self._insert(rows, row)

    def _select(self, rows):
        result = [copy.deepcopy(r) for r in rows if self._matches(r)]
        if "prospect_intel(" in self.columns:
            intel_rows = self.db.tables.get("prospect_intel", [])
            for r in result:
                r["prospect_intel"] = [
                    copy.deepcopy(i) for i in intel_rows if i.get("prospect_entity_id") == r.get("id")
                ]
        if self.order_by:
            column, desc = self.order_by
            result.sort(key=lambda r: (r.get(column) is not None, r.get(column) or ""), reverse=desc)
        if self.limit_n is not None:
            result = result[:self.limit_n]

        if self.single_mode == "maybe_single":
            # supabase-py returns None instead of a response when no row matches
            return FakeResponse(result[0]) if result else None
        if self.single_mode == "single":
            if len(result) != 1:
                raise RuntimeError("JSON object requested, multiple (or no) rows returned")
            return FakeResponse(result[0])
        return FakeResponse(result)


class FakeSupabase:
    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.calls: List[tuple] = []
        self.fail_tables = set()

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rows(self, name: str) -> List[Dict[str, Any]]:
        return self.tables.get(name, [])

    def seed(self, name: str, *rows: Dict[str, Any]) -> List[Dict[str, Any]]:
        stored = []
        for row in rows:
            row = dict(row)
            row.setdefault("id", str(uuid.uuid4()))
            self.tables.setdefault(name, []).append(row)
            stored.append(row)
        return stored

    def writes(self, name: str, op: str) -> List[Any]:
        return [payload for table, kind, payload in self.calls if table == name and kind == op]


@pytest.fixture
def fake_supabase():
    return FakeSupabase()


@pytest.fixture
def user_id():
    return "user-123"
