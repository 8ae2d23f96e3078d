"""
conftest.py — Fixtures shared by the pipeline and API test suites.

Provides:
  FakeSupabase     — in-memory stand-in for the supabase.Client query builder
  fake_supabase    — a fresh FakeSupabase per test
  trigger_token    — sets settings.pipeline_trigger_token for one test

The fake implements the subset of PostgREST behaviour the loaders rely on:
filters, ordering, limit/range, insert, update, delete and upsert with an
on_conflict key (ignore_duplicates returns only the rows actually inserted).
"""

from __future__ import annotations

import copy
import re
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import pytest

_ISO_TS = re.compile(r"^\d{4}-\d{2}-\d{2}T")


def _coerce(value: Any) -> Any:
    """Compare ISO timestamps as instants, whatever offset spelling they use."""
    if isinstance(value, str) and _ISO_TS.match(value):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    return value


@dataclass
class FakeResponse:
    data: list[dict[str, Any]]
    count: int | None = None


class FakeQuery:
    def __init__(self, db: "FakeSupabase", table: str) -> None:
        self._db = db
        self._table = table
        self._op = "select"
        self._payload: Any = None
        self._on_conflict: list[str] = []
        self._ignore_duplicates = False
        self._filters: list[Callable[[dict[str, Any]], bool]] = []
        self._negate_next = False
        self._order: list[tuple[str, bool]] = []
        self._limit: int | None = None
        self._range: tuple[int, int] | None = None

    # -- operations ---------------------------------------------------------

    def select(self, columns: str = "*", **_: Any) -> "FakeQuery":
        self._op = "select"
        return self

    def insert(self, rows: dict[str, Any] | list[dict[str, Any]]) -> "FakeQuery":
        self._op = "insert"
        self._payload = rows if isinstance(rows, list) else [rows]
        return self

    def upsert(
        self,
        rows: dict[str, Any] | list[dict[str, Any]],
        *,
        on_conflict: str = "id",
        ignore_duplicates: bool = False,
        **_: Any,
    ) -> "FakeQuery":
        self._op = "upsert"
        self._payload = rows if isinstance(rows, list) else [rows]
        self._on_conflict = [col.strip() for col in on_conflict.split(",")]
        self._ignore_duplicates = ignore_duplicates
        return self

    def update(self, fields: dict[str, Any]) -> "FakeQuery":
        self._op = "update"
        self._payload = fields
        return self

    def delete(self) -> "FakeQuery":
        self._op = "delete"
        return self

    # -- filters ------------------------------------------------------------

    def _add(self, predicate: Callable[[dict[str, Any]], bool]) -> "FakeQuery":
        if self._negate_next:
            self._negate_next = False
            self._filters.append(lambda row: not predicate(row))
        else:
            self._filters.append(predicate)
        return self

    @property
    def not_(self) -> "FakeQuery":
        self._negate_next = True
        return self

    def eq(self, column: str, value: Any) -> "FakeQuery":
        return self._add(lambda row: _coerce(row.get(column)) == _coerce(value))

    def neq(self, column: str, value: Any) -> "FakeQuery":
        return self._add(lambda row: _coerce(row.get(column)) != _coerce(value))

    def in_(self, column: str, values: list[Any]) -> "FakeQuery":
        wanted = [_coerce(v) for v in values]
        return self._add(lambda row: _coerce(row.get(column)) in wanted)

    def is_(self, column: str, value: str) -> "FakeQuery":
        assert value == "null"
        return self._add(lambda row: row.get(column) is None)

    def _compare(self, column: str, value: Any, op: Callable[[Any, Any], bool]) -> "FakeQuery":
        def predicate(row: dict[str, Any]) -> bool:
            current = row.get(column)
            return current is not None and op(_coerce(current), _coerce(value))

        return self._add(predicate)

    def lt(self, column: str, value: Any) -> "FakeQuery":
        return self._compare(column, value, lambda a, b: a < b)

    def lte(self, column: str, value: Any) -> "FakeQuery":
        return self._compare(column, value, lambda a, b: a <= b)

    def gt(self, column: str, value: Any) -> "FakeQuery":
        return self._compare(column, value, lambda a, b: a > b)

    def gte(self, column: str, value: Any) -> "FakeQuery":
        return self._compare(column, value, lambda a, b: a >= b)

    # -- modifiers ----------------------------------------------------------

    def order(self, column: str, *, desc: bool = False, **_: Any) -> "FakeQuery":
        self._order.append((column, desc))
        return self

    def limit(self, count: int) -> "FakeQuery":
        self._limit = count
        return self

    def range(self, start: int, end: int) -> "FakeQuery":
        self._range = (start, end)
        return self

    # -- execution ----------------------------------------------------------

    def _matches(self, row: dict[str, Any]) -> bool:
        return all(predicate(row) for predicate in self._filters)

    def _key(self, row: dict[str, Any]) -> tuple[Any, ...]:
        return tuple(_coerce(row.get(col)) for col in self._on_conflict)

    def execute(self) -> FakeResponse:
        self._db.calls.append((self._table, self._op))
        self._db._maybe_fail(self._table, self._op, self._payload)
        rows = self._db.tables.setdefault(self._table, [])

        if self._op == "select":
            selected = [row for row in rows if self._matches(row)]
            for column, desc in reversed(self._order):
                present = [r for r in selected if r.get(column) is not None]
                missing = [r for r in selected if r.get(column) is None]
                present.sort(key=lambda r: _coerce(r[column]), reverse=desc)
                selected = present + missing
            if self._range is not None:
                start, end = self._range
                selected = selected[start : end + 1]
            if self._limit is not None:
                selected = selected[: self._limit]
            return FakeResponse(data=copy.deepcopy(selected), count=len(selected))

        if self._op == "insert":
            created = [self._db._new_row(row) for row in self._payload]
            rows.extend(created)
            return FakeResponse(data=copy.deepcopy(created))

        if self._op == "upsert":
            returned: list[dict[str, Any]] = []
            for payload in self._payload:
                existing = next((r for r in rows if self._key(r) == self._key(payload)), None)
                if existing is None:
                    created = self._db._new_row(payload)
                    rows.append(created)
                    returned.append(created)
                elif not self._ignore_duplicates:
                    existing.update(copy.deepcopy(payload))
                    returned.append(existing)
            return FakeResponse(data=copy.deepcopy(returned))

        if self._op == "update":
            touched = [row for row in rows if self._matches(row)]
            for row in touched:
                row.update(copy.deepcopy(self._payload))
            return FakeResponse(data=copy.deepcopy(touched))

        if self._op == "delete":
            removed = [row for row in rows if self._matches(row)]
            self._db.tables[self._table] = [row for row in rows if not self._matches(row)]
            return FakeResponse(data=copy.deepcopy(removed))

        raise AssertionError(f"unsupported operation {self._op}")


class FakeSupabase:
    """
    In-memory Supabase client.

    Seed tables with `fake.tables["indicators"] = [...]` or `fake.seed(...)`;
    inspect them directly after the code under test has run.
    """

    def __init__(self) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {}
        self.calls: list[tuple[str, str]] = []
        self._failures: list[tuple[str, str, Callable[[Any], bool], Exception]] = []

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def seed(self, table: str, *rows: dict[str, Any]) -> list[dict[str, Any]]:
        created = [self._new_row(row) for row in rows]
        self.tables.setdefault(table, []).extend(created)
        return copy.deepcopy(created)

    def fail_on(
        self,
        table: str,
        op: str,
        *,
        when: Callable[[Any], bool] | None = None,
        error: Exception | None = None,
    ) -> None:
        """Make `op` on `table` raise, optionally only when `when(payload)` holds."""
        self._failures.append(
            (table, op, when or (lambda _payload: True), error or RuntimeError("store unavailable"))
        )

    def _maybe_fail(self, table: str, op: str, payload: Any) -> None:
        for f_table, f_op, when, error in self._failures:
            if f_table == table and f_op == op and when(payload):
                raise error

    def _new_row(self, row: dict[str, Any]) -> dict[str, Any]:
        created = copy.deepcopy(row)
        created.setdefault("id", str(uuid.uuid4()))
        created.setdefault("created_at", datetime.now(timezone.utc).isoformat())
        return created


@pytest.fixture
def fake_supabase() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture
def trigger_token(monkeypatch):
    from macrocal_shared.config import settings

    monkeypatch.setattr(settings, "pipeline_trigger_token", "s3cret")
    return "s3cret"
