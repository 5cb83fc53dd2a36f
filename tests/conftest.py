# tests/conftest.py
"""Shared fixtures: Supabase env vars, initData tokens and an in-memory gateway."""
import itertools
import json
import time
from urllib.parse import urlencode

import pytest

from tasknotes.errors import QueryError

_ENV_VARS = (
    "SUPABASE_URL",
    "SUPABASE_ANON_KEY",
    "SUPABASE_KEY",
    "SUPABASE_SCHEMA",
    "SUPABASE_TIMEOUT",
    "SUPABASE_REPLACE_RPC",
    "LOAD_POLICY",
    "SAVE_POLICY",
    "LOAD_LIMIT",
    "TELEGRAM_BOT_TOKEN",
    "INIT_DATA_MAX_AGE",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def supabase_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("SUPABASE_URL", "https://project.supabase.co")
    monkeypatch.setenv("SUPABASE_ANON_KEY", "anon-test-key")
    return monkeypatch


def make_token(user_id=42, first_name="Alice", **extra):
    user = {"id": user_id, "first_name": first_name}
    user.update(extra)
    return urlencode({"user": json.dumps(user), "auth_date": str(int(time.time())), "hash": "unchecked"})


@pytest.fixture
def token():
    return make_token


class FakeGateway:
    """In-memory stand-in for SupabaseGateway with per-call failure injection."""

    def __init__(self):
        self.tables = {"users": [], "tasks": [], "notes": []}
        self.calls = []
        self.failures = {}
        self.ping_error = None
        self._ids = itertools.count(1)

    def fail(self, operation, relation, error=None):
        self.failures[(operation, relation)] = error or QueryError(f"{operation} {relation}: boom", relation, operation)

    def _record(self, operation, relation):
        self.calls.append((operation, relation))
        error = self.failures.get((operation, relation))
        if error is not None:
            raise error

    def ping(self):
        self.calls.append(("ping", "users"))
        if self.ping_error is not None:
            raise self.ping_error

    def select(self, relation, columns, filters, order=None, descending=True, limit=None):
        self._record("select", relation)
        rows = [r for r in self.tables[relation] if all(r.get(k) == v for k, v in filters.items())]
        if order:
            keys = (order,) if isinstance(order, str) else tuple(order)
            rows = sorted(rows, key=lambda r: tuple(r[k] for k in keys), reverse=descending)
        if limit:
            rows = rows[:limit]
        wanted = [c.strip() for c in columns.split(",")]
        return [{c: r.get(c) for c in wanted} for r in rows]

    def upsert(self, relation, row, on_conflict):
        self._record("upsert", relation)
        table = self.tables[relation]
        table[:] = [r for r in table if r.get(on_conflict) != row[on_conflict]]
        table.append(dict(row))
        return [dict(row)]

    def delete(self, relation, filters):
        self._record("delete", relation)
        table = self.tables[relation]
        removed = [r for r in table if all(r.get(k) == v for k, v in filters.items())]
        table[:] = [r for r in table if r not in removed]
        return removed

    def insert(self, relation, rows):
        self._record("insert", relation)
        inserted = [dict(row, id=next(self._ids)) for row in rows]
        self.tables[relation].extend(inserted)
        return inserted

    def rpc(self, function, params):
        self._record("rpc", function)
        counts = {}
        for relation in ("tasks", "notes"):
            table = self.tables[relation]
            table[:] = [r for r in table if r["user_id"] != params["p_user_id"]]
            table.extend(dict(row, id=next(self._ids)) for row in params[f"p_{relation}"])
            counts[relation] = len(params[f"p_{relation}"])
        return [counts]


@pytest.fixture
def gateway():
    return FakeGateway()
