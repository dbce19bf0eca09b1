"""
Shared fixtures: an in-memory stand-in for the psycopg2 pool/connection/cursor
surface the service uses, plus a TestClient wired to it.
"""
from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import psycopg2
import psycopg2.errors
import pytest
from fastapi.testclient import TestClient
from psycopg2.pool import PoolError

from storefront_api.config import Settings
from storefront_api.main import create_app


_INSERT_RE = re.compile(r"^INSERT INTO (\w+) \(([^)]*)\)")
_SELECT_RE = re.compile(r"^SELECT (.+) FROM (\w+) WHERE (\w+) = %\((\w+)\)s$")
_UPDATE_RE = re.compile(r"^UPDATE (\w+) SET (\w+) = %\((\w+)\)s WHERE (\w+) = %\((\w+)\)s$")
_DELETE_RE = re.compile(r"^DELETE FROM (\w+) WHERE (\w+) = %\((\w+)\)s$")

# Columns with a UNIQUE constraint in schema.sql.
_UNIQUE = {"users": ["email"]}


class FakeStore:
    """Tables keyed by name, rows keyed by id."""

    def __init__(self) -> None:
        self.tables: Dict[str, Dict[int, Dict[str, Any]]] = {}
        self._next_id: Dict[str, int] = {}
        # Statements whose normalized text starts with this prefix raise OperationalError.
        self.fail_on: Optional[str] = None

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return list(self.tables.get(table, {}).values())

    def insert(self, table: str, columns: List[str], params: Dict[str, Any]) -> Dict[str, Any]:
        rows = self.tables.setdefault(table, {})
        for col in _UNIQUE.get(table, []):
            if any(r[col] == params[col] for r in rows.values()):
                raise psycopg2.errors.UniqueViolation(f"duplicate key value violates unique constraint on {col}")
        new_id = self._next_id.get(table, 0) + 1
        self._next_id[table] = new_id
        row = {"id": new_id}
        for col in columns:
            row[col] = datetime.now(timezone.utc) if col == "date_created" else params[col]
        rows[new_id] = row
        return {"id": new_id}


class FakeCursor:
    def __init__(self, conn: "FakeConnection") -> None:
        self._conn = conn
        self._result: List[Dict[str, Any]] = []
        self.rowcount = -1

    def __enter__(self) -> "FakeCursor":
        return self

    def __exit__(self, *exc) -> None:
        return None

    def execute(self, query: str, params: Optional[Dict[str, Any]] = None) -> None:
        params = params or {}
        sql = " ".join(query.split())
        self._conn.executed.append((sql, params))
        store = self._conn.store
        if store.fail_on and sql.startswith(store.fail_on):
            raise psycopg2.OperationalError("server closed the connection unexpectedly")

        if sql.startswith("SET "):
            self._result, self.rowcount = [], -1
        elif m := _INSERT_RE.match(sql):
            table, columns = m.group(1), [c.strip() for c in m.group(2).split(",")]
            self._result, self.rowcount = [store.insert(table, columns, params)], 1
        elif m := _SELECT_RE.match(sql):
            columns, table, col, key = m.groups()
            names = [c.strip() for c in columns.split(",")]
            found = [r for r in store.rows(table) if r[col] == params[key]]
            self._result = [{n: r[n] for n in names} for r in found]
            self.rowcount = len(self._result)
        elif m := _UPDATE_RE.match(sql):
            table, set_col, set_key, col, key = m.groups()
            found = [r for r in store.rows(table) if r[col] == params[key]]
            for r in found:
                r[set_col] = params[set_key]
            self._result, self.rowcount = [], len(found)
        elif m := _DELETE_RE.match(sql):
            table, col, key = m.groups()
            found = [r for r in store.rows(table) if r[col] == params[key]]
            for r in found:
                del store.tables[table][r["id"]]
            self._result, self.rowcount = [], len(found)
        else:
            raise AssertionError(f"Unexpected SQL: {sql}")

    def fetchone(self) -> Optional[Dict[str, Any]]:
        return self._result[0] if self._result else None

    def fetchall(self) -> List[Dict[str, Any]]:
        return list(self._result)


class FakeConnection:
    def __init__(self, store: FakeStore) -> None:
        self.store = store
        self.closed = 0
        self.commits = 0
        self.rollbacks = 0
        self.executed: List[tuple] = []

    def cursor(self, cursor_factory=None) -> FakeCursor:
        return FakeCursor(self)

    def commit(self) -> None:
        self.commits += 1

    def rollback(self) -> None:
        self.rollbacks += 1


class FakePool:
    """Implements getconn/putconn/closeall like psycopg2's pools."""

    def __init__(self, store: FakeStore) -> None:
        self.store = store
        self.checked_out: List[FakeConnection] = []
        self.connections: List[FakeConnection] = []
        self.exhausted = False

    def getconn(self) -> FakeConnection:
        if self.exhausted:
            raise PoolError("connection pool exhausted")
        conn = FakeConnection(self.store)
        self.connections.append(conn)
        self.checked_out.append(conn)
        return conn

    def putconn(self, conn: FakeConnection, key=None, close: bool = False) -> None:
        self.checked_out.remove(conn)

    def closeall(self) -> None:
        self.checked_out.clear()


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        db_user="storefront",
        db_password="storefront",
        db_name="storefront_test",
        jwt_secret="test-signing-secret",
    )


@pytest.fixture()
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture()
def pool(store) -> FakePool:
    return FakePool(store)


@pytest.fixture()
def client(settings, pool) -> TestClient:
    return TestClient(create_app(settings, pool=pool))


@pytest.fixture()
def auth_headers(client) -> Dict[str, str]:
    """Register a user and return an Authorization header carrying their token."""
    resp = client.post(
        "/register",
        json={"email": "owner@shop.com", "fname": "Shop", "lname": "Owner", "password": "s3cret"},
    )
    assert resp.status_code == 200
    return {"Authorization": f"Bearer {resp.json()}"}
