import os
from collections import defaultdict
from datetime import datetime, timedelta, timezone

os.environ.setdefault("SUPABASE_URL", "")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest
from jose import jwt
from sqlalchemy.orm import sessionmaker

from kakeibo import config
from kakeibo.database import Base, make_engine, seed_categories
import kakeibo.models  # noqa: F401
from kakeibo.models import Group, GroupMember, Salary, User
from kakeibo.services.session_cache import profile_cache

TEST_JWT_SECRET = "test-jwt-secret"


# ── Local mirror ──────────────────────────────────────────────────
@pytest.fixture
def session_factory(tmp_path):
    """File-backed SQLite so worker threads get their own connections."""
    engine = make_engine(f"sqlite:///{tmp_path / 'kakeibo.db'}")
    Base.metadata.create_all(bind=engine)
    seed_categories(engine)
    yield sessionmaker(bind=engine, autoflush=False)
    engine.dispose()


@pytest.fixture
def seed(session_factory):
    def _seed(*objs):
        with session_factory() as db:
            db.add_all(objs)
            db.commit()
    return _seed


@pytest.fixture
def family(seed):
    """Users U1..U3 and groups 1 (U1, U2) and 2 (U1)."""
    seed(User(id="U1", name="Aki"), User(id="U2", name="Ren"), User(id="U3", name="Sora"))
    seed(Group(id=1, name="Household", created_by="U1"), Group(id=2, name="Trip", created_by="U1"))
    seed(
        GroupMember(group_id=1, user_id="U1", role="owner"),
        GroupMember(group_id=1, user_id="U2", role="member"),
        GroupMember(group_id=2, user_id="U1", role="owner"),
    )


def make_salary(user_id, amount, payday, **kw):
    return Salary(user_id=user_id, amount=amount, payday=payday, **kw)


# ── Fake PostgREST ────────────────────────────────────────────────
def _same(a, b) -> bool:
    return str(a) == str(b)


class FakeSupabase:
    """In-memory stand-in for the sb_* helpers, enough PostgREST for the routes."""

    def __init__(self):
        self.tables = defaultdict(list)
        self._ids = defaultdict(int)
        self.fail_on = {}  # (operation, table) -> exception

    def _maybe_fail(self, op, table):
        exc = self.fail_on.get((op, table))
        if exc is not None:
            raise exc

    @staticmethod
    def _match(row, filters):
        for key, value in (filters or {}).items():
            if value is None:
                if row.get(key) is not None:
                    return False
            elif not _same(row.get(key), value):
                return False
        return True

    @staticmethod
    def _apply_query(rows, query_string):
        limit = None
        for part in (query_string or "").split("&"):
            if not part:
                continue
            key, _, expr = part.partition("=")
            if key == "limit":
                limit = int(expr)
                continue
            op, _, value = expr.partition(".")
            if op == "in":
                allowed = value.strip("()").split(",")
                rows = [r for r in rows if str(r.get(key)) in allowed]
            elif op == "neq":
                rows = [r for r in rows if not _same(r.get(key), value)]
            elif op == "eq":
                rows = [r for r in rows if _same(r.get(key), value)]
            elif op == "is" and value == "null":
                rows = [r for r in rows if r.get(key) is None]
        return rows[:limit] if limit is not None else rows

    def select(self, table, filters=None, columns="*", query_string=None, order=None, ranges=None):
        self._maybe_fail("select", table)
        rows = [r for r in self.tables[table] if self._match(r, filters)]
        for column, (low, high) in (ranges or {}).items():
            if low is not None:
                rows = [r for r in rows if str(r.get(column)) >= str(low)]
            if high is not None:
                rows = [r for r in rows if str(r.get(column)) <= str(high)]
        if order:
            column, _, direction = order.partition(".")
            rows = sorted(rows, key=lambda r: str(r.get(column)), reverse=direction == "desc")
        rows = self._apply_query(rows, query_string)
        return [dict(r) for r in rows]

    def select_one(self, table, filters, columns="*"):
        rows = self.select(table, filters=filters)
        return rows[0] if rows else None

    def insert(self, table, data):
        self._maybe_fail("insert", table)
        row = dict(data)
        if "id" not in row:
            self._ids[table] += 1
            row["id"] = self._ids[table]
        self.tables[table].append(row)
        return dict(row)

    def upsert(self, table, data, on_conflict):
        self._maybe_fail("upsert", table)
        keys = {k: data.get(k) for k in on_conflict.split(",")}
        for row in self.tables[table]:
            if self._match(row, keys):
                row.update(data)
                return dict(row)
        return self.insert(table, data)

    def update(self, table, filters, data):
        self._maybe_fail("update", table)
        updated = []
        for row in self.tables[table]:
            if self._match(row, filters):
                row.update(data)
                updated.append(dict(row))
        return updated[0] if updated else {}

    def delete(self, table, filters=None, query_string=None):
        self._maybe_fail("delete", table)
        doomed = self._apply_query([r for r in self.tables[table] if self._match(r, filters)], query_string)
        ids = {id(r) for r in doomed}
        self.tables[table] = [r for r in self.tables[table] if id(r) not in ids]


@pytest.fixture
def fake_sb(monkeypatch):
    from kakeibo import auth
    from kakeibo.routes import (
        account_routes, debug_routes, finance_routes, group_routes, invite_routes, salary_routes,
    )
    from kakeibo.services import ledger_store

    fake = FakeSupabase()
    bindings = {
        "sb_select": fake.select,
        "sb_select_one": fake.select_one,
        "sb_insert": fake.insert,
        "sb_update": fake.update,
        "sb_upsert": fake.upsert,
        "sb_delete": fake.delete,
    }
    for module in (auth, account_routes, debug_routes, finance_routes, group_routes,
                   invite_routes, salary_routes, ledger_store):
        for name, fn in bindings.items():
            if hasattr(module, name):
                monkeypatch.setattr(module, name, fn)
    return fake


# ── API client ────────────────────────────────────────────────────
@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch):
    monkeypatch.setattr(config, "SUPABASE_JWT_SECRET", TEST_JWT_SECRET)
    monkeypatch.setattr(config, "CRON_SECRET", "")
    profile_cache.invalidate()
    yield
    profile_cache.invalidate()


def make_token(user_id: str, secret: str = TEST_JWT_SECRET, expires_in: int = 3600) -> str:
    payload = {
        "sub": user_id,
        "aud": "authenticated",
        "role": "authenticated",
        "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in),
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def auth_headers(user_id: str) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id)}"}


@pytest.fixture
def client():
    from fastapi.testclient import TestClient
    from kakeibo.main import app

    app.dependency_overrides.clear()
    yield TestClient(app)
    app.dependency_overrides.clear()
