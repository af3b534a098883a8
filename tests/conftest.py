"""
Shared fixtures: an in-memory stand-in for the Supabase client that speaks the
subset of the PostgREST query builder the services use, plus helpers to seed
tenants, memberships and the permission catalog.
"""

import copy
import itertools
import uuid
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from app.modules.auth.service import clear_auth_cache
from app.modules.memberships.schemas import Membership
from app.modules.permissions.registry import (
    DefinitionRegistry,
    init_definition_registry,
    reset_definition_registry,
    supabase_definition_loader,
)
from app.scripts.seed_permission_definitions import seed_definitions

TENANT_ID = "tenant-stable-1"
OTHER_TENANT_ID = "tenant-clinic-2"

UNIQUE_KEYS = {
    "tenant_members": [("id",), ("tenant_id", "user_id")],
    "permission_definitions": [("key",)],
    "permission_bundles": [("id",)],
    "bundle_permissions": [("bundle_id", "permission_key")],
    "membership_bundle_assignments": [("membership_id", "bundle_id")],
    "member_permission_overrides": [("id",), ("membership_id", "permission_key")],
    "delegation_scopes": [("id",), ("tenant_id", "grantor_member_id", "permission_key")],
    "delegation_audit_log": [("id",)],
}

# on delete cascade foreign keys from the migration
CASCADES = {
    "permission_bundles": [("bundle_permissions", "bundle_id"), ("membership_bundle_assignments", "bundle_id")],
    "tenant_members": [
        ("membership_bundle_assignments", "membership_id"),
        ("member_permission_overrides", "membership_id"),
        ("delegation_scopes", "grantor_member_id"),
    ],
}


class FakeAPIError(Exception):
    pass


class FakeResponse:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table_name = table
        self.op = "select"
        self.columns = "*"
        self.payload = None
        self.on_conflict = None
        self.ignore_duplicates = False
        self.filters = []
        self.orders = []
        self._limit = None
        self._offset = 0

    # Builder API

    def select(self, columns="*"):
        self.op = "select"
        self.columns = columns
        return self

    def insert(self, payload):
        self.op = "insert"
        self.payload = payload
        return self

    def upsert(self, payload, on_conflict="", ignore_duplicates=False, **kwargs):
        self.op = "upsert"
        self.payload = payload
        self.on_conflict = tuple(c.strip() for c in on_conflict.split(",") if c.strip())
        self.ignore_duplicates = ignore_duplicates
        return self

    def update(self, payload):
        self.op = "update"
        self.payload = payload
        return self

    def delete(self):
        self.op = "delete"
        return self

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def in_(self, column, values):
        values = list(values)
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def order(self, column, desc=False):
        self.orders.append((column, desc))
        return self

    def limit(self, n):
        self._limit = n
        return self

    def offset(self, n):
        self._offset = n
        return self

    # Execution

    def _matches(self, row):
        return all(f(row) for f in self.filters)

    def _project(self, row):
        if self.columns.strip() == "*":
            return copy.deepcopy(row)
        cols = [c.strip() for c in self.columns.split(",")]
        return {c: copy.deepcopy(row.get(c)) for c in cols}

    def execute(self):
        self.db.calls.append((self.table_name, self.op))
        if (self.table_name, self.op) in self.db.failures:
            raise FakeAPIError(f"{self.op} on {self.table_name} failed")
        rows = self.db.tables.setdefault(self.table_name, [])

        if self.op == "select":
            matched = [r for r in rows if self._matches(r)]
            for column, desc in reversed(self.orders):
                matched.sort(key=lambda r: (r.get(column) is None, r.get(column)), reverse=desc)
            matched = matched[self._offset:]
            if self._limit is not None:
                matched = matched[:self._limit]
            return FakeResponse([self._project(r) for r in matched])

        if self.op == "insert":
            items = self.payload if isinstance(self.payload, list) else [self.payload]
            new_rows = [self.db.with_defaults(self.table_name, item) for item in items]
            for row in new_rows:
                self.db.check_unique(self.table_name, row)
                rows.append(row)
            return FakeResponse([copy.deepcopy(r) for r in new_rows])

        if self.op == "upsert":
            items = self.payload if isinstance(self.payload, list) else [self.payload]
            out = []
            for item in items:
                existing = next(
                    (r for r in rows if all(r.get(c) == item.get(c) for c in self.on_conflict)),
                    None
                )
                if existing is None:
                    row = self.db.with_defaults(self.table_name, item)
                    self.db.check_unique(self.table_name, row)
                    rows.append(row)
                    out.append(copy.deepcopy(row))
                elif not self.ignore_duplicates:
                    existing.update(copy.deepcopy(item))
                    out.append(copy.deepcopy(existing))
            return FakeResponse(out)

        if self.op == "update":
            updated = []
            for row in rows:
                if self._matches(row):
                    row.update(copy.deepcopy(self.payload))
                    updated.append(copy.deepcopy(row))
            return FakeResponse(updated)

        if self.op == "delete":
            deleted = [r for r in rows if self._matches(r)]
            self.db.tables[self.table_name] = [r for r in rows if not self._matches(r)]
            for child, column in CASCADES.get(self.table_name, []):
                parent_ids = {r["id"] for r in deleted}
                self.db.tables[child] = [r for r in self.db.tables.get(child, []) if r.get(column) not in parent_ids]
            return FakeResponse(deleted)

        raise AssertionError(f"unsupported op {self.op}")


class FakeRpc:
    def __init__(self, db, name, params):
        self.db = db
        self.name = name
        self.params = params

    def execute(self):
        self.db.calls.append((self.name, "rpc"))
        if (self.name, "rpc") in self.db.failures:
            raise FakeAPIError(f"rpc {self.name} failed")
        handler = getattr(self.db, f"_rpc_{self.name}")
        # Functions run as one transaction: on error nothing is kept
        snapshot = copy.deepcopy(self.db.tables)
        try:
            return FakeResponse(handler(**self.params))
        except Exception:
            self.db.tables = snapshot
            raise


class FakeAuth:
    def __init__(self):
        self.tokens = {}

    def get_user(self, jwt=None):
        user = self.tokens.get(jwt)
        if user is None:
            raise FakeAPIError("invalid JWT")
        return SimpleNamespace(user=user)


class FakeSupabase:
    def __init__(self):
        self.tables = {}
        self.calls = []
        self.failures = set()
        self.auth = FakeAuth()
        self._clock = itertools.count()
        self._epoch = datetime(2026, 1, 1, tzinfo=timezone.utc)

    def now(self) -> str:
        return (self._epoch + timedelta(seconds=next(self._clock))).isoformat()

    def table(self, name):
        return FakeQuery(self, name)

    def rpc(self, name, params):
        return FakeRpc(self, name, params)

    def with_defaults(self, table, item):
        row = copy.deepcopy(item)
        if table in ("permission_bundles", "member_permission_overrides", "delegation_scopes",
                     "delegation_audit_log", "tenant_members"):
            row.setdefault("id", str(uuid.uuid4()))
        if table == "permission_bundles":
            row.setdefault("description", None)
            row.setdefault("is_system", False)
            row.setdefault("created_by", None)
            row.setdefault("created_at", self.now())
            row.setdefault("updated_at", None)
        elif table == "membership_bundle_assignments":
            row.setdefault("assigned_by", None)
            row.setdefault("assigned_at", self.now())
        elif table == "member_permission_overrides":
            row.setdefault("granted_at", self.now())
        elif table in ("delegation_scopes", "delegation_audit_log", "tenant_members"):
            row.setdefault("created_at", self.now())
        if table == "tenant_members":
            row.setdefault("is_active", True)
        return row

    def check_unique(self, table, row):
        for columns in UNIQUE_KEYS.get(table, []):
            for other in self.tables.get(table, []):
                if other is not row and all(other.get(c) == row.get(c) for c in columns):
                    raise FakeAPIError(f"duplicate key value violates unique constraint on {table}{columns}")
        if table == "bundle_permissions":
            known = {d["key"] for d in self.tables.get("permission_definitions", [])}
            if row["permission_key"] not in known:
                raise FakeAPIError("violates foreign key constraint bundle_permissions_permission_key_fkey")

    # Postgres functions from the migration

    def _rpc_create_permission_bundle(self, p_tenant_id, p_name, p_description, p_created_by, p_permission_keys):
        bundle = FakeQuery(self, "permission_bundles").insert({
            "tenant_id": p_tenant_id,
            "name": p_name,
            "description": p_description,
            "created_by": p_created_by,
        }).execute().data[0]
        if p_permission_keys:
            FakeQuery(self, "bundle_permissions").upsert(
                [{"bundle_id": bundle["id"], "permission_key": k} for k in p_permission_keys],
                on_conflict="bundle_id,permission_key",
                ignore_duplicates=True
            ).execute()
        return [bundle]

    def _rpc_replace_bundle_permissions(self, p_bundle_id, p_permission_keys):
        FakeQuery(self, "bundle_permissions").delete().eq("bundle_id", p_bundle_id).execute()
        if p_permission_keys:
            FakeQuery(self, "bundle_permissions").upsert(
                [{"bundle_id": p_bundle_id, "permission_key": k} for k in p_permission_keys],
                on_conflict="bundle_id,permission_key",
                ignore_duplicates=True
            ).execute()
        return FakeQuery(self, "bundle_permissions").select("*").eq("bundle_id", p_bundle_id).execute().data

    # Seeding helpers

    def add_member(self, role: str, tenant_id: str = TENANT_ID, user_id: str = None, is_active: bool = True) -> Membership:
        row = FakeQuery(self, "tenant_members").insert({
            "tenant_id": tenant_id,
            "user_id": user_id or f"user-{uuid.uuid4().hex[:8]}",
            "role": role,
            "is_active": is_active,
        }).execute().data[0]
        return Membership(**row)

    def add_token(self, token: str, membership: Membership):
        self.auth.tokens[token] = SimpleNamespace(
            id=membership.user_id,
            email=f"{membership.user_id}@example.com",
            user_metadata={},
            app_metadata={},
        )

    def rows(self, table):
        return self.tables.get(table, [])


@pytest.fixture
def supabase():
    db = FakeSupabase()
    seed_definitions(db)
    return db


@pytest.fixture
def registry(supabase):
    registry = init_definition_registry(loader=supabase_definition_loader(supabase), ttl_seconds=300)
    yield registry
    reset_definition_registry()


@pytest.fixture(autouse=True)
def _clear_auth_cache():
    clear_auth_cache()
    yield
    clear_auth_cache()


@pytest.fixture
def owner(supabase):
    return supabase.add_member("owner")


@pytest.fixture
def member(supabase):
    return supabase.add_member("vet")


@pytest.fixture
def make_registry():
    """Build a standalone registry from plain definition dicts and a controllable clock"""
    def _make(definitions, ttl_seconds=300, clock=None):
        state = {"definitions": list(definitions), "loads": 0}

        def loader():
            state["loads"] += 1
            return list(state["definitions"])

        registry = DefinitionRegistry(loader, ttl_seconds=ttl_seconds, clock=clock or (lambda: 0.0))
        return registry, state
    return _make


def definition(key, is_delegatable=True):
    module, resource, action = key.split(".")
    return {
        "key": key,
        "module": module,
        "resource": resource,
        "action": action,
        "display_name": f"{action} {resource}",
        "is_delegatable": is_delegatable,
    }
