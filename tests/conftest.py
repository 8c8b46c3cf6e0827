"""Shared fixtures: an in-memory stand-in for the hosted platform."""

import json
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Optional

import httpx
import pytest

from storefront_server.app import Storefront
from storefront_server.auth import AuthManager
from storefront_server.config import Settings
from storefront_server.models import Product
from storefront_server.platform_client import PlatformClient
from storefront_server.storage import MemoryStorage

BASE_URL = "https://example.supabase.co"
ANON_KEY = "anon-key"
OBJECT_ACCEPT = "application/vnd.pgrst.object+json"
EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_product(product_id: str = "p1", price: str = "10.00", **fields: Any) -> Product:
    return Product(id=product_id, name=fields.pop("name", f"Product {product_id}"), price=Decimal(price), **fields)


def _format(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    return str(value)


class FakePlatform:
    """Serves the data API and auth API from in-memory tables."""

    def __init__(self) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {
            "profiles": [],
            "categories": [],
            "products": [],
            "orders": [],
            "order_items": [],
            "addresses": [],
        }
        self.users: dict[str, dict[str, Any]] = {}
        self.tokens: dict[str, str] = {}
        self.requests: list[httpx.Request] = []
        self.failures: set[tuple[str, str]] = set()
        self.confirm_signups = False
        self._counter = 0

    # Seeding helpers

    def _next(self) -> int:
        self._counter += 1
        return self._counter

    def _timestamp(self) -> str:
        return (EPOCH + timedelta(minutes=self._next())).isoformat()

    def add_row(self, table: str, **row: Any) -> dict[str, Any]:
        row.setdefault("id", f"{table[:3]}-{self._next()}")
        row.setdefault("created_at", self._timestamp())
        self.tables[table].append(row)
        return row

    def add_user(
        self,
        email: str = "ann@example.com",
        password: str = "secret",
        role: str = "customer",
        full_name: str = "Ann",
        confirmed: bool = True,
    ) -> str:
        user_id = f"user-{self._next()}"
        self.users[email] = {"id": user_id, "email": email, "password": password, "confirmed": confirmed}
        self.add_row("profiles", id=user_id, email=email, full_name=full_name, role=role)
        return user_id

    def add_category(self, name: str = "Shoes", slug: str = "shoes", **row: Any) -> dict[str, Any]:
        return self.add_row("categories", name=name, slug=slug, **row)

    def add_product(self, name: str = "Sneaker", price: str = "10.00", **row: Any) -> dict[str, Any]:
        row.setdefault("is_active", True)
        row.setdefault("inventory_count", 5)
        row.setdefault("images", None)
        return self.add_row("products", name=name, price=price, **row)

    def fail(self, method: str, table: str) -> None:
        self.failures.add((method, table))

    # Transport

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path.startswith("/auth/v1/"):
            return self._auth(request, path[len("/auth/v1/"):])
        if path.startswith("/rest/v1/"):
            return self._rest(request, path[len("/rest/v1/"):])
        return httpx.Response(404, json={"message": "no route"})

    def _token(self, request: httpx.Request) -> Optional[str]:
        header = request.headers.get("authorization", "")
        return header[len("Bearer "):] if header.startswith("Bearer ") else None

    def _session(self, user: dict[str, Any]) -> dict[str, Any]:
        token = f"access-{user['id']}-{self._next()}"
        self.tokens[token] = user["id"]
        return {
            "access_token": token,
            "refresh_token": f"refresh-{user['id']}",
            "token_type": "bearer",
            "user": {"id": user["id"], "email": user["email"]},
        }

    def _auth(self, request: httpx.Request, endpoint: str) -> httpx.Response:
        body = json.loads(request.content) if request.content else {}

        if endpoint == "token":
            user = self.users.get(body.get("email"))
            if user is None or user["password"] != body.get("password"):
                return httpx.Response(
                    400,
                    json={"code": 400, "error_code": "invalid_credentials", "msg": "Invalid login credentials"},
                )
            if not user["confirmed"]:
                return httpx.Response(
                    400,
                    json={"code": 400, "error_code": "email_not_confirmed", "msg": "Email not confirmed"},
                )
            return httpx.Response(200, json=self._session(user))

        if endpoint == "signup":
            email = body["email"]
            if email in self.users:
                return httpx.Response(
                    422,
                    json={"code": 422, "error_code": "user_already_exists", "msg": "User already registered"},
                )
            user = {
                "id": f"user-{self._next()}",
                "email": email,
                "password": body["password"],
                "confirmed": not self.confirm_signups,
            }
            self.users[email] = user
            if self.confirm_signups:
                return httpx.Response(200, json={"id": user["id"], "email": email})
            return httpx.Response(200, json=self._session(user))

        if endpoint == "logout":
            self.tokens.pop(self._token(request), None)
            return httpx.Response(204)

        if endpoint == "user":
            user_id = self.tokens.get(self._token(request))
            for user in self.users.values():
                if user["id"] == user_id:
                    return httpx.Response(200, json={"id": user["id"], "email": user["email"]})
            return httpx.Response(
                401,
                json={"code": 401, "error_code": "bad_jwt", "msg": "invalid JWT: unable to parse or verify signature"},
            )

        return httpx.Response(404, json={"msg": "not found"})

    def _rest(self, request: httpx.Request, table: str) -> httpx.Response:
        if (request.method, table) in self.failures:
            return httpx.Response(500, json={"code": "XX000", "message": f"simulated failure on {table}"})

        select = "*"
        ordering: list[str] = []
        limit: Optional[int] = None
        filters: list[tuple[str, str, str]] = []
        for key, value in request.url.params.multi_items():
            if key == "select":
                select = value
            elif key == "order":
                ordering = value.split(",")
            elif key == "limit":
                limit = int(value)
            else:
                op, _, operand = value.partition(".")
                filters.append((key, op, operand))

        def matches(row: dict[str, Any]) -> bool:
            for column, op, operand in filters:
                equal = _format(row.get(column)) == operand
                if (op == "eq" and not equal) or (op == "neq" and equal):
                    return False
            return True

        rows = self.tables[table]
        body = json.loads(request.content) if request.content else None

        if request.method == "GET":
            result = [row for row in rows if matches(row)]
            for term in reversed(ordering):
                column, _, direction = term.partition(".")
                result.sort(key=lambda r: _format(r.get(column)), reverse=direction == "desc")
            if limit is not None:
                result = result[:limit]
        elif request.method == "POST":
            result = []
            for values in body:
                error = self._check_unique(table, values)
                if error is not None:
                    return error
                result.append(self._insert(table, values))
        elif request.method == "PATCH":
            result = [row for row in rows if matches(row)]
            for row in result:
                error = self._check_unique(table, body, exclude=row["id"])
                if error is not None:
                    return error
            for row in result:
                row.update(body)
        elif request.method == "DELETE":
            result = [row for row in rows if matches(row)]
            self.tables[table] = [row for row in rows if not matches(row)]
        else:
            return httpx.Response(405)

        result = [self._embed(table, dict(row), select) for row in result]

        if request.headers.get("accept") == OBJECT_ACCEPT:
            if len(result) != 1:
                return httpx.Response(
                    406,
                    json={
                        "code": "PGRST116",
                        "message": "JSON object requested, multiple (or no) rows returned",
                        "details": f"The result contains {len(result)} rows",
                        "hint": None,
                    },
                )
            return httpx.Response(200 if request.method == "GET" else 201, json=result[0])
        return httpx.Response(200 if request.method == "GET" else 201, json=result)

    def _check_unique(
        self, table: str, values: dict[str, Any], exclude: Optional[str] = None
    ) -> Optional[httpx.Response]:
        if table != "categories" or "slug" not in values:
            return None
        for row in self.tables["categories"]:
            if row["slug"] == values["slug"] and row["id"] != exclude:
                return httpx.Response(
                    409,
                    json={
                        "code": "23505",
                        "message": 'duplicate key value violates unique constraint "categories_slug_key"',
                        "details": f"Key (slug)=({values['slug']}) already exists.",
                        "hint": None,
                    },
                )
        return None

    def _insert(self, table: str, values: dict[str, Any]) -> dict[str, Any]:
        row = dict(values)
        if table == "orders":
            row.setdefault("order_number", f"ORD-20240101-{self._counter + 1:06d}")
            row.setdefault("status", "pending")
        if table == "addresses":
            row.setdefault("is_default", False)
        if table == "profiles":
            row.setdefault("role", "customer")
        return self.add_row(table, **row)

    def _find(self, table: str, row_id: Any) -> Optional[dict[str, Any]]:
        for row in self.tables[table]:
            if row["id"] == row_id:
                return dict(row)
        return None

    def _embed(self, table: str, row: dict[str, Any], select: str) -> dict[str, Any]:
        if table == "products" and "categories(" in select:
            row["categories"] = self._find("categories", row.get("category_id"))
        if table == "orders" and "order_items(" in select:
            items = [dict(item) for item in self.tables["order_items"] if item["order_id"] == row["id"]]
            if "products(" in select:
                for item in items:
                    item["products"] = self._find("products", item["product_id"])
            row["order_items"] = items
        return row


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "STOREFRONT_ACCESS_TOKEN",
        "STOREFRONT_REFRESH_TOKEN",
        "STOREFRONT_EMAIL",
        "STOREFRONT_PASSWORD",
        "STOREFRONT_SESSION_FILE",
        "STOREFRONT_STORAGE_FILE",
        "STOREFRONT_TIMEOUT",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def backend():
    return FakePlatform()


@pytest.fixture
def auth_manager(tmp_path):
    return AuthManager(str(tmp_path / "session.json"))


@pytest.fixture
def platform(backend, auth_manager):
    client = PlatformClient(BASE_URL, ANON_KEY, auth_manager, transport=httpx.MockTransport(backend.handle))
    yield client
    client.close()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        supabase_url=BASE_URL,
        supabase_anon_key=ANON_KEY,
        session_file=str(tmp_path / "session.json"),
        storage_file=str(tmp_path / "storage.json"),
    )


@pytest.fixture
def storefront(platform, auth_manager, storage, settings):
    return Storefront(platform, auth_manager, storage, settings)


@pytest.fixture
def customer(backend, storefront):
    """A signed-in customer."""
    user_id = backend.add_user("ann@example.com", "secret", role="customer", full_name="Ann")
    storefront.session.sign_in("ann@example.com", "secret")
    return user_id


@pytest.fixture
def admin(backend, storefront):
    """A signed-in admin."""
    user_id = backend.add_user("boss@example.com", "secret", role="admin", full_name="Boss")
    storefront.session.sign_in("boss@example.com", "secret")
    return user_id
