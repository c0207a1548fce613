import asyncio
import json
from collections import Counter
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from permissio import Permissio

TOKEN = "permis_key_test"


class FakeStore:
    """In-memory authorization store served through httpx.MockTransport.

    Counts calls per endpoint so tests can assert which collaborators
    a check actually reached.
    """

    def __init__(
        self,
        roles: list[dict[str, Any]] | None = None,
        assignments: list[dict[str, Any]] | None = None,
        scope: dict[str, Any] | None = None,
    ) -> None:
        self.roles = roles or []
        self.assignments = assignments or []
        self.scope = scope or {"organization_id": "org-1", "project_id": "proj-1", "environment_id": "env-1"}
        self.calls: Counter[str] = Counter()
        self.requests: list[httpx.Request] = []
        self.failing: set[str] = set()
        self.delays: dict[str, float] = {}
        self.wrap_lists = False
        self.users: dict[str, dict[str, Any]] = {}

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def _list(self, items: list[dict[str, Any]]) -> httpx.Response:
        if self.wrap_lists:
            return httpx.Response(
                200,
                json={"data": items, "page": 1, "perPage": 100, "total": len(items), "totalPages": 1},
            )
        return httpx.Response(200, json=items)

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        params = request.url.params

        if path == "/v1/api-key/scope":
            endpoint = "scope"
        elif "/roles" in path:
            endpoint = "roles"
        elif "/role_assignments" in path:
            endpoint = "role_assignments"
        elif "/users" in path:
            endpoint = "users"
        else:
            return httpx.Response(404, json={"message": f"Unknown path {path}"})

        self.calls[endpoint] += 1
        # Yield so concurrent callers interleave
        await asyncio.sleep(self.delays.get(params.get("user", ""), 0))

        if endpoint in self.failing:
            return httpx.Response(503, json={"message": f"{endpoint} unavailable", "code": "UNAVAILABLE"})

        if endpoint == "scope":
            return httpx.Response(200, json=self.scope)
        if endpoint == "roles":
            return self._list(self.roles)
        if endpoint == "users":
            user = json.loads(request.content)
            self.users[user["key"]] = user
            return httpx.Response(200, json=user)

        if request.method == "POST":
            assignment = json.loads(request.content)
            self.assignments.append(assignment)
            return httpx.Response(200, json=assignment)

        matching = [
            a
            for a in self.assignments
            if all(a.get(field) == params[field] for field in ("user", "tenant", "resource") if field in params)
        ]
        return self._list(matching)


EDITOR = {"key": "editor", "permissions": ["document:read", "document:write"]}
ADMIN = {"key": "admin", "extends": ["editor"], "permissions": ["document:delete"]}


@pytest.fixture
def store() -> FakeStore:
    return FakeStore(roles=[EDITOR, ADMIN], assignments=[{"user": "u1", "role": "admin"}])


@pytest.fixture
def make_client(store: FakeStore) -> Callable[..., Permissio]:
    def factory(**options: Any) -> Permissio:
        options.setdefault("project_id", "proj-1")
        options.setdefault("environment_id", "env-1")
        return Permissio(TOKEN, transport=store.transport(), **options)

    return factory


@pytest.fixture
def client(make_client: Callable[..., Permissio]) -> Permissio:
    return make_client()
