"""Pytest fixtures: a scripted Mesh API and a FastAPI TestClient wired to it."""

from __future__ import annotations

import json
from typing import Any, Callable, Dict, List, Union

import httpx
import pytest

from src.core.mesh.client import MeshClient

Handler = Callable[[httpx.Request], httpx.Response]


class MeshStub:
    """Answers Mesh requests from a path table and records every request.

    Paths with no entry answer 404, like an unknown Mesh route.
    """

    def __init__(self):
        self.routes: Dict[str, Union[Handler, tuple]] = {}
        self.requests: List[httpx.Request] = []

    def on(self, path: str, json_body: Any = None, status: int = 200, text: str = None, handler: Handler = None):
        self.routes[path] = handler if handler is not None else (status, json_body, text)
        return self

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, text="Not Found")
        if callable(route):
            return route(request)
        status, json_body, text = route
        if text is not None:
            return httpx.Response(status, text=text)
        return httpx.Response(status, json=json_body if json_body is not None else {})

    def client(self) -> MeshClient:
        return MeshClient(
            base_url="https://mesh.test",
            client_id="client-id",
            client_secret="sk_test_secret",
            transport=httpx.MockTransport(self),
        )

    def calls(self, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    @staticmethod
    def body(request: httpx.Request) -> Any:
        return json.loads(request.content) if request.content else None


@pytest.fixture
def mesh():
    return MeshStub()


@pytest.fixture
def api_client(mesh):
    """TestClient whose routes talk to ``mesh`` and a fresh auth store."""
    from fastapi.testclient import TestClient

    from src.api.app import app
    from src.api.deps import get_auth_store, get_mesh_client
    from src.core.auth import AuthStore

    store = AuthStore()

    async def override_mesh_client():
        client = mesh.client()
        try:
            yield client
        finally:
            await client.close()

    app.dependency_overrides[get_mesh_client] = override_mesh_client
    app.dependency_overrides[get_auth_store] = lambda: store
    try:
        yield TestClient(app, raise_server_exceptions=False)
    finally:
        app.dependency_overrides.clear()
