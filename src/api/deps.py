"""FastAPI dependencies."""

from __future__ import annotations

from typing import AsyncGenerator

from src.config import get_settings
from src.core.auth.store import AuthStore
from src.core.mesh.client import MeshClient

settings = get_settings()

# One store per process
_auth_store = AuthStore()


async def get_mesh_client() -> AsyncGenerator[MeshClient, None]:
    """Yield a Mesh client for the request and close it afterwards."""
    client = MeshClient(
        base_url=settings.mesh_api_url,
        client_id=settings.mesh_client_id,
        client_secret=settings.mesh_client_secret,
        timeout=settings.http_timeout_seconds,
    )
    try:
        yield client
    finally:
        await client.close()


def get_auth_store() -> AuthStore:
    """The process-wide auth store."""
    return _auth_store
