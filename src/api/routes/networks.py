"""Managed transfer networks and integrations (passthrough)."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from src.api.deps import get_mesh_client
from src.core.mesh.client import MeshClient

router = APIRouter()


@router.get("/networks")
async def list_networks(client: MeshClient = Depends(get_mesh_client)):
    """Networks supported by Managed Transfers."""
    return await client.get_networks()


@router.get("/integrations")
async def list_integrations(client: MeshClient = Depends(get_mesh_client)):
    """Integrations supported by Managed Transfers, with their networks and tokens."""
    return await client.get_integrations()
