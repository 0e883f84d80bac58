"""Mesh Connect integration.

Usage:
    from src.core.mesh import MeshClient

    async with MeshClient() as mesh:
        networks = await mesh.get_networks()
"""

from src.core.mesh.client import MeshClient
from src.core.mesh.endpoints import Endpoint, TokenPlacement

__all__ = [
    "MeshClient",
    "Endpoint",
    "TokenPlacement",
]
