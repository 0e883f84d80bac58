"""Wallet / deposit address API route."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from src.api.deps import get_mesh_client
from src.core.addresses import resolve_deposit_address
from src.core.credentials import extract_token
from src.core.errors import ValidationError
from src.core.mesh.client import MeshClient

router = APIRouter()


class WalletAddressRequest(BaseModel):
    authToken: Any = None
    type: Optional[str] = None
    symbol: Optional[str] = None
    networkId: Optional[str] = None


@router.post("/wallet-address")
async def get_wallet_address(
    body: WalletAddressRequest,
    client: MeshClient = Depends(get_mesh_client),
):
    """Deposit address of a linked account, used as a transfer destination."""
    if not body.authToken or not body.type:
        raise ValidationError("Missing required fields: authToken, type")

    return await resolve_deposit_address(
        client,
        extract_token(body.authToken),
        body.type,
        symbol=body.symbol,
        network_id=body.networkId,
    )
