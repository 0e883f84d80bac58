"""Portfolio API route."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from src.api.deps import get_mesh_client
from src.core.accounts.models import LinkedAccount
from src.core.errors import ValidationError
from src.core.mesh.client import MeshClient
from src.core.portfolio import PortfolioAggregator

router = APIRouter()


class PortfolioRequest(BaseModel):
    """Portfolio request.

    ``connectedAccounts`` entries use the stored account shape; accounts
    without a token of their own use ``accessToken``.
    """

    accessToken: Any = None
    connectedAccounts: Optional[List[Dict[str, Any]]] = Field(default=None)


@router.post("/portfolio")
async def get_portfolio(
    body: PortfolioRequest,
    client: MeshClient = Depends(get_mesh_client),
):
    """Aggregated holdings and totals across the linked accounts."""
    if not body.accessToken:
        raise ValidationError("accessToken is required")

    aggregator = PortfolioAggregator(client)
    if body.connectedAccounts:
        accounts = []
        for data in body.connectedAccounts:
            account = LinkedAccount.from_dict(data)
            if not (account.transfer_token or account.holdings_token or account.network_tokens):
                account.transfer_token = body.accessToken
            accounts.append(account)
        summary = await aggregator.aggregate(accounts)
    else:
        summary = await aggregator.aggregate_token(body.accessToken)

    return summary.model_dump(by_alias=True)
