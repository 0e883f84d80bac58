"""Managed transfer and transfer history API routes."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from src.api.deps import get_mesh_client
from src.core.credentials import extract_token
from src.core.errors import ValidationError
from src.core.mesh.client import MeshClient
from src.core.transfers import TransferRequest, TransferWorkflow

logger = logging.getLogger(__name__)

router = APIRouter()


# Request Models

class ConfigureTransferBody(TransferRequest):
    """Transfer parameters plus the account's token bundle."""

    access_token: Any = None

    def transfer_request(self) -> TransferRequest:
        return TransferRequest(**self.model_dump(exclude={"access_token", "transfer_id", "mfa_code"}))

    def require(self) -> None:
        """Raise one ValidationError naming every missing field."""
        missing = [] if self.access_token else ["accessToken"]
        missing.extend(self.transfer_request().missing_fields())
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")


class PreviewTransferBody(ConfigureTransferBody):
    """Preview by ``transferId`` or by the full configure parameters."""

    transfer_id: Optional[str] = None


class ExecuteTransferBody(BaseModel):
    accessToken: Any = None
    transferId: Optional[str] = None
    mfaCode: Optional[str] = None


class TransfersListBody(BaseModel):
    fromAuthToken: Any = None
    authToken: Any = None
    type: Optional[str] = None
    brokerType: Optional[str] = None
    providerType: Optional[str] = None


class TransferDetailsBody(BaseModel):
    fromAuthToken: Any = None
    transferId: Optional[str] = None


# Managed transfer workflow

@router.post("/transfer/configure")
async def configure_transfer(
    body: ConfigureTransferBody,
    client: MeshClient = Depends(get_mesh_client),
):
    """Configure a transfer; returns the Mesh response with ``transferId`` injected."""
    body.require()
    workflow = TransferWorkflow(client, body.access_token)
    outcome = await workflow.configure(body.transfer_request())
    return outcome.to_response()


@router.post("/transfer/preview")
async def preview_transfer(
    body: PreviewTransferBody,
    client: MeshClient = Depends(get_mesh_client),
):
    """Preview a configured transfer."""
    if not body.access_token:
        raise ValidationError("Missing required fields: accessToken")
    if not body.transfer_id:
        body.require()

    workflow = TransferWorkflow(client, body.access_token, transfer_id=body.transfer_id)
    request = None if body.transfer_id else body.transfer_request()
    outcome = await workflow.preview(request=request)
    return outcome.to_response()


@router.post("/transfer/execute")
async def execute_transfer(
    body: ExecuteTransferBody,
    client: MeshClient = Depends(get_mesh_client),
):
    """Execute a previewed transfer. MFA prompts come back as 400 with ``mfaRequired``."""
    missing = [name for name in ("accessToken", "transferId") if not getattr(body, name)]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    workflow = TransferWorkflow(client, body.accessToken, transfer_id=body.transferId)
    outcome = await workflow.execute(mfa_code=body.mfaCode)
    return outcome.response


# Transfer history

@router.post("/transfers/list")
async def list_account_transfers(
    body: TransfersListBody,
    client: MeshClient = Depends(get_mesh_client),
):
    """Transfers of one linked account."""
    raw_token = body.fromAuthToken or body.authToken
    broker_type = (body.type or body.brokerType or body.providerType or "").strip()
    if not raw_token or not broker_type:
        raise ValidationError("fromAuthToken and type are required")
    return await client.get_transfers_list(extract_token(raw_token))


@router.post("/transfers/details")
async def transfer_details(
    body: TransferDetailsBody,
    client: MeshClient = Depends(get_mesh_client),
):
    """Details of one transfer."""
    if not body.fromAuthToken or not body.transferId:
        raise ValidationError("fromAuthToken and transferId are required")
    return await client.get_transfer_details(extract_token(body.fromAuthToken), body.transferId)


INT_PARAMS = ("count", "offset", "fromTimestamp", "toTimestamp")
FLOAT_PARAMS = ("minAmountInFiat", "maxAmountInFiat")
BOOL_PARAMS = ("descendingOrder", "isSandBox")
LIST_PARAMS = ("integrationIds", "statuses")
STRING_PARAMS = ("id", "clientTransactionId", "userId", "orderBy", "hash", "subClientId")


def parse_mesh_transfer_query(query) -> Dict[str, Any]:
    """Typed filter/pagination params from a query string multidict.

    Unknown keys are dropped. Booleans are true only for the literal ``true``.
    """
    params: Dict[str, Any] = {}
    for name in INT_PARAMS:
        if name in query:
            try:
                params[name] = int(query[name])
            except ValueError:
                raise ValidationError(f"{name} must be an integer")
    for name in FLOAT_PARAMS:
        if name in query:
            try:
                params[name] = float(query[name])
            except ValueError:
                raise ValidationError(f"{name} must be a number")
    for name in BOOL_PARAMS:
        if name in query:
            params[name] = query[name] == "true"
    for name in LIST_PARAMS:
        if name in query:
            params[name] = list(query.getlist(name))
    for name in STRING_PARAMS:
        if name in query:
            params[name] = query[name]
    return params


@router.get("/transfers/mesh")
async def list_mesh_transfers(
    request: Request,
    client: MeshClient = Depends(get_mesh_client),
):
    """Transfers initiated through Mesh, filtered by the query string."""
    params = parse_mesh_transfer_query(request.query_params)
    return await client.get_mesh_transfers(params)
