"""Auth store API routes (demo, in-memory)."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from src.api.deps import get_auth_store
from src.core.auth import DEFAULT_PROVIDER_TYPE, AuthStore, StoredAuth
from src.core.errors import ValidationError

router = APIRouter()


class StoreAuthRequest(BaseModel):
    userId: Optional[str] = None
    accessToken: Any = None
    providerType: Optional[str] = None
    accountId: Optional[str] = None
    integrationId: Optional[str] = None
    rawPayload: Any = None


@router.post("/store")
def store_auth(
    body: StoreAuthRequest,
    store: AuthStore = Depends(get_auth_store),
):
    """Keep a link credential for the lifetime of the process."""
    if not body.userId or not body.accessToken:
        raise ValidationError("userId and accessToken are required")

    store.save(
        StoredAuth(
            user_id=body.userId,
            provider_type=body.providerType or DEFAULT_PROVIDER_TYPE,
            access_token=body.accessToken,
            account_id=body.accountId,
            integration_id=body.integrationId,
            raw_payload=body.rawPayload,
        )
    )
    return {"ok": True}


@router.get("/store/{user_id}")
def get_stored_auth(
    user_id: str,
    providerType: Optional[str] = None,
    store: AuthStore = Depends(get_auth_store),
):
    """Summary of a stored credential (never the token)."""
    entry = store.get(user_id, providerType) if providerType else store.get_any(user_id)
    if not entry:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No stored auth for {user_id}",
        )
    return entry.summary()
