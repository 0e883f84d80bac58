"""Link token API route."""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from src.api.deps import get_mesh_client
from src.api.limiter import limiter
from src.config import get_settings
from src.core.errors import ValidationError
from src.core.mesh.client import MeshClient

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter()

MAX_USER_ID_LENGTH = 300


class LinkTokenRequest(BaseModel):
    """Body of a link token request.

    Optional fields are typed loosely here and forwarded only when they have
    the type Mesh expects.
    """

    userId: Any = None
    integrationId: Any = None
    configurationId: Any = None
    restrictMultipleAccounts: Any = None
    disableApiKeyGeneration: Any = None
    subClientId: Any = None
    transferOptions: Any = None
    verifyWalletOptions: Any = None

    def to_payload(self) -> Dict[str, Any]:
        """Mesh link token payload.

        Raises:
            ValidationError: userId missing or not 1-300 characters
        """
        user_id = self.userId
        if not isinstance(user_id, str) or not 0 < len(user_id) <= MAX_USER_ID_LENGTH:
            raise ValidationError("userId is required and must be 1-300 characters")

        payload: Dict[str, Any] = {"userId": user_id}
        if isinstance(self.integrationId, str) and self.integrationId.strip():
            payload["integrationId"] = self.integrationId.strip()
        for name in ("configurationId", "subClientId"):
            value = getattr(self, name)
            if isinstance(value, str) and value:
                payload[name] = value
        for name in ("restrictMultipleAccounts", "disableApiKeyGeneration"):
            value = getattr(self, name)
            if isinstance(value, bool):
                payload[name] = value
        for name in ("transferOptions", "verifyWalletOptions"):
            value = getattr(self, name)
            if isinstance(value, dict) and value:
                payload[name] = value
        return payload


class LinkTokenResponse(BaseModel):
    linkToken: str


@router.post("/linktoken", response_model=LinkTokenResponse)
@limiter.limit(settings.linktoken_rate_limit)
async def create_link_token(
    request: Request,
    body: Optional[LinkTokenRequest] = None,
    client: MeshClient = Depends(get_mesh_client),
):
    """Create a Mesh link token to open the account linking widget."""
    payload = (body or LinkTokenRequest()).to_payload()
    link_token = await client.create_link_token(payload)
    logger.info(f"Link token created for {payload['userId']}")
    return LinkTokenResponse(linkToken=link_token)
