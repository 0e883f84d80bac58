"""Async Mesh Connect API client.

One method per remote operation, one HTTP request per method (except the
candidate-endpoint lookups for accounts and balances). Non-2xx responses raise
ProviderError with the status and raw body; 2xx JSON is returned unmodified.

Setup:
1. Create a Mesh account at https://dashboard.meshconnect.com/
2. Copy the client id and secret (sandbox keys start with ``sk_sand_``)
3. Set MESH_API_URL, MESH_CLIENT_ID, MESH_CLIENT_SECRET in your .env
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Sequence

import httpx

from src.config import get_settings
from src.core.errors import ProviderError, ValidationError
from src.core.mesh import endpoints as ep
from src.core.mesh.endpoints import BODY_TOKEN_FIELD, NEXT_CANDIDATE_STATUSES, Endpoint, TokenPlacement

logger = logging.getLogger(__name__)


class MeshClient:
    """Mesh REST client over a shared ``httpx.AsyncClient``."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.mesh_api_url).rstrip("/")
        self.client_id = client_id if client_id is not None else settings.mesh_client_id
        self.client_secret = client_secret if client_secret is not None else settings.mesh_client_secret
        self.timeout = timeout if timeout is not None else settings.http_timeout_seconds
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

        if not (self.base_url and self.client_id and self.client_secret):
            logger.warning("Mesh not configured - set MESH_API_URL, MESH_CLIENT_ID and MESH_CLIENT_SECRET")

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy initialization of the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=self._default_headers(),
                transport=self._transport,
            )
        return self._client

    def _default_headers(self) -> Dict[str, str]:
        """Service identity headers sent on every request."""
        return {
            "Accept": "application/json",
            "X-Client-Id": self.client_id,
            "X-Client-Secret": self.client_secret,
        }

    @property
    def is_sandbox_key(self) -> bool:
        return self.client_secret.startswith("sk_sand_")

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "MeshClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Request plumbing
    # ------------------------------------------------------------------

    async def _call(
        self,
        endpoint: Endpoint,
        token: Optional[str] = None,
        json_data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Issue exactly one request for ``endpoint``."""
        headers: Dict[str, str] = {}
        body = dict(json_data) if json_data is not None else None

        if endpoint.token is not TokenPlacement.NONE:
            if not token:
                raise ValidationError(f"Mesh {endpoint.step} requires an auth token")
            if endpoint.token is TokenPlacement.HEADER:
                headers["Authorization"] = f"Bearer {token}"
            else:
                body = {BODY_TOKEN_FIELD: token, **(body or {})}

        if body is not None:
            headers["Content-Type"] = "application/json"

        logger.debug(f"Mesh {endpoint.method} {endpoint.path}")
        response = await self.client.request(
            endpoint.method,
            endpoint.path,
            json=body,
            params=params,
            headers=headers,
        )
        return self._handle_response(endpoint, response)

    def _handle_response(self, endpoint: Endpoint, response: httpx.Response) -> Any:
        """Return parsed JSON for 2xx, raise ProviderError otherwise."""
        if not response.is_success:
            body = response.text or response.reason_phrase
            raise ProviderError(endpoint.step, response.status_code, body)

        try:
            return response.json()
        except ValueError:
            return {"raw": response.text}

    async def _call_first(
        self,
        candidates: Sequence[Endpoint],
        token: Optional[str] = None,
        json_data: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Try candidate endpoints in order; 404/405 moves on, other errors are final."""
        last_error: Optional[ProviderError] = None
        for endpoint in candidates:
            try:
                return await self._call(endpoint, token=token, json_data=json_data)
            except ProviderError as e:
                if e.status not in NEXT_CANDIDATE_STATUSES:
                    raise
                logger.info(f"Mesh {endpoint.path} answered {e.status}, trying next candidate")
                last_error = e
        assert last_error is not None
        raise last_error

    # ------------------------------------------------------------------
    # Link
    # ------------------------------------------------------------------

    async def create_link_token(self, payload: Dict[str, Any]) -> str:
        """Create a link token used to open the Mesh Link widget."""
        logger.info(
            f"Creating linkToken (api={self.base_url}, client={self.client_id}, "
            f"secret={self.client_secret[:10]}..., sandbox={self.is_sandbox_key})"
        )
        try:
            data = await self._call(ep.LINK_TOKEN, json_data=payload)
        except ProviderError as e:
            if e.status == 401 and self.is_sandbox_key and "integration-api.meshconnect.com" in self.base_url:
                raise ProviderError(
                    ep.LINK_TOKEN.step,
                    401,
                    "Mismatch: sandbox keys (sk_sand_...) used with the production URL. "
                    "Get production keys from Mesh Dashboard > Account > API keys > Production",
                ) from e
            raise

        link_token = (
            data.get("linkToken")
            or (data.get("content") or {}).get("linkToken")
            or (data.get("data") or {}).get("linkToken")
        )
        if not link_token:
            raise ProviderError(ep.LINK_TOKEN.step, 502, "Mesh did not return a linkToken")
        return link_token

    async def refresh_token(self, refresh_token: str) -> Any:
        return await self._call(ep.TOKEN_REFRESH, json_data={"refreshToken": refresh_token})

    # ------------------------------------------------------------------
    # Managed transfers
    # ------------------------------------------------------------------

    async def get_networks(self) -> Any:
        return await self._call(ep.NETWORKS)

    async def get_integrations(self) -> Any:
        return await self._call(ep.INTEGRATIONS)

    async def get_managed_tokens(self, network_id: Optional[str] = None) -> Any:
        return await self._call(ep.MANAGED_TOKENS, json_data={"networkId": network_id} if network_id else {})

    async def configure_transfer(self, from_auth_token: str, params: Dict[str, Any]) -> Any:
        """Configure a managed transfer. ``params`` must carry amount or amountInFiat."""
        return await self._call(ep.CONFIGURE, token=from_auth_token, json_data=params)

    async def preview_transfer(self, from_auth_token: str, params: Dict[str, Any]) -> Any:
        """Preview by ``{"transferId": ...}`` or by the full configure parameters."""
        return await self._call(ep.PREVIEW, token=from_auth_token, json_data=params)

    async def execute_transfer(self, from_auth_token: str, transfer_id: str, mfa_code: Optional[str] = None) -> Any:
        body: Dict[str, Any] = {"transferId": transfer_id}
        if mfa_code:
            body["mfaCode"] = mfa_code
        return await self._call(ep.EXECUTE, token=from_auth_token, json_data=body)

    async def get_transfer_address(
        self,
        auth_token: str,
        broker_type: str,
        symbol: str = "ETH",
        network_id: Optional[str] = None,
        account_id: Optional[str] = None,
    ) -> Any:
        body: Dict[str, Any] = {"type": broker_type, "symbol": symbol}
        if network_id:
            body["networkId"] = network_id
        if account_id:
            body["accountId"] = account_id
        return await self._call(ep.TRANSFER_ADDRESS, token=auth_token, json_data=body)

    async def list_deposit_addresses(self, auth_token: str, broker_type: str) -> Any:
        return await self._call(ep.DEPOSIT_ADDRESSES, token=auth_token, json_data={"type": broker_type})

    async def get_mesh_transfers(self, params: Optional[Dict[str, Any]] = None) -> Any:
        """Transfers initiated through Mesh for this client (filters/pagination as query)."""
        return await self._call(ep.MESH_TRANSFERS, params=params or None)

    async def get_transfers_list(self, auth_token: str) -> Any:
        return await self._call(ep.TRANSFERS_LIST, token=auth_token, json_data={})

    async def get_transfer_details(self, auth_token: str, transfer_id: str) -> Any:
        return await self._call(ep.TRANSFER_DETAILS, token=auth_token, json_data={"transferId": transfer_id})

    # ------------------------------------------------------------------
    # Accounts, holdings, balances
    # ------------------------------------------------------------------

    async def get_accounts(self, auth_token: str) -> Any:
        return await self._call_first(ep.ACCOUNTS, token=auth_token)

    async def get_holdings(
        self,
        auth_token: str,
        broker_type: Optional[str] = None,
        account_id: Optional[str] = None,
    ) -> Any:
        body: Dict[str, Any] = {}
        if broker_type:
            body["type"] = broker_type
        if account_id:
            body["accountId"] = account_id
        return await self._call(ep.HOLDINGS, token=auth_token, json_data=body)

    async def get_portfolio_holdings(self, auth_token: str) -> Any:
        return await self._call(ep.PORTFOLIO_HOLDINGS, token=auth_token, json_data={})

    async def get_balance(self, auth_token: str, account_id: str, symbol: Optional[str] = None) -> Any:
        """Balance for one account; falls back to the portfolio balance endpoint."""
        body: Dict[str, Any] = {"accountId": account_id}
        if symbol:
            body["symbol"] = symbol
        return await self._call_first(ep.BALANCE, token=auth_token, json_data=body)

    async def get_account_status(self, auth_token: str) -> Any:
        return await self._call(ep.ACCOUNT_STATUS, token=auth_token)
