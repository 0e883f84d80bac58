"""Deposit address lookup for linked accounts.

DeFi wallets report their addresses through the address list endpoint; every
other broker type is asked for the address of one symbol/network.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from src.core.credentials import EVM_ADDRESS_RE
from src.core.errors import MeshfolioError, NotFoundError, ProviderError
from src.core.mesh.client import MeshClient

logger = logging.getLogger(__name__)

LIST_ADDRESS_TYPES = ("deFiWallet", "metamask")

DEFAULT_SYMBOL = "ETH"

NO_ADDRESSES_MESSAGE = (
    "No wallet addresses found for this DeFi wallet. The wallet may not have any addresses yet, "
    "or addresses may be available in holdings distribution when positions exist."
)


def _address_entries(response: Any) -> List[Any]:
    if not isinstance(response, dict):
        return []
    content = response.get("content") if isinstance(response.get("content"), dict) else {}
    for candidate in (content.get("addresses"), content.get("items"), response.get("addresses"), response.get("items")):
        if isinstance(candidate, list) and candidate:
            return candidate
    return []


def _entry_address(entry: Any) -> Optional[str]:
    value = entry.get("address") if isinstance(entry, dict) else entry
    return value if isinstance(value, str) and value else None


def pick_address(response: Any) -> Optional[Dict[str, Any]]:
    """First EVM address of an address list response, else the first address at all."""
    entries = _address_entries(response)
    chosen = next((e for e in entries if EVM_ADDRESS_RE.match(_entry_address(e) or "")), None)
    if chosen is None:
        chosen = next((e for e in entries if _entry_address(e)), None)
    if chosen is None:
        return None
    meta = chosen if isinstance(chosen, dict) else {}
    return {
        "address": _entry_address(chosen),
        "networkId": meta.get("networkId"),
        "symbol": meta.get("symbol"),
    }


async def resolve_deposit_address(
    client: MeshClient,
    token: str,
    broker_type: str,
    symbol: Optional[str] = None,
    network_id: Optional[str] = None,
) -> Any:
    """Deposit address response for one linked account.

    Returns ``{"content": {"address", "networkId", "symbol"}, "status": "ok"}``
    for list-style wallets and the Mesh response unchanged otherwise.

    Raises:
        NotFoundError: a list-style wallet reported no addresses
    """
    if broker_type in LIST_ADDRESS_TYPES:
        try:
            listed = await client.list_deposit_addresses(token, broker_type)
        except ProviderError as e:
            raise MeshfolioError(f"Failed to fetch wallet addresses: {e.message}") from e
        picked = pick_address(listed)
        if picked is None:
            logger.warning(f"No addresses in list response for {broker_type}")
            raise NotFoundError(NO_ADDRESSES_MESSAGE)
        return {"content": picked, "status": "ok"}

    return await client.get_transfer_address(
        token,
        broker_type,
        symbol=symbol or DEFAULT_SYMBOL,
        network_id=network_id,
    )


def address_of(response: Any) -> Optional[str]:
    """The address inside a deposit address response, if any."""
    if not isinstance(response, dict):
        return None
    content = response.get("content")
    if isinstance(content, dict) and isinstance(content.get("address"), str):
        return content["address"]
    address = response.get("address")
    return address if isinstance(address, str) else None
