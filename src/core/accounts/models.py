"""Linked account data model."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

# Broker types whose holdings come from several per-network tokens
WALLET_BROKER_MARKERS = ("wallet", "metamask")


def is_wallet_type(broker_type: Optional[str]) -> bool:
    """True for wallet-style broker types (deFiWallet, metamask, wallet, ...)."""
    if not broker_type:
        return False
    lower = broker_type.lower()
    return any(marker in lower for marker in WALLET_BROKER_MARKERS)


@dataclass
class LinkedAccount:
    """One connected exchange or wallet.

    ``account_id``, ``mesh_account_id`` and ``front_account_id`` are alternate
    names for the same entity.
    """

    account_id: str
    broker_type: str = "unknown"
    name: str = "Unknown"
    mesh_account_id: Optional[str] = None
    front_account_id: Optional[str] = None
    integration_id: Optional[str] = None
    broker_name: Optional[str] = None
    account_name: Optional[str] = None
    transfer_token: Optional[Any] = None  # fromAuthToken for Managed Transfers
    holdings_token: Optional[Any] = None  # integrationToken for holdings/balance
    network_tokens: List[Any] = field(default_factory=list)
    refresh_token: Optional[str] = None
    wallet_address: Optional[str] = None

    @property
    def ids(self) -> List[str]:
        """All known identifiers of this account."""
        return [i for i in (self.account_id, self.mesh_account_id, self.front_account_id) if i]

    @property
    def is_wallet(self) -> bool:
        return is_wallet_type(self.broker_type)

    def matches(self, account_id: Optional[str]) -> bool:
        """True if ``account_id`` is any of this account's identifiers."""
        return bool(account_id) and account_id in self.ids

    def shares_identity(self, other: "LinkedAccount") -> bool:
        return any(self.matches(i) for i in other.ids)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize with the camelCase keys used by the stored account list."""
        return {
            "accountId": self.account_id,
            "meshAccountId": self.mesh_account_id,
            "frontAccountId": self.front_account_id,
            "integrationId": self.integration_id,
            "providerType": self.broker_type,
            "brokerType": self.broker_type,
            "type": self.broker_type,
            "name": self.name,
            "brokerName": self.broker_name,
            "accountName": self.account_name,
            "fromAuthToken": self.transfer_token,
            "authToken": self.transfer_token,
            "integrationToken": self.holdings_token,
            "networkTokens": list(self.network_tokens),
            "refreshToken": self.refresh_token,
            "walletAddress": self.wallet_address,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LinkedAccount":
        """Build from a stored or client-supplied account dict.

        Accepts the loose key variants clients send (``id``, ``providerType``,
        ``accessToken``...). Token fields are kept raw; resolve them with
        ``src.core.credentials.account_tokens``.
        """
        mesh_id = data.get("meshAccountId")
        front_id = data.get("frontAccountId")
        account_id = data.get("accountId") or data.get("id") or mesh_id or front_id or ""
        broker_type = data.get("brokerType") or data.get("providerType") or data.get("type") or "unknown"

        transfer_token = data.get("fromAuthToken") or data.get("authToken") or data.get("accessToken")
        holdings_token = data.get("integrationToken") or transfer_token

        network_tokens = data.get("networkTokens") or data.get("tokens") or []
        if not isinstance(network_tokens, list):
            network_tokens = [network_tokens]

        return cls(
            account_id=str(account_id),
            broker_type=str(broker_type),
            name=data.get("name") or data.get("brokerName") or "Unknown",
            mesh_account_id=mesh_id,
            front_account_id=front_id,
            integration_id=data.get("integrationId"),
            broker_name=data.get("brokerName"),
            account_name=data.get("accountName"),
            transfer_token=transfer_token,
            holdings_token=holdings_token,
            network_tokens=network_tokens,
            refresh_token=data.get("refreshToken"),
            wallet_address=data.get("walletAddress"),
        )
