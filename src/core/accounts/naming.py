"""Display names for linked accounts."""

from __future__ import annotations

from typing import Any, Optional

# Exact broker type -> display name. Sandbox types show the clean name.
PROVIDER_NAMES = {
    "coinbase": "Coinbase",
    "sandboxCoinbase": "Coinbase",
    "metamask": "MetaMask",
    "wallet": "Wallet",
    "binance": "Binance",
    "sandboxBinance": "Binance",
}


def display_name(broker_type: Optional[str], payload: Any = None) -> str:
    """Map a broker type (and optional payload) to a human-readable name.

    Order: ``brokerName`` from the payload, a bare string payload, other
    payload name fields, then the broker type itself.
    """
    if isinstance(payload, str) and payload:
        return payload

    if isinstance(payload, dict):
        if payload.get("brokerName"):
            return payload["brokerName"]

        account = payload.get("account") if isinstance(payload.get("account"), dict) else {}
        integration = payload.get("integration") if isinstance(payload.get("integration"), dict) else {}
        name = (
            payload.get("integrationName")
            or payload.get("name")
            or account.get("accountName")
            or integration.get("name")
            or account.get("integrationName")
        )
        if name:
            return name

    if not broker_type:
        return "Unknown"

    lower = broker_type.lower()
    if "coinbase" in lower:
        return "Coinbase"
    if "metamask" in lower or "defiwallet" in lower:
        return "MetaMask"

    if broker_type in PROVIDER_NAMES:
        return PROVIDER_NAMES[broker_type]

    for key, value in PROVIDER_NAMES.items():
        if key.lower() in lower:
            return value

    return broker_type[0].upper() + broker_type[1:]
