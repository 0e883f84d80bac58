"""Reshape Mesh holdings/balance/account responses into common shapes.

Exchanges, wallets and the sandbox all answer with slightly different JSON;
everything here tolerates missing keys and string-typed numbers.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from src.core.accounts.models import LinkedAccount, is_wallet_type
from src.core.accounts.naming import display_name
from src.core.credentials import normalize_wallet_address
from src.core.portfolio.models import SOURCE_EXCHANGE, SOURCE_WALLET, Holding

logger = logging.getLogger(__name__)

# Lists of positions inside a holdings response
POSITION_LIST_KEYS = ("cryptocurrencyPositions", "equityPositions", "holdings", "positions")

# Lists of balances inside a balance response
BALANCE_LIST_KEYS = ("balances", "items")

# Balances in these currencies are priced at 1
FIAT_SYMBOLS = {"USD", "EUR", "GBP", "CAD", "AUD"}


def to_number(value: Any) -> float:
    """Parse a provider number (float, int or numeric string), 0.0 when unusable."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _first_present(data: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if data.get(key) not in (None, ""):
            return data[key]
    return None


def _collect_lists(node: Any, keys: Iterable[str]) -> List[Dict[str, Any]]:
    if isinstance(node, list):
        return [item for item in node if isinstance(item, dict)]
    if not isinstance(node, dict):
        return []
    items: List[Dict[str, Any]] = []
    for key in keys:
        value = node.get(key)
        if isinstance(value, list):
            items.extend(item for item in value if isinstance(item, dict))
    return items


def extract_positions(response: Any) -> List[Dict[str, Any]]:
    """Position dicts from a holdings response, whatever the envelope."""
    if not isinstance(response, dict):
        return _collect_lists(response, POSITION_LIST_KEYS)
    for envelope in (response.get("content"), response.get("data"), response):
        positions = _collect_lists(envelope, POSITION_LIST_KEYS)
        if positions:
            return positions
    return []


def extract_accounts(response: Any) -> List[Dict[str, Any]]:
    """Account dicts from an accounts response."""
    if isinstance(response, dict):
        for envelope in (response.get("content"), response):
            accounts = _collect_lists(envelope, ("accounts",))
            if accounts:
                return accounts
        return _collect_lists(response.get("content"), ())
    return _collect_lists(response, ())


def account_id_of(data: Dict[str, Any]) -> Optional[str]:
    value = _first_present(data, "accountId", "id", "meshAccountId", "frontAccountId")
    return str(value) if value is not None else None


def source_for(broker_type: Optional[str]) -> str:
    """Coarse source classification shown in the UI."""
    return SOURCE_WALLET if is_wallet_type(broker_type) else SOURCE_EXCHANGE


def position_value(amount: float, price: float, provided: Any) -> float:
    """Provider-supplied value when present and non-zero, else amount × price."""
    value = to_number(provided)
    return value if value else amount * price


def normalize_position(position: Dict[str, Any], account: Optional[LinkedAccount] = None) -> Holding:
    """Turn one provider position into a Holding."""
    amount = to_number(_first_present(position, "amount", "quantity"))
    price = to_number(_first_present(position, "lastPrice", "price", "marketPrice"))
    broker_type = position.get("brokerType") or (account.broker_type if account else None)

    if account is not None:
        account_id = account.account_id
        account_name = account.name
    else:
        account_id = account_id_of(position)
        # Position "name" is the asset name, not the account name
        naming = {k: position[k] for k in ("brokerName", "integrationName") if position.get(k)}
        account_name = display_name(broker_type, naming)

    return Holding(
        symbol=str(_first_present(position, "symbol", "assetSymbol") or "UNKNOWN"),
        name=_first_present(position, "name", "assetName"),
        amount=amount,
        price=price,
        value=position_value(amount, price, _first_present(position, "value", "marketValue")),
        account_id=account_id,
        account_name=account_name,
        source=source_for(broker_type),
    )


def normalize_balances(response: Any, account: LinkedAccount) -> List[Holding]:
    """Reshape a balance response into Holdings for ``account``."""
    items: List[Dict[str, Any]] = []
    if isinstance(response, dict):
        for envelope in (response.get("content"), response):
            items = _collect_lists(envelope, BALANCE_LIST_KEYS)
            if items:
                break
    else:
        items = _collect_lists(response, BALANCE_LIST_KEYS)

    holdings = []
    for item in items:
        symbol = str(_first_present(item, "symbol", "currencyCode", "currency") or "UNKNOWN")
        amount = to_number(_first_present(item, "amount", "balance", "total", "cash", "buyingPower"))
        price = to_number(_first_present(item, "lastPrice", "price"))
        if not price and symbol.upper() in FIAT_SYMBOLS:
            price = 1.0
        holdings.append(
            Holding(
                symbol=symbol,
                name=_first_present(item, "name", "assetName"),
                amount=amount,
                price=price,
                value=position_value(amount, price, _first_present(item, "value", "marketValue", "fiatValue")),
                account_id=account.account_id,
                account_name=account.name,
                source=source_for(account.broker_type),
            )
        )
    return holdings


def merge_positions(holdings: Iterable[Holding]) -> List[Holding]:
    """Merge same-symbol positions of one account.

    Quantities are summed and the value recomputed as quantity × last known
    (non-zero) price; with no known price the provider values are summed.
    Order of first appearance is kept.
    """
    merged: Dict[str, Holding] = {}
    counts: Dict[str, int] = {}
    last_price: Dict[str, float] = {}

    for holding in holdings:
        key = holding.symbol.upper()
        if holding.price:
            last_price[key] = holding.price
        if key not in merged:
            merged[key] = holding.model_copy()
            counts[key] = 1
            continue
        current = merged[key]
        current.amount += holding.amount
        current.value += holding.value
        current.name = current.name or holding.name
        counts[key] += 1

    for key, holding in merged.items():
        if counts[key] > 1 and key in last_price:
            holding.price = last_price[key]
            holding.value = holding.amount * holding.price

    return list(merged.values())


def find_wallet_address(response: Any) -> Optional[str]:
    """First EVM address mentioned in a holdings response (distribution/positions)."""
    stack = [response]
    while stack:
        node = stack.pop(0)
        if isinstance(node, dict):
            for key in ("address", "walletAddress"):
                address = normalize_wallet_address(node.get(key))
                if address:
                    return address
            stack.extend(v for v in node.values() if isinstance(v, (dict, list)))
        elif isinstance(node, list):
            stack.extend(v for v in node if isinstance(v, (dict, list)))
    return None
