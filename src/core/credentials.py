"""Credential extraction from Mesh Link connection payloads.

Mesh Link hands back the access token in several shapes depending on the
integration (exchange, wallet, sandbox, production):

* a plain bearer token string,
* a JSON-encoded string of a token object,
* a token object, usually ``{"accountTokens": [{"accessToken": ..., "account": {...}}], ...}``.

``parse_bundle`` turns the raw value into one of three explicit variants and
``extract_token`` / ``extract_tokens`` resolve them in a fixed order.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Iterator, List, Mapping, Optional, Union

from src.core.accounts.models import LinkedAccount
from src.core.accounts.naming import display_name
from src.core.errors import InvalidTokenError

logger = logging.getLogger(__name__)

MIN_TOKEN_LENGTH = 20

# Field order inside accountTokens[i], then at the bundle root
NESTED_TOKEN_FIELDS = ("accessToken", "authToken")
ROOT_TOKEN_FIELDS = ("accessToken", "authToken", "integrationToken")

# Nesting limit for token objects found under a root field
MAX_BUNDLE_DEPTH = 3

EVM_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
BARE_EVM_ADDRESS_RE = re.compile(r"^[0-9a-fA-F]{40}$")


@dataclass(frozen=True)
class PlainToken:
    """A bare bearer token string."""

    value: str


@dataclass(frozen=True)
class EncodedBundle:
    """A JSON-encoded token object. ``data`` is None if the text did not decode."""

    raw: str
    data: Any


@dataclass(frozen=True)
class StructuredBundle:
    """An already-decoded token object."""

    data: Mapping[str, Any]


TokenBundle = Union[PlainToken, EncodedBundle, StructuredBundle]


def looks_like_json(value: str) -> bool:
    return value.lstrip().startswith(("{", "["))


def is_valid_token(candidate: Any) -> bool:
    """A usable token is a string of at least 20 chars that is not JSON-shaped."""
    return (
        isinstance(candidate, str)
        and len(candidate.strip()) >= MIN_TOKEN_LENGTH
        and not looks_like_json(candidate)
    )


def parse_bundle(raw: Any) -> Optional[TokenBundle]:
    """Classify a raw token value. Returns None for empty or unusable input."""
    if raw is None:
        return None
    if isinstance(raw, Mapping):
        return StructuredBundle(raw)
    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return None
        if looks_like_json(text):
            try:
                return EncodedBundle(raw=text, data=json.loads(text))
            except json.JSONDecodeError:
                return EncodedBundle(raw=text, data=None)
        return PlainToken(text)
    return None


def _account_tokens(data: Mapping[str, Any]) -> List[Mapping[str, Any]]:
    tokens = data.get("accountTokens")
    if not isinstance(tokens, list):
        return []
    return [t for t in tokens if isinstance(t, Mapping)]


def _root_candidates(data: Mapping[str, Any], depth: int) -> Iterator[Any]:
    for name in ROOT_TOKEN_FIELDS:
        value = data.get(name)
        if isinstance(value, str) and not looks_like_json(value):
            yield value
        elif value is not None and depth < MAX_BUNDLE_DEPTH:
            # Root accessToken may itself be a (possibly encoded) token object
            yield from _candidates(parse_bundle(value), first_only=True, depth=depth + 1)


def _candidates(bundle: Optional[TokenBundle], first_only: bool, depth: int = 0) -> Iterator[Any]:
    """Yield token candidates in resolution order."""
    if bundle is None:
        return
    if isinstance(bundle, PlainToken):
        yield bundle.value
        return

    data = bundle.data
    if not isinstance(data, Mapping):
        return

    entries = _account_tokens(data)
    for entry in entries[:1] if first_only else entries:
        for name in NESTED_TOKEN_FIELDS:
            yield entry.get(name)

    yield from _root_candidates(data, depth)


def extract_token(raw: Any) -> str:
    """Resolve a token bundle to the single token to use for API calls.

    Order: ``accountTokens[0].accessToken``, ``accountTokens[0].authToken``,
    root ``accessToken``, root ``authToken``, root ``integrationToken``, then
    the raw string itself if it is not JSON-shaped.

    Raises:
        InvalidTokenError: no candidate is a string of 20+ chars that is not JSON.
    """
    for candidate in _candidates(parse_bundle(raw), first_only=True):
        if is_valid_token(candidate):
            return candidate.strip()
    raise InvalidTokenError()


def extract_tokens(raw: Any) -> List[str]:
    """Resolve every usable token in a bundle, in order, without duplicates.

    Wallets expose one token per supported network under ``accountTokens``;
    each has to be queried separately for holdings.
    """
    tokens: List[str] = []
    for candidate in _candidates(parse_bundle(raw), first_only=False):
        if is_valid_token(candidate):
            token = candidate.strip()
            if token not in tokens:
                tokens.append(token)
    if not tokens:
        raise InvalidTokenError()
    return tokens


def account_tokens(account: LinkedAccount) -> List[str]:
    """All usable tokens for a linked account, per-network tokens first."""
    tokens: List[str] = []
    for raw in [*account.network_tokens, account.holdings_token, account.transfer_token]:
        if raw is None:
            continue
        try:
            found = extract_tokens(raw)
        except InvalidTokenError:
            continue
        tokens.extend(t for t in found if t not in tokens)
    return tokens


def transfer_token(account: LinkedAccount) -> str:
    """The transfer-capable token of an account."""
    return extract_token(account.transfer_token or account.holdings_token)


def normalize_wallet_address(value: Any) -> Optional[str]:
    """Return an 0x-prefixed EVM address, or None if ``value`` is not one."""
    if not isinstance(value, str):
        return None
    if EVM_ADDRESS_RE.match(value):
        return value
    if BARE_EVM_ADDRESS_RE.match(value):
        return f"0x{value}"
    return None


def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _first(*values: Any) -> Any:
    for value in values:
        if value:
            return value
    return None


def parse_connection(payload: Any) -> LinkedAccount:
    """Build a LinkedAccount from a Mesh Link ``onIntegrationConnected`` payload.

    Raises:
        InvalidTokenError: no usable token anywhere in the payload.
    """
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError:
            payload = {"accessToken": payload}
    payload = _mapping(payload)

    raw_token = _first(payload.get("accessToken"), payload.get("token"), payload.get("authToken"))
    bundle = parse_bundle(raw_token)
    bundle_data: Mapping[str, Any] = {}
    if isinstance(bundle, (StructuredBundle, EncodedBundle)):
        bundle_data = _mapping(bundle.data)

    try:
        token = extract_token(raw_token)
    except InvalidTokenError:
        # Some integrations put accountTokens/authToken at the payload root
        token = extract_token(payload)

    network_tokens: List[str] = []
    for source in (raw_token, payload):
        try:
            network_tokens.extend(t for t in extract_tokens(source) if t not in network_tokens)
        except InvalidTokenError:
            continue

    first_entry = _mapping((_account_tokens(bundle_data) or _account_tokens(payload) or [{}])[0])
    account_data = _mapping(first_entry.get("account")) or _mapping(payload.get("account"))

    mesh_account_id = _first(
        account_data.get("meshAccountId"),
        account_data.get("frontAccountId"),
        payload.get("meshAccountId"),
        payload.get("frontAccountId"),
        payload.get("accountId"),
    )
    account_id = _first(account_data.get("accountId"), payload.get("accountId"), mesh_account_id)
    front_account_id = _first(account_data.get("frontAccountId"), payload.get("frontAccountId"), mesh_account_id)

    broker_type = _first(
        payload.get("brokerType"),
        payload.get("type"),
        payload.get("integrationType"),
        payload.get("providerType"),
        bundle_data.get("brokerType"),
        bundle_data.get("type"),
        account_data.get("brokerType"),
    ) or "unknown"

    broker_name = _first(
        payload.get("brokerName"),
        bundle_data.get("brokerName"),
        _mapping(payload.get("account")).get("accountName"),
        account_data.get("accountName"),
    )

    wallet_address = normalize_wallet_address(
        _first(
            account_data.get("address"),
            account_data.get("walletAddress"),
            payload.get("address"),
            payload.get("walletAddress"),
        )
    ) or normalize_wallet_address(account_id)

    refresh_token = first_entry.get("refreshToken")

    name = broker_name or display_name(broker_type, {**payload, "brokerType": broker_type})

    logger.info(
        f"Parsed connection: broker={broker_type} name={name} "
        f"account={account_id} tokens={len(network_tokens)}"
    )

    return LinkedAccount(
        account_id=str(account_id or mesh_account_id or ""),
        broker_type=str(broker_type),
        name=name,
        mesh_account_id=mesh_account_id,
        front_account_id=front_account_id,
        integration_id=payload.get("integrationId"),
        broker_name=broker_name,
        account_name=account_data.get("accountName"),
        transfer_token=token,
        holdings_token=token,
        network_tokens=network_tokens or [token],
        refresh_token=str(refresh_token) if refresh_token else None,
        wallet_address=wallet_address,
    )
