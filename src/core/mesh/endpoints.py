"""Mesh REST endpoints and the auth convention each one expects.

Managed transfer endpoints take the user's token as ``fromAuthToken`` in the
JSON body and reject it in an Authorization header; account, holdings, balance
and address endpoints want ``Authorization: Bearer``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Tuple


class TokenPlacement(str, Enum):
    """Where the user token goes on a request."""

    NONE = "none"
    HEADER = "header"
    BODY = "body"


# Body field carrying the token for TokenPlacement.BODY
BODY_TOKEN_FIELD = "fromAuthToken"

# Statuses that mean "this endpoint variant does not exist, try the next one"
NEXT_CANDIDATE_STATUSES = (404, 405)


@dataclass(frozen=True)
class Endpoint:
    """One Mesh API operation."""

    step: str  # Used in error messages: "Mesh <step> failed (...)"
    method: str
    path: str
    token: TokenPlacement = TokenPlacement.NONE


LINK_TOKEN = Endpoint("linktoken", "POST", "/api/v1/linktoken")
TOKEN_REFRESH = Endpoint("token refresh", "POST", "/api/v1/token/refresh")

NETWORKS = Endpoint("networks", "GET", "/api/v1/transfers/managed/networks")
INTEGRATIONS = Endpoint("managed transfer integrations", "GET", "/api/v1/transfers/managed/integrations")
MANAGED_TOKENS = Endpoint("managed transfer tokens", "POST", "/api/v1/transfers/managed/tokens")

CONFIGURE = Endpoint("configure", "POST", "/api/v1/transfers/managed/configure", TokenPlacement.BODY)
PREVIEW = Endpoint("preview", "POST", "/api/v1/transfers/managed/preview", TokenPlacement.BODY)
EXECUTE = Endpoint("execute", "POST", "/api/v1/transfers/managed/execute", TokenPlacement.BODY)

TRANSFER_ADDRESS = Endpoint(
    "transfer address", "POST", "/api/v1/transfers/managed/address/get", TokenPlacement.HEADER
)
DEPOSIT_ADDRESSES = Endpoint(
    "deposit addresses", "POST", "/api/v1/transfers/managed/address/list", TokenPlacement.HEADER
)
MESH_TRANSFERS = Endpoint("transfers initiated by Mesh", "GET", "/api/v1/transfers/managed/mesh")

TRANSFERS_LIST = Endpoint("transfers list", "POST", "/api/v1/transfers/list", TokenPlacement.HEADER)
TRANSFER_DETAILS = Endpoint("transfer details", "POST", "/api/v1/transfers/details", TokenPlacement.HEADER)

HOLDINGS = Endpoint("holdings", "POST", "/api/v1/holdings/get", TokenPlacement.HEADER)
PORTFOLIO_HOLDINGS = Endpoint("portfolio holdings", "POST", "/api/v1/holdings/portfolio", TokenPlacement.HEADER)
ACCOUNT_STATUS = Endpoint("status", "GET", "/api/v1/status", TokenPlacement.HEADER)

# Ordered candidates, tried until one answers with something other than 404/405
ACCOUNTS: Tuple[Endpoint, ...] = (
    Endpoint("accounts", "GET", "/api/v1/accounts", TokenPlacement.HEADER),
    Endpoint("accounts", "GET", "/api/v1/account", TokenPlacement.HEADER),
)
BALANCE: Tuple[Endpoint, ...] = (
    Endpoint("balance", "POST", "/api/v1/balance/get", TokenPlacement.HEADER),
    Endpoint("portfolio balance", "POST", "/api/v1/balance/portfolio", TokenPlacement.HEADER),
)
