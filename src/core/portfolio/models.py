"""Pydantic schemas for the aggregated portfolio."""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

SOURCE_WALLET = "MetaMask"
SOURCE_EXCHANGE = "Exchange"


class CamelModel(BaseModel):
    """Serializes with camelCase names for the browser client."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class Holding(CamelModel):
    """One asset position in one linked account."""

    symbol: str
    name: Optional[str] = None
    amount: float = 0.0
    price: float = 0.0
    value: float = 0.0
    account_id: Optional[str] = None
    account_name: str = "Unknown"
    source: str = SOURCE_EXCHANGE


class AccountSummary(CamelModel):
    """Per-account totals shown next to the holdings list."""

    account_id: Optional[str] = None
    name: str = "Unknown"
    broker_type: Optional[str] = None
    integration_id: Optional[str] = None
    total_value: float = 0.0
    asset_count: int = 0
    error: Optional[str] = None


class PortfolioSummary(CamelModel):
    """Aggregated portfolio across all linked accounts."""

    total_value: float = 0.0
    total_accounts: int = 0
    total_assets: int = 0
    holdings: List[Holding] = Field(default_factory=list)
    accounts: List[AccountSummary] = Field(default_factory=list)
    wallet_addresses: Dict[str, str] = Field(default_factory=dict)
