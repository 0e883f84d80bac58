"""Managed transfer models."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from src.core.errors import ValidationError


class TransferState(str, Enum):
    """Where a managed transfer is in the configure → preview → execute flow."""

    CONFIGURING = "configuring"
    PREVIEWING = "previewing"
    EXECUTING = "executing"
    DONE = "done"
    FAILED = "failed"


class TransferRequest(BaseModel):
    """Parameters of a managed transfer, serialized with Mesh's camelCase names."""

    from_account_id: Optional[str] = None
    to_address: Optional[str] = None
    symbol: Optional[str] = None
    network_id: Optional[str] = None
    amount: Optional[float] = Field(None, gt=0)
    amount_in_fiat: Optional[float] = Field(None, gt=0)
    from_type: Optional[str] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True

    def missing_fields(self) -> List[str]:
        """Names (camelCase) of required fields that are empty."""
        required = {
            "fromAccountId": self.from_account_id,
            "toAddress": self.to_address,
            "symbol": self.symbol,
            "networkId": self.network_id,
        }
        missing = [name for name, value in required.items() if not value]
        if self.amount is None and self.amount_in_fiat is None:
            missing.append("amount or amountInFiat")
        return missing

    def validate_complete(self) -> None:
        """Raise ValidationError naming every missing field."""
        missing = self.missing_fields()
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    def to_params(self) -> Dict[str, Any]:
        """Body for configure/preview. ``amount`` wins when both amounts are set."""
        params: Dict[str, Any] = {
            "fromAccountId": self.from_account_id,
            "toAddress": self.to_address,
            "symbol": self.symbol,
            "networkId": self.network_id,
        }
        if self.amount is not None:
            params["amount"] = self.amount
        else:
            params["amountInFiat"] = self.amount_in_fiat
        if self.from_type:
            params["fromType"] = self.from_type
        return params


class TransferOutcome(BaseModel):
    """Provider response of one step plus the transfer id resolved so far."""

    state: TransferState
    transfer_id: Optional[str] = None
    response: Any = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True

    def to_response(self) -> Dict[str, Any]:
        """Provider response with ``transferId`` injected, as returned by the API."""
        body = dict(self.response) if isinstance(self.response, dict) else {"content": self.response}
        if self.transfer_id:
            body["transferId"] = self.transfer_id
        return body
