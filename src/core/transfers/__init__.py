"""Managed transfers (configure → preview → execute).

Usage:
    from src.core.transfers import TransferWorkflow, TransferRequest

    workflow = TransferWorkflow(mesh_client, access_token)
    await workflow.configure(TransferRequest(from_account_id=..., amount=10, ...))
"""

from src.core.transfers.models import TransferOutcome, TransferRequest, TransferState
from src.core.transfers.workflow import (
    TRANSFER_ID_PATHS,
    TransferWorkflow,
    describe_failure,
    find_transfer_id,
    parse_failure,
    to_transfer_error,
)

__all__ = [
    "TransferOutcome",
    "TransferRequest",
    "TransferState",
    "TRANSFER_ID_PATHS",
    "TransferWorkflow",
    "describe_failure",
    "find_transfer_id",
    "parse_failure",
    "to_transfer_error",
]
