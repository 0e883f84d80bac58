"""Managed transfer orchestration: configure → preview → execute.

The transfer id Mesh hands back is not always under the same key, and some
integrations only assign it at preview time. ``TransferWorkflow`` carries it
forward between steps and turns provider failures into display messages.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional, Sequence, Tuple

from src.core.credentials import extract_token
from src.core.errors import MfaRequiredError, ProviderError, TransferError, ValidationError
from src.core.mesh.client import MeshClient
from src.core.mesh.endpoints import EXECUTE
from src.core.transfers.models import TransferOutcome, TransferRequest, TransferState

logger = logging.getLogger(__name__)

# Searched in order on configure and preview responses
TRANSFER_ID_PATHS: Tuple[Tuple[str, ...], ...] = (
    ("transferId",),
    ("previewId",),
    ("content", "transferId"),
    ("content", "previewId"),
    ("content", "previewResult", "previewId"),
    ("content", "id"),
    ("data", "transferId"),
    ("id",),
)

MFA_STATUSES = ("mfarequired", "mfa_required")

_FAILURE_RE = re.compile(r"failed \((\d{3})\):\s*(.*)$", re.DOTALL)


def find_transfer_id(response: Any, paths: Sequence[Tuple[str, ...]] = TRANSFER_ID_PATHS) -> Optional[str]:
    """Return the first non-empty value found at one of ``paths``."""
    for path in paths:
        node = response
        for key in path:
            if not isinstance(node, dict):
                node = None
                break
            node = node.get(key)
        if node is not None and node != "":
            return str(node)
    return None


def parse_failure(message: str) -> Tuple[Optional[int], Optional[str]]:
    """Split ``"<Step> failed (<status>): <body>"`` into (status, display message).

    The display message is ``displayMessage`` (then ``message``) of a JSON body,
    or None when the body is not JSON or carries neither.
    """
    match = _FAILURE_RE.search(message)
    if not match:
        return None, None
    status = int(match.group(1))
    try:
        body = json.loads(match.group(2))
    except ValueError:
        return status, None
    if not isinstance(body, dict):
        return status, None
    display = body.get("displayMessage") or body.get("message")
    return status, str(display) if display else None


def describe_failure(message: str) -> str:
    """Best user-facing text for a failure message."""
    _, display = parse_failure(message)
    return display or message


def is_mfa_required(message: str) -> bool:
    return "mfa" in message.lower()


def to_transfer_error(error: ProviderError) -> TransferError:
    """Map a provider failure to the transfer error taxonomy.

    Upstream 4xx becomes a 400 with the provider's display message. MFA
    prompts become MfaRequiredError, on the execute step only. Anything else
    is a 500.
    """
    status, display = parse_failure(error.message)
    text = display or error.message
    if error.step == EXECUTE.step and is_mfa_required(error.message):
        return MfaRequiredError(text, upstream=error)
    if status is not None and 400 <= status < 500:
        return TransferError(text, status_code=400, upstream=error)
    return TransferError(text, status_code=500, upstream=error)


class TransferWorkflow:
    """One managed transfer from a linked account.

    Usage:
        workflow = TransferWorkflow(client, access_token)
        await workflow.configure(request)
        await workflow.preview()
        result = await workflow.execute(mfa_code="123456")
    """

    def __init__(self, client: MeshClient, access_token: Any, transfer_id: Optional[str] = None):
        self.client = client
        self.raw_token = access_token
        self.transfer_id = transfer_id
        self.request: Optional[TransferRequest] = None
        self.state = TransferState.PREVIEWING if transfer_id else TransferState.CONFIGURING

    def _token(self) -> str:
        return extract_token(self.raw_token)

    def _fail(self, error: ProviderError) -> TransferError:
        transfer_error = to_transfer_error(error)
        if isinstance(transfer_error, MfaRequiredError) and self.transfer_id:
            # Retry execute with a code against the same transfer id
            self.state = TransferState.EXECUTING
        else:
            self.state = TransferState.FAILED
        logger.warning(f"Transfer {self.state.value}: {error.message}")
        return transfer_error

    async def configure(self, request: TransferRequest) -> TransferOutcome:
        """Configure the transfer. A missing transfer id here is not an error."""
        request.validate_complete()
        token = self._token()
        self.request = request

        try:
            response = await self.client.configure_transfer(token, request.to_params())
        except ProviderError as e:
            raise self._fail(e) from e

        self.transfer_id = find_transfer_id(response)
        self.state = TransferState.PREVIEWING
        logger.info(f"Transfer configured (transferId={self.transfer_id or 'pending'})")
        return TransferOutcome(state=self.state, transfer_id=self.transfer_id, response=response)

    async def preview(
        self,
        transfer_id: Optional[str] = None,
        request: Optional[TransferRequest] = None,
    ) -> TransferOutcome:
        """Preview by transfer id when one is known, otherwise by the configure parameters.

        Only the reference is sent once an id exists, so a repeated preview
        never creates a second transfer.
        """
        token = self._token()
        transfer_id = transfer_id or self.transfer_id
        request = request or self.request

        if transfer_id:
            params = {"transferId": transfer_id}
        elif request is not None:
            request.validate_complete()
            params = request.to_params()
        else:
            raise ValidationError("Missing required fields: transferId or full transfer parameters")

        try:
            response = await self.client.preview_transfer(token, params)
        except ProviderError as e:
            raise self._fail(e) from e

        resolved = find_transfer_id(response) or transfer_id
        if not resolved:
            self.state = TransferState.FAILED
            raise TransferError("Preview did not return a transfer id; nothing to execute", status_code=500)

        self.transfer_id = resolved
        self.state = TransferState.EXECUTING
        return TransferOutcome(state=self.state, transfer_id=resolved, response=response)

    async def execute(self, mfa_code: Optional[str] = None) -> TransferOutcome:
        """Execute the previewed transfer.

        Raises:
            ValidationError: no transfer id was resolved; no request is sent.
            MfaRequiredError: retry with a one-time code.
        """
        if not self.transfer_id:
            raise ValidationError("No transfer id to execute. Configure and preview the transfer first.")
        token = self._token()

        try:
            response = await self.client.execute_transfer(token, self.transfer_id, mfa_code)
        except ProviderError as e:
            raise self._fail(e) from e

        status = ""
        if isinstance(response, dict):
            content = response.get("content") if isinstance(response.get("content"), dict) else {}
            status = str(content.get("status") or response.get("status") or "")
        if status.lower() in MFA_STATUSES:
            self.state = TransferState.EXECUTING
            raise MfaRequiredError()

        self.state = TransferState.DONE
        logger.info(f"Transfer {self.transfer_id} executed")
        return TransferOutcome(state=self.state, transfer_id=self.transfer_id, response=response)
