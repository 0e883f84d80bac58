"""Error taxonomy shared by the API routes and the CLI."""

from __future__ import annotations

from typing import Optional


class MeshfolioError(Exception):
    """Base class for errors that map to a user-facing message."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_payload(self) -> dict:
        """JSON body returned to API callers."""
        return {"error": self.message}


class ValidationError(MeshfolioError):
    """A required field is missing or malformed. Raised before any outbound call."""

    status_code = 400


class InvalidTokenError(MeshfolioError):
    """A stored credential is absent, too short, or JSON-shaped."""

    status_code = 400

    def __init__(self, message: str = "Invalid or expired account token. Please reconnect this account."):
        super().__init__(message)


class ProviderError(MeshfolioError):
    """Non-2xx response from the Mesh API.

    The message follows ``"Mesh <step> failed (<status>): <body>"`` so it can be
    parsed back into a display message further up.
    """

    status_code = 500

    def __init__(self, step: str, status: int, body: str):
        self.step = step
        self.status = status
        self.body = body
        super().__init__(f"Mesh {step} failed ({status}): {body}")


class TransferError(MeshfolioError):
    """A transfer step failed with a message fit for display."""

    def __init__(self, message: str, status_code: int = 500, upstream: Optional[ProviderError] = None):
        super().__init__(message)
        self.status_code = status_code
        self.upstream = upstream


class MfaRequiredError(TransferError):
    """Execute needs a one-time code; retry with the same transfer id."""

    def __init__(self, message: str = "MFA code required", upstream: Optional[ProviderError] = None):
        super().__init__(message, status_code=400, upstream=upstream)

    def to_payload(self) -> dict:
        return {"error": self.message, "mfaRequired": True}


class NotFoundError(MeshfolioError):
    """The provider answered but has nothing for the request."""

    status_code = 404
