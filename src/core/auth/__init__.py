"""Demo credential store for the auth/store endpoint."""

from .store import DEFAULT_PROVIDER_TYPE, AuthStore, StoredAuth

__all__ = [
    "DEFAULT_PROVIDER_TYPE",
    "AuthStore",
    "StoredAuth",
]
