"""Process-lifetime store of link credentials, keyed by user and provider type."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_PROVIDER_TYPE = "unknown"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class StoredAuth:
    """One stored credential."""

    user_id: str
    provider_type: str
    access_token: Any
    account_id: Optional[str] = None
    integration_id: Optional[str] = None
    raw_payload: Any = None
    created_at: str = field(default_factory=_now_iso)

    def summary(self) -> Dict[str, Any]:
        """Public view of the entry; the token itself is never returned."""
        return {
            "userId": self.user_id,
            "providerType": self.provider_type,
            "accountId": self.account_id,
            "integrationId": self.integration_id,
            "createdAt": self.created_at,
        }


class AuthStore:
    """In-memory map of ``userId::providerType`` to StoredAuth.

    Nothing is persisted; a restart forgets everything.
    """

    def __init__(self):
        self._entries: Dict[str, StoredAuth] = {}
        self._lock = Lock()

    @staticmethod
    def make_key(user_id: str, provider_type: Optional[str]) -> str:
        return f"{user_id}::{provider_type or DEFAULT_PROVIDER_TYPE}"

    def save(self, entry: StoredAuth) -> None:
        with self._lock:
            self._entries[self.make_key(entry.user_id, entry.provider_type)] = entry
        logger.info(f"Stored auth for {entry.user_id} ({entry.provider_type})")

    def get(self, user_id: str, provider_type: Optional[str]) -> Optional[StoredAuth]:
        return self._entries.get(self.make_key(user_id, provider_type))

    def get_any(self, user_id: str) -> Optional[StoredAuth]:
        """First entry stored for ``user_id``, whatever the provider type."""
        for entry in list(self._entries.values()):
            if entry.user_id == user_id:
                return entry
        return None

    def __len__(self) -> int:
        return len(self._entries)
