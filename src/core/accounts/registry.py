"""Local registry of linked accounts.

Stores the connected accounts as a JSON array under one key, next to the
cached bearer token and the app wallet address, the same three keys a
browser would keep in localStorage.
"""

from __future__ import annotations

import json
import logging
from typing import Dict, List, Optional, Protocol

from sqlalchemy.orm import sessionmaker

from src.core.accounts.models import LinkedAccount
from src.core.credentials import normalize_wallet_address
from src.core.errors import ValidationError
from src.db.database import get_db
from src.db.models import KeyValueEntry, utcnow

logger = logging.getLogger(__name__)

ACCESS_TOKEN_KEY = "mesh_access_token"
ACCOUNTS_KEY = "mesh_connected_accounts"
WALLET_ADDRESS_KEY = "app_wallet_address"


class KeyValueStore(Protocol):
    """String key/value backend."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...

    def clear(self) -> None: ...


class InMemoryStore:
    """Dict-backed store, used by tests."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def delete(self, key: str) -> None:
        self.data.pop(key, None)

    def clear(self) -> None:
        self.data.clear()


class SqlKeyValueStore:
    """Store backed by the ``kv_entries`` table."""

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self.session_factory = session_factory

    def get(self, key: str) -> Optional[str]:
        with get_db(self.session_factory) as db:
            entry = db.get(KeyValueEntry, key)
            return entry.value if entry else None

    def set(self, key: str, value: str) -> None:
        with get_db(self.session_factory) as db:
            entry = db.get(KeyValueEntry, key)
            if entry:
                entry.value = value
                entry.updated_at = utcnow()
            else:
                db.add(KeyValueEntry(key=key, value=value))

    def delete(self, key: str) -> None:
        with get_db(self.session_factory) as db:
            entry = db.get(KeyValueEntry, key)
            if entry:
                db.delete(entry)

    def clear(self) -> None:
        with get_db(self.session_factory) as db:
            db.query(KeyValueEntry).delete()


class AccountRegistry:
    """Repository for linked accounts over a KeyValueStore."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    def list(self) -> List[LinkedAccount]:
        """All linked accounts, in link order. Unreadable data reads as empty."""
        raw = self.store.get(ACCOUNTS_KEY)
        if not raw:
            return []
        try:
            items = json.loads(raw)
        except ValueError:
            logger.warning(f"Stored account list is not valid JSON, ignoring ({len(raw)} chars)")
            return []
        if not isinstance(items, list):
            return []
        return [LinkedAccount.from_dict(item) for item in items if isinstance(item, dict)]

    def _save(self, accounts: List[LinkedAccount]) -> None:
        self.store.set(ACCOUNTS_KEY, json.dumps([a.to_dict() for a in accounts]))

    def get(self, account_id: str) -> Optional[LinkedAccount]:
        """Find an account by any of its identifiers."""
        for account in self.list():
            if account.matches(account_id):
                return account
        return None

    def add(self, account: LinkedAccount) -> LinkedAccount:
        """Link ``account`` and return the stored account.

        Linking an account that is already present (by any of its ids) changes
        nothing and returns the existing entry. New accounts also cache their
        transfer token as the current bearer token, and for wallet accounts
        the wallet address.
        """
        accounts = self.list()
        for existing in accounts:
            if existing.shares_identity(account):
                logger.info(f"Account {account.account_id} already linked")
                return existing

        accounts.append(account)
        self._save(accounts)
        logger.info(f"Linked account {account.account_id} ({account.broker_type})")

        token = account.transfer_token
        if token:
            self.store.set(ACCESS_TOKEN_KEY, token if isinstance(token, str) else json.dumps(token))
        if account.is_wallet and account.wallet_address:
            self.update_wallet_address(account.wallet_address)
        return account

    def remove(self, account_id: str) -> bool:
        """Unlink an account. Removing the last one also drops the cached token."""
        accounts = self.list()
        remaining = [a for a in accounts if not a.matches(account_id)]
        if len(remaining) == len(accounts):
            return False
        if remaining:
            self._save(remaining)
        else:
            self.store.delete(ACCOUNTS_KEY)
            self.store.delete(ACCESS_TOKEN_KEY)
        logger.info(f"Removed linked account {account_id}")
        return True

    def clear(self) -> None:
        """Forget all accounts, the cached token and the wallet address."""
        for key in (ACCOUNTS_KEY, ACCESS_TOKEN_KEY, WALLET_ADDRESS_KEY):
            self.store.delete(key)

    def update(self, account: LinkedAccount) -> None:
        """Persist changes to an already linked account."""
        accounts = [account if a.shares_identity(account) else a for a in self.list()]
        self._save(accounts)

    def update_wallet_address(self, address: str) -> str:
        """Cache the app wallet address (normalized to 0x form)."""
        normalized = normalize_wallet_address(address)
        if not normalized:
            raise ValidationError(f"Not an EVM wallet address: {address}")
        self.store.set(WALLET_ADDRESS_KEY, normalized)
        return normalized

    @property
    def wallet_address(self) -> Optional[str]:
        return self.store.get(WALLET_ADDRESS_KEY)

    def cached_token(self) -> Optional[str]:
        """The bearer token cached by the last link."""
        return self.store.get(ACCESS_TOKEN_KEY)
