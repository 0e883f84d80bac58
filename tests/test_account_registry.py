"""Tests for the local account registry."""

import json

import pytest

from src.core.accounts.models import LinkedAccount
from src.core.accounts.registry import (
    ACCESS_TOKEN_KEY,
    ACCOUNTS_KEY,
    WALLET_ADDRESS_KEY,
    AccountRegistry,
    InMemoryStore,
    SqlKeyValueStore,
)
from src.core.errors import ValidationError
from src.db.database import init_db, make_engine, make_session_factory

TOKEN = "tok_live_0123456789abcdef0123456789"
OTHER_TOKEN = "tok_live_fedcba9876543210fedcba9876"
ADDRESS = "0x" + "f" * 40


@pytest.fixture
def sql_store(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'registry.db'}")
    init_db(engine)
    return SqlKeyValueStore(make_session_factory(engine))


@pytest.fixture(params=["memory", "sql"])
def registry(request, sql_store):
    store = InMemoryStore() if request.param == "memory" else sql_store
    return AccountRegistry(store)


def coinbase(**overrides):
    fields = dict(account_id="cb-1", broker_type="coinbase", name="Coinbase", mesh_account_id="mesh-1", transfer_token=TOKEN)
    fields.update(overrides)
    return LinkedAccount(**fields)


class TestAccountRegistry:
    """Tests for AccountRegistry over both backends."""

    def test_empty(self, registry):
        assert registry.list() == []
        assert registry.cached_token() is None
        assert registry.get("cb-1") is None

    def test_add_and_get_by_any_id(self, registry):
        registry.add(coinbase())

        assert [a.account_id for a in registry.list()] == ["cb-1"]
        assert registry.get("mesh-1").account_id == "cb-1"
        assert registry.cached_token() == TOKEN

    def test_add_is_idempotent(self, registry):
        """Linking an account that is already present keeps the first entry and its token."""
        registry.add(coinbase(name="First"))

        stored = registry.add(coinbase(name="Second", transfer_token=OTHER_TOKEN))

        assert stored.name == "First"
        assert [a.name for a in registry.list()] == ["First"]
        assert registry.cached_token() == TOKEN

    def test_add_matches_on_any_alias(self, registry):
        registry.add(coinbase())

        registry.add(coinbase(account_id="cb-1-new", transfer_token=OTHER_TOKEN))

        assert [a.account_id for a in registry.list()] == ["cb-1"]
        assert registry.cached_token() == TOKEN

    def test_wallet_caches_address(self, registry):
        registry.add(LinkedAccount(account_id=ADDRESS, broker_type="deFiWallet", wallet_address=ADDRESS))
        assert registry.wallet_address == ADDRESS

    def test_exchange_does_not_cache_address(self, registry):
        registry.add(coinbase(wallet_address=ADDRESS))
        assert registry.wallet_address is None

    def test_remove_keeps_token_while_accounts_remain(self, registry):
        registry.add(coinbase())
        registry.add(LinkedAccount(account_id="kr-1", broker_type="kraken", transfer_token=OTHER_TOKEN))

        assert registry.remove("cb-1") is True
        assert [a.account_id for a in registry.list()] == ["kr-1"]
        assert registry.cached_token() == OTHER_TOKEN

    def test_removing_last_account_clears_token(self, registry):
        registry.add(coinbase())

        assert registry.remove("mesh-1") is True
        assert registry.list() == []
        assert registry.cached_token() is None

    def test_remove_unknown(self, registry):
        assert registry.remove("nope") is False

    def test_clear(self, registry):
        registry.add(LinkedAccount(account_id="w-1", broker_type="metamask", transfer_token=TOKEN, wallet_address=ADDRESS))

        registry.clear()

        assert registry.list() == []
        assert registry.cached_token() is None
        assert registry.wallet_address is None

    def test_update_wallet_address_normalizes(self, registry):
        assert registry.update_wallet_address("a" * 40) == "0x" + "a" * 40

    def test_update_wallet_address_rejects_garbage(self, registry):
        with pytest.raises(ValidationError):
            registry.update_wallet_address("not-an-address")

    def test_update_persists_changes(self, registry):
        account = registry.add(coinbase())
        account.refresh_token = "refresh-2"

        registry.update(account)

        assert registry.get("cb-1").refresh_token == "refresh-2"


class TestStoredFormat:
    """Tests for the stored key/value layout."""

    def test_accounts_stored_as_json_array(self):
        store = InMemoryStore()
        AccountRegistry(store).add(coinbase())

        stored = json.loads(store.get(ACCOUNTS_KEY))
        assert stored[0]["accountId"] == "cb-1"
        assert stored[0]["fromAuthToken"] == TOKEN
        assert store.get(ACCESS_TOKEN_KEY) == TOKEN

    def test_reads_accounts_written_by_other_clients(self):
        store = InMemoryStore({ACCOUNTS_KEY: json.dumps([{"id": "x-1", "providerType": "kraken", "accessToken": TOKEN}])})

        account = AccountRegistry(store).get("x-1")

        assert account.broker_type == "kraken"
        assert account.transfer_token == TOKEN

    def test_corrupt_list_reads_as_empty(self):
        store = InMemoryStore({ACCOUNTS_KEY: "{not json"})
        assert AccountRegistry(store).list() == []

    def test_sql_store_overwrites_and_deletes(self, sql_store):
        sql_store.set(WALLET_ADDRESS_KEY, "one")
        sql_store.set(WALLET_ADDRESS_KEY, "two")
        assert sql_store.get(WALLET_ADDRESS_KEY) == "two"

        sql_store.delete(WALLET_ADDRESS_KEY)
        assert sql_store.get(WALLET_ADDRESS_KEY) is None

        sql_store.set("a", "1")
        sql_store.clear()
        assert sql_store.get("a") is None
