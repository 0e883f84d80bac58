"""Tests for token extraction and link payload parsing."""

import json

import pytest

from src.core.accounts.models import LinkedAccount
from src.core.credentials import (
    EncodedBundle,
    PlainToken,
    StructuredBundle,
    account_tokens,
    extract_token,
    extract_tokens,
    normalize_wallet_address,
    parse_bundle,
    parse_connection,
)
from src.core.errors import InvalidTokenError

TOKEN = "tok_live_0123456789abcdef0123456789"
ETH_TOKEN = "tok_eth_00000000000000000000000000"
SOL_TOKEN = "tok_sol_11111111111111111111111111"


class TestParseBundle:
    """Tests for classifying raw token values."""

    def test_plain_string(self):
        assert parse_bundle(TOKEN) == PlainToken(TOKEN)

    def test_json_string_is_encoded_bundle(self):
        bundle = parse_bundle(json.dumps({"authToken": TOKEN}))
        assert isinstance(bundle, EncodedBundle)
        assert bundle.data == {"authToken": TOKEN}

    def test_undecodable_json_has_no_data(self):
        bundle = parse_bundle('{"accessToken": ')
        assert isinstance(bundle, EncodedBundle)
        assert bundle.data is None

    def test_dict_is_structured_bundle(self):
        assert isinstance(parse_bundle({"accessToken": TOKEN}), StructuredBundle)

    def test_empty_values(self):
        assert parse_bundle(None) is None
        assert parse_bundle("   ") is None
        assert parse_bundle(12345) is None


class TestExtractToken:
    """Tests for resolving a bundle to one token."""

    @pytest.mark.parametrize(
        "raw",
        [
            TOKEN,
            json.dumps({"accountTokens": [{"accessToken": TOKEN}]}),
            json.dumps({"authToken": TOKEN}),
            {"accountTokens": [{"accessToken": TOKEN}]},
            {"authToken": TOKEN},
        ],
    )
    def test_same_token_for_every_encoding(self, raw):
        """Plain, JSON-encoded and structured bundles resolve to the same token."""
        assert extract_token(raw) == TOKEN

    def test_resolution_order(self):
        """accountTokens[0].accessToken wins over root fields."""
        raw = {
            "accountTokens": [{"authToken": ETH_TOKEN, "accessToken": TOKEN}],
            "accessToken": SOL_TOKEN,
        }
        assert extract_token(raw) == TOKEN

    def test_nested_auth_token_before_root(self):
        raw = {"accountTokens": [{"authToken": ETH_TOKEN}], "accessToken": SOL_TOKEN}
        assert extract_token(raw) == ETH_TOKEN

    def test_integration_token_is_last_root_field(self):
        raw = {"integrationToken": ETH_TOKEN, "authToken": "short"}
        assert extract_token(raw) == ETH_TOKEN

    def test_short_candidates_are_skipped(self):
        raw = {"accountTokens": [{"accessToken": "too-short"}], "authToken": TOKEN}
        assert extract_token(raw) == TOKEN

    def test_root_access_token_may_be_nested_bundle(self):
        raw = {"accessToken": json.dumps({"accountTokens": [{"accessToken": TOKEN}]})}
        assert extract_token(raw) == TOKEN

    def test_strips_whitespace(self):
        assert extract_token(f"  {TOKEN}\n") == TOKEN

    @pytest.mark.parametrize(
        "raw",
        [
            None,
            "",
            "short-token",
            '{"accessToken": "not closed',
            "[1, 2, 3]",
            {"accountTokens": [{"accessToken": "short"}]},
            {"accessToken": '{"nested": "json"}'},
            {"unrelated": TOKEN},
        ],
    )
    def test_invalid_inputs_raise(self, raw):
        """Short, JSON-shaped or missing tokens never come back."""
        with pytest.raises(InvalidTokenError) as exc:
            extract_token(raw)
        assert "reconnect" in exc.value.message


class TestExtractTokens:
    """Tests for collecting per-network tokens."""

    def test_all_account_tokens_in_order(self):
        raw = {"accountTokens": [{"accessToken": ETH_TOKEN}, {"accessToken": SOL_TOKEN}]}
        assert extract_tokens(raw) == [ETH_TOKEN, SOL_TOKEN]

    def test_deduplicates(self):
        raw = {
            "accountTokens": [{"accessToken": ETH_TOKEN}, {"authToken": ETH_TOKEN}],
            "accessToken": ETH_TOKEN,
        }
        assert extract_tokens(raw) == [ETH_TOKEN]

    def test_raises_when_empty(self):
        with pytest.raises(InvalidTokenError):
            extract_tokens({"accountTokens": []})

    def test_account_tokens_skips_unusable_fields(self):
        account = LinkedAccount(
            account_id="acc-1",
            broker_type="deFiWallet",
            transfer_token="short",
            holdings_token=TOKEN,
            network_tokens=[ETH_TOKEN, SOL_TOKEN],
        )
        assert account_tokens(account) == [ETH_TOKEN, SOL_TOKEN, TOKEN]


class TestNormalizeWalletAddress:
    """Tests for EVM address normalization."""

    def test_prefixed_address_unchanged(self):
        address = "0x" + "a" * 40
        assert normalize_wallet_address(address) == address

    def test_bare_hex_gets_prefix(self):
        assert normalize_wallet_address("b" * 40) == "0x" + "b" * 40

    def test_rejects_other_values(self):
        assert normalize_wallet_address("0x1234") is None
        assert normalize_wallet_address("So1anaAddre55") is None
        assert normalize_wallet_address(None) is None


class TestParseConnection:
    """Tests for turning a Mesh Link payload into a LinkedAccount."""

    def test_exchange_payload(self):
        payload = {
            "accessToken": {
                "accountTokens": [
                    {
                        "accessToken": TOKEN,
                        "refreshToken": "refresh-123",
                        "account": {"accountId": "cb-1", "meshAccountId": "mesh-1", "accountName": "Main"},
                    }
                ],
                "brokerType": "coinbase",
                "brokerName": "Coinbase",
            },
            "integrationId": "int-1",
        }
        account = parse_connection(payload)

        assert account.account_id == "cb-1"
        assert account.mesh_account_id == "mesh-1"
        assert account.broker_type == "coinbase"
        assert account.name == "Coinbase"
        assert account.transfer_token == TOKEN
        assert account.refresh_token == "refresh-123"
        assert account.integration_id == "int-1"
        assert account.matches("mesh-1")
        assert not account.is_wallet

    def test_wallet_payload_keeps_every_network_token(self):
        address = "0x" + "c" * 40
        payload = {
            "brokerType": "deFiWallet",
            "accessToken": json.dumps(
                {
                    "accountTokens": [
                        {"accessToken": ETH_TOKEN, "account": {"accountId": address}},
                        {"accessToken": SOL_TOKEN},
                    ]
                }
            ),
        }
        account = parse_connection(payload)

        assert account.is_wallet
        assert account.network_tokens == [ETH_TOKEN, SOL_TOKEN]
        assert account.transfer_token == ETH_TOKEN
        assert account.wallet_address == address
        assert account.name == "MetaMask"

    def test_root_level_tokens(self):
        payload = {"accountTokens": [{"accessToken": TOKEN}], "brokerType": "binance", "accountId": "bn-1"}
        account = parse_connection(payload)

        assert account.transfer_token == TOKEN
        assert account.account_id == "bn-1"
        assert account.name == "Binance"

    def test_no_token_raises(self):
        with pytest.raises(InvalidTokenError):
            parse_connection({"brokerType": "coinbase", "accessToken": "short"})


class TestLinkedAccountSerialization:
    """Tests for the stored account shape."""

    def test_round_trip(self):
        account = LinkedAccount(
            account_id="acc-1",
            broker_type="metamask",
            name="MetaMask",
            mesh_account_id="mesh-1",
            transfer_token=TOKEN,
            holdings_token=TOKEN,
            network_tokens=[ETH_TOKEN],
            wallet_address="0x" + "d" * 40,
        )
        assert LinkedAccount.from_dict(account.to_dict()) == account

    def test_from_dict_accepts_loose_keys(self):
        account = LinkedAccount.from_dict({"id": "x-1", "providerType": "kraken", "accessToken": TOKEN})
        assert account.account_id == "x-1"
        assert account.broker_type == "kraken"
        assert account.transfer_token == TOKEN
        assert account.holdings_token == TOKEN
