"""Tests for portfolio aggregation and normalization."""

import asyncio

import httpx
import pytest

from src.core.accounts.models import LinkedAccount
from src.core.portfolio import Holding, PortfolioAggregator, merge_positions, normalize_position
from src.core.portfolio.normalize import extract_positions, normalize_balances, to_number

TOKEN = "tok_live_0123456789abcdef0123456789"
OTHER_TOKEN = "tok_live_fedcba9876543210fedcba9876"
ETH_TOKEN = "tok_eth_00000000000000000000000000"
BASE_TOKEN = "tok_base_0000000000000000000000000"

HOLDINGS = "/api/v1/holdings/get"


def positions(*items):
    return {"content": {"cryptocurrencyPositions": list(items)}}


def holdings_by_token(table):
    """Holdings handler answering per bearer token; unknown tokens get a 500."""

    def handler(request):
        token = request.headers.get("Authorization", "").replace("Bearer ", "")
        if token in table:
            return httpx.Response(200, json=table[token])
        return httpx.Response(500, text="internal error")

    return handler


def aggregate(mesh, accounts):
    async def runner():
        async with mesh.client() as client:
            return await PortfolioAggregator(client).aggregate(accounts)

    return asyncio.run(runner())


def exchange(account_id="cb-1", token=TOKEN, name="Coinbase"):
    return LinkedAccount(account_id=account_id, broker_type="coinbase", name=name, transfer_token=token)


class TestNormalization:
    """Tests for reshaping provider positions."""

    def test_provider_value_takes_precedence(self):
        holding = normalize_position({"symbol": "BTC", "amount": 2, "price": 20, "value": 50}, exchange())
        assert holding.value == 50

    def test_zero_value_falls_back_to_amount_times_price(self):
        holding = normalize_position({"symbol": "BTC", "quantity": "2", "lastPrice": "20", "value": 0}, exchange())
        assert holding.amount == 2
        assert holding.value == 40

    def test_defaults_and_source(self):
        wallet = LinkedAccount(account_id="w-1", broker_type="deFiWallet", name="MetaMask")
        holding = normalize_position({"assetSymbol": "ETH", "assetName": "Ether"}, wallet)
        assert holding.symbol == "ETH"
        assert holding.name == "Ether"
        assert holding.source == "MetaMask"
        assert normalize_position({}, exchange()).symbol == "UNKNOWN"
        assert normalize_position({}, exchange()).source == "Exchange"

    def test_to_number(self):
        assert to_number("1.5") == 1.5
        assert to_number("abc") == 0.0
        assert to_number(None) == 0.0

    def test_extract_positions_envelopes(self):
        assert len(extract_positions(positions({"symbol": "A"}, {"symbol": "B"}))) == 2
        assert len(extract_positions({"holdings": [{"symbol": "A"}]})) == 1
        assert len(extract_positions({"content": [{"symbol": "A"}]})) == 1
        assert extract_positions({"content": {}}) == []

    def test_fiat_balance_priced_at_one(self):
        holdings = normalize_balances({"content": {"balances": [{"currencyCode": "USD", "cash": 125}]}}, exchange())
        assert holdings[0].symbol == "USD"
        assert holdings[0].value == 125


class TestMergePositions:
    """Tests for same-symbol deduplication."""

    def test_merges_quantities_and_uses_last_known_price(self):
        """Two networks holding ETH merge into one position."""
        merged = merge_positions(
            [
                Holding(symbol="ETH", amount=1.0, price=2000.0, value=2000.0),
                Holding(symbol="eth", amount=0.5, price=2100.0, value=1050.0),
            ]
        )
        assert len(merged) == 1
        assert merged[0].amount == pytest.approx(1.5)
        assert merged[0].value == pytest.approx(1.5 * 2100.0)

    def test_zero_price_does_not_override_known_price(self):
        merged = merge_positions(
            [
                Holding(symbol="USDC", amount=10.0, price=1.0, value=10.0),
                Holding(symbol="USDC", amount=5.0, price=0.0, value=0.0),
            ]
        )
        assert merged[0].value == pytest.approx(15.0)

    def test_without_price_values_are_summed(self):
        merged = merge_positions(
            [
                Holding(symbol="NFT", amount=1.0, value=30.0),
                Holding(symbol="NFT", amount=1.0, value=20.0),
            ]
        )
        assert merged[0].value == pytest.approx(50.0)

    def test_distinct_symbols_keep_order(self):
        merged = merge_positions([Holding(symbol="B"), Holding(symbol="A"), Holding(symbol="B")])
        assert [h.symbol for h in merged] == ["B", "A"]


class TestPortfolioAggregator:
    """Tests for concurrent aggregation across accounts."""

    def test_failed_account_degrades_to_zero(self, mesh):
        """One failing account never fails the portfolio."""
        mesh.on(
            HOLDINGS,
            handler=holdings_by_token({TOKEN: positions({"symbol": "BTC", "amount": 1, "price": 100})}),
        )

        summary = aggregate(mesh, [exchange(), exchange("kr-1", OTHER_TOKEN, "Kraken")])

        assert summary.total_value == 100
        assert [h.symbol for h in summary.holdings] == ["BTC"]
        assert summary.total_accounts == 2
        failed = summary.accounts[1]
        assert failed.asset_count == 0
        assert failed.error

    def test_wallet_queries_every_network_token(self, mesh):
        mesh.on(
            HOLDINGS,
            handler=holdings_by_token(
                {
                    ETH_TOKEN: positions({"symbol": "ETH", "amount": 1, "price": 2000}),
                    BASE_TOKEN: positions({"symbol": "ETH", "amount": 0.5, "price": 2100}),
                }
            ),
        )
        wallet = LinkedAccount(
            account_id="w-1",
            broker_type="deFiWallet",
            name="MetaMask",
            network_tokens=[ETH_TOKEN, BASE_TOKEN],
        )

        summary = aggregate(mesh, [wallet])

        assert len(mesh.calls(HOLDINGS)) == 2
        assert len(summary.holdings) == 1
        assert summary.holdings[0].amount == pytest.approx(1.5)
        assert summary.total_value == pytest.approx(1.5 * 2100)

    def test_exchange_uses_first_token_only(self, mesh):
        mesh.on(HOLDINGS, handler=holdings_by_token({TOKEN: positions()}))
        account = exchange()
        account.network_tokens = [TOKEN, OTHER_TOKEN]

        aggregate(mesh, [account])

        assert len(mesh.calls(HOLDINGS)) == 1

    def test_falls_back_to_balances(self, mesh):
        mesh.on(HOLDINGS, status=500, text="holdings unavailable")
        mesh.on("/api/v1/accounts", {"content": {"accounts": [{"accountId": "remote-1"}]}})
        mesh.on("/api/v1/balance/get", {"content": {"balances": [{"symbol": "USD", "cash": 250}]}})

        summary = aggregate(mesh, [exchange()])

        balance_request = mesh.calls("/api/v1/balance/get")[0]
        assert mesh.body(balance_request) == {"accountId": "remote-1"}
        assert summary.total_value == 250
        assert summary.holdings[0].account_id == "cb-1"
        assert summary.accounts[0].error is None

    def test_account_without_token(self, mesh):
        summary = aggregate(mesh, [LinkedAccount(account_id="x-1", transfer_token="short")])

        assert mesh.requests == []
        assert summary.total_value == 0
        assert "reconnect" in summary.accounts[0].error

    def test_reports_wallet_addresses(self, mesh):
        address = "0x" + "e" * 40
        body = positions({"symbol": "ETH", "amount": 1, "price": 1})
        body["content"]["distribution"] = [{"address": address}]
        mesh.on(HOLDINGS, handler=holdings_by_token({ETH_TOKEN: body}))
        wallet = LinkedAccount(account_id="w-1", broker_type="metamask", network_tokens=[ETH_TOKEN])

        summary = aggregate(mesh, [wallet])

        assert summary.wallet_addresses == {"w-1": address}

    def test_serializes_with_camel_case(self, mesh):
        mesh.on(HOLDINGS, handler=holdings_by_token({TOKEN: positions({"symbol": "BTC", "amount": 1, "price": 5})}))

        data = aggregate(mesh, [exchange()]).model_dump(by_alias=True)

        assert set(data) >= {"totalValue", "totalAccounts", "totalAssets", "holdings", "accounts"}
        assert data["holdings"][0]["accountName"] == "Coinbase"


class TestAggregateToken:
    """Tests for aggregation from a single token."""

    def test_groups_portfolio_holdings_by_account(self, mesh):
        mesh.on(
            "/api/v1/holdings/portfolio",
            {
                "content": {
                    "holdings": [
                        {"symbol": "BTC", "amount": 1, "price": 10, "accountId": "a-1", "brokerType": "coinbase"},
                        {"symbol": "ETH", "amount": 2, "price": 5, "accountId": "a-2", "brokerType": "metamask"},
                    ]
                }
            },
        )

        async def runner():
            async with mesh.client() as client:
                return await PortfolioAggregator(client).aggregate_token(TOKEN)

        summary = asyncio.run(runner())

        assert summary.total_value == 20
        assert summary.total_accounts == 2
        assert summary.holdings[1].source == "MetaMask"
        assert [a.name for a in summary.accounts] == ["Coinbase", "MetaMask"]
