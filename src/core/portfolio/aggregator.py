"""Portfolio aggregation across linked accounts.

Every account is fetched concurrently, and within a wallet account every
per-network token as well. One failing account degrades to zero holdings and
a logged warning instead of failing the whole portfolio.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Dict, List, Optional, Sequence

from src.core.accounts.models import LinkedAccount
from src.core.credentials import account_tokens, extract_token
from src.core.errors import InvalidTokenError
from src.core.mesh.client import MeshClient
from src.core.portfolio.models import AccountSummary, Holding, PortfolioSummary
from src.core.portfolio.normalize import (
    account_id_of,
    extract_accounts,
    extract_positions,
    find_wallet_address,
    merge_positions,
    normalize_balances,
    normalize_position,
)
from src.core.accounts.naming import display_name

logger = logging.getLogger(__name__)


@dataclass
class AccountHoldings:
    """Result slot of one account's fetch."""

    account: LinkedAccount
    holdings: List[Holding] = field(default_factory=list)
    wallet_address: Optional[str] = None
    error: Optional[str] = None


async def gather_settled(tasks: Sequence[Awaitable[Any]]) -> List[Any]:
    """Await all tasks; failures come back as exception objects in their slot.

    Cancellation is never swallowed.
    """
    results = await asyncio.gather(*tasks, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException) and not isinstance(result, Exception):
            raise result
    return list(results)


class PortfolioAggregator:
    """Builds a PortfolioSummary from the Mesh holdings and balance APIs."""

    def __init__(self, client: MeshClient):
        self.client = client

    async def aggregate(self, accounts: Sequence[LinkedAccount]) -> PortfolioSummary:
        """Aggregate holdings of all ``accounts``."""
        results = await gather_settled([self.fetch_account(account) for account in accounts])

        slots: List[AccountHoldings] = []
        for account, result in zip(accounts, results):
            if isinstance(result, Exception):
                logger.warning(f"Holdings unavailable for {account.name} ({account.account_id}): {result}")
                result = AccountHoldings(account=account, error=str(result))
            slots.append(result)

        return build_summary(slots)

    async def aggregate_token(self, access_token: Any) -> PortfolioSummary:
        """Aggregate everything reachable with one token (no account list known).

        Uses the portfolio holdings endpoint, which reports positions of every
        account behind the token; falls back to accounts + balances.
        """
        token = extract_token(access_token)
        try:
            response = await self.client.get_portfolio_holdings(token)
        except Exception as e:
            logger.warning(f"Portfolio holdings failed, falling back to balances: {e}")
            placeholder = LinkedAccount(account_id="", transfer_token=token)
            try:
                holdings = await self._fallback_balances(placeholder, token)
            except Exception as fallback_error:
                logger.warning(f"Balance fallback failed: {fallback_error}")
                holdings = []
            return build_summary(_slots_by_account(holdings, {}))

        positions = [normalize_position(p) for p in extract_positions(response)]
        meta = {account_id_of(p): p for p in extract_positions(response) if account_id_of(p)}
        return build_summary(_slots_by_account(positions, meta))

    async def fetch_account(self, account: LinkedAccount) -> AccountHoldings:
        """Holdings of one account, merged across its network tokens."""
        tokens = account_tokens(account)
        if not tokens:
            raise InvalidTokenError(f"No usable token for {account.name}. Please reconnect this account.")
        if not account.is_wallet:
            tokens = tokens[:1]

        responses = await gather_settled(
            [self.client.get_holdings(token, account.broker_type) for token in tokens]
        )

        positions: List[Holding] = []
        wallet_address = account.wallet_address
        succeeded = 0
        for index, response in enumerate(responses):
            if isinstance(response, Exception):
                logger.warning(f"Holdings call {index + 1}/{len(tokens)} failed for {account.account_id}: {response}")
                continue
            succeeded += 1
            positions.extend(normalize_position(p, account) for p in extract_positions(response))
            wallet_address = wallet_address or find_wallet_address(response)

        if not succeeded:
            logger.info(f"Falling back to balances for {account.account_id}")
            positions = await self._fallback_balances(account, tokens[0])

        return AccountHoldings(
            account=account,
            holdings=merge_positions(positions),
            wallet_address=wallet_address,
        )

    async def _fallback_balances(self, account: LinkedAccount, token: str) -> List[Holding]:
        """List accounts, fetch each balance, reshape into holdings."""
        listed = extract_accounts(await self.client.get_accounts(token))
        targets = []
        for data in listed:
            if not account_id_of(data):
                continue
            target = LinkedAccount.from_dict(data)
            target.name = account.name if account.account_id else display_name(target.broker_type, data)
            target.broker_type = account.broker_type if account.account_id else target.broker_type
            target.account_id = account.account_id or target.account_id
            targets.append((account_id_of(data), target))
        if not targets and account.account_id:
            targets = [(account.account_id, account)]

        balances = await gather_settled([self.client.get_balance(token, remote_id) for remote_id, _ in targets])

        holdings: List[Holding] = []
        for (remote_id, target), balance in zip(targets, balances):
            if isinstance(balance, Exception):
                logger.warning(f"Balance failed for {remote_id}: {balance}")
                continue
            holdings.extend(normalize_balances(balance, target))
        return holdings


def _slots_by_account(holdings: List[Holding], meta: Dict[str, Dict[str, Any]]) -> List[AccountHoldings]:
    """Group holdings that carry their own account ids into per-account slots."""
    grouped: Dict[str, List[Holding]] = {}
    for holding in holdings:
        grouped.setdefault(holding.account_id or "", []).append(holding)

    slots = []
    for account_id, items in grouped.items():
        data = meta.get(account_id, {})
        account = LinkedAccount(
            account_id=account_id,
            broker_type=data.get("brokerType") or "unknown",
            name=items[0].account_name,
            integration_id=data.get("integrationId"),
        )
        slots.append(AccountHoldings(account=account, holdings=merge_positions(items)))
    return slots


def build_summary(slots: Sequence[AccountHoldings]) -> PortfolioSummary:
    """Flatten per-account slots into the portfolio response."""
    holdings: List[Holding] = []
    accounts: List[AccountSummary] = []
    wallet_addresses: Dict[str, str] = {}

    for slot in slots:
        holdings.extend(slot.holdings)
        accounts.append(
            AccountSummary(
                account_id=slot.account.account_id or None,
                name=slot.account.name,
                broker_type=slot.account.broker_type,
                integration_id=slot.account.integration_id,
                total_value=sum(h.value for h in slot.holdings),
                asset_count=len(slot.holdings),
                error=slot.error,
            )
        )
        if slot.wallet_address and slot.account.account_id:
            wallet_addresses[slot.account.account_id] = slot.wallet_address

    return PortfolioSummary(
        total_value=sum(h.value for h in holdings),
        total_accounts=len(accounts),
        total_assets=len(holdings),
        holdings=holdings,
        accounts=accounts,
        wallet_addresses=wallet_addresses,
    )
