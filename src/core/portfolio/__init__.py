"""Portfolio aggregation across linked accounts."""

from .aggregator import AccountHoldings, PortfolioAggregator, build_summary
from .models import AccountSummary, Holding, PortfolioSummary
from .normalize import merge_positions, normalize_balances, normalize_position

__all__ = [
    "AccountHoldings",
    "PortfolioAggregator",
    "build_summary",
    "AccountSummary",
    "Holding",
    "PortfolioSummary",
    "merge_positions",
    "normalize_balances",
    "normalize_position",
]
