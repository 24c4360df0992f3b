"""Ledger orchestration services: period closing, profit distribution, wiring."""

from microfinance_services._close_types import (
    DistributionResult,
    DistributionReversalResult,
    PartnerSaving,
    PeriodCloseResult,
    PeriodReopenResult,
)
from microfinance_services.ledger_services import LedgerServices, chart_specs
from microfinance_services.period_closer import PeriodCloser
from microfinance_services.profit_distribution import ProfitDistributor

__all__ = [
    "DistributionResult",
    "DistributionReversalResult",
    "LedgerServices",
    "PartnerSaving",
    "PeriodCloseResult",
    "PeriodCloser",
    "PeriodReopenResult",
    "ProfitDistributor",
    "chart_specs",
]
