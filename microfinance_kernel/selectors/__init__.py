"""Read-only query selectors."""

from microfinance_kernel.selectors.base import BaseSelector
from microfinance_kernel.selectors.journal_selector import JournalSelector
from microfinance_kernel.selectors.ledger_selector import (
    LedgerSelector,
    RollupMismatch,
    TrialBalanceRow,
)
from microfinance_kernel.selectors.period_selector import (
    ClosedPeriodSummary,
    PartnerProfitRow,
    PeriodSelector,
    SnapshotInfo,
)

__all__ = [
    "BaseSelector",
    "ClosedPeriodSummary",
    "JournalSelector",
    "LedgerSelector",
    "PartnerProfitRow",
    "PeriodSelector",
    "RollupMismatch",
    "SnapshotInfo",
    "TrialBalanceRow",
]
