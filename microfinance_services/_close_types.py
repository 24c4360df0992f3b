"""
microfinance_services._close_types -- Result DTOs of period closing and
profit distribution.

All results are frozen dataclasses; ids of deleted rows are reported so
callers can reconcile their own references.
"""

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID


@dataclass(frozen=True)
class PeriodCloseResult:
    """Outcome of closing a period.  closing_journal_id is None without profit."""

    period_id: UUID
    closing_journal_id: UUID | None
    new_period_id: UUID
    account_snapshot_count: int = 0
    client_snapshot_count: int = 0


@dataclass(frozen=True)
class PeriodReopenResult:
    """Outcome of reversing a period closing."""

    period_id: UUID
    deleted_closing_journal_id: UUID | None
    deleted_period_id: UUID | None
    deleted_saving_journal_ids: tuple[UUID, ...] = ()


@dataclass(frozen=True)
class PartnerSaving:
    partner_id: UUID
    saving_amount: Decimal
    journal_id: UUID


@dataclass(frozen=True)
class DistributionResult:
    period_id: UUID
    closing_journal_id: UUID | None
    savings: tuple[PartnerSaving, ...] = ()

    @property
    def total_saving(self) -> Decimal:
        return sum((s.saving_amount for s in self.savings), Decimal("0"))


@dataclass(frozen=True)
class DistributionReversalResult:
    period_id: UUID
    closing_journal_id: UUID | None
    deleted_saving_journal_ids: tuple[UUID, ...] = ()
