"""
Module: microfinance_kernel.selectors.period_selector
Responsibility: Read-only views of closed periods: profit summaries for the
    distribution screen and the closing snapshots of a period.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from microfinance_kernel.db.types import ZERO
from microfinance_kernel.domain.dtos import PeriodInfo
from microfinance_kernel.models.account import Account, BasicType
from microfinance_kernel.models.closing_snapshot import (
    AccountClosingSnapshot,
    ClientClosingSnapshot,
)
from microfinance_kernel.models.fiscal_period import FiscalPeriod
from microfinance_kernel.models.journal import JournalEntry, JournalLine
from microfinance_kernel.models.partner_accrual import (
    PartnerPeriodProfit,
    PartnerShareAccrual,
)
from microfinance_kernel.models.party import Party
from microfinance_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class PartnerProfitRow:
    partner_id: UUID
    partner_name: str
    total_profit: Decimal


@dataclass(frozen=True)
class ClosedPeriodSummary:
    period: PeriodInfo
    company_profit: Decimal
    partners: tuple[PartnerProfitRow, ...]
    is_distributed: bool

    @property
    def total_partner_profit(self) -> Decimal:
        return sum((p.total_profit for p in self.partners), ZERO)


@dataclass(frozen=True)
class SnapshotInfo:
    """Opening and closing totals of one account or client for a period."""

    owner_id: UUID
    period_id: UUID
    opening_debit: Decimal
    opening_credit: Decimal
    opening_balance: Decimal
    closing_debit: Decimal
    closing_credit: Decimal
    closing_balance: Decimal
    last_updated: datetime


def _snapshot_info(owner_id: UUID, row) -> SnapshotInfo:
    return SnapshotInfo(
        owner_id=owner_id,
        period_id=row.period_id,
        opening_debit=row.opening_debit,
        opening_credit=row.opening_credit,
        opening_balance=row.opening_balance,
        closing_debit=row.closing_debit,
        closing_credit=row.closing_credit,
        closing_balance=row.closing_balance,
        last_updated=row.last_updated,
    )


class PeriodSelector(BaseSelector[FiscalPeriod]):

    def __init__(self, session: Session):
        super().__init__(session)

    def latest_closed(self) -> PeriodInfo | None:
        period = self.session.execute(
            select(FiscalPeriod)
            .where(FiscalPeriod.is_closed.is_(True))
            .order_by(FiscalPeriod.seq.desc())
            .limit(1)
        ).scalar_one_or_none()
        return PeriodInfo.from_model(period) if period else None

    def company_profit(self, period_id: UUID) -> Decimal:
        """Credits booked to COMPANY_SHARES accounts by journals of the period."""
        total = self.session.execute(
            select(func.coalesce(func.sum(JournalLine.credit), ZERO))
            .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
            .join(Account, JournalLine.account_id == Account.id)
            .where(
                JournalEntry.period_id == period_id,
                Account.basic_type == BasicType.COMPANY_SHARES.value,
            )
        ).scalar_one()
        return Decimal(total)

    def partner_profits(self, period_id: UUID) -> tuple[PartnerProfitRow, ...]:
        rows = self.session.execute(
            select(PartnerPeriodProfit, Party.name)
            .join(Party, PartnerPeriodProfit.partner_id == Party.id)
            .where(PartnerPeriodProfit.period_id == period_id)
            .order_by(Party.party_code)
        ).all()
        return tuple(
            PartnerProfitRow(
                partner_id=profit.partner_id,
                partner_name=name,
                total_profit=profit.total_profit,
            )
            for profit, name in rows
        )

    def is_distributed(self, period_id: UUID) -> bool:
        count = self.session.execute(
            select(func.count())
            .select_from(PartnerShareAccrual)
            .where(
                PartnerShareAccrual.period_id == period_id,
                PartnerShareAccrual.is_distributed.is_(True),
            )
        ).scalar_one()
        return count > 0

    def closed_periods(self) -> list[ClosedPeriodSummary]:
        """Closed periods, newest first, with their profit split."""
        periods = self.session.execute(
            select(FiscalPeriod)
            .where(FiscalPeriod.is_closed.is_(True))
            .order_by(FiscalPeriod.seq.desc())
        ).scalars().all()
        return [
            ClosedPeriodSummary(
                period=PeriodInfo.from_model(p),
                company_profit=self.company_profit(p.id),
                partners=self.partner_profits(p.id),
                is_distributed=self.is_distributed(p.id),
            )
            for p in periods
        ]

    def account_snapshots(self, period_id: UUID) -> dict[UUID, SnapshotInfo]:
        rows = self.session.execute(
            select(AccountClosingSnapshot).where(
                AccountClosingSnapshot.period_id == period_id
            )
        ).scalars()
        return {row.account_id: _snapshot_info(row.account_id, row) for row in rows}

    def client_snapshots(self, period_id: UUID) -> dict[UUID, SnapshotInfo]:
        rows = self.session.execute(
            select(ClientClosingSnapshot).where(
                ClientClosingSnapshot.period_id == period_id
            )
        ).scalars()
        return {row.client_id: _snapshot_info(row.client_id, row) for row in rows}
