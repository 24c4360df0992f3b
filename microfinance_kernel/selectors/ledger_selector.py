"""
Module: microfinance_kernel.selectors.ledger_selector
Responsibility: Aggregations over posted journal lines and the live
    running balances they must agree with.

Only POSTED journals contribute to activity.  Direct activity is per
account (not rolled up); ``roll_up`` in domain.balances folds it into
ancestors when a hierarchy view is needed.
"""

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from microfinance_kernel.domain.balances import Totals, roll_up
from microfinance_kernel.models.account import Account, AccountNature
from microfinance_kernel.models.journal import JournalEntry, JournalLine, JournalStatus
from microfinance_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class TrialBalanceRow:
    account_id: UUID
    code: str
    name: str
    level: int
    nature: AccountNature
    debit: Decimal
    credit: Decimal
    balance: Decimal


@dataclass(frozen=True)
class RollupMismatch:
    """An account whose stored totals differ from its posted lines."""

    account_id: UUID
    code: str
    expected: Totals
    actual: Totals


class LedgerSelector(BaseSelector[JournalLine]):

    def __init__(self, session: Session):
        super().__init__(session)

    def _posted_totals(self, group_column, *conditions) -> dict[UUID, Totals]:
        # Summed in Python: SQLite aggregates NUMERIC as binary floats
        rows = self.session.execute(
            select(group_column, JournalLine.debit, JournalLine.credit)
            .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
            .where(JournalEntry.status == JournalStatus.POSTED.value, *conditions)
        )
        totals: dict[UUID, Totals] = {}
        for key, debit, credit in rows:
            if key is None:
                continue
            totals[key] = totals.get(key, Totals()) + Totals(debit, credit)
        return totals

    def period_activity(self, period_id: UUID) -> dict[UUID, Totals]:
        """Posted debit/credit per account within one period (direct only)."""
        return self._posted_totals(
            JournalLine.account_id, JournalEntry.period_id == period_id
        )

    def client_activity(self, period_id: UUID) -> dict[UUID, Totals]:
        """Posted debit/credit per client within one period."""
        return self._posted_totals(
            JournalLine.client_id,
            JournalEntry.period_id == period_id,
            JournalLine.client_id.is_not(None),
        )

    def lifetime_activity(self) -> dict[UUID, Totals]:
        return self._posted_totals(JournalLine.account_id)

    def trial_balance(self) -> list[TrialBalanceRow]:
        """Live running balances of every account, ordered by code."""
        accounts = self.session.execute(
            select(Account).order_by(Account.code)
        ).scalars().all()
        return [
            TrialBalanceRow(
                account_id=a.id,
                code=a.code,
                name=a.name,
                level=a.level,
                nature=AccountNature(a.nature),
                debit=a.debit,
                credit=a.credit,
                balance=a.balance,
            )
            for a in accounts
        ]

    def verify_rollup(self) -> list[RollupMismatch]:
        """
        Compare each account's stored totals with the roll-up of all posted
        lines at or below it.  An empty list means the ledger is consistent.
        """
        accounts = self.session.execute(
            select(Account).order_by(Account.code)
        ).scalars().all()
        expected = roll_up(
            self.lifetime_activity(), {a.id: a.parent_id for a in accounts}
        )
        mismatches = []
        for account in accounts:
            want = expected.get(account.id, Totals())
            have = Totals(account.debit, account.credit)
            if want != have:
                mismatches.append(
                    RollupMismatch(
                        account_id=account.id,
                        code=account.code,
                        expected=want,
                        actual=have,
                    )
                )
        return mismatches
