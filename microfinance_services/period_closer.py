"""
microfinance_services.period_closer -- Period closing and its reversal.

Responsibility:
    Close a fiscal period: fold partner accruals into a closing journal,
    fix per-partner period profit, snapshot account and client balances,
    and open the next period.  Reverse the most recent closing exactly.

Architecture position:
    Services -- orchestration over kernel services and selectors.
    Receives every collaborator by constructor injection; configuration
    arrives as a ClosingSettings value, never read from disk here.

Invariants enforced:
    - A period with DRAFT journals is never closed.
    - Snapshots aggregate POSTED lines only; an account snapshot covers the
      account and all of its descendants.
    - opening_* of a snapshot equals closing_* of the previous period's
      snapshot (zero when there is none).
    - Only the most recently closed period can be reopened, and reopening
      removes everything the close created.
    - close and reverse each run in one atomic block.

Failure modes:
    - PeriodNotFoundError, PeriodAlreadyClosedError, UnclosedDraftsError,
      BasicTypeNotFoundError, PartnerAccountMissingError on close.
    - PeriodNotClosedError, NotMostRecentPeriodError, PeriodHasJournalsError
      on reversal.

Audit relevance:
    Both operations append a "period_closing" audit record when an actor
    is given; the journal operations they perform are audited as well.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from microfinance_config.schema import ClosingSettings
from microfinance_kernel.db.transaction import atomic
from microfinance_kernel.db.types import ZERO, round_money
from microfinance_kernel.domain.balances import Totals, nature_balance, roll_up
from microfinance_kernel.domain.clock import Clock, SystemClock
from microfinance_kernel.domain.dtos import JournalInput, JournalLineInput
from microfinance_kernel.exceptions import (
    PartnerAccountMissingError,
    PeriodAlreadyClosedError,
    PeriodHasJournalsError,
    PeriodNotClosedError,
    UnclosedDraftsError,
)
from microfinance_kernel.logging_config import LogContext, get_logger
from microfinance_kernel.models.account import BasicType
from microfinance_kernel.models.audit_event import AuditAction
from microfinance_kernel.models.closing_snapshot import (
    AccountClosingSnapshot,
    ClientClosingSnapshot,
)
from microfinance_kernel.models.fiscal_period import FiscalPeriod
from microfinance_kernel.models.journal import (
    JournalEntry,
    JournalStatus,
    JournalType,
    SourceType,
)
from microfinance_kernel.models.partner_accrual import (
    PartnerPeriodProfit,
    PartnerSavingAccrual,
)
from microfinance_kernel.models.party import PartyType
from microfinance_kernel.selectors.journal_selector import JournalSelector
from microfinance_kernel.selectors.ledger_selector import LedgerSelector
from microfinance_kernel.selectors.period_selector import PeriodSelector
from microfinance_kernel.services.account_directory import AccountDirectory
from microfinance_kernel.services.accrual_service import AccrualService, AccrualSummary
from microfinance_kernel.services.auditor_service import AuditorService, audited
from microfinance_kernel.services.base import SYSTEM_ACTOR_ID
from microfinance_kernel.services.journal_service import JournalService
from microfinance_kernel.services.party_service import PartyService
from microfinance_kernel.services.period_service import PeriodService
from microfinance_services._close_types import PeriodCloseResult, PeriodReopenResult

logger = get_logger("services.period_close")


class PeriodCloser:
    """
    Closes and reopens fiscal periods.

    Contract:
        Callers own the transaction; every method flushes only.  At most one
        closing or reversal may run per period at a time.
    Non-goals:
        - Does not post the closing journal unless
          ``ClosingSettings.post_closing_journal`` is set; ProfitDistributor
          posts it otherwise.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        auditor: AuditorService | None = None,
        journals: JournalService | None = None,
        accruals: AccrualService | None = None,
        settings: ClosingSettings | None = None,
    ):
        self.session = session
        self.clock = clock or SystemClock()
        self.settings = settings or ClosingSettings()
        self.auditor = auditor or AuditorService(session, self.clock)
        self.journals = journals or JournalService(
            session,
            self.clock,
            self.auditor,
            periods=PeriodService(
                session, self.clock, name_format=self.settings.new_period_name_format
            ),
        )
        self.periods: PeriodService = self.journals.periods
        self.accounts: AccountDirectory = self.journals.accounts
        self.parties: PartyService = self.journals.parties
        self.accruals = accruals or AccrualService(
            session, self.clock, self.periods, self.parties
        )
        self.journal_selector = JournalSelector(session)
        self.ledger_selector = LedgerSelector(session)
        self.period_selector = PeriodSelector(session)

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    def require_most_recent_closed(self, period: FiscalPeriod) -> None:
        """See ``PeriodService.require_most_recent_closed``."""
        self.periods.require_most_recent_closed(period)

    # ------------------------------------------------------------------
    # Closing journal
    # ------------------------------------------------------------------

    def _closing_lines(self, summary: AccrualSummary) -> list[JournalLineInput]:
        """Lines moving period profit out of loan income.  Empty without profit."""
        partner_amounts = [
            (partner_id, round_money(amount))
            for partner_id, amount in summary.per_partner.items()
        ]
        partner_amounts = [(p, a) for p, a in partner_amounts if a > ZERO]
        company_cut = round_money(summary.total_company_cut)
        if not partner_amounts and company_cut <= ZERO:
            return []

        loan_income = self.accounts.require_by_basic_type(BasicType.LOAN_INCOME)
        lines: list[JournalLineInput] = []
        for partner_id, amount in partner_amounts:
            partner = self.parties.get_model(partner_id, PartyType.PARTNER)
            if partner.payable_account_id is None:
                raise PartnerAccountMissingError(str(partner_id))
            lines.append(
                JournalLineInput(
                    account_id=loan_income.id,
                    debit=amount,
                    memo="Partner shares for period",
                )
            )
            lines.append(
                JournalLineInput(
                    account_id=partner.payable_account_id,
                    credit=amount,
                    memo=f"Partner payable - share for period ({partner.party_code})",
                )
            )

        if company_cut > ZERO:
            company_shares = self.accounts.require_by_basic_type(BasicType.COMPANY_SHARES)
            lines.append(
                JournalLineInput(
                    account_id=loan_income.id,
                    debit=company_cut,
                    memo="Partner shares for period",
                )
            )
            lines.append(
                JournalLineInput(
                    account_id=company_shares.id,
                    credit=company_cut,
                    memo="Company share from partners profit",
                )
            )
        return lines

    def _format(self, template: str, period: FiscalPeriod, now: datetime) -> str:
        return template.format(
            period_id=period.id,
            period_seq=period.seq,
            period_name=period.name,
            timestamp=int(now.timestamp() * 1000),
        )

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def _write_snapshots(self, period: FiscalPeriod, actor_id: UUID | None) -> tuple[int, int]:
        now = self.clock.now()
        created_by = actor_id or SYSTEM_ACTOR_ID
        previous = self.periods.previous_period(period)

        accounts = self.accounts.all_models()
        rolled = roll_up(
            self.ledger_selector.period_activity(period.id),
            {a.id: a.parent_id for a in accounts},
        )
        prior = self.period_selector.account_snapshots(previous.id) if previous else {}
        for account in accounts:
            movement = rolled.get(account.id, Totals())
            before = prior.get(account.id)
            opening_debit = before.closing_debit if before else ZERO
            opening_credit = before.closing_credit if before else ZERO
            opening_balance = before.closing_balance if before else ZERO
            self.session.add(
                AccountClosingSnapshot(
                    account_id=account.id,
                    period_id=period.id,
                    opening_debit=opening_debit,
                    opening_credit=opening_credit,
                    opening_balance=opening_balance,
                    closing_debit=round_money(opening_debit + movement.debit),
                    closing_credit=round_money(opening_credit + movement.credit),
                    closing_balance=round_money(
                        opening_balance
                        + nature_balance(account.nature, movement.debit, movement.credit)
                    ),
                    last_updated=now,
                    created_by_id=created_by,
                )
            )

        client_activity = self.ledger_selector.client_activity(period.id)
        prior_clients = (
            self.period_selector.client_snapshots(previous.id) if previous else {}
        )
        clients = self.parties.list_by_type(PartyType.CLIENT)
        for client in clients:
            movement = client_activity.get(client.id, Totals())
            before = prior_clients.get(client.id)
            opening_debit = before.closing_debit if before else ZERO
            opening_credit = before.closing_credit if before else ZERO
            opening_balance = before.closing_balance if before else ZERO
            self.session.add(
                ClientClosingSnapshot(
                    client_id=client.id,
                    period_id=period.id,
                    opening_debit=opening_debit,
                    opening_credit=opening_credit,
                    opening_balance=opening_balance,
                    closing_debit=round_money(opening_debit + movement.debit),
                    closing_credit=round_money(opening_credit + movement.credit),
                    closing_balance=round_money(
                        opening_balance + movement.debit - movement.credit
                    ),
                    last_updated=now,
                    created_by_id=created_by,
                )
            )

        self.session.flush()
        return len(accounts), len(clients)

    def _delete_snapshots(self, period_id: UUID) -> None:
        self.session.execute(
            delete(AccountClosingSnapshot).where(
                AccountClosingSnapshot.period_id == period_id
            )
        )
        self.session.execute(
            delete(ClientClosingSnapshot).where(
                ClientClosingSnapshot.period_id == period_id
            )
        )

    def rebuild_snapshots(self, period_id: UUID, actor_id: UUID | None = None) -> tuple[int, int]:
        """
        Recompute the snapshots of a closed period from its posted lines.

        Used when the closing journal is posted or unposted after the close.
        Returns (account snapshot count, client snapshot count).
        """
        period = self.periods.get_model(period_id)
        if not period.is_closed:
            raise PeriodNotClosedError(str(period_id))
        with atomic(self.session, "rebuild_snapshots"):
            self._delete_snapshots(period_id)
            self.session.flush()
            counts = self._write_snapshots(period, actor_id)
        logger.info(
            "snapshots_rebuilt",
            extra={
                "period_id": str(period_id),
                "accounts": counts[0],
                "clients": counts[1],
            },
        )
        return counts

    # ------------------------------------------------------------------
    # Savings taken at distribution
    # ------------------------------------------------------------------

    def remove_savings(self, period_id: UUID, actor_id: UUID | None = None) -> tuple[UUID, ...]:
        """Unpost and delete the saving journals of a period, then their records."""
        rows = self.session.execute(
            select(PartnerSavingAccrual).where(PartnerSavingAccrual.period_id == period_id)
        ).scalars().all()
        removed: list[UUID] = []
        for row in rows:
            journal_id = row.journal_entry_id
            entry = self.session.get(JournalEntry, journal_id) if journal_id else None
            if entry is not None:
                if entry.is_posted:
                    self.journals.unpost_journal(journal_id, actor_id)
                self.journals.delete_journal(journal_id, actor_id)
                removed.append(journal_id)
            self.session.delete(row)
        self.session.flush()
        return tuple(removed)

    # ------------------------------------------------------------------
    # Close
    # ------------------------------------------------------------------

    @audited(
        "period_closing",
        AuditAction.CLOSE,
        lambda result, args: f"Closed fiscal period {result.period_id}",
        entity=lambda result, args: result.period_id,
    )
    def close_period(self, period_id: UUID, actor_id: UUID | None = None) -> PeriodCloseResult:
        """
        Close ``period_id`` and open its successor.

        The closing journal is created DRAFT in the closed period (posted
        immediately when configured).  Zero profit produces no journal.
        """
        period = self.periods.get_model(period_id, for_update=True)
        if period.is_closed:
            raise PeriodAlreadyClosedError(str(period_id))
        drafts = self.journal_selector.count_drafts(period_id)
        if drafts:
            raise UnclosedDraftsError(str(period_id), drafts)

        summary = self.accruals.summarize_period(period_id)
        lines = self._closing_lines(summary)
        now = self.clock.now()

        with LogContext.bind(period_id=period_id, actor_id=actor_id):
            with atomic(self.session, "close_period"):
                closing_journal_id = None
                if lines:
                    record = self.journals.create_journal(
                        JournalInput(
                            lines=tuple(lines),
                            reference=self._format(self.settings.reference_format, period, now),
                            description=self._format(
                                self.settings.description_format, period, now
                            ),
                            journal_type=JournalType.CLOSING,
                            source_type=SourceType.PERIOD_CLOSING,
                            source_id=str(period_id),
                            period_id=period_id,
                            entry_date=now,
                        ),
                        actor_id=actor_id,
                    )
                    closing_journal_id = record.id
                    if self.settings.post_closing_journal:
                        self.journals.post_journal(record.id, actor_id)

                created_by = actor_id or SYSTEM_ACTOR_ID
                for accrual in self.accruals.models_for_period(period_id):
                    accrual.is_closed = True
                for partner_id, amount in summary.per_partner.items():
                    self.session.add(
                        PartnerPeriodProfit(
                            partner_id=partner_id,
                            period_id=period_id,
                            total_profit=round_money(amount),
                            created_by_id=created_by,
                        )
                    )
                self.session.flush()

                account_count, client_count = self._write_snapshots(period, actor_id)

                successor = self.periods.open_period(actor_id, start_date=now)

                period.closing_journal_id = closing_journal_id
                period.is_closed = True
                period.end_date = now
                period.closed_at = now
                period.closed_by_id = created_by
                period.updated_by_id = actor_id
                self.session.flush()

            logger.info(
                "period_closed",
                extra={
                    "closing_journal_id": (
                        str(closing_journal_id) if closing_journal_id else None
                    ),
                    "new_period_id": str(successor.id),
                    "partner_count": len(summary.per_partner),
                    "company_cut": summary.total_company_cut,
                },
            )

        return PeriodCloseResult(
            period_id=period_id,
            closing_journal_id=closing_journal_id,
            new_period_id=successor.id,
            account_snapshot_count=account_count,
            client_snapshot_count=client_count,
        )

    # ------------------------------------------------------------------
    # Reverse
    # ------------------------------------------------------------------

    @audited(
        "period_closing",
        AuditAction.REOPEN,
        lambda result, args: f"Reversed closing of fiscal period {result.period_id}",
        entity=lambda result, args: result.period_id,
    )
    def reverse_period_closing(
        self, period_id: UUID, actor_id: UUID | None = None
    ) -> PeriodReopenResult:
        """
        Undo the most recent closing: snapshots, profits, savings, closing
        journal and the successor period are removed and the period reopens.

        Accruals recorded in the successor period move back into the
        reopened period.
        """
        period = self.periods.get_model(period_id, for_update=True)
        self.require_most_recent_closed(period)

        successor = self.periods.successor_period(period)
        if successor is not None:
            saving_journal_ids = set(
                self.session.execute(
                    select(PartnerSavingAccrual.journal_entry_id).where(
                        PartnerSavingAccrual.period_id == period_id,
                        PartnerSavingAccrual.journal_entry_id.is_not(None),
                    )
                ).scalars()
            )
            foreign = self.session.execute(
                select(JournalEntry.id).where(JournalEntry.period_id == successor.id)
            ).scalars().all()
            foreign_count = len([j for j in foreign if j not in saving_journal_ids])
            if foreign_count:
                raise PeriodHasJournalsError(str(successor.id), foreign_count)

        closing_journal_id = period.closing_journal_id
        deleted_period_id = successor.id if successor else None

        with LogContext.bind(period_id=period_id, actor_id=actor_id):
            with atomic(self.session, "reverse_period_closing"):
                removed_savings = self.remove_savings(period_id, actor_id)

                if closing_journal_id is not None:
                    closing = self.journals.get_model(closing_journal_id)
                    if closing.status == JournalStatus.POSTED.value:
                        self.journals.unpost_journal(closing_journal_id, actor_id)

                self._delete_snapshots(period_id)
                for accrual in self.accruals.models_for_period(period_id):
                    accrual.is_closed = False
                    accrual.is_distributed = False
                self.session.execute(
                    delete(PartnerPeriodProfit).where(
                        PartnerPeriodProfit.period_id == period_id
                    )
                )

                if successor is not None:
                    moved = self.accruals.models_for_period(successor.id)
                    for accrual in moved:
                        accrual.period_id = period_id
                    self.session.flush()
                    self.session.delete(successor)
                    self.session.flush()

                period.closing_journal_id = None
                period.is_closed = False
                period.end_date = None
                period.closed_at = None
                period.closed_by_id = None
                period.updated_by_id = actor_id
                self.session.flush()

                if closing_journal_id is not None:
                    self.journals.delete_journal(closing_journal_id, actor_id)

            logger.info(
                "period_closing_reversed",
                extra={
                    "deleted_period_id": str(deleted_period_id) if deleted_period_id else None,
                    "closing_journal_id": (
                        str(closing_journal_id) if closing_journal_id else None
                    ),
                    "saving_journals_removed": len(removed_savings),
                },
            )

        return PeriodReopenResult(
            period_id=period_id,
            deleted_closing_journal_id=closing_journal_id,
            deleted_period_id=deleted_period_id,
            deleted_saving_journal_ids=removed_savings,
        )

