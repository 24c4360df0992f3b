"""
microfinance_services.profit_distribution -- Distributing a closed period's
partner profit.

Distribution posts the period's closing journal, takes an optional saving
percentage out of each partner's profit (one posted SAVING journal per
partner in the current open period) and marks the period's accruals
distributed.  Reversal restores the state left by the close.

Only the most recently closed period can be distributed or reversed.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from microfinance_config.schema import DistributionSettings
from microfinance_kernel.db.transaction import atomic
from microfinance_kernel.db.types import ZERO, round_money, to_money
from microfinance_kernel.domain.dtos import JournalInput, JournalLineInput
from microfinance_kernel.exceptions import (
    AlreadyDistributedError,
    InvalidAccrualError,
    NoAccrualsError,
    NotDistributedError,
    PartnerAccountMissingError,
)
from microfinance_kernel.logging_config import LogContext, get_logger
from microfinance_kernel.models.account import BasicType
from microfinance_kernel.models.audit_event import AuditAction
from microfinance_kernel.models.journal import JournalStatus, JournalType, SourceType
from microfinance_kernel.models.partner_accrual import (
    PartnerPeriodProfit,
    PartnerSavingAccrual,
)
from microfinance_kernel.models.party import Party, PartyType
from microfinance_kernel.services.auditor_service import audited
from microfinance_kernel.services.base import SYSTEM_ACTOR_ID
from microfinance_services._close_types import (
    DistributionResult,
    DistributionReversalResult,
    PartnerSaving,
)
from microfinance_services.period_closer import PeriodCloser

logger = get_logger("services.distribution")

HUNDRED = Decimal("100")


class ProfitDistributor:
    """Distributes and un-distributes closed-period partner profit."""

    def __init__(
        self,
        session: Session,
        closer: PeriodCloser,
        settings: DistributionSettings | None = None,
    ):
        self.session = session
        self.closer = closer
        self.settings = settings or DistributionSettings()
        self.clock = closer.clock
        self.auditor = closer.auditor
        self.journals = closer.journals
        self.periods = closer.periods
        self.accounts = closer.accounts
        self.parties = closer.parties
        self.accruals = closer.accruals

    def _profits(self, period_id: UUID) -> list[PartnerPeriodProfit]:
        return list(
            self.session.execute(
                select(PartnerPeriodProfit)
                .where(PartnerPeriodProfit.period_id == period_id)
                .order_by(PartnerPeriodProfit.created_at, PartnerPeriodProfit.id)
            ).scalars()
        )

    def _saving_percentage(self, value) -> Decimal:
        if value is None:
            value = self.settings.default_saving_percentage
        if value is None:
            return ZERO
        percentage = to_money(value)
        if percentage < ZERO or percentage > HUNDRED:
            raise InvalidAccrualError(
                f"saving percentage {percentage} is outside 0..100"
            )
        return percentage

    @audited(
        "distribution",
        AuditAction.DISTRIBUTE,
        lambda result, args: f"Distributed partner profit of fiscal period {result.period_id}",
        entity=lambda result, args: result.period_id,
    )
    def distribute(
        self,
        period_id: UUID,
        actor_id: UUID | None = None,
        saving_percentage=None,
    ) -> DistributionResult:
        """
        Raises:
            PeriodNotFoundError, PeriodNotClosedError, NotMostRecentPeriodError,
            NoAccrualsError, AlreadyDistributedError, InvalidAccrualError,
            BasicTypeNotFoundError, PartnerAccountMissingError.
        """
        period = self.periods.get_model(period_id, for_update=True)
        self.closer.require_most_recent_closed(period)
        profits = self._profits(period_id)
        if not profits:
            raise NoAccrualsError(str(period_id))
        if self.closer.period_selector.is_distributed(period_id):
            raise AlreadyDistributedError(str(period_id))
        percentage = self._saving_percentage(saving_percentage)

        planned: list[tuple[PartnerPeriodProfit, Party, Decimal]] = []
        savings_account = None
        if percentage > ZERO:
            savings_account = self.accounts.require_by_basic_type(BasicType.SAVINGS)
            for profit in profits:
                amount = round_money(profit.total_profit * percentage / HUNDRED)
                if amount <= ZERO:
                    continue
                partner = self.parties.get_model(profit.partner_id, PartyType.PARTNER)
                if partner.payable_account_id is None:
                    raise PartnerAccountMissingError(str(partner.id))
                planned.append((profit, partner, amount))
        open_period = self.periods.current_context() if planned else None

        closing_journal_id = period.closing_journal_id
        savings: list[PartnerSaving] = []
        with LogContext.bind(period_id=period_id, actor_id=actor_id):
            with atomic(self.session, "distribute_profit"):
                if closing_journal_id is not None:
                    closing = self.journals.get_model(closing_journal_id)
                    if closing.status == JournalStatus.DRAFT.value:
                        self.journals.post_journal(closing_journal_id, actor_id)
                    self.closer.rebuild_snapshots(period_id, actor_id)

                for profit, partner, amount in planned:
                    saving = PartnerSavingAccrual(
                        partner_id=partner.id,
                        period_id=period_id,
                        period_profit_id=profit.id,
                        saving_percentage=percentage,
                        saving_amount=amount,
                        created_by_id=actor_id or SYSTEM_ACTOR_ID,
                    )
                    self.session.add(saving)
                    self.session.flush()

                    fields = {
                        "period_id": period_id,
                        "period_name": period.name,
                        "partner_code": partner.party_code,
                        "partner_name": partner.name,
                        "percentage": format(percentage.normalize(), "f"),
                    }
                    record = self.journals.create_journal(
                        JournalInput(
                            lines=(
                                JournalLineInput(
                                    account_id=savings_account.id,
                                    credit=amount,
                                    memo=f"Saving recorded ({fields['percentage']}%)",
                                ),
                                JournalLineInput(
                                    account_id=partner.payable_account_id,
                                    debit=amount,
                                    memo=f"Saving deducted for partner {partner.name}",
                                ),
                            ),
                            reference=self.settings.saving_reference_format.format(**fields),
                            description=self.settings.saving_description_format.format(
                                **fields
                            ),
                            journal_type=JournalType.GENERAL,
                            source_type=SourceType.SAVING,
                            source_id=str(saving.id),
                        ),
                        actor_id=actor_id,
                        period=open_period,
                    )
                    self.journals.post_journal(record.id, actor_id)
                    saving.journal_entry_id = record.id
                    savings.append(
                        PartnerSaving(
                            partner_id=partner.id, saving_amount=amount, journal_id=record.id
                        )
                    )

                for accrual in self.accruals.models_for_period(period_id):
                    accrual.is_distributed = True
                self.session.flush()

            logger.info(
                "profit_distributed",
                extra={
                    "partner_count": len(profits),
                    "saving_percentage": percentage,
                    "saving_journals": len(savings),
                },
            )

        return DistributionResult(
            period_id=period_id,
            closing_journal_id=closing_journal_id,
            savings=tuple(savings),
        )

    @audited(
        "distribution",
        AuditAction.REVERSE_DISTRIBUTION,
        lambda result, args: (
            f"Reversed distribution of fiscal period {result.period_id}"
        ),
        entity=lambda result, args: result.period_id,
    )
    def reverse_distribution(
        self, period_id: UUID, actor_id: UUID | None = None
    ) -> DistributionReversalResult:
        """
        Undo ``distribute``: saving journals and records are removed and the
        closing journal returns to DRAFT unless closings post it themselves.

        Raises:
            PeriodNotFoundError, PeriodNotClosedError, NotMostRecentPeriodError,
            NotDistributedError.
        """
        period = self.periods.get_model(period_id, for_update=True)
        self.closer.require_most_recent_closed(period)
        if not self.closer.period_selector.is_distributed(period_id):
            raise NotDistributedError(str(period_id))

        closing_journal_id = period.closing_journal_id
        with LogContext.bind(period_id=period_id, actor_id=actor_id):
            with atomic(self.session, "reverse_distribution"):
                removed = self.closer.remove_savings(period_id, actor_id)

                if closing_journal_id is not None:
                    closing = self.journals.get_model(closing_journal_id)
                    if (
                        closing.status == JournalStatus.POSTED.value
                        and not self.closer.settings.post_closing_journal
                    ):
                        self.journals.unpost_journal(closing_journal_id, actor_id)
                    self.closer.rebuild_snapshots(period_id, actor_id)

                for accrual in self.accruals.models_for_period(period_id):
                    accrual.is_distributed = False
                self.session.flush()

            logger.info(
                "distribution_reversed",
                extra={"saving_journals_removed": len(removed)},
            )

        return DistributionReversalResult(
            period_id=period_id,
            closing_journal_id=closing_journal_id,
            deleted_saving_journal_ids=removed,
        )
