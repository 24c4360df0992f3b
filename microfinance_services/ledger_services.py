"""
microfinance_services.ledger_services -- Central DI container for the ledger.

Responsibility:
    Creates every kernel service, selector and orchestration service once
    per session and wires them together with the values of a
    LedgerConfiguration.  Nothing below this module reads configuration.

Usage:
    config = get_active_config()
    with session_scope() as session:
        ledger = LedgerServices(session, config)
        ledger.seed_chart()
        ledger.periods.ensure_open_period()
        ledger.journals.create_journal(...)
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy.orm import Session

from microfinance_config.schema import LedgerConfiguration
from microfinance_kernel.domain.clock import Clock, SystemClock
from microfinance_kernel.domain.dtos import AccountInfo
from microfinance_kernel.models.account import AccountNature, AccountType, BasicType
from microfinance_kernel.selectors.journal_selector import JournalSelector
from microfinance_kernel.selectors.ledger_selector import LedgerSelector
from microfinance_kernel.selectors.period_selector import PeriodSelector
from microfinance_kernel.services.account_directory import AccountDirectory, AccountSpec
from microfinance_kernel.services.accrual_service import AccrualService
from microfinance_kernel.services.auditor_service import AuditorService
from microfinance_kernel.services.journal_service import JournalService
from microfinance_kernel.services.party_service import PartyService
from microfinance_kernel.services.period_service import PeriodService
from microfinance_services.period_closer import PeriodCloser
from microfinance_services.profit_distribution import ProfitDistributor


def chart_specs(config: LedgerConfiguration) -> list[AccountSpec]:
    """Convert the configured seed chart into AccountDirectory input."""
    return [
        AccountSpec(
            code=account.code,
            name=account.name,
            account_type=AccountType(account.account_type),
            basic_type=BasicType(account.basic_type),
            parent_code=account.parent,
            nature=AccountNature(account.nature) if account.nature else None,
        )
        for account in config.chart_of_accounts
    ]


class LedgerServices:
    """
    Single-instance wiring of all ledger services over one session.

    Non-goals:
        - Does NOT manage transaction boundaries (caller's responsibility).
    """

    def __init__(
        self,
        session: Session,
        config: LedgerConfiguration,
        clock: Clock | None = None,
    ) -> None:
        self.session = session
        self.config = config
        self.clock = clock or SystemClock()

        self.auditor = AuditorService(session, self.clock)
        self.periods = PeriodService(
            session, self.clock, name_format=config.closing.new_period_name_format
        )
        self.accounts = AccountDirectory(session, self.clock, self.auditor)
        self.parties = PartyService(session, self.clock)
        self.journals = JournalService(
            session,
            self.clock,
            auditor=self.auditor,
            periods=self.periods,
            accounts=self.accounts,
            parties=self.parties,
            zakat_source_types=config.ledger.zakat_source_types,
        )
        self.accruals = AccrualService(session, self.clock, self.periods, self.parties)

        self.closer = PeriodCloser(
            session,
            self.clock,
            auditor=self.auditor,
            journals=self.journals,
            accruals=self.accruals,
            settings=config.closing,
        )
        self.distributor = ProfitDistributor(
            session, self.closer, settings=config.distribution
        )

        self.journal_selector = JournalSelector(session)
        self.ledger_selector = LedgerSelector(session)
        self.period_selector = PeriodSelector(session)

    def seed_chart(self, actor_id: UUID | None = None) -> list[AccountInfo]:
        return self.accounts.seed_chart(chart_specs(self.config), actor_id=actor_id)

    def list_journals(self, page: int = 1, limit: int | None = None, **filters):
        return self.journal_selector.list_journals(
            page=page,
            limit=limit or self.config.ledger.default_page_size,
            **filters,
        )
