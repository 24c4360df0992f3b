"""ORM models for the ledger kernel."""

from microfinance_kernel.models.account import (
    Account,
    AccountNature,
    AccountType,
    BasicType,
)
from microfinance_kernel.models.audit_event import AuditAction, AuditEvent
from microfinance_kernel.models.closing_snapshot import (
    AccountClosingSnapshot,
    ClientClosingSnapshot,
)
from microfinance_kernel.models.fiscal_period import FiscalPeriod
from microfinance_kernel.models.journal import (
    JournalEntry,
    JournalLine,
    JournalStatus,
    JournalType,
    SourceType,
)
from microfinance_kernel.models.partner_accrual import (
    PartnerPeriodProfit,
    PartnerSavingAccrual,
    PartnerShareAccrual,
)
from microfinance_kernel.models.party import Party, PartyType

__all__ = [
    "Account",
    "AccountNature",
    "AccountType",
    "BasicType",
    "AuditAction",
    "AuditEvent",
    "AccountClosingSnapshot",
    "ClientClosingSnapshot",
    "FiscalPeriod",
    "JournalEntry",
    "JournalLine",
    "JournalStatus",
    "JournalType",
    "SourceType",
    "PartnerPeriodProfit",
    "PartnerSavingAccrual",
    "PartnerShareAccrual",
    "Party",
    "PartyType",
]
