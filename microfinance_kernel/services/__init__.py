"""Services for the microfinance kernel (write side)."""

from microfinance_kernel.services.account_directory import AccountDirectory, AccountSpec
from microfinance_kernel.services.accrual_service import (
    AccrualInfo,
    AccrualService,
    AccrualSummary,
)
from microfinance_kernel.services.auditor_service import (
    AuditorService,
    AuditRecord,
    audited,
)
from microfinance_kernel.services.balance_propagator import BalancePropagator
from microfinance_kernel.services.base import SYSTEM_ACTOR_ID
from microfinance_kernel.services.journal_service import JournalService
from microfinance_kernel.services.party_service import PartyInfo, PartyService
from microfinance_kernel.services.period_service import PeriodService
from microfinance_kernel.services.sequence_service import SequenceService

__all__ = [
    "AccountDirectory",
    "AccountSpec",
    "AccrualInfo",
    "AccrualService",
    "AccrualSummary",
    "AuditRecord",
    "AuditorService",
    "BalancePropagator",
    "JournalService",
    "PartyInfo",
    "PartyService",
    "PeriodService",
    "SYSTEM_ACTOR_ID",
    "SequenceService",
    "audited",
]
