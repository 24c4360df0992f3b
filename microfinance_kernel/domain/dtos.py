"""
DTOs -- immutable data exchanged with ledger callers.

Services accept input DTOs (JournalInput, JournalLineInput, JournalPatch)
and return record DTOs built with ``from_model()``; ORM instances never
leave the service layer.

Data flow:
    JournalInput -> JournalService.create_journal -> JournalRecord
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from microfinance_kernel.db.types import ZERO, to_money
from microfinance_kernel.models.account import AccountNature, AccountType, BasicType
from microfinance_kernel.models.journal import JournalStatus, JournalType, SourceType

if TYPE_CHECKING:
    from microfinance_kernel.models.account import Account as AccountModel
    from microfinance_kernel.models.fiscal_period import (
        FiscalPeriod as FiscalPeriodModel,
    )
    from microfinance_kernel.models.journal import JournalEntry as JournalEntryModel


# ---------------------------------------------------------------------------
# Journal input
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class JournalLineInput:
    """One requested line.  Amounts are coerced to Decimal; floats are refused."""

    account_id: UUID
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    memo: str | None = None
    client_id: UUID | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "debit", to_money(self.debit))
        object.__setattr__(self, "credit", to_money(self.credit))


@dataclass(frozen=True)
class JournalInput:
    """A complete journal as supplied by a business-event collaborator."""

    lines: tuple[JournalLineInput, ...]
    reference: str | None = None
    description: str | None = None
    journal_type: JournalType = JournalType.GENERAL
    source_type: SourceType = SourceType.MANUAL
    source_id: str | None = None
    period_id: UUID | None = None
    entry_date: datetime | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "lines", tuple(self.lines))

    @property
    def total_debits(self) -> Decimal:
        return sum((line.debit for line in self.lines), ZERO)

    @property
    def total_credits(self) -> Decimal:
        return sum((line.credit for line in self.lines), ZERO)


@dataclass(frozen=True)
class JournalPatch:
    """Pre-post edit.  None leaves a field unchanged; lines replace the full set."""

    description: str | None = None
    journal_type: JournalType | None = None
    reference: str | None = None
    lines: tuple[JournalLineInput, ...] | None = None

    def __post_init__(self) -> None:
        if self.lines is not None:
            object.__setattr__(self, "lines", tuple(self.lines))


# ---------------------------------------------------------------------------
# Journal records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class JournalLineRecord:
    id: UUID
    line_seq: int
    account_id: UUID
    debit: Decimal
    credit: Decimal
    balance: Decimal
    memo: str | None = None
    client_id: UUID | None = None


@dataclass(frozen=True)
class JournalRecord:
    """Read-only view of a persisted journal header and its lines."""

    id: UUID
    seq: int
    period_id: UUID
    status: JournalStatus
    journal_type: JournalType
    source_type: SourceType
    entry_date: datetime
    lines: tuple[JournalLineRecord, ...] = field(default_factory=tuple)
    reference: str | None = None
    description: str | None = None
    source_id: str | None = None
    posted_at: datetime | None = None
    posted_by_id: UUID | None = None

    @property
    def is_posted(self) -> bool:
        return self.status == JournalStatus.POSTED

    @property
    def total_debits(self) -> Decimal:
        return sum((line.debit for line in self.lines), ZERO)

    @property
    def total_credits(self) -> Decimal:
        return sum((line.credit for line in self.lines), ZERO)

    @classmethod
    def from_model(cls, model: JournalEntryModel) -> JournalRecord:
        lines = tuple(
            JournalLineRecord(
                id=line.id,
                line_seq=line.line_seq,
                account_id=line.account_id,
                debit=line.debit,
                credit=line.credit,
                balance=line.balance,
                memo=line.line_memo,
                client_id=line.client_id,
            )
            for line in sorted(model.lines, key=lambda ln: ln.line_seq)
        )
        return cls(
            id=model.id,
            seq=model.seq,
            period_id=model.period_id,
            status=JournalStatus(model.status),
            journal_type=JournalType(model.journal_type),
            source_type=SourceType(model.source_type),
            entry_date=model.entry_date,
            lines=lines,
            reference=model.reference,
            description=model.description,
            source_id=model.source_id,
            posted_at=model.posted_at,
            posted_by_id=model.posted_by_id,
        )


@dataclass(frozen=True)
class JournalPage:
    """One page of a journal listing."""

    items: tuple[JournalRecord, ...]
    total: int
    current_page: int
    limit: int

    @property
    def total_pages(self) -> int:
        if self.limit <= 0:
            return 0
        return (self.total + self.limit - 1) // self.limit


# ---------------------------------------------------------------------------
# Periods
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PeriodContext:
    """
    The open period a mutating operation targets.

    Resolved once per operation by PeriodService.current_context() and
    passed explicitly instead of being re-read from storage.
    """

    period_id: UUID
    seq: int
    name: str
    start_date: datetime


@dataclass(frozen=True)
class PeriodInfo:
    id: UUID
    seq: int
    name: str
    start_date: datetime
    end_date: datetime | None
    is_closed: bool
    closing_journal_id: UUID | None = None
    closed_at: datetime | None = None

    @classmethod
    def from_model(cls, model: FiscalPeriodModel) -> PeriodInfo:
        return cls(
            id=model.id,
            seq=model.seq,
            name=model.name,
            start_date=model.start_date,
            end_date=model.end_date,
            is_closed=model.is_closed,
            closing_journal_id=model.closing_journal_id,
            closed_at=model.closed_at,
        )


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AccountInfo:
    id: UUID
    code: str
    name: str
    account_type: AccountType
    nature: AccountNature
    basic_type: BasicType
    parent_id: UUID | None
    level: int
    is_active: bool
    debit: Decimal
    credit: Decimal
    balance: Decimal

    @classmethod
    def from_model(cls, model: AccountModel) -> AccountInfo:
        return cls(
            id=model.id,
            code=model.code,
            name=model.name,
            account_type=AccountType(model.account_type),
            nature=AccountNature(model.nature),
            basic_type=BasicType(model.basic_type),
            parent_id=model.parent_id,
            level=model.level,
            is_active=model.is_active,
            debit=model.debit,
            credit=model.credit,
            balance=model.balance,
        )


@dataclass(frozen=True)
class AccountNode:
    """An account with its sub-tree, for chart-of-accounts displays."""

    account: AccountInfo
    children: tuple[AccountNode, ...] = ()

    def walk(self):
        """Yield this node's account and every descendant, depth first."""
        yield self.account
        for child in self.children:
            yield from child.walk()
