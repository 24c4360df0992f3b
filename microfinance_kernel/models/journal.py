"""
Module: microfinance_kernel.models.journal
Responsibility: ORM persistence for journal headers and journal lines.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - seq is unique and monotonic (allocated by SequenceService).
    - Lines of a POSTED entry cannot be modified or deleted, and a POSTED
      entry cannot be deleted (ORM listeners in db/immutability.py).
    - A header is created DRAFT; post/unpost toggle DRAFT <-> POSTED.
    - Sum of line debits equals sum of line credits (checked by
      JournalService before persisting; is_balanced is read-side only).
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from microfinance_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from microfinance_kernel.models.account import Account


class JournalStatus(str, Enum):
    """Lifecycle status: DRAFT -> POSTED, and back via unpost."""

    DRAFT = "draft"
    POSTED = "posted"


class JournalType(str, Enum):
    GENERAL = "general"
    ADJUSTMENT = "adjustment"
    CLOSING = "closing"
    DEPOSIT = "deposit"
    LOAN_DISBURSEMENT = "loan_disbursement"


class SourceType(str, Enum):
    """Business event a journal was generated from."""

    MANUAL = "manual"
    LOAN = "loan"
    REPAYMENT = "repayment"
    PARTNER = "partner"
    PERIOD_CLOSING = "period_closing"
    SAVING = "saving"
    ZAKAT = "zakat"
    COMPANY_PROFIT_WITHDRAWAL = "company_profit_withdrawal"


class JournalEntry(TrackedBase):
    """Journal header: one balanced set of lines within one fiscal period."""

    __tablename__ = "journal_entries"
    __table_args__ = (
        UniqueConstraint("seq", name="uq_journal_seq"),
        Index("idx_journal_period_status", "period_id", "status"),
        Index("idx_journal_source", "source_type", "source_id"),
        Index("idx_journal_entry_date", "entry_date"),
    )

    seq: Mapped[int] = mapped_column(BigInteger, nullable=False)

    period_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("fiscal_periods.id"),
        nullable=False,
    )

    reference: Mapped[str | None] = mapped_column(String(200), nullable=True)

    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    journal_type: Mapped[JournalType] = mapped_column(
        String(30),
        nullable=False,
        default=JournalType.GENERAL,
    )

    source_type: Mapped[SourceType] = mapped_column(
        String(40),
        nullable=False,
        default=SourceType.MANUAL,
    )

    source_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    status: Mapped[JournalStatus] = mapped_column(
        String(10),
        nullable=False,
        default=JournalStatus.DRAFT,
    )

    entry_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    posted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    posted_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    lines: Mapped[list["JournalLine"]] = relationship(
        back_populates="entry",
        cascade="all, delete-orphan",
        order_by="JournalLine.line_seq",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<JournalEntry {self.id} seq={self.seq} status={self.status}>"

    @property
    def is_posted(self) -> bool:
        return self.status == JournalStatus.POSTED

    @property
    def is_draft(self) -> bool:
        return self.status == JournalStatus.DRAFT

    @property
    def total_debits(self) -> Decimal:
        return sum((line.debit for line in self.lines), Decimal("0"))

    @property
    def total_credits(self) -> Decimal:
        return sum((line.credit for line in self.lines), Decimal("0"))

    @property
    def is_balanced(self) -> bool:
        return self.total_debits == self.total_credits


class JournalLine(TrackedBase):
    """
    One debit/credit pair against one account, optionally tagged with a
    client for the client sub-ledger.

    balance is the line's signed contribution under the account's nature.
    """

    __tablename__ = "journal_lines"
    __table_args__ = (
        UniqueConstraint("journal_entry_id", "line_seq", name="uq_journal_line_seq"),
        Index("idx_line_entry", "journal_entry_id"),
        Index("idx_line_account", "account_id"),
        Index("idx_line_client", "client_id"),
    )

    journal_entry_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=False,
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    client_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("parties.id"),
        nullable=True,
    )

    debit: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0")
    )

    credit: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0")
    )

    balance: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0")
    )

    line_memo: Mapped[str | None] = mapped_column(String(500), nullable=True)

    line_seq: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    entry: Mapped[JournalEntry] = relationship(back_populates="lines")

    account: Mapped["Account"] = relationship()

    def __repr__(self) -> str:
        return (
            f"<JournalLine {self.account_id} "
            f"debit={self.debit} credit={self.credit}>"
        )
