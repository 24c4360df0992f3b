"""
Module: microfinance_kernel.models.closing_snapshot
Responsibility: Per-period opening/closing balances of accounts and clients,
    written once by the period closer.

Snapshots are append-only: updates are rejected by db/immutability.py.  They
are deleted only when a period closing is reversed or its snapshots are
rebuilt.  opening_* of a period equals closing_* of the previous period.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Index, Numeric, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from microfinance_kernel.db.base import TrackedBase, UUIDString


class _SnapshotColumns:
    opening_debit: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0")
    )
    opening_credit: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0")
    )
    opening_balance: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0")
    )
    closing_debit: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0")
    )
    closing_credit: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0")
    )
    closing_balance: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0")
    )
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )


class AccountClosingSnapshot(_SnapshotColumns, TrackedBase):
    """Account balance at the close of a period (rolled up over descendants)."""

    __tablename__ = "account_closing_snapshots"
    __table_args__ = (
        UniqueConstraint("account_id", "period_id", name="uq_account_snapshot"),
        Index("idx_account_snapshot_period", "period_id"),
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("accounts.id"), nullable=False
    )

    period_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("fiscal_periods.id"), nullable=False
    )

    def __repr__(self) -> str:
        return f"<AccountClosingSnapshot {self.account_id} closing={self.closing_balance}>"


class ClientClosingSnapshot(_SnapshotColumns, TrackedBase):
    """Client sub-ledger balance at the close of a period (flat)."""

    __tablename__ = "client_closing_snapshots"
    __table_args__ = (
        UniqueConstraint("client_id", "period_id", name="uq_client_snapshot"),
        Index("idx_client_snapshot_period", "period_id"),
    )

    client_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("parties.id"), nullable=False
    )

    period_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("fiscal_periods.id"), nullable=False
    )

    def __repr__(self) -> str:
        return f"<ClientClosingSnapshot {self.client_id} closing={self.closing_balance}>"
