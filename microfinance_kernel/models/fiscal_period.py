"""
Module: microfinance_kernel.models.fiscal_period
Responsibility: ORM persistence for fiscal periods.

Exactly one period has end_date IS NULL (the open period).  Periods are
ordered by seq; the most recently closed period is the closed period with
the highest seq.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import BigInteger, Boolean, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from microfinance_kernel.db.base import TrackedBase, UUIDString


class FiscalPeriod(TrackedBase):
    """An accounting period; open until closed by the period closer."""

    __tablename__ = "fiscal_periods"
    __table_args__ = (
        Index("idx_period_closed", "is_closed"),
    )

    seq: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    start_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    end_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    is_closed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Plain column: the closing journal is deleted when the period reopens
    closing_journal_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), nullable=True
    )

    closed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    closed_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def __repr__(self) -> str:
        state = "closed" if self.is_closed else "open"
        return f"<FiscalPeriod {self.name} seq={self.seq} {state}>"

    @property
    def is_open(self) -> bool:
        return not self.is_closed
