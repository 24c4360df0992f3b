"""
Module: microfinance_kernel.models.partner_accrual
Responsibility: Partner profit bookkeeping: per-repayment share accruals,
    per-period profit totals and saving deductions taken at distribution.

partner_final == raw_share - company_cut for every accrual.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from microfinance_kernel.db.base import TrackedBase, UUIDString


class PartnerShareAccrual(TrackedBase):
    """A partner's share of one repayment, pending the period close."""

    __tablename__ = "partner_share_accruals"
    __table_args__ = (
        Index("idx_accrual_period_partner", "period_id", "partner_id"),
    )

    partner_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("parties.id"), nullable=False
    )

    period_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("fiscal_periods.id"), nullable=False
    )

    loan_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    repayment_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    raw_share: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    company_cut: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    partner_final: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    is_closed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    is_distributed: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )


class PartnerPeriodProfit(TrackedBase):
    """Total partner profit fixed by a period close."""

    __tablename__ = "partner_period_profits"
    __table_args__ = (
        UniqueConstraint("partner_id", "period_id", name="uq_partner_period_profit"),
    )

    partner_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("parties.id"), nullable=False
    )

    period_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("fiscal_periods.id"), nullable=False
    )

    total_profit: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)


class PartnerSavingAccrual(TrackedBase):
    """Saving deducted from a partner's period profit at distribution."""

    __tablename__ = "partner_saving_accruals"
    __table_args__ = (
        Index("idx_saving_period", "period_id"),
    )

    partner_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("parties.id"), nullable=False
    )

    period_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("fiscal_periods.id"), nullable=False
    )

    period_profit_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("partner_period_profits.id"), nullable=False
    )

    saving_percentage: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    saving_amount: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    # Plain column: the saving journal is deleted together with this row
    journal_entry_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
