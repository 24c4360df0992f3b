"""
AccrualService -- partner profit accruals awaiting the period close.

Each repayment that carries partner profit records one accrual:
partner_final = raw_share - company_cut.  The period closer folds the open
accruals of a period into the closing journal.
"""

from collections import OrderedDict
from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from microfinance_kernel.db.transaction import atomic
from microfinance_kernel.db.types import ZERO, to_money
from microfinance_kernel.domain.clock import Clock
from microfinance_kernel.domain.dtos import PeriodContext
from microfinance_kernel.exceptions import InvalidAccrualError
from microfinance_kernel.logging_config import get_logger
from microfinance_kernel.models.partner_accrual import PartnerShareAccrual
from microfinance_kernel.models.party import PartyType
from microfinance_kernel.services.base import SYSTEM_ACTOR_ID, BaseService
from microfinance_kernel.services.party_service import PartyService
from microfinance_kernel.services.period_service import PeriodService

logger = get_logger("services.accruals")


@dataclass(frozen=True)
class AccrualInfo:
    id: UUID
    partner_id: UUID
    period_id: UUID
    raw_share: Decimal
    company_cut: Decimal
    partner_final: Decimal
    is_closed: bool
    is_distributed: bool
    loan_id: str | None = None
    repayment_id: str | None = None

    @classmethod
    def from_model(cls, model: PartnerShareAccrual) -> "AccrualInfo":
        return cls(
            id=model.id,
            partner_id=model.partner_id,
            period_id=model.period_id,
            raw_share=model.raw_share,
            company_cut=model.company_cut,
            partner_final=model.partner_final,
            is_closed=model.is_closed,
            is_distributed=model.is_distributed,
            loan_id=model.loan_id,
            repayment_id=model.repayment_id,
        )


@dataclass(frozen=True)
class AccrualSummary:
    """Accruals of a period grouped the way the closing journal needs them."""

    per_partner: "OrderedDict[UUID, Decimal]" = field(default_factory=OrderedDict)
    total_company_cut: Decimal = ZERO

    @property
    def total_partner_share(self) -> Decimal:
        return sum(self.per_partner.values(), ZERO)

    @property
    def is_empty(self) -> bool:
        return not self.per_partner and self.total_company_cut == ZERO


class AccrualService(BaseService[PartnerShareAccrual]):

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        periods: PeriodService | None = None,
        parties: PartyService | None = None,
    ):
        super().__init__(session, clock)
        self.periods = periods or PeriodService(session, self.clock)
        self.parties = parties or PartyService(session, self.clock)

    def record_accrual(
        self,
        partner_id: UUID,
        raw_share,
        company_cut,
        actor_id: UUID | None = None,
        loan_id: str | None = None,
        repayment_id: str | None = None,
        period: PeriodContext | None = None,
    ) -> AccrualInfo:
        """
        Raises:
            PartyNotFoundError: partner unknown.
            InvalidAccrualError: negative amounts or cut above the share.
            NoOpenPeriodError / ClosedPeriodError: no period to accrue into.
        """
        raw_share = to_money(raw_share)
        company_cut = to_money(company_cut)
        if raw_share < ZERO or company_cut < ZERO:
            raise InvalidAccrualError("amounts must not be negative")
        if company_cut > raw_share:
            raise InvalidAccrualError(
                f"company cut {company_cut} exceeds raw share {raw_share}"
            )
        self.parties.get_model(partner_id, PartyType.PARTNER)

        period_id = (period or self.periods.current_context()).period_id
        self.periods.require_open(period_id)

        with atomic(self.session, "record_accrual"):
            accrual = PartnerShareAccrual(
                partner_id=partner_id,
                period_id=period_id,
                loan_id=loan_id,
                repayment_id=repayment_id,
                raw_share=raw_share,
                company_cut=company_cut,
                partner_final=raw_share - company_cut,
                is_closed=False,
                is_distributed=False,
                created_by_id=actor_id or SYSTEM_ACTOR_ID,
            )
            self.session.add(accrual)
            self.session.flush()

        logger.info(
            "partner_accrual_recorded",
            extra={
                "partner_id": str(partner_id),
                "period_id": str(period_id),
                "partner_final": accrual.partner_final,
            },
        )
        return AccrualInfo.from_model(accrual)

    def models_for_period(self, period_id: UUID) -> list[PartnerShareAccrual]:
        return list(
            self.session.execute(
                select(PartnerShareAccrual)
                .where(PartnerShareAccrual.period_id == period_id)
                .order_by(PartnerShareAccrual.created_at, PartnerShareAccrual.id)
            ).scalars()
        )

    def list_for_period(self, period_id: UUID) -> list[AccrualInfo]:
        return [AccrualInfo.from_model(a) for a in self.models_for_period(period_id)]

    def summarize_period(self, period_id: UUID) -> AccrualSummary:
        per_partner: OrderedDict[UUID, Decimal] = OrderedDict()
        company_cut = ZERO
        for accrual in self.models_for_period(period_id):
            per_partner[accrual.partner_id] = (
                per_partner.get(accrual.partner_id, ZERO) + accrual.partner_final
            )
            company_cut += accrual.company_cut
        return AccrualSummary(per_partner=per_partner, total_company_cut=company_cut)
