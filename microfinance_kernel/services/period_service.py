"""
PeriodService -- fiscal period resolution and lifecycle primitives.

Responsibility:
    Resolves the current open period into an explicit ``PeriodContext``
    that mutating operations carry, and provides the open/close/reopen
    primitives used by the period closer.

Invariants enforced:
    - Exactly one period is open (end_date IS NULL) at a time.
    - Period seq is allocated from SequenceService; "most recent" always
      means highest seq.
    - Journals cannot be written into a closed period (``require_open``).
    - Flush-only: never commits or rolls back the session.

Failure modes:
    - NoOpenPeriodError: no open period exists.
    - PeriodNotFoundError: unknown period id.
    - ClosedPeriodError: write targeted a closed period.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from microfinance_kernel.domain.clock import Clock
from microfinance_kernel.domain.dtos import PeriodContext, PeriodInfo
from microfinance_kernel.exceptions import (
    ClosedPeriodError,
    NoOpenPeriodError,
    NotMostRecentPeriodError,
    PeriodNotClosedError,
    PeriodNotFoundError,
)
from microfinance_kernel.logging_config import get_logger
from microfinance_kernel.models.fiscal_period import FiscalPeriod
from microfinance_kernel.services.base import SYSTEM_ACTOR_ID, BaseService
from microfinance_kernel.services.sequence_service import SequenceService

logger = get_logger("services.period")

DEFAULT_PERIOD_NAME_FORMAT = "Open period starting {start:%Y-%m-%d}"


class PeriodService(BaseService[FiscalPeriod]):
    """Resolves and maintains fiscal periods."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        name_format: str = DEFAULT_PERIOD_NAME_FORMAT,
    ):
        super().__init__(session, clock)
        self._name_format = name_format
        self._sequences = SequenceService(session)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def _open_period(self) -> FiscalPeriod | None:
        return self.session.execute(
            select(FiscalPeriod)
            .where(FiscalPeriod.end_date.is_(None))
            .order_by(FiscalPeriod.seq.desc())
            .limit(1)
        ).scalar_one_or_none()

    def get_model(self, period_id: UUID, *, for_update: bool = False) -> FiscalPeriod:
        """Load a period row, locking it on backends that support it."""
        stmt = select(FiscalPeriod).where(FiscalPeriod.id == period_id)
        if for_update:
            stmt = stmt.with_for_update()
        period = self.session.execute(stmt).scalar_one_or_none()
        if period is None:
            raise PeriodNotFoundError(str(period_id))
        return period

    def get(self, period_id: UUID) -> PeriodInfo:
        return PeriodInfo.from_model(self.get_model(period_id))

    def current_context(self) -> PeriodContext:
        """
        Resolve the open period once for an operation.

        Raises:
            NoOpenPeriodError: if no period is open.
        """
        period = self._open_period()
        if period is None:
            raise NoOpenPeriodError()
        return PeriodContext(
            period_id=period.id,
            seq=period.seq,
            name=period.name,
            start_date=period.start_date,
        )

    def latest_closed(self) -> FiscalPeriod | None:
        return self.session.execute(
            select(FiscalPeriod)
            .where(FiscalPeriod.is_closed.is_(True))
            .order_by(FiscalPeriod.seq.desc())
            .limit(1)
        ).scalar_one_or_none()

    def require_most_recent_closed(self, period: FiscalPeriod) -> None:
        """
        Raises:
            PeriodNotClosedError: the period is open.
            NotMostRecentPeriodError: a later period has been closed since.
        """
        if not period.is_closed:
            raise PeriodNotClosedError(str(period.id))
        latest = self.latest_closed()
        if latest is None or latest.id != period.id:
            raise NotMostRecentPeriodError(
                str(period.id), str(latest.id) if latest else None
            )

    def previous_period(self, period: FiscalPeriod) -> FiscalPeriod | None:
        """The period immediately preceding ``period`` by seq."""
        return self.session.execute(
            select(FiscalPeriod)
            .where(FiscalPeriod.seq < period.seq)
            .order_by(FiscalPeriod.seq.desc())
            .limit(1)
        ).scalar_one_or_none()

    def successor_period(self, period: FiscalPeriod) -> FiscalPeriod | None:
        return self.session.execute(
            select(FiscalPeriod)
            .where(FiscalPeriod.seq > period.seq)
            .order_by(FiscalPeriod.seq)
            .limit(1)
        ).scalar_one_or_none()

    def require_open(self, period_id: UUID, journal_id: UUID | None = None) -> FiscalPeriod:
        """
        Raises:
            PeriodNotFoundError: unknown period.
            ClosedPeriodError: the period is closed.
        """
        period = self.get_model(period_id)
        if period.is_closed:
            logger.warning(
                "closed_period_write_rejected",
                extra={
                    "period_id": str(period_id),
                    "journal_id": str(journal_id) if journal_id else None,
                },
            )
            raise ClosedPeriodError(str(period_id), journal_id)
        return period

    # ------------------------------------------------------------------
    # Lifecycle primitives
    # ------------------------------------------------------------------

    def open_period(
        self,
        actor_id: UUID | None = None,
        start_date: datetime | None = None,
        name: str | None = None,
    ) -> FiscalPeriod:
        """
        Create a new open period starting at ``start_date`` (default now).

        Callers ensure no other period is open; the closer closes the old
        period in the same atomic block.
        """
        start = start_date or self.clock.now()
        period = FiscalPeriod(
            seq=self._sequences.next_value(SequenceService.FISCAL_PERIOD),
            name=name or self._name_format.format(start=start),
            start_date=start,
            end_date=None,
            is_closed=False,
            created_by_id=actor_id or SYSTEM_ACTOR_ID,
        )
        self.session.add(period)
        self.session.flush()
        logger.info(
            "period_opened",
            extra={"period_id": str(period.id), "period_name": period.name, "seq": period.seq},
        )
        return period

    def ensure_open_period(self, actor_id: UUID | None = None) -> PeriodContext:
        """Open the first period when none exists; return the current context."""
        if self._open_period() is None:
            self.open_period(actor_id)
        return self.current_context()

    def count_periods(self) -> int:
        return self.session.execute(
            select(func.count()).select_from(FiscalPeriod)
        ).scalar_one()
