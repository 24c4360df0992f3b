"""
Module: microfinance_kernel.selectors.journal_selector
Responsibility: Read-only journal queries: lookup, paginated listing and
    draft counts used by the period closer.

Listings are ordered newest first: entry_date descending, then seq
descending.  Absence of data returns None or an empty page, never raises.
"""

from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from microfinance_kernel.domain.dtos import JournalPage, JournalRecord
from microfinance_kernel.models.journal import JournalEntry, JournalStatus, JournalType
from microfinance_kernel.selectors.base import BaseSelector

DEFAULT_PAGE_SIZE = 20


class JournalSelector(BaseSelector[JournalEntry]):

    def __init__(self, session: Session):
        super().__init__(session)

    def get(self, journal_id: UUID) -> JournalRecord | None:
        entry = self.session.get(JournalEntry, journal_id)
        return JournalRecord.from_model(entry) if entry else None

    def list_journals(
        self,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
        search: str | None = None,
        status: JournalStatus | None = None,
        journal_type: JournalType | None = None,
        period_id: UUID | None = None,
    ) -> JournalPage:
        """
        One page of journals.

        ``search`` matches reference or description, case-insensitively.
        Pages are 1-based; a page past the end is empty.
        """
        page = max(page, 1)
        limit = max(limit, 1)

        conditions = []
        if search:
            pattern = f"%{search}%"
            conditions.append(
                or_(
                    JournalEntry.reference.ilike(pattern),
                    JournalEntry.description.ilike(pattern),
                )
            )
        if status is not None:
            conditions.append(JournalEntry.status == JournalStatus(status).value)
        if journal_type is not None:
            conditions.append(
                JournalEntry.journal_type == JournalType(journal_type).value
            )
        if period_id is not None:
            conditions.append(JournalEntry.period_id == period_id)

        total = self.session.execute(
            select(func.count()).select_from(JournalEntry).where(*conditions)
        ).scalar_one()

        entries = self.session.execute(
            select(JournalEntry)
            .where(*conditions)
            .order_by(JournalEntry.entry_date.desc(), JournalEntry.seq.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).scalars().all()

        return JournalPage(
            items=tuple(JournalRecord.from_model(e) for e in entries),
            total=total,
            current_page=page,
            limit=limit,
        )

    def count_drafts(self, period_id: UUID) -> int:
        return self.session.execute(
            select(func.count())
            .select_from(JournalEntry)
            .where(
                JournalEntry.period_id == period_id,
                JournalEntry.status == JournalStatus.DRAFT.value,
            )
        ).scalar_one()

    def count_in_period(self, period_id: UUID) -> int:
        return self.session.execute(
            select(func.count())
            .select_from(JournalEntry)
            .where(JournalEntry.period_id == period_id)
        ).scalar_one()
