"""
JournalService -- the journal engine.

Responsibility:
    Creates, edits, deletes, posts and unposts double-entry journals and
    keeps account and client balances consistent with every posted line.

Invariants enforced:
    - A journal is stored only if sum(debit) == sum(credit) exactly, it has
      at least one line, no amount is negative, and every account and client
      it references exists.  All validation happens before any write.
    - Line balance is the signed contribution under the account's nature,
      on create and on edit alike.
    - POSTED journals cannot be edited or deleted; only unposted.
    - Posting applies every line to its account chain and client; unposting
      applies the exact inverse.  Both run in one atomic block together with
      the status change.
    - Journals of a closed period are frozen, except that period's closing
      journal, which may still be posted or unposted while the period is
      the most recently closed one.
    - Line amounts carry at most two decimal places, the precision of
      closing snapshots.
    - Zakat journals cannot be unposted.

Failure modes:
    - JournalNotFoundError, AlreadyPostedError, NotPostedError,
      ZakatImmutableError, UnbalancedEntryError, EmptyJournalError,
      InvalidLineAmountError, AccountNotFoundError, PartyNotFoundError,
      NoOpenPeriodError, ClosedPeriodError, NotMostRecentPeriodError.
    - LedgerTransactionError when storage fails inside the atomic block.

Audit relevance:
    Every operation performed with an actor appends an audit record
    (screen "journal") after its atomic block completes.
"""

from typing import Iterable, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from microfinance_kernel.db.transaction import atomic
from microfinance_kernel.db.types import ZERO, round_money
from microfinance_kernel.domain.balances import Direction, nature_balance
from microfinance_kernel.domain.clock import Clock
from microfinance_kernel.domain.dtos import (
    JournalInput,
    JournalLineInput,
    JournalPatch,
    JournalRecord,
    PeriodContext,
)
from microfinance_kernel.exceptions import (
    AccountNotFoundError,
    AlreadyPostedError,
    ClosedPeriodError,
    EmptyJournalError,
    InvalidLineAmountError,
    JournalNotFoundError,
    NotPostedError,
    UnbalancedEntryError,
    ZakatImmutableError,
)
from microfinance_kernel.logging_config import LogContext, get_logger
from microfinance_kernel.models.account import Account
from microfinance_kernel.models.audit_event import AuditAction
from microfinance_kernel.models.journal import (
    JournalEntry,
    JournalLine,
    JournalStatus,
    JournalType,
    SourceType,
)
from microfinance_kernel.models.party import PartyType
from microfinance_kernel.services.account_directory import AccountDirectory
from microfinance_kernel.services.auditor_service import AuditorService, audited
from microfinance_kernel.services.balance_propagator import BalancePropagator
from microfinance_kernel.services.base import SYSTEM_ACTOR_ID, BaseService
from microfinance_kernel.services.party_service import PartyService
from microfinance_kernel.services.period_service import PeriodService
from microfinance_kernel.services.sequence_service import SequenceService

logger = get_logger("services.journal")

DEFAULT_ZAKAT_SOURCE_TYPES = (SourceType.ZAKAT.value,)


def _journal_label(record: JournalRecord) -> str:
    label = f"#{record.seq}"
    if record.reference:
        label += f" ({record.reference})"
    return label


class JournalService(BaseService[JournalEntry]):
    """
    The journal engine.

    Collaborators are injected so that a single session-wide set of
    services can be shared; defaults are built from ``session``.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        auditor: AuditorService | None = None,
        periods: PeriodService | None = None,
        accounts: AccountDirectory | None = None,
        parties: PartyService | None = None,
        zakat_source_types: Iterable[str] = DEFAULT_ZAKAT_SOURCE_TYPES,
    ):
        super().__init__(session, clock)
        self.auditor = auditor or AuditorService(session, self.clock)
        self.periods = periods or PeriodService(session, self.clock)
        self.accounts = accounts or AccountDirectory(session, self.clock, self.auditor)
        self.parties = parties or PartyService(session, self.clock)
        self._propagator = BalancePropagator(session, self.accounts, self.parties)
        self._sequences = SequenceService(session)
        self._zakat_source_types = frozenset(
            SourceType(s).value for s in zakat_source_types
        )

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get_model(self, journal_id: UUID, *, for_update: bool = False) -> JournalEntry:
        stmt = select(JournalEntry).where(JournalEntry.id == journal_id)
        if for_update:
            stmt = stmt.with_for_update()
        entry = self.session.execute(stmt).scalar_one_or_none()
        if entry is None:
            raise JournalNotFoundError(str(journal_id))
        return entry

    def get(self, journal_id: UUID) -> JournalRecord:
        return JournalRecord.from_model(self.get_model(journal_id))

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _validate_lines(self, lines: Sequence[JournalLineInput]) -> dict[UUID, Account]:
        if not lines:
            raise EmptyJournalError()

        for index, line in enumerate(lines):
            if line.debit < ZERO or line.credit < ZERO:
                raise InvalidLineAmountError(index, line.debit, line.credit)
            # Whole cents only, the precision of closing snapshots
            if line.debit != round_money(line.debit) or line.credit != round_money(line.credit):
                raise InvalidLineAmountError(index, line.debit, line.credit)

        total_debit = sum((line.debit for line in lines), ZERO)
        total_credit = sum((line.credit for line in lines), ZERO)
        if total_debit != total_credit:
            logger.warning(
                "journal_unbalanced",
                extra={"debits": total_debit, "credits": total_credit},
            )
            raise UnbalancedEntryError(total_debit, total_credit)

        accounts = self.accounts.get_models(line.account_id for line in lines)
        for line in lines:
            if line.account_id not in accounts:
                raise AccountNotFoundError(str(line.account_id))

        for client_id in {line.client_id for line in lines if line.client_id}:
            self.parties.get_model(client_id, PartyType.CLIENT)

        return accounts

    def _build_lines(
        self,
        lines: Sequence[JournalLineInput],
        accounts: dict[UUID, Account],
        actor_id: UUID | None,
    ) -> list[JournalLine]:
        return [
            JournalLine(
                account_id=line.account_id,
                client_id=line.client_id,
                debit=line.debit,
                credit=line.credit,
                balance=nature_balance(
                    accounts[line.account_id].nature, line.debit, line.credit
                ),
                line_memo=line.memo,
                line_seq=seq,
                created_by_id=actor_id or SYSTEM_ACTOR_ID,
            )
            for seq, line in enumerate(lines, start=1)
        ]

    def _require_editable_period(self, entry: JournalEntry) -> None:
        self.periods.require_open(entry.period_id, entry.id)

    def _require_postable_period(self, entry: JournalEntry) -> None:
        """
        In a closed period only its own closing journal may change state, and
        only while no later period has closed on top of its balances.

        Raises:
            ClosedPeriodError: any other journal of a closed period.
            NotMostRecentPeriodError: the period is no longer the most
                recently closed one.
        """
        period = self.periods.get_model(entry.period_id)
        if not period.is_closed:
            return
        if period.closing_journal_id != entry.id:
            logger.warning(
                "closed_period_posting_rejected",
                extra={"journal_id": str(entry.id), "period_id": str(period.id)},
            )
            raise ClosedPeriodError(str(period.id), entry.id)
        self.periods.require_most_recent_closed(period)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    @audited(
        "journal",
        AuditAction.CREATE,
        lambda result, args: f"Created journal {_journal_label(result)}",
        entity=lambda result, args: result.id,
    )
    def create_journal(
        self,
        data: JournalInput,
        actor_id: UUID | None = None,
        period: PeriodContext | None = None,
    ) -> JournalRecord:
        """
        Validate and store a DRAFT journal.

        The target period is ``data.period_id``, else ``period``, else the
        current open period.
        """
        if data.period_id is not None:
            period_id = data.period_id
        elif period is not None:
            period_id = period.period_id
        else:
            period_id = self.periods.current_context().period_id
        self.periods.require_open(period_id)

        accounts = self._validate_lines(data.lines)

        with atomic(self.session, "create_journal"):
            entry = JournalEntry(
                seq=self._sequences.next_value(SequenceService.JOURNAL_ENTRY),
                period_id=period_id,
                reference=data.reference,
                description=data.description,
                journal_type=JournalType(data.journal_type).value,
                source_type=SourceType(data.source_type).value,
                source_id=data.source_id,
                status=JournalStatus.DRAFT.value,
                entry_date=data.entry_date or self.clock.now(),
                created_by_id=actor_id or SYSTEM_ACTOR_ID,
            )
            entry.lines = self._build_lines(data.lines, accounts, actor_id)
            self.session.add(entry)
            self.session.flush()

        logger.info(
            "journal_created",
            extra={
                "journal_id": str(entry.id),
                "seq": entry.seq,
                "period_id": str(period_id),
                "line_count": len(data.lines),
                "total": data.total_debits,
            },
        )
        return JournalRecord.from_model(entry)

    @audited(
        "journal",
        AuditAction.UPDATE,
        lambda result, args: f"Updated journal {_journal_label(result)}",
        entity=lambda result, args: result.id,
    )
    def update_journal(
        self,
        journal_id: UUID,
        patch: JournalPatch,
        actor_id: UUID | None = None,
    ) -> JournalRecord:
        """
        Edit a DRAFT journal.  Supplied lines replace the whole set and are
        re-validated exactly as on create.
        """
        entry = self.get_model(journal_id, for_update=True)
        if entry.is_posted:
            raise AlreadyPostedError(str(journal_id))
        self._require_editable_period(entry)

        accounts = None
        if patch.lines is not None:
            accounts = self._validate_lines(patch.lines)

        with atomic(self.session, "update_journal"):
            if patch.description is not None:
                entry.description = patch.description
            if patch.journal_type is not None:
                entry.journal_type = JournalType(patch.journal_type).value
            if patch.reference is not None:
                entry.reference = patch.reference
            if patch.lines is not None:
                entry.lines.clear()
                self.session.flush()
                entry.lines.extend(self._build_lines(patch.lines, accounts, actor_id))
            entry.updated_by_id = actor_id
            self.session.flush()

        logger.info(
            "journal_updated",
            extra={
                "journal_id": str(journal_id),
                "lines_replaced": patch.lines is not None,
            },
        )
        return JournalRecord.from_model(entry)

    @audited(
        "journal",
        AuditAction.DELETE,
        lambda result, args: f"Deleted journal {_journal_label(result)}",
        entity=lambda result, args: result.id,
    )
    def delete_journal(self, journal_id: UUID, actor_id: UUID | None = None) -> JournalRecord:
        """Delete a DRAFT journal and its lines."""
        entry = self.get_model(journal_id, for_update=True)
        if entry.is_posted:
            raise AlreadyPostedError(str(journal_id))
        self._require_editable_period(entry)

        record = JournalRecord.from_model(entry)
        with atomic(self.session, "delete_journal"):
            self.session.delete(entry)
            self.session.flush()

        logger.info("journal_deleted", extra={"journal_id": str(journal_id)})
        return record

    @audited(
        "journal",
        AuditAction.POST,
        lambda result, args: f"Posted journal {_journal_label(result)}",
        entity=lambda result, args: result.id,
    )
    def post_journal(self, journal_id: UUID, actor_id: UUID | None = None) -> JournalRecord:
        """Apply every line to balances and mark the journal POSTED."""
        entry = self.get_model(journal_id, for_update=True)
        if entry.is_posted:
            raise AlreadyPostedError(str(journal_id))
        self._require_postable_period(entry)

        with LogContext.bind(journal_id=journal_id, actor_id=actor_id):
            with atomic(self.session, "post_journal"):
                for line in entry.lines:
                    self._propagator.apply(
                        line.account_id,
                        line.debit,
                        line.credit,
                        Direction.POST,
                        client_id=line.client_id,
                    )
                entry.status = JournalStatus.POSTED.value
                entry.posted_at = self.clock.now()
                entry.posted_by_id = actor_id or SYSTEM_ACTOR_ID
                self.session.flush()

            logger.info(
                "journal_posted",
                extra={"seq": entry.seq, "line_count": len(entry.lines)},
            )
        return JournalRecord.from_model(entry)

    @audited(
        "journal",
        AuditAction.UNPOST,
        lambda result, args: f"Unposted journal {_journal_label(result)}",
        entity=lambda result, args: result.id,
    )
    def unpost_journal(self, journal_id: UUID, actor_id: UUID | None = None) -> JournalRecord:
        """Reverse every line's effect on balances and return to DRAFT."""
        entry = self.get_model(journal_id, for_update=True)
        if not entry.is_posted:
            raise NotPostedError(str(journal_id))
        if SourceType(entry.source_type).value in self._zakat_source_types:
            raise ZakatImmutableError(str(journal_id), SourceType(entry.source_type).value)
        self._require_postable_period(entry)

        with LogContext.bind(journal_id=journal_id, actor_id=actor_id):
            with atomic(self.session, "unpost_journal"):
                for line in entry.lines:
                    self._propagator.apply(
                        line.account_id,
                        line.debit,
                        line.credit,
                        Direction.UNPOST,
                        client_id=line.client_id,
                    )
                entry.status = JournalStatus.DRAFT.value
                entry.posted_at = None
                entry.posted_by_id = None
                self.session.flush()

            logger.info("journal_unposted", extra={"seq": entry.seq})
        return JournalRecord.from_model(entry)
