"""
ORM-level immutability enforcement.

Rules:
    - JournalLine: no UPDATE or DELETE while its header is POSTED.
    - JournalEntry: no DELETE while POSTED.  While POSTED only the posting
      stamps (status, posted_at, posted_by_id) and audit metadata may change,
      so unposting is the one way back to an editable DRAFT.
    - AuditEvent: no UPDATE, no DELETE.
    - Account/ClientClosingSnapshot: no UPDATE (delete-and-rebuild only).
    - Account: no DELETE while it has children or journal lines; structural
      fields (account_type, nature) frozen once journal lines reference it.

Listeners are installed with register_immutability_listeners() at startup
and removed with unregister_immutability_listeners() (tests only).

    from microfinance_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()
"""

from sqlalchemy import event, func, inspect, select
from sqlalchemy.orm import Session

from microfinance_kernel.exceptions import ImmutabilityViolationError
from microfinance_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

# Audit metadata may change on any record
_METADATA_FIELDS = frozenset({"updated_at", "updated_by_id"})

# Fields the post/unpost workflow itself writes on a POSTED header
_POSTING_FIELDS = frozenset({"status", "posted_at", "posted_by_id"})

ACCOUNT_STRUCTURAL_FIELDS = frozenset({"account_type", "nature"})


def _blocked(entity_type: str, entity_id, operation: str, reason: str):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
        },
    )
    return ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _was_posted(target) -> bool:
    """Status of the header as stored, before pending changes."""
    from microfinance_kernel.models.journal import JournalStatus

    history = inspect(target).attrs.status.history
    if history.deleted:
        return history.deleted[0] == JournalStatus.POSTED
    if history.added:
        return False
    return target.status == JournalStatus.POSTED


def _check_account_deletion_before_flush(session, flush_context, instances):
    # Mapper before_delete fires after the flush plan is fixed; check here.
    from microfinance_kernel.exceptions import (
        AccountHasChildrenError,
        AccountReferencedError,
    )
    from microfinance_kernel.models.account import Account
    from microfinance_kernel.models.journal import JournalLine

    for obj in list(session.deleted):
        if not isinstance(obj, Account):
            continue

        with session.no_autoflush:
            child_count = session.execute(
                select(func.count()).select_from(Account).where(
                    Account.parent_id == obj.id
                )
            ).scalar_one()
            line_count = session.execute(
                select(func.count()).select_from(JournalLine).where(
                    JournalLine.account_id == obj.id
                )
            ).scalar_one()

        if child_count:
            logger.error(
                "immutability_violation_blocked",
                extra={
                    "entity_type": "Account",
                    "entity_id": str(obj.id),
                    "operation": "DELETE",
                    "reason": "account_has_children",
                },
            )
            raise AccountHasChildrenError(str(obj.id), child_count)
        if line_count:
            logger.error(
                "immutability_violation_blocked",
                extra={
                    "entity_type": "Account",
                    "entity_id": str(obj.id),
                    "operation": "DELETE",
                    "reason": "account_has_journal_lines",
                },
            )
            raise AccountReferencedError(str(obj.id))


def _check_journal_entry_immutability(mapper, connection, target):
    if not _was_posted(target):
        return

    for attr in inspect(target).attrs:
        if attr.key in _METADATA_FIELDS or attr.key in _POSTING_FIELDS:
            continue
        if attr.key == "lines":
            continue
        if attr.history.has_changes():
            raise _blocked(
                "JournalEntry",
                target.id,
                "UPDATE",
                f"Cannot modify field '{attr.key}' on posted journal entry",
            )


def _check_journal_entry_delete(mapper, connection, target):
    if _was_posted(target):
        raise _blocked(
            "JournalEntry",
            target.id,
            "DELETE",
            "Posted journal entries cannot be deleted",
        )


def _check_journal_line_immutability(mapper, connection, target):
    if target.entry is not None and _was_posted(target.entry):
        raise _blocked(
            "JournalLine",
            target.id,
            "UPDATE",
            "Journal lines cannot be modified while the entry is posted",
        )


def _check_journal_line_delete(mapper, connection, target):
    if target.entry is not None and _was_posted(target.entry):
        raise _blocked(
            "JournalLine",
            target.id,
            "DELETE",
            "Journal lines cannot be deleted while the entry is posted",
        )


def _check_audit_event_immutability(mapper, connection, target):
    raise _blocked(
        "AuditEvent",
        target.id,
        "UPDATE",
        "Audit events are immutable and cannot be modified",
    )


def _check_audit_event_delete(mapper, connection, target):
    raise _blocked(
        "AuditEvent",
        target.id,
        "DELETE",
        "Audit events cannot be deleted",
    )


def _check_snapshot_immutability(mapper, connection, target):
    for attr in inspect(target).attrs:
        if attr.key in _METADATA_FIELDS:
            continue
        if attr.history.has_changes():
            raise _blocked(
                type(target).__name__,
                target.id,
                "UPDATE",
                "Closing snapshots are written once; rebuild instead of editing",
            )


def _check_account_structural_immutability(mapper, connection, target):
    from microfinance_kernel.exceptions import AccountReferencedError
    from microfinance_kernel.models.journal import JournalLine

    changed = [
        key
        for key in ACCOUNT_STRUCTURAL_FIELDS
        if inspect(target).attrs[key].history.has_changes()
    ]
    if not changed:
        return

    referenced = connection.execute(
        select(func.count()).select_from(JournalLine).where(
            JournalLine.account_id == target.id
        )
    ).scalar_one()
    if referenced:
        logger.error(
            "immutability_violation_blocked",
            extra={
                "entity_type": "Account",
                "entity_id": str(target.id),
                "operation": "UPDATE",
                "fields": changed,
            },
        )
        raise AccountReferencedError(
            str(target.id),
            reason=f"referenced by journal lines; cannot change {', '.join(sorted(changed))}",
        )


def _listener_table():
    from microfinance_kernel.models.account import Account
    from microfinance_kernel.models.audit_event import AuditEvent
    from microfinance_kernel.models.closing_snapshot import (
        AccountClosingSnapshot,
        ClientClosingSnapshot,
    )
    from microfinance_kernel.models.journal import JournalEntry, JournalLine

    return [
        (Session, "before_flush", _check_account_deletion_before_flush),
        (JournalEntry, "before_update", _check_journal_entry_immutability),
        (JournalEntry, "before_delete", _check_journal_entry_delete),
        (JournalLine, "before_update", _check_journal_line_immutability),
        (JournalLine, "before_delete", _check_journal_line_delete),
        (AuditEvent, "before_update", _check_audit_event_immutability),
        (AuditEvent, "before_delete", _check_audit_event_delete),
        (AccountClosingSnapshot, "before_update", _check_snapshot_immutability),
        (ClientClosingSnapshot, "before_update", _check_snapshot_immutability),
        (Account, "before_update", _check_account_structural_immutability),
    ]


def register_immutability_listeners():
    """Install all immutability listeners.  Idempotent."""
    for target, event_name, listener_fn in _listener_table():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove the immutability listeners.

    WARNING: only for tests that must violate the rules on purpose.
    """
    for target, event_name, listener_fn in _listener_table():
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)
