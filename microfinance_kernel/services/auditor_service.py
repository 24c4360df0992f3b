"""
AuditorService -- append-only, hash-chained audit trail.

Every mutating ledger operation performed on behalf of an actor appends one
record ``(actor_id, screen, action, description)``.  Records are chained:
each hash covers its predecessor's hash, so editing or removing a record is
detectable by ``validate_chain()``.

The ``audited`` decorator attaches this to service methods: the wrapped
operation runs (including its atomic block) and the record is appended
afterwards, only when an actor was supplied.
"""

import functools
import inspect
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from microfinance_kernel.domain.clock import Clock, SystemClock
from microfinance_kernel.exceptions import AuditChainBrokenError
from microfinance_kernel.logging_config import get_logger
from microfinance_kernel.models.audit_event import AuditAction, AuditEvent
from microfinance_kernel.services.sequence_service import SequenceService
from microfinance_kernel.utils.hashing import hash_audit_event, hash_payload

logger = get_logger("services.auditor")


@dataclass(frozen=True)
class AuditRecord:
    seq: int
    actor_id: UUID
    screen: str
    action: AuditAction
    description: str
    entity_id: UUID | None
    occurred_at: datetime
    hash: str

    @classmethod
    def from_model(cls, model: AuditEvent) -> "AuditRecord":
        return cls(
            seq=model.seq,
            actor_id=model.actor_id,
            screen=model.screen,
            action=AuditAction(model.action),
            description=model.description,
            entity_id=model.entity_id,
            occurred_at=model.occurred_at,
            hash=model.hash,
        )


class AuditorService:
    """
    Creates and validates audit records.

    Does NOT commit; records become durable with the caller's transaction.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()
        self._sequence_service = SequenceService(session)

    def _get_last_hash(self) -> str | None:
        last_event = self._session.execute(
            select(AuditEvent).order_by(AuditEvent.seq.desc()).limit(1)
        ).scalar_one_or_none()
        return last_event.hash if last_event else None

    def append(
        self,
        actor_id: UUID,
        screen: str,
        action: AuditAction | str,
        description: str,
        entity_id: UUID | None = None,
        payload: dict[str, Any] | None = None,
    ) -> AuditRecord:
        """Append one record to the chain and return it."""
        action = AuditAction(action)
        seq = self._sequence_service.next_value(SequenceService.AUDIT_EVENT)
        prev_hash = self._get_last_hash()

        payload_data = payload or {}
        computed_payload_hash = hash_payload(payload_data)
        event_hash = hash_audit_event(
            screen=screen,
            entity_id=str(entity_id) if entity_id is not None else None,
            action=action.value,
            payload_hash=computed_payload_hash,
            prev_hash=prev_hash,
        )

        audit_event = AuditEvent(
            seq=seq,
            screen=screen,
            action=action.value,
            description=description,
            entity_id=entity_id,
            actor_id=actor_id,
            occurred_at=self._clock.now(),
            payload=payload_data,
            payload_hash=computed_payload_hash,
            prev_hash=prev_hash,
            hash=event_hash,
        )
        self._session.add(audit_event)
        self._session.flush()

        logger.info(
            "audit_event_created",
            extra={
                "screen": screen,
                "action": action.value,
                "entity_id": str(entity_id) if entity_id else None,
                "seq": seq,
            },
        )
        return AuditRecord.from_model(audit_event)

    def records_for(self, entity_id: UUID) -> list[AuditRecord]:
        rows = self._session.execute(
            select(AuditEvent)
            .where(AuditEvent.entity_id == entity_id)
            .order_by(AuditEvent.seq)
        ).scalars().all()
        return [AuditRecord.from_model(row) for row in rows]

    def validate_chain(self) -> bool:
        """
        Recompute every hash and check every link.

        Raises:
            AuditChainBrokenError: at the first record that does not verify.
        """
        events = self._session.execute(
            select(AuditEvent).order_by(AuditEvent.seq)
        ).scalars().all()

        previous: AuditEvent | None = None
        for audit_event in events:
            expected_prev = previous.hash if previous is not None else None
            if audit_event.prev_hash != expected_prev:
                logger.critical(
                    "audit_chain_broken", extra={"seq": audit_event.seq}
                )
                raise AuditChainBrokenError(
                    str(audit_event.id),
                    expected_prev or "None",
                    audit_event.prev_hash or "None",
                )

            expected_hash = hash_audit_event(
                screen=audit_event.screen,
                entity_id=(
                    str(audit_event.entity_id)
                    if audit_event.entity_id is not None
                    else None
                ),
                action=AuditAction(audit_event.action).value,
                payload_hash=hash_payload(audit_event.payload or {}),
                prev_hash=audit_event.prev_hash,
            )
            if audit_event.hash != expected_hash:
                logger.critical(
                    "audit_chain_broken", extra={"seq": audit_event.seq}
                )
                raise AuditChainBrokenError(
                    str(audit_event.id), expected_hash, audit_event.hash
                )
            previous = audit_event

        return True


def audited(
    screen: str,
    action: AuditAction,
    describe: Callable[[Any, dict[str, Any]], str],
    entity: Callable[[Any, dict[str, Any]], UUID | None] | None = None,
):
    """
    Append an audit record after a successful service operation.

    ``describe(result, arguments)`` renders the description; ``entity``
    optionally picks the audited entity id.  The wrapped method must take
    an ``actor_id`` parameter; nothing is recorded when it is None.  The
    owning service exposes its AuditorService as ``self.auditor``.
    """

    def decorator(fn):
        signature = inspect.signature(fn)

        @functools.wraps(fn)
        def wrapper(self, *args, **kwargs):
            result = fn(self, *args, **kwargs)

            bound = signature.bind(self, *args, **kwargs)
            bound.apply_defaults()
            arguments = dict(bound.arguments)
            arguments.pop("self", None)

            actor_id = arguments.get("actor_id")
            auditor = getattr(self, "auditor", None)
            if actor_id is not None and auditor is not None:
                auditor.append(
                    actor_id=actor_id,
                    screen=screen,
                    action=action,
                    description=describe(result, arguments),
                    entity_id=entity(result, arguments) if entity else None,
                )
            return result

        return wrapper

    return decorator
