"""
Module: microfinance_kernel.models.audit_event
Responsibility: ORM persistence for the tamper-evident audit log.

Audit rows are append-only (db/immutability.py).  Each row's hash covers
the previous row's hash:
    hash = H(screen | entity_id | action | payload_hash | prev_hash)
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, BigInteger, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from microfinance_kernel.db.base import Base, UUIDString


class AuditAction(str, Enum):
    """Auditable ledger actions."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    POST = "post"
    UNPOST = "unpost"
    CLOSE = "close"
    REOPEN = "reopen"
    DISTRIBUTE = "distribute"
    REVERSE_DISTRIBUTION = "reverse_distribution"


class AuditEvent(Base):
    """One audit record: who did what, on which screen, to which entity."""

    __tablename__ = "audit_events"
    __table_args__ = (
        Index("idx_audit_screen_action", "screen", "action"),
        Index("idx_audit_entity", "entity_id"),
        Index("idx_audit_actor", "actor_id"),
    )

    seq: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)

    # Business area of the action, e.g. "journal", "period_closing"
    screen: Mapped[str] = mapped_column(String(50), nullable=False)

    action: Mapped[AuditAction] = mapped_column(String(30), nullable=False)

    description: Mapped[str] = mapped_column(String(1000), nullable=False)

    entity_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    payload: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    payload_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    prev_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)

    hash: Mapped[str] = mapped_column(String(64), nullable=False)

    def __repr__(self) -> str:
        return f"<AuditEvent #{self.seq} {self.screen}:{self.action}>"

    @property
    def is_genesis(self) -> bool:
        return self.prev_hash is None
