"""
Module: microfinance_kernel.models.party
Responsibility: The slice of client/partner records the ledger needs:
    the client sub-ledger running balance and the partner's accounts.

Client balance is flat (debit - credit) regardless of account nature.
"""

from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from microfinance_kernel.db.base import TrackedBase, UUIDString


class PartyType(str, Enum):
    CLIENT = "client"
    PARTNER = "partner"


class Party(TrackedBase):
    """A client (borrower) or partner (capital contributor)."""

    __tablename__ = "parties"
    __table_args__ = (
        Index("idx_party_type", "party_type"),
    )

    party_code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    party_type: Mapped[PartyType] = mapped_column(String(20), nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    payable_account_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("accounts.id"), nullable=True
    )

    equity_account_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("accounts.id"), nullable=True
    )

    debit: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0")
    )

    credit: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0")
    )

    balance: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0")
    )

    def __repr__(self) -> str:
        return f"<Party {self.party_code} {self.party_type}>"

    @property
    def is_client(self) -> bool:
        return self.party_type == PartyType.CLIENT

    @property
    def is_partner(self) -> bool:
        return self.party_type == PartyType.PARTNER
