"""
Module: microfinance_kernel.models.account
Responsibility: ORM persistence for the hierarchical chart of accounts and
    its live running balances.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - code is unique.
    - balance == debit - credit for DEBIT nature, credit - debit otherwise.
      Maintained by the journal engine, never written by callers.
    - parent_id forms a forest (no cycles); enforced by AccountDirectory.
"""

from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from microfinance_kernel.db.base import TrackedBase, UUIDString


class AccountType(str, Enum):
    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"


class AccountNature(str, Enum):
    """Side on which an account's balance grows."""

    DEBIT = "debit"
    CREDIT = "credit"

    @classmethod
    def for_type(cls, account_type: "AccountType") -> "AccountNature":
        if account_type in (AccountType.ASSET, AccountType.EXPENSE):
            return cls.DEBIT
        return cls.CREDIT


class BasicType(str, Enum):
    """Role tag used to locate well-known accounts."""

    BANK = "bank"
    LOANS_RECEIVABLE = "loans_receivable"
    LOAN_INCOME = "loan_income"
    PARTNER_PAYABLE = "partner_payable"
    PARTNER_EQUITY = "partner_equity"
    PARTNER_SAVING = "partner_saving"
    PARTNER_SHARES_EXPENSES = "partner_shares_expenses"
    COMPANY_SHARES = "company_shares"
    SAVINGS = "savings"
    OTHER = "other"


class Account(TrackedBase):
    """
    Chart of accounts node with cumulative posted totals.

    debit/credit hold the posted activity of this account and all of its
    descendants; balance is derived from them by nature.
    """

    __tablename__ = "accounts"
    __table_args__ = (
        Index("idx_account_parent", "parent_id"),
        Index("idx_account_basic_type", "basic_type"),
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    account_type: Mapped[AccountType] = mapped_column(String(20), nullable=False)

    nature: Mapped[AccountNature] = mapped_column(String(10), nullable=False)

    basic_type: Mapped[BasicType] = mapped_column(
        String(40),
        nullable=False,
        default=BasicType.OTHER,
    )

    parent_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=True,
    )

    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    debit: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0")
    )

    credit: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0")
    )

    balance: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0")
    )

    parent: Mapped["Account | None"] = relationship(
        remote_side="Account.id",
        back_populates="children",
    )

    children: Mapped[list["Account"]] = relationship(back_populates="parent")

    def __repr__(self) -> str:
        return f"<Account {self.code}: {self.name}>"

    @property
    def is_debit_nature(self) -> bool:
        return self.nature == AccountNature.DEBIT
