"""
AccountDirectory -- the chart of accounts as a parent-id tree.

Responsibility:
    Lookups consumed by the journal engine and the period closer (by id,
    by code, first by basic type), parent-chain traversal, and chart
    maintenance (create, update, delete, seed).

Invariants enforced:
    - Account codes are unique.
    - The hierarchy is acyclic: re-parenting under a descendant raises
      AccountHierarchyCycleError.
    - level == 1 for roots, parent level + 1 otherwise.
    - An account with children or journal lines is never deleted.
    - Accounts carrying posted balances are not re-parented (the running
      totals of old and new ancestors would diverge).
"""

from dataclasses import dataclass
from typing import Iterable
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from microfinance_kernel.db.transaction import atomic
from microfinance_kernel.db.types import ZERO
from microfinance_kernel.domain.clock import Clock
from microfinance_kernel.domain.dtos import AccountInfo, AccountNode
from microfinance_kernel.exceptions import (
    AccountCodeExistsError,
    AccountHasChildrenError,
    AccountHierarchyCycleError,
    AccountNotFoundError,
    AccountReferencedError,
    BasicTypeNotFoundError,
)
from microfinance_kernel.logging_config import get_logger
from microfinance_kernel.models.account import (
    Account,
    AccountNature,
    AccountType,
    BasicType,
)
from microfinance_kernel.models.audit_event import AuditAction
from microfinance_kernel.models.journal import JournalLine
from microfinance_kernel.services.auditor_service import AuditorService, audited
from microfinance_kernel.services.base import SYSTEM_ACTOR_ID, BaseService

logger = get_logger("services.accounts")

_UNSET = object()


@dataclass(frozen=True)
class AccountSpec:
    """Input for seeding; parent_code refers to an earlier spec."""

    code: str
    name: str
    account_type: AccountType
    basic_type: BasicType = BasicType.OTHER
    parent_code: str | None = None
    nature: AccountNature | None = None


class AccountDirectory(BaseService[Account]):
    """Chart of accounts lookups and maintenance."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        auditor: AuditorService | None = None,
    ):
        super().__init__(session, clock)
        self.auditor = auditor or AuditorService(session, self.clock)

    # ------------------------------------------------------------------
    # Model-level lookups (used by other services)
    # ------------------------------------------------------------------

    def get_model(self, account_id: UUID, *, for_update: bool = False) -> Account:
        """
        Raises:
            AccountNotFoundError: naming the missing id.
        """
        stmt = select(Account).where(Account.id == account_id)
        if for_update:
            stmt = stmt.with_for_update()
        account = self.session.execute(stmt).scalar_one_or_none()
        if account is None:
            raise AccountNotFoundError(str(account_id))
        return account

    def get_models(self, account_ids: Iterable[UUID]) -> dict[UUID, Account]:
        ids = set(account_ids)
        if not ids:
            return {}
        rows = self.session.execute(
            select(Account).where(Account.id.in_(ids))
        ).scalars().all()
        return {row.id: row for row in rows}

    def require_by_basic_type(self, basic_type: BasicType) -> Account:
        """
        First account (lowest code) carrying ``basic_type``.

        Raises:
            BasicTypeNotFoundError: no such account.
        """
        account = self.session.execute(
            select(Account)
            .where(Account.basic_type == BasicType(basic_type).value)
            .order_by(Account.code)
            .limit(1)
        ).scalar_one_or_none()
        if account is None:
            raise BasicTypeNotFoundError(BasicType(basic_type).value)
        return account

    def all_models(self) -> list[Account]:
        return list(
            self.session.execute(select(Account).order_by(Account.code)).scalars()
        )

    # ------------------------------------------------------------------
    # Consumed lookup interface
    # ------------------------------------------------------------------

    def find_by_id(self, account_id: UUID) -> AccountInfo | None:
        account = self.session.get(Account, account_id)
        return AccountInfo.from_model(account) if account else None

    def find_by_code(self, code: str) -> AccountInfo | None:
        account = self.session.execute(
            select(Account).where(Account.code == code)
        ).scalar_one_or_none()
        return AccountInfo.from_model(account) if account else None

    def find_first_by_basic_type(self, basic_type: BasicType) -> AccountInfo | None:
        try:
            return AccountInfo.from_model(self.require_by_basic_type(basic_type))
        except BasicTypeNotFoundError:
            return None

    # ------------------------------------------------------------------
    # Hierarchy
    # ------------------------------------------------------------------

    def ancestors(self, account_id: UUID) -> list[AccountInfo]:
        """Parent chain of an account, nearest first."""
        chain: list[AccountInfo] = []
        seen = {account_id}
        current = self.get_model(account_id)
        while current.parent_id is not None:
            if current.parent_id in seen:
                raise AccountHierarchyCycleError(str(current.id), str(current.parent_id))
            seen.add(current.parent_id)
            current = self.get_model(current.parent_id)
            chain.append(AccountInfo.from_model(current))
        return chain

    def _children_map(self) -> dict[UUID | None, list[Account]]:
        children: dict[UUID | None, list[Account]] = {}
        for account in self.all_models():
            children.setdefault(account.parent_id, []).append(account)
        return children

    def descendant_ids(self, account_id: UUID) -> set[UUID]:
        children = self._children_map()
        found: set[UUID] = set()
        stack = [account_id]
        while stack:
            for child in children.get(stack.pop(), []):
                if child.id not in found:
                    found.add(child.id)
                    stack.append(child.id)
        return found

    def get_tree(self) -> list[AccountNode]:
        """Nested chart, roots and siblings ordered by code."""
        children = self._children_map()

        def build(account: Account) -> AccountNode:
            return AccountNode(
                account=AccountInfo.from_model(account),
                children=tuple(build(c) for c in children.get(account.id, [])),
            )

        return [build(root) for root in children.get(None, [])]

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def _line_count(self, account_id: UUID) -> int:
        return self.session.execute(
            select(func.count()).select_from(JournalLine).where(
                JournalLine.account_id == account_id
            )
        ).scalar_one()

    def _child_count(self, account_id: UUID) -> int:
        return self.session.execute(
            select(func.count()).select_from(Account).where(
                Account.parent_id == account_id
            )
        ).scalar_one()

    @audited(
        "accounts",
        AuditAction.CREATE,
        lambda result, args: f"Created account {result.code} - {result.name}",
        entity=lambda result, args: result.id,
    )
    def create_account(
        self,
        code: str,
        name: str,
        account_type: AccountType,
        actor_id: UUID | None = None,
        parent_id: UUID | None = None,
        basic_type: BasicType = BasicType.OTHER,
        nature: AccountNature | None = None,
    ) -> AccountInfo:
        """
        Add an account to the chart.  Nature defaults from the type.

        Raises:
            AccountNotFoundError: parent does not exist.
            AccountCodeExistsError: code already used.
        """
        account_type = AccountType(account_type)
        level = 1
        if parent_id is not None:
            level = self.get_model(parent_id).level + 1
        if self.find_by_code(code) is not None:
            raise AccountCodeExistsError(code)

        with atomic(self.session, "create_account"):
            account = Account(
                code=code,
                name=name,
                account_type=account_type.value,
                nature=AccountNature(nature or AccountNature.for_type(account_type)).value,
                basic_type=BasicType(basic_type).value,
                parent_id=parent_id,
                level=level,
                debit=ZERO,
                credit=ZERO,
                balance=ZERO,
                created_by_id=actor_id or SYSTEM_ACTOR_ID,
            )
            self.session.add(account)
            self.session.flush()

        logger.info(
            "account_created",
            extra={"account_id": str(account.id), "code": code, "level": level},
        )
        return AccountInfo.from_model(account)

    @audited(
        "accounts",
        AuditAction.UPDATE,
        lambda result, args: f"Updated account {result.code} - {result.name}",
        entity=lambda result, args: result.id,
    )
    def update_account(
        self,
        account_id: UUID,
        actor_id: UUID | None = None,
        *,
        name: str | None = None,
        is_active: bool | None = None,
        basic_type: BasicType | None = None,
        account_type: AccountType | None = None,
        nature: AccountNature | None = None,
        parent_id=_UNSET,
    ) -> AccountInfo:
        """
        Edit an account.  ``parent_id=None`` makes it a root.

        Raises:
            AccountNotFoundError: account or new parent missing.
            AccountHierarchyCycleError: new parent is the account or below it.
            AccountReferencedError: structural change on a used account, or
                re-parenting an account with posted totals.
        """
        account = self.get_model(account_id)

        structural_change = (
            (account_type is not None and AccountType(account_type) != account.account_type)
            or (nature is not None and AccountNature(nature) != account.nature)
        )
        if structural_change and self._line_count(account_id):
            raise AccountReferencedError(
                str(account_id),
                reason="referenced by journal lines; type and nature are frozen",
            )

        new_level = None
        if parent_id is not _UNSET and parent_id != account.parent_id:
            if parent_id is not None:
                if parent_id == account_id or parent_id in self.descendant_ids(account_id):
                    raise AccountHierarchyCycleError(str(account_id), str(parent_id))
                new_level = self.get_model(parent_id).level + 1
            else:
                new_level = 1
            if account.debit != ZERO or account.credit != ZERO:
                raise AccountReferencedError(
                    str(account_id),
                    reason="carrying posted balances; it cannot be re-parented",
                )

        with atomic(self.session, "update_account"):
            if name is not None:
                account.name = name
            if is_active is not None:
                account.is_active = is_active
            if basic_type is not None:
                account.basic_type = BasicType(basic_type).value
            if account_type is not None:
                account.account_type = AccountType(account_type).value
            if nature is not None:
                account.nature = AccountNature(nature).value
            if new_level is not None:
                account.parent_id = parent_id
                self._relevel(account, new_level)
            account.updated_by_id = actor_id
            self.session.flush()

        return AccountInfo.from_model(account)

    def _relevel(self, account: Account, level: int) -> None:
        children = self._children_map()
        stack = [(account, level)]
        while stack:
            node, node_level = stack.pop()
            node.level = node_level
            stack.extend((child, node_level + 1) for child in children.get(node.id, []))

    @audited(
        "accounts",
        AuditAction.DELETE,
        lambda result, args: f"Deleted account {result.code} - {result.name}",
        entity=lambda result, args: result.id,
    )
    def delete_account(self, account_id: UUID, actor_id: UUID | None = None) -> AccountInfo:
        """
        Raises:
            AccountNotFoundError: unknown account.
            AccountHasChildrenError: account still has sub-accounts.
            AccountReferencedError: journal lines reference the account.
        """
        account = self.get_model(account_id)
        child_count = self._child_count(account_id)
        if child_count:
            raise AccountHasChildrenError(str(account_id), child_count)
        if self._line_count(account_id):
            raise AccountReferencedError(str(account_id))

        info = AccountInfo.from_model(account)
        with atomic(self.session, "delete_account"):
            self.session.delete(account)
            self.session.flush()
        logger.info("account_deleted", extra={"account_id": str(account_id)})
        return info

    def seed_chart(
        self, specs: Iterable[AccountSpec], actor_id: UUID | None = None
    ) -> list[AccountInfo]:
        """
        Create missing accounts of a chart; existing codes are left alone.

        Parents must appear before their children.
        """
        created: list[AccountInfo] = []
        with atomic(self.session, "seed_chart"):
            for spec in specs:
                if self.find_by_code(spec.code) is not None:
                    continue
                parent_id = None
                if spec.parent_code is not None:
                    parent = self.find_by_code(spec.parent_code)
                    if parent is None:
                        raise AccountNotFoundError(spec.parent_code)
                    parent_id = parent.id
                created.append(
                    self.create_account(
                        code=spec.code,
                        name=spec.name,
                        account_type=spec.account_type,
                        actor_id=actor_id,
                        parent_id=parent_id,
                        basic_type=spec.basic_type,
                        nature=spec.nature,
                    )
                )
        logger.info("chart_seeded", extra={"account_count": len(created)})
        return created
