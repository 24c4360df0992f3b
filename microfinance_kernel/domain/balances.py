"""
Balance rules shared by the journal engine, the period closer and the
read side.

Account balances follow the account's nature:
    DEBIT  nature: balance = debit - credit
    CREDIT nature: balance = credit - debit
Client balances are flat: balance = debit - credit.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Mapping
from uuid import UUID

from microfinance_kernel.db.types import ZERO
from microfinance_kernel.exceptions import AccountHierarchyCycleError
from microfinance_kernel.models.account import AccountNature


class Direction(int, Enum):
    """Sign applied to line amounts when they hit running balances."""

    POST = 1
    UNPOST = -1


def nature_balance(nature: AccountNature | str, debit: Decimal, credit: Decimal) -> Decimal:
    if nature == AccountNature.DEBIT:
        return debit - credit
    return credit - debit


def flat_balance(debit: Decimal, credit: Decimal) -> Decimal:
    return debit - credit


@dataclass(frozen=True)
class Totals:
    """A debit/credit pair; the unit of period aggregation."""

    debit: Decimal = ZERO
    credit: Decimal = ZERO

    def __add__(self, other: "Totals") -> "Totals":
        return Totals(self.debit + other.debit, self.credit + other.credit)

    @property
    def is_zero(self) -> bool:
        return self.debit == ZERO and self.credit == ZERO


def roll_up(
    direct: Mapping[UUID, Totals],
    parent_of: Mapping[UUID, UUID | None],
) -> dict[UUID, Totals]:
    """
    Fold each account's own totals into all of its ancestors.

    ``parent_of`` must list every account of the chart.  Children are
    computed before parents (iterative post-order, each node once).

    Raises:
        AccountHierarchyCycleError: the parent links contain a cycle.
    """
    children: dict[UUID, list[UUID]] = {}
    for account_id, parent_id in parent_of.items():
        if parent_id is not None:
            children.setdefault(parent_id, []).append(account_id)

    totals: dict[UUID, Totals] = {}
    in_progress: set[UUID] = set()
    for start in parent_of:
        if start in totals:
            continue
        stack: list[tuple[UUID, bool]] = [(start, False)]
        while stack:
            node, expanded = stack.pop()
            if node in totals:
                continue
            if expanded:
                total = direct.get(node, Totals())
                for child in children.get(node, []):
                    total = total + totals[child]
                totals[node] = total
                in_progress.discard(node)
                continue
            if node in in_progress:
                raise AccountHierarchyCycleError(str(node), str(parent_of.get(node)))
            in_progress.add(node)
            stack.append((node, True))
            for child in children.get(node, []):
                if child not in totals:
                    stack.append((child, False))
    return totals
