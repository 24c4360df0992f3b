"""
BalancePropagator -- applies journal line amounts to running balances.

A posted line changes the debit/credit totals of its account and of every
ancestor up to the root, each recomputing its balance by its own nature.
The client named on the line (if any) is updated once, flat
(balance = debit - credit).  Unposting applies the same amounts with the
opposite sign, so post followed by unpost restores every total exactly.

The parent chain is walked iteratively; a revisited account means the
hierarchy is corrupt and raises AccountHierarchyCycleError.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from microfinance_kernel.domain.balances import Direction, flat_balance, nature_balance
from microfinance_kernel.exceptions import AccountHierarchyCycleError
from microfinance_kernel.logging_config import get_logger
from microfinance_kernel.models.party import PartyType
from microfinance_kernel.services.account_directory import AccountDirectory
from microfinance_kernel.services.party_service import PartyService

logger = get_logger("services.balances")


class BalancePropagator:
    """Incremental maintenance of account and client balances."""

    def __init__(
        self,
        session: Session,
        accounts: AccountDirectory,
        parties: PartyService,
    ):
        self._session = session
        self._accounts = accounts
        self._parties = parties

    def apply(
        self,
        account_id: UUID,
        debit: Decimal,
        credit: Decimal,
        direction: Direction,
        client_id: UUID | None = None,
    ) -> list[UUID]:
        """
        Apply one line to its account chain and client.

        Returns the ids of the accounts touched, nearest first.
        """
        sign = Decimal(direction.value)
        debit_delta = debit * sign
        credit_delta = credit * sign

        if client_id is not None:
            client = self._parties.get_model(
                client_id, PartyType.CLIENT, for_update=True
            )
            client.debit += debit_delta
            client.credit += credit_delta
            client.balance = flat_balance(client.debit, client.credit)

        touched: list[UUID] = []
        current_id: UUID | None = account_id
        while current_id is not None:
            if current_id in touched:
                raise AccountHierarchyCycleError(str(current_id), str(touched[-1]))
            account = self._accounts.get_model(current_id, for_update=True)
            account.debit += debit_delta
            account.credit += credit_delta
            account.balance = nature_balance(account.nature, account.debit, account.credit)
            touched.append(current_id)
            current_id = account.parent_id

        self._session.flush()
        logger.debug(
            "balances_propagated",
            extra={
                "account_id": str(account_id),
                "direction": direction.name,
                "depth": len(touched),
            },
        )
        return touched
