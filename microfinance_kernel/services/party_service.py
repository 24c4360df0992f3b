"""
PartyService -- the ledger's view of clients and partners.

Client and partner management lives outside the ledger; this service only
registers the records journals and accruals point at and resolves them.
Client running balances are maintained by the journal engine.
"""

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from microfinance_kernel.db.types import ZERO
from microfinance_kernel.domain.clock import Clock
from microfinance_kernel.exceptions import PartyNotFoundError
from microfinance_kernel.logging_config import get_logger
from microfinance_kernel.models.party import Party, PartyType
from microfinance_kernel.services.base import SYSTEM_ACTOR_ID, BaseService

logger = get_logger("services.party")


@dataclass(frozen=True)
class PartyInfo:
    id: UUID
    party_code: str
    name: str
    party_type: PartyType
    debit: Decimal
    credit: Decimal
    balance: Decimal
    payable_account_id: UUID | None = None
    equity_account_id: UUID | None = None

    @classmethod
    def from_model(cls, model: Party) -> "PartyInfo":
        return cls(
            id=model.id,
            party_code=model.party_code,
            name=model.name,
            party_type=PartyType(model.party_type),
            debit=model.debit,
            credit=model.credit,
            balance=model.balance,
            payable_account_id=model.payable_account_id,
            equity_account_id=model.equity_account_id,
        )


class PartyService(BaseService[Party]):

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)

    def register(
        self,
        party_code: str,
        name: str,
        party_type: PartyType,
        actor_id: UUID | None = None,
        payable_account_id: UUID | None = None,
        equity_account_id: UUID | None = None,
    ) -> PartyInfo:
        party = Party(
            party_code=party_code,
            name=name,
            party_type=PartyType(party_type).value,
            payable_account_id=payable_account_id,
            equity_account_id=equity_account_id,
            debit=ZERO,
            credit=ZERO,
            balance=ZERO,
            created_by_id=actor_id or SYSTEM_ACTOR_ID,
        )
        self.session.add(party)
        self.session.flush()
        logger.info(
            "party_registered",
            extra={"party_id": str(party.id), "party_type": party.party_type},
        )
        return PartyInfo.from_model(party)

    def get_model(
        self,
        party_id: UUID,
        party_type: PartyType | None = None,
        *,
        for_update: bool = False,
    ) -> Party:
        """
        Raises:
            PartyNotFoundError: unknown id, or a party of another type.
        """
        stmt = select(Party).where(Party.id == party_id)
        if for_update:
            stmt = stmt.with_for_update()
        party = self.session.execute(stmt).scalar_one_or_none()
        if party is None or (party_type is not None and party.party_type != party_type):
            raise PartyNotFoundError(
                str(party_id), PartyType(party_type).value if party_type else None
            )
        return party

    def get(self, party_id: UUID) -> PartyInfo:
        return PartyInfo.from_model(self.get_model(party_id))

    def list_by_type(self, party_type: PartyType) -> list[Party]:
        return list(
            self.session.execute(
                select(Party)
                .where(Party.party_type == PartyType(party_type).value)
                .order_by(Party.party_code)
            ).scalars()
        )
