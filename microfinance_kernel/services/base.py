"""
BaseService -- abstract base for ledger services.

Services receive the caller's Session and only flush; the caller (or
``session_scope()``) commits.  Multi-step operations wrap their writes in
``atomic()`` so a failure leaves no partial state.
"""

from abc import ABC
from typing import Generic, TypeVar
from uuid import UUID

from sqlalchemy.orm import Session

from microfinance_kernel.db.base import Base
from microfinance_kernel.domain.clock import Clock, SystemClock

ModelType = TypeVar("ModelType", bound=Base)

# Actor recorded on rows created without an explicit actor
SYSTEM_ACTOR_ID = UUID(int=0)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for ledger services.

    Non-goals:
        - Does NOT commit or roll back the caller's transaction.
        - Does NOT serve read-only queries (see selectors/).
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
