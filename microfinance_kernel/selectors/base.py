"""
Module: microfinance_kernel.selectors.base
Responsibility: Base class for read-only query selectors.

Selectors accept a Session from the caller and never add, delete, flush or
commit.  They return frozen dataclasses, not ORM instances.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from microfinance_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """Read-only query access over a caller-owned session."""

    def __init__(self, session: Session):
        self.session = session
