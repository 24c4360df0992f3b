"""
Atomic blocks for ledger mutations.

Every mutating ledger operation runs inside ``atomic()``: a SAVEPOINT inside
the caller's transaction.  Either all account, client, snapshot and journal
changes of the operation persist or none do; the outer transaction is left
usable either way.
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from microfinance_kernel.exceptions import LedgerTransactionError
from microfinance_kernel.logging_config import get_logger

logger = get_logger("db.transaction")


@contextmanager
def atomic(session: Session, operation: str) -> Generator[Session, None, None]:
    """
    Run the enclosed block in a savepoint named after ``operation``.

    Domain errors propagate unchanged after the rollback.  Storage errors
    are re-raised as LedgerTransactionError.
    """
    try:
        with session.begin_nested():
            yield session
    except SQLAlchemyError as exc:
        logger.error(
            "atomic_operation_failed",
            extra={"operation": operation, "error": type(exc).__name__},
        )
        raise LedgerTransactionError(operation, str(exc)) from exc
