"""Small builders shared by the test modules."""

from decimal import Decimal

from microfinance_kernel.domain.dtos import JournalLineInput


def line(account, debit="0", credit="0", client=None, memo=None) -> JournalLineInput:
    """Shorthand for a journal line; ``account``/``client`` may be DTOs or ids."""
    return JournalLineInput(
        account_id=getattr(account, "id", account),
        debit=Decimal(debit),
        credit=Decimal(credit),
        client_id=getattr(client, "id", client),
        memo=memo,
    )


def money(value) -> Decimal:
    """Compare stored amounts at display precision."""
    return Decimal(value).quantize(Decimal("0.01"))
