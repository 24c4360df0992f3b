"""
Typed exception hierarchy for the microfinance ledger kernel.

Every error the kernel raises is a subclass of ``LedgerError`` with a
class-level ``code`` (machine-readable, API-safe) and the structured data
of the failure stored as instance attributes.  Callers catch by type and
read attributes; they never parse messages.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LedgerError (base)
    |
    +-- JournalError
    |   +-- JournalNotFoundError
    |   +-- EmptyJournalError
    |   +-- InvalidLineAmountError
    |   +-- UnbalancedEntryError
    |   +-- AlreadyPostedError
    |   +-- NotPostedError
    |   +-- ZakatImmutableError
    |
    +-- AccountError
    |   +-- AccountNotFoundError
    |   +-- AccountCodeExistsError
    |   +-- AccountHasChildrenError
    |   +-- AccountReferencedError
    |   +-- AccountHierarchyCycleError
    |   +-- BasicTypeNotFoundError
    |
    +-- PartyError
    |   +-- PartyNotFoundError
    |   +-- PartnerAccountMissingError
    |
    +-- PeriodError
    |   +-- PeriodNotFoundError
    |   +-- NoOpenPeriodError
    |   +-- ClosedPeriodError
    |   +-- PeriodAlreadyClosedError
    |   +-- PeriodNotClosedError
    |   +-- UnclosedDraftsError
    |   +-- NotMostRecentPeriodError
    |   +-- PeriodHasJournalsError
    |
    +-- AccrualError
    |   +-- InvalidAccrualError
    |   +-- NoAccrualsError
    |   +-- AlreadyDistributedError
    |   +-- NotDistributedError
    |
    +-- AuditError
    |   +-- AuditChainBrokenError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- LedgerTransactionError

===============================================================================
HANDLING PATTERNS
===============================================================================

    try:
        journals.post_journal(journal_id, actor_id)
    except AlreadyPostedError as e:
        return {"error": e.code, "journal_id": e.journal_id}
    except JournalError as e:
        log.error("post failed", extra={"code": e.code})

``LedgerTransactionError`` wraps storage failures raised inside an atomic
block; by the time it reaches the caller the block has been rolled back.
"""

from decimal import Decimal


class LedgerError(Exception):
    """Base exception for all ledger kernel errors."""

    code: str = "LEDGER_ERROR"


# Journal-related exceptions


class JournalError(LedgerError):
    """Base exception for journal errors."""

    code: str = "JOURNAL_ERROR"


class JournalNotFoundError(JournalError):
    """Journal with given ID was not found."""

    code: str = "JOURNAL_NOT_FOUND"

    def __init__(self, journal_id: str):
        self.journal_id = str(journal_id)
        super().__init__(f"Journal not found: {journal_id}")


class EmptyJournalError(JournalError):
    """A journal must carry at least one line."""

    code: str = "EMPTY_JOURNAL"

    def __init__(self):
        super().__init__("Journal has no lines")


class InvalidLineAmountError(JournalError):
    """A line amount is negative or has more than two decimal places."""

    code: str = "INVALID_LINE_AMOUNT"

    def __init__(self, line_index: int, debit: Decimal, credit: Decimal):
        self.line_index = line_index
        self.debit = debit
        self.credit = credit
        super().__init__(
            f"Line {line_index} has invalid amounts: debit={debit}, credit={credit}"
        )


class UnbalancedEntryError(JournalError):
    """Total debits do not equal total credits."""

    code: str = "UNBALANCED_ENTRY"

    def __init__(self, debits: Decimal, credits: Decimal):
        self.debits = debits
        self.credits = credits
        super().__init__(
            f"Journal is not balanced: debits={debits}, credits={credits}"
        )


class AlreadyPostedError(JournalError):
    """The journal is POSTED and cannot be changed or posted again."""

    code: str = "ALREADY_POSTED"

    def __init__(self, journal_id: str):
        self.journal_id = str(journal_id)
        super().__init__(f"Journal is already posted: {journal_id}")


class NotPostedError(JournalError):
    """Only POSTED journals can be unposted."""

    code: str = "NOT_POSTED"

    def __init__(self, journal_id: str):
        self.journal_id = str(journal_id)
        super().__init__(f"Journal is not posted: {journal_id}")


class ZakatImmutableError(JournalError):
    """Zakat journals cannot be unposted once posted."""

    code: str = "ZAKAT_IMMUTABLE"

    def __init__(self, journal_id: str, source_type: str):
        self.journal_id = str(journal_id)
        self.source_type = source_type
        super().__init__(
            f"Journal {journal_id} with source {source_type} cannot be unposted"
        )


# Account-related exceptions


class AccountError(LedgerError):
    """Base exception for chart of accounts errors."""

    code: str = "ACCOUNT_ERROR"


class AccountNotFoundError(AccountError):
    """Account with given ID or code was not found."""

    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, account_id: str):
        self.account_id = str(account_id)
        super().__init__(f"Account not found: {account_id}")


class AccountCodeExistsError(AccountError):
    code: str = "ACCOUNT_CODE_EXISTS"

    def __init__(self, account_code: str):
        self.account_code = account_code
        super().__init__(f"Account code already exists: {account_code}")


class AccountHasChildrenError(AccountError):
    """Cannot delete an account that still has sub-accounts."""

    code: str = "ACCOUNT_HAS_CHILDREN"

    def __init__(self, account_id: str, child_count: int):
        self.account_id = str(account_id)
        self.child_count = child_count
        super().__init__(
            f"Account {account_id} has {child_count} child account(s)"
        )


class AccountReferencedError(AccountError):
    """Account is referenced by journal lines."""

    code: str = "ACCOUNT_REFERENCED"

    def __init__(self, account_id: str, reason: str = "referenced by journal lines"):
        self.account_id = str(account_id)
        self.reason = reason
        super().__init__(f"Account {account_id} is {reason}")


class AccountHierarchyCycleError(AccountError):
    """Re-parenting would make an account its own ancestor."""

    code: str = "ACCOUNT_HIERARCHY_CYCLE"

    def __init__(self, account_id: str, parent_id: str | None):
        self.account_id = str(account_id)
        self.parent_id = str(parent_id) if parent_id is not None else None
        super().__init__(
            f"Account hierarchy cycle: {account_id} cannot have parent {parent_id}"
        )


class BasicTypeNotFoundError(AccountError):
    """No account carries the requested basic type."""

    code: str = "BASIC_TYPE_NOT_FOUND"

    def __init__(self, basic_type: str):
        self.basic_type = basic_type
        super().__init__(f"No account found with basic type {basic_type}")


# Party-related exceptions


class PartyError(LedgerError):
    code: str = "PARTY_ERROR"


class PartyNotFoundError(PartyError):
    """Client or partner with given ID was not found."""

    code: str = "PARTY_NOT_FOUND"

    def __init__(self, party_id: str, party_type: str | None = None):
        self.party_id = str(party_id)
        self.party_type = party_type
        label = party_type.lower() if party_type else "party"
        super().__init__(f"{label.capitalize()} not found: {party_id}")


class PartnerAccountMissingError(PartyError):
    """Partner has no payable account to receive its share."""

    code: str = "PARTNER_ACCOUNT_MISSING"

    def __init__(self, partner_id: str):
        self.partner_id = str(partner_id)
        super().__init__(f"Partner {partner_id} has no payable account")


# Period-related exceptions


class PeriodError(LedgerError):
    """Base exception for fiscal period errors."""

    code: str = "PERIOD_ERROR"


class PeriodNotFoundError(PeriodError):
    code: str = "PERIOD_NOT_FOUND"

    def __init__(self, period_id: str):
        self.period_id = str(period_id)
        super().__init__(f"Fiscal period not found: {period_id}")


class NoOpenPeriodError(PeriodError):
    """No open fiscal period exists."""

    code: str = "NO_OPEN_PERIOD"

    def __init__(self):
        super().__init__("No open fiscal period")


class ClosedPeriodError(PeriodError):
    """Attempted to change journals of a closed period."""

    code: str = "CLOSED_PERIOD"

    def __init__(self, period_id: str, journal_id: str | None = None):
        self.period_id = str(period_id)
        self.journal_id = str(journal_id) if journal_id is not None else None
        super().__init__(f"Fiscal period {period_id} is closed")


class PeriodAlreadyClosedError(PeriodError):
    code: str = "PERIOD_ALREADY_CLOSED"

    def __init__(self, period_id: str):
        self.period_id = str(period_id)
        super().__init__(f"Fiscal period {period_id} is already closed")


class PeriodNotClosedError(PeriodError):
    code: str = "PERIOD_NOT_CLOSED"

    def __init__(self, period_id: str):
        self.period_id = str(period_id)
        super().__init__(f"Fiscal period {period_id} is not closed")


class UnclosedDraftsError(PeriodError):
    """The period still holds DRAFT journals."""

    code: str = "UNCLOSED_DRAFTS"

    def __init__(self, period_id: str, draft_count: int):
        self.period_id = str(period_id)
        self.draft_count = draft_count
        super().__init__(
            f"Cannot close period {period_id}: "
            f"{draft_count} draft journal(s) must be posted or deleted"
        )


class NotMostRecentPeriodError(PeriodError):
    """Only the most recently closed period can be reopened or distributed."""

    code: str = "NOT_MOST_RECENT_PERIOD"

    def __init__(self, period_id: str, latest_period_id: str | None):
        self.period_id = str(period_id)
        self.latest_period_id = (
            str(latest_period_id) if latest_period_id is not None else None
        )
        super().__init__(
            f"Fiscal period {period_id} is not the most recently closed period "
            f"(latest is {latest_period_id})"
        )


class PeriodHasJournalsError(PeriodError):
    """The successor period already holds journals and cannot be removed."""

    code: str = "PERIOD_HAS_JOURNALS"

    def __init__(self, period_id: str, journal_count: int):
        self.period_id = str(period_id)
        self.journal_count = journal_count
        super().__init__(
            f"Fiscal period {period_id} contains {journal_count} journal(s)"
        )


# Accrual and distribution exceptions


class AccrualError(LedgerError):
    code: str = "ACCRUAL_ERROR"


class InvalidAccrualError(AccrualError):
    """Accrual amounts are negative or inconsistent."""

    code: str = "INVALID_ACCRUAL"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid partner accrual: {reason}")


class NoAccrualsError(AccrualError):
    """The period has no partner profits to distribute."""

    code: str = "NO_ACCRUALS"

    def __init__(self, period_id: str):
        self.period_id = str(period_id)
        super().__init__(f"No partner profits found for period {period_id}")


class AlreadyDistributedError(AccrualError):
    code: str = "ALREADY_DISTRIBUTED"

    def __init__(self, period_id: str):
        self.period_id = str(period_id)
        super().__init__(f"Profit of period {period_id} is already distributed")


class NotDistributedError(AccrualError):
    code: str = "NOT_DISTRIBUTED"

    def __init__(self, period_id: str):
        self.period_id = str(period_id)
        super().__init__(f"Profit of period {period_id} is not distributed")


# Audit-related exceptions


class AuditError(LedgerError):
    code: str = "AUDIT_ERROR"


class AuditChainBrokenError(AuditError):
    """Audit hash chain validation failed."""

    code: str = "AUDIT_CHAIN_BROKEN"

    def __init__(self, audit_event_id: str, expected_hash: str, actual_hash: str):
        self.audit_event_id = str(audit_event_id)
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Audit chain broken at {audit_event_id}: "
            f"expected {expected_hash}, found {actual_hash}"
        )


# Immutability exceptions


class ImmutabilityError(LedgerError):
    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Lines of POSTED journals, POSTED journal headers (delete), audit events
    and closing snapshots are protected by ORM listeners.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


class LedgerTransactionError(LedgerError):
    """A storage failure aborted an atomic ledger operation."""

    code: str = "TRANSACTION_FAILED"

    def __init__(self, operation: str, cause: str):
        self.operation = operation
        self.cause = cause
        super().__init__(f"{operation} failed and was rolled back: {cause}")
