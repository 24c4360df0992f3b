"""
Tests for JournalService -- the journal engine.

Covers:
- create_journal(): DRAFT creation, nature-aware line balances, validation
  (empty, negative, sub-cent, unbalanced, unknown account/client) with nothing stored
  on rejection, period resolution, closed periods
- update_journal(): header edits, full line replacement, posted guard
- delete_journal(): drafts only
- post_journal() / unpost_journal(): balance propagation to accounts and
  clients, status guards, zakat journals, audit records
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from microfinance_kernel.domain.dtos import JournalInput, JournalLineInput, JournalPatch
from microfinance_kernel.exceptions import (
    AccountNotFoundError,
    AlreadyPostedError,
    ClosedPeriodError,
    EmptyJournalError,
    InvalidLineAmountError,
    JournalNotFoundError,
    NoOpenPeriodError,
    NotPostedError,
    PartyNotFoundError,
    UnbalancedEntryError,
    ZakatImmutableError,
)
from microfinance_kernel.models.audit_event import AuditAction
from microfinance_kernel.models.journal import (
    JournalEntry,
    JournalLine,
    JournalStatus,
    JournalType,
    SourceType,
)
from tests.helpers import line


def _journal_count(session) -> int:
    return session.execute(select(func.count()).select_from(JournalEntry)).scalar_one()


def _line_count(session) -> int:
    return session.execute(select(func.count()).select_from(JournalLine)).scalar_one()


class TestCreateJournal:

    def test_creates_draft_with_lines(self, journal_service, standard_accounts, open_period, test_actor_id):
        bank, capital = standard_accounts["bank"], standard_accounts["capital"]

        record = journal_service.create_journal(
            JournalInput(
                lines=(line(bank, debit="5000"), line(capital, credit="5000")),
                reference="CAP-1",
                description="Initial capital",
            ),
            actor_id=test_actor_id,
        )

        assert record.status == JournalStatus.DRAFT
        assert record.period_id == open_period.period_id
        assert record.reference == "CAP-1"
        assert [ln.line_seq for ln in record.lines] == [1, 2]
        assert record.total_debits == record.total_credits == Decimal("5000")

    def test_line_balance_follows_account_nature(self, journal_service, standard_accounts, open_period):
        bank, capital = standard_accounts["bank"], standard_accounts["capital"]

        record = journal_service.create_journal(
            JournalInput(lines=(line(bank, debit="250"), line(capital, credit="250")))
        )

        by_account = {ln.account_id: ln for ln in record.lines}
        # bank is DEBIT nature, capital is CREDIT nature
        assert by_account[bank.id].balance == Decimal("250")
        assert by_account[capital.id].balance == Decimal("250")

    def test_draft_does_not_touch_balances(self, journal_service, account_directory, standard_accounts, open_period):
        bank, capital = standard_accounts["bank"], standard_accounts["capital"]
        journal_service.create_journal(
            JournalInput(lines=(line(bank, debit="100"), line(capital, credit="100")))
        )
        assert account_directory.find_by_id(bank.id).debit == Decimal("0")

    def test_unbalanced_rejected_and_nothing_stored(self, session, journal_service, standard_accounts, open_period):
        bank, capital = standard_accounts["bank"], standard_accounts["capital"]
        before = (_journal_count(session), _line_count(session))

        with pytest.raises(UnbalancedEntryError) as exc_info:
            journal_service.create_journal(
                JournalInput(lines=(line(bank, debit="100"), line(capital, credit="99.99")))
            )

        assert exc_info.value.debits == Decimal("100")
        assert exc_info.value.credits == Decimal("99.99")
        assert (_journal_count(session), _line_count(session)) == before

    def test_empty_lines_rejected(self, journal_service, standard_accounts, open_period):
        with pytest.raises(EmptyJournalError):
            journal_service.create_journal(JournalInput(lines=()))

    def test_negative_amount_rejected(self, journal_service, standard_accounts, open_period):
        bank, capital = standard_accounts["bank"], standard_accounts["capital"]
        with pytest.raises(InvalidLineAmountError) as exc_info:
            journal_service.create_journal(
                JournalInput(
                    lines=(
                        line(bank, debit="-10"),
                        line(capital, debit="-10"),
                    )
                )
            )
        assert exc_info.value.line_index == 0

    def test_sub_cent_amount_rejected(self, session, journal_service, standard_accounts, open_period):
        bank, capital = standard_accounts["bank"], standard_accounts["capital"]
        before = _journal_count(session)

        with pytest.raises(InvalidLineAmountError) as exc_info:
            journal_service.create_journal(
                JournalInput(
                    lines=(
                        line(bank, debit="10"),
                        line(capital, credit="0.005"),
                        line(capital, credit="9.995"),
                    )
                )
            )

        assert exc_info.value.line_index == 1
        assert _journal_count(session) == before

    def test_trailing_zeros_accepted(self, journal_service, standard_accounts, open_period):
        bank, capital = standard_accounts["bank"], standard_accounts["capital"]
        record = journal_service.create_journal(
            JournalInput(lines=(line(bank, debit="12.5000"), line(capital, credit="12.50")))
        )
        assert record.total_debits == Decimal("12.50")

    def test_sub_cent_replacement_rejected(self, journal_service, standard_accounts, create_journal):
        bank, capital = standard_accounts["bank"], standard_accounts["capital"]
        record = create_journal([line(bank, debit="1"), line(capital, credit="1")])

        with pytest.raises(InvalidLineAmountError):
            journal_service.update_journal(
                record.id,
                JournalPatch(lines=(line(bank, debit="0.001"), line(capital, credit="0.001"))),
            )
        assert journal_service.get(record.id).total_debits == Decimal("1")

    def test_unknown_account_named_in_error(self, session, journal_service, standard_accounts, open_period):
        bank = standard_accounts["bank"]
        missing = uuid4()
        before = _journal_count(session)

        with pytest.raises(AccountNotFoundError) as exc_info:
            journal_service.create_journal(
                JournalInput(lines=(line(bank, debit="10"), line(missing, credit="10")))
            )

        assert exc_info.value.account_id == str(missing)
        assert _journal_count(session) == before

    def test_client_must_be_a_client_party(self, journal_service, standard_accounts, open_period, create_partner):
        bank, savings = standard_accounts["bank"], standard_accounts["savings"]
        partner = create_partner()

        with pytest.raises(PartyNotFoundError):
            journal_service.create_journal(
                JournalInput(
                    lines=(line(bank, debit="10"), line(savings, credit="10", client=partner))
                )
            )

    def test_float_amounts_refused(self, standard_accounts):
        with pytest.raises(TypeError):
            JournalLineInput(account_id=standard_accounts["bank"].id, debit=1.5)

    def test_no_open_period(self, journal_service, standard_accounts):
        bank, capital = standard_accounts["bank"], standard_accounts["capital"]
        with pytest.raises(NoOpenPeriodError):
            journal_service.create_journal(
                JournalInput(lines=(line(bank, debit="1"), line(capital, credit="1")))
            )

    def test_explicit_period_id_wins(self, journal_service, period_service, standard_accounts, open_period):
        bank, capital = standard_accounts["bank"], standard_accounts["capital"]
        record = journal_service.create_journal(
            JournalInput(
                lines=(line(bank, debit="1"), line(capital, credit="1")),
                period_id=open_period.period_id,
            )
        )
        assert record.period_id == open_period.period_id

    def test_closed_period_rejected(self, journal_service, period_closer, standard_accounts, open_period, test_actor_id):
        bank, capital = standard_accounts["bank"], standard_accounts["capital"]
        period_closer.close_period(open_period.period_id, test_actor_id)

        with pytest.raises(ClosedPeriodError):
            journal_service.create_journal(
                JournalInput(
                    lines=(line(bank, debit="1"), line(capital, credit="1")),
                    period_id=open_period.period_id,
                )
            )

    def test_audit_record_only_with_actor(self, journal_service, auditor_service, standard_accounts, open_period, test_actor_id):
        bank, capital = standard_accounts["bank"], standard_accounts["capital"]
        lines = (line(bank, debit="1"), line(capital, credit="1"))

        silent = journal_service.create_journal(JournalInput(lines=lines))
        audited = journal_service.create_journal(
            JournalInput(lines=lines, reference="AUD-1"), actor_id=test_actor_id
        )

        assert auditor_service.records_for(silent.id) == []
        records = auditor_service.records_for(audited.id)
        assert len(records) == 1
        assert records[0].screen == "journal"
        assert records[0].action == AuditAction.CREATE
        assert records[0].actor_id == test_actor_id
        assert "AUD-1" in records[0].description


class TestUpdateJournal:

    def test_header_fields(self, journal_service, standard_accounts, create_journal):
        bank, capital = standard_accounts["bank"], standard_accounts["capital"]
        record = create_journal([line(bank, debit="10"), line(capital, credit="10")])

        updated = journal_service.update_journal(
            record.id,
            JournalPatch(description="Corrected", reference="REF-9", journal_type=JournalType.ADJUSTMENT),
        )

        assert updated.description == "Corrected"
        assert updated.reference == "REF-9"
        assert updated.journal_type == JournalType.ADJUSTMENT
        assert len(updated.lines) == 2

    def test_lines_replaced_and_revalidated(self, journal_service, standard_accounts, create_journal):
        bank, capital, loans = (
            standard_accounts["bank"],
            standard_accounts["capital"],
            standard_accounts["loans"],
        )
        record = create_journal([line(bank, debit="10"), line(capital, credit="10")])

        updated = journal_service.update_journal(
            record.id,
            JournalPatch(
                lines=(
                    line(loans, debit="30"),
                    line(bank, credit="20"),
                    line(bank, credit="10"),
                )
            ),
        )

        assert [ln.line_seq for ln in updated.lines] == [1, 2, 3]
        assert updated.total_debits == Decimal("30")
        # bank is DEBIT nature: a credit line carries a negative balance
        assert updated.lines[1].balance == Decimal("-20")

    def test_unbalanced_replacement_keeps_original(self, journal_service, standard_accounts, create_journal):
        bank, capital = standard_accounts["bank"], standard_accounts["capital"]
        record = create_journal([line(bank, debit="10"), line(capital, credit="10")])

        with pytest.raises(UnbalancedEntryError):
            journal_service.update_journal(
                record.id,
                JournalPatch(lines=(line(bank, debit="10"), line(capital, credit="5"))),
            )

        assert journal_service.get(record.id).total_debits == Decimal("10")

    def test_posted_journal_cannot_be_edited(self, journal_service, standard_accounts, create_journal):
        bank, capital = standard_accounts["bank"], standard_accounts["capital"]
        record = create_journal([line(bank, debit="10"), line(capital, credit="10")], post=True)

        with pytest.raises(AlreadyPostedError):
            journal_service.update_journal(record.id, JournalPatch(description="x"))

    def test_unknown_journal(self, journal_service, standard_accounts, open_period):
        with pytest.raises(JournalNotFoundError):
            journal_service.update_journal(uuid4(), JournalPatch(description="x"))


class TestDeleteJournal:

    def test_deletes_draft_and_lines(self, session, journal_service, standard_accounts, create_journal):
        bank, capital = standard_accounts["bank"], standard_accounts["capital"]
        record = create_journal([line(bank, debit="10"), line(capital, credit="10")])
        lines_before = _line_count(session)

        journal_service.delete_journal(record.id)

        assert session.get(JournalEntry, record.id) is None
        assert _line_count(session) == lines_before - 2

    def test_posted_journal_cannot_be_deleted(self, journal_service, standard_accounts, create_journal):
        bank, capital = standard_accounts["bank"], standard_accounts["capital"]
        record = create_journal([line(bank, debit="10"), line(capital, credit="10")], post=True)

        with pytest.raises(AlreadyPostedError):
            journal_service.delete_journal(record.id)


class TestPostAndUnpost:

    def test_post_updates_account_chain(self, journal_service, account_directory, standard_accounts, create_journal, test_actor_id):
        bank, capital = standard_accounts["bank"], standard_accounts["capital"]
        record = create_journal([line(bank, debit="5000"), line(capital, credit="5000")])

        posted = journal_service.post_journal(record.id, test_actor_id)

        assert posted.status == JournalStatus.POSTED
        assert posted.posted_by_id == test_actor_id
        assert posted.posted_at is not None

        bank_now = account_directory.find_by_id(bank.id)
        assets_now = account_directory.find_by_code("1000")
        capital_now = account_directory.find_by_id(capital.id)
        assert (bank_now.debit, bank_now.balance) == (Decimal("5000"), Decimal("5000"))
        assert (assets_now.debit, assets_now.balance) == (Decimal("5000"), Decimal("5000"))
        assert (capital_now.credit, capital_now.balance) == (Decimal("5000"), Decimal("5000"))

    def test_post_updates_client_flat(self, ledger, standard_accounts, create_journal, create_client):
        bank, savings = standard_accounts["bank"], standard_accounts["savings"]
        client = create_client()

        create_journal(
            [line(bank, debit="300"), line(savings, credit="300", client=client)], post=True
        )

        after = ledger.parties.get(client.id)
        assert after.credit == Decimal("300")
        assert after.balance == Decimal("-300")

    def test_post_twice_rejected(self, journal_service, standard_accounts, create_journal):
        bank, capital = standard_accounts["bank"], standard_accounts["capital"]
        record = create_journal([line(bank, debit="1"), line(capital, credit="1")], post=True)

        with pytest.raises(AlreadyPostedError):
            journal_service.post_journal(record.id)

    def test_unpost_restores_balances(self, ledger, standard_accounts, create_journal, create_client):
        bank, savings = standard_accounts["bank"], standard_accounts["savings"]
        client = create_client()
        record = create_journal(
            [line(bank, debit="75.50"), line(savings, credit="75.50", client=client)], post=True
        )

        unposted = ledger.journals.unpost_journal(record.id)

        assert unposted.status == JournalStatus.DRAFT
        assert unposted.posted_at is None
        for account in (bank, savings, standard_accounts["current_assets"], standard_accounts["liabilities"]):
            info = ledger.accounts.find_by_id(account.id)
            assert (info.debit, info.credit, info.balance) == (0, 0, 0)
        party = ledger.parties.get(client.id)
        assert (party.debit, party.credit, party.balance) == (0, 0, 0)

    def test_unpost_requires_posted(self, journal_service, standard_accounts, create_journal):
        bank, capital = standard_accounts["bank"], standard_accounts["capital"]
        record = create_journal([line(bank, debit="1"), line(capital, credit="1")])

        with pytest.raises(NotPostedError):
            journal_service.unpost_journal(record.id)

    def test_zakat_journal_cannot_be_unposted(self, journal_service, standard_accounts, create_journal):
        bank, capital = standard_accounts["bank"], standard_accounts["capital"]
        record = create_journal(
            [line(bank, debit="1"), line(capital, credit="1")],
            post=True,
            source_type=SourceType.ZAKAT,
        )

        with pytest.raises(ZakatImmutableError) as exc_info:
            journal_service.unpost_journal(record.id)
        assert exc_info.value.source_type == "zakat"

    def test_post_and_unpost_are_audited(self, journal_service, auditor_service, standard_accounts, create_journal, test_actor_id):
        bank, capital = standard_accounts["bank"], standard_accounts["capital"]
        record = create_journal([line(bank, debit="1"), line(capital, credit="1")])

        journal_service.post_journal(record.id, test_actor_id)
        journal_service.unpost_journal(record.id, test_actor_id)

        actions = [r.action for r in auditor_service.records_for(record.id)]
        assert actions == [AuditAction.CREATE, AuditAction.POST, AuditAction.UNPOST]
        assert auditor_service.validate_chain() is True

    def test_post_logs_event(self, journal_service, standard_accounts, create_journal, captured_logs):
        bank, capital = standard_accounts["bank"], standard_accounts["capital"]
        record = create_journal([line(bank, debit="1"), line(capital, credit="1")])

        journal_service.post_journal(record.id)

        posted = [r for r in captured_logs() if r["message"] == "journal_posted"]
        assert posted
        assert posted[0]["journal_id"] == str(record.id)
