"""
Tests for the read side.

Covers:
- JournalSelector.list_journals(): pagination, newest-first ordering,
  search, status / type / period filters, empty pages
- JournalSelector.count_drafts() / count_in_period()
- LedgerSelector.period_activity(): POSTED lines only, per period
- LedgerSelector.client_activity()
- PeriodSelector.closed_periods(): newest first with profit split
"""

from decimal import Decimal

from microfinance_kernel.models.journal import JournalStatus, JournalType
from tests.helpers import line


def _journals(create_journal, standard_accounts, count, **kwargs):
    bank, capital = standard_accounts["bank"], standard_accounts["capital"]
    return [
        create_journal([line(bank, debit="1"), line(capital, credit="1")], **kwargs)
        for _ in range(count)
    ]


class TestListJournals:

    def test_pagination(self, ledger, standard_accounts, create_journal):
        _journals(create_journal, standard_accounts, 5)

        page = ledger.list_journals(page=2, limit=2)

        assert page.total == 5
        assert page.current_page == 2
        assert page.total_pages == 3
        assert len(page.items) == 2

    def test_page_past_the_end_is_empty(self, ledger, standard_accounts, create_journal):
        _journals(create_journal, standard_accounts, 2)
        page = ledger.list_journals(page=9, limit=2)
        assert page.items == ()
        assert page.total == 2

    def test_default_page_size_from_configuration(self, ledger, ledger_config, standard_accounts, create_journal):
        _journals(create_journal, standard_accounts, 1)
        assert ledger.list_journals().limit == ledger_config.ledger.default_page_size

    def test_newest_first(self, ledger, deterministic_clock, standard_accounts, create_journal):
        first = _journals(create_journal, standard_accounts, 1)[0]
        deterministic_clock.advance(60)
        second = _journals(create_journal, standard_accounts, 1)[0]

        ids = [j.id for j in ledger.list_journals().items]
        assert ids == [second.id, first.id]

    def test_same_date_ordered_by_seq_desc(self, ledger, standard_accounts, create_journal):
        created = _journals(create_journal, standard_accounts, 3)
        seqs = [j.seq for j in ledger.list_journals().items]
        assert seqs == sorted((j.seq for j in created), reverse=True)

    def test_search_reference_and_description(self, ledger, standard_accounts, create_journal):
        bank, capital = standard_accounts["bank"], standard_accounts["capital"]
        create_journal([line(bank, debit="1"), line(capital, credit="1")], reference="LOAN-17")
        create_journal(
            [line(bank, debit="1"), line(capital, credit="1")], description="Loan repayment"
        )
        create_journal([line(bank, debit="1"), line(capital, credit="1")], reference="DEP-1")

        assert ledger.list_journals(search="loan").total == 2
        assert ledger.list_journals(search="dep-").total == 1

    def test_status_and_type_filters(self, ledger, standard_accounts, create_journal):
        _journals(create_journal, standard_accounts, 2, post=True)
        _journals(create_journal, standard_accounts, 1, journal_type=JournalType.DEPOSIT)

        assert ledger.list_journals(status=JournalStatus.POSTED).total == 2
        assert ledger.list_journals(status=JournalStatus.DRAFT).total == 1
        assert ledger.list_journals(journal_type=JournalType.DEPOSIT).total == 1

    def test_period_filter(self, ledger, period_closer, standard_accounts, create_journal, open_period, test_actor_id):
        _journals(create_journal, standard_accounts, 2, post=True)
        result = period_closer.close_period(open_period.period_id, test_actor_id)
        _journals(create_journal, standard_accounts, 1)

        assert ledger.list_journals(period_id=open_period.period_id).total == 2
        assert ledger.list_journals(period_id=result.new_period_id).total == 1


class TestCounts:

    def test_drafts_and_total(self, ledger, standard_accounts, create_journal, open_period):
        _journals(create_journal, standard_accounts, 2, post=True)
        _journals(create_journal, standard_accounts, 3)

        assert ledger.journal_selector.count_drafts(open_period.period_id) == 3
        assert ledger.journal_selector.count_in_period(open_period.period_id) == 5


class TestActivity:

    def test_period_activity_counts_posted_lines_only(self, ledger, standard_accounts, create_journal, open_period):
        bank, capital = standard_accounts["bank"], standard_accounts["capital"]
        create_journal([line(bank, debit="100"), line(capital, credit="100")], post=True)
        create_journal([line(bank, debit="7"), line(capital, credit="7")])

        activity = ledger.ledger_selector.period_activity(open_period.period_id)

        assert activity[bank.id].debit == Decimal("100")
        assert activity[capital.id].credit == Decimal("100")
        # direct only: parents are not in the raw aggregation
        assert standard_accounts["current_assets"].id not in activity

    def test_client_activity(self, ledger, standard_accounts, create_journal, create_client, open_period):
        bank, savings = standard_accounts["bank"], standard_accounts["savings"]
        client = create_client()
        create_journal([line(bank, debit="40"), line(savings, credit="40", client=client)], post=True)
        create_journal([line(savings, debit="15", client=client), line(bank, credit="15")], post=True)

        activity = ledger.ledger_selector.client_activity(open_period.period_id)

        assert set(activity) == {client.id}
        assert activity[client.id].debit == Decimal("15")
        assert activity[client.id].credit == Decimal("40")


class TestClosedPeriods:

    def test_newest_first_with_profit(self, ledger, create_partner, open_period, test_actor_id):
        partner = create_partner("Amina")
        ledger.accruals.record_accrual(partner.id, "100", "10")
        first = ledger.closer.close_period(open_period.period_id, test_actor_id)
        second = ledger.closer.close_period(first.new_period_id, test_actor_id)

        summaries = ledger.period_selector.closed_periods()

        assert [s.period.id for s in summaries] == [second.period_id, first.period_id]
        oldest = summaries[1]
        assert oldest.company_profit == Decimal("10")
        assert [(p.partner_name, p.total_profit) for p in oldest.partners] == [
            ("Amina", Decimal("90.00"))
        ]
        assert oldest.total_partner_profit == Decimal("90")
        assert oldest.is_distributed is False
        assert summaries[0].partners == ()
        assert ledger.period_selector.latest_closed().id == second.period_id
