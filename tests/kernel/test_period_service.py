"""
Tests for PeriodService -- period resolution and lifecycle primitives.

Covers:
- ensure_open_period(): opens the first period once, period_opened log record
- open_period(): explicit name, seq from its own counter
- require_open(): closed periods rejected
- require_most_recent_closed(): open period, superseded period
"""

import pytest

from microfinance_kernel.exceptions import (
    ClosedPeriodError,
    NoOpenPeriodError,
    NotMostRecentPeriodError,
    PeriodNotClosedError,
)


class TestOpenPeriod:

    def test_no_period_before_first_open(self, period_service):
        with pytest.raises(NoOpenPeriodError):
            period_service.current_context()

    def test_ensure_opens_once(self, period_service, test_actor_id):
        first = period_service.ensure_open_period(test_actor_id)
        again = period_service.ensure_open_period(test_actor_id)

        assert again.period_id == first.period_id
        assert period_service.count_periods() == 1

    def test_opening_is_logged(self, period_service, captured_logs):
        context = period_service.ensure_open_period()

        opened = [r for r in captured_logs() if r["message"] == "period_opened"]
        assert len(opened) == 1
        assert opened[0]["level"] == "INFO"
        assert opened[0]["period_id"] == str(context.period_id)
        assert opened[0]["period_name"] == context.name
        assert opened[0]["seq"] == context.seq

    def test_explicit_name(self, period_service):
        period = period_service.open_period(name="FY 2026")
        assert period_service.get(period.id).name == "FY 2026"


class TestClosedPeriodGuards:

    def test_require_open_rejects_closed(self, ledger, open_period):
        ledger.closer.close_period(open_period.period_id)

        with pytest.raises(ClosedPeriodError):
            ledger.periods.require_open(open_period.period_id)

    def test_open_period_is_not_most_recent_closed(self, ledger, open_period):
        period = ledger.periods.get_model(open_period.period_id)
        with pytest.raises(PeriodNotClosedError):
            ledger.periods.require_most_recent_closed(period)

    def test_superseded_period_rejected(self, ledger, open_period):
        first = ledger.closer.close_period(open_period.period_id)
        second = ledger.closer.close_period(first.new_period_id)

        ledger.periods.require_most_recent_closed(ledger.periods.get_model(second.period_id))
        with pytest.raises(NotMostRecentPeriodError) as exc_info:
            ledger.periods.require_most_recent_closed(
                ledger.periods.get_model(open_period.period_id)
            )
        assert exc_info.value.latest_period_id == str(second.period_id)
