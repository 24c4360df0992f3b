"""
Tests for pure domain helpers (no database).

Covers:
- nature_balance / flat_balance sign conventions
- Totals arithmetic
- roll_up(): multi-level folding, untouched accounts, cycles
- to_money / round_money
- DTO amount coercion and JournalPage paging maths
- DeterministicClock
- Canonical hashing
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from microfinance_kernel.db.types import round_money, to_money
from microfinance_kernel.domain.balances import Totals, flat_balance, nature_balance, roll_up
from microfinance_kernel.domain.clock import DeterministicClock
from microfinance_kernel.domain.dtos import JournalInput, JournalLineInput, JournalPage
from microfinance_kernel.exceptions import AccountHierarchyCycleError
from microfinance_kernel.models.account import AccountNature
from microfinance_kernel.utils.hashing import hash_payload

amounts = st.decimals(min_value=0, max_value=10**9, places=2, allow_nan=False, allow_infinity=False)


class TestBalanceRules:

    def test_debit_nature(self):
        assert nature_balance(AccountNature.DEBIT, Decimal("10"), Decimal("3")) == Decimal("7")

    def test_credit_nature(self):
        assert nature_balance(AccountNature.CREDIT, Decimal("10"), Decimal("3")) == Decimal("-7")

    def test_string_nature_accepted(self):
        assert nature_balance("debit", Decimal("1"), Decimal("0")) == Decimal("1")

    def test_flat(self):
        assert flat_balance(Decimal("2"), Decimal("5")) == Decimal("-3")

    @settings(max_examples=100, suppress_health_check=[HealthCheck.too_slow])
    @given(debit=amounts, credit=amounts)
    def test_natures_are_opposites(self, debit, credit):
        assert nature_balance(AccountNature.DEBIT, debit, credit) == -nature_balance(
            AccountNature.CREDIT, debit, credit
        )


class TestTotals:

    def test_addition(self):
        total = Totals(Decimal("1"), Decimal("2")) + Totals(Decimal("3"), Decimal("4"))
        assert total == Totals(Decimal("4"), Decimal("6"))

    def test_zero(self):
        assert Totals().is_zero
        assert not Totals(credit=Decimal("0.01")).is_zero


class TestRollUp:

    def test_folds_into_every_ancestor(self):
        root, mid, leaf, sibling = uuid4(), uuid4(), uuid4(), uuid4()
        parent_of = {root: None, mid: root, leaf: mid, sibling: root}
        direct = {
            leaf: Totals(Decimal("10"), Decimal("0")),
            sibling: Totals(Decimal("0"), Decimal("4")),
            mid: Totals(Decimal("1"), Decimal("1")),
        }

        rolled = roll_up(direct, parent_of)

        assert rolled[leaf] == Totals(Decimal("10"), Decimal("0"))
        assert rolled[mid] == Totals(Decimal("11"), Decimal("1"))
        assert rolled[root] == Totals(Decimal("11"), Decimal("5"))
        assert rolled[sibling] == Totals(Decimal("0"), Decimal("4"))

    def test_accounts_without_activity_are_zero(self):
        root, leaf = uuid4(), uuid4()
        rolled = roll_up({}, {root: None, leaf: root})
        assert rolled[root].is_zero
        assert rolled[leaf].is_zero

    def test_deep_chain(self):
        ids = [uuid4() for _ in range(200)]
        parent_of = {ids[0]: None}
        for parent, child in zip(ids, ids[1:]):
            parent_of[child] = parent
        rolled = roll_up({ids[-1]: Totals(Decimal("1"), Decimal("0"))}, parent_of)
        assert all(rolled[i].debit == Decimal("1") for i in ids)

    def test_cycle_detected(self):
        a, b = uuid4(), uuid4()
        with pytest.raises(AccountHierarchyCycleError):
            roll_up({}, {a: b, b: a})

    @settings(max_examples=50, suppress_health_check=[HealthCheck.too_slow])
    @given(values=st.lists(amounts, min_size=1, max_size=8))
    def test_root_equals_sum_of_direct(self, values):
        root = uuid4()
        parent_of = {root: None}
        direct = {}
        previous = root
        for value in values:
            node = uuid4()
            parent_of[node] = previous
            direct[node] = Totals(value, Decimal("0"))
            previous = node
        rolled = roll_up(direct, parent_of)
        assert rolled[root].debit == sum(values, Decimal("0"))


class TestMoney:

    def test_float_rejected(self):
        with pytest.raises(TypeError):
            to_money(0.1)

    def test_coercion(self):
        assert to_money("12.34") == Decimal("12.34")
        assert to_money(5) == Decimal("5")
        assert to_money(None) == Decimal("0")

    def test_round_half_up(self):
        assert round_money(Decimal("2.345")) == Decimal("2.35")
        assert round_money(Decimal("2.344")) == Decimal("2.34")
        assert round_money(Decimal("-2.345")) == Decimal("-2.35")


class TestDtos:

    def test_line_amounts_coerced(self):
        account = uuid4()
        entry = JournalInput(
            lines=[JournalLineInput(account, debit="10"), JournalLineInput(account, credit=10)]
        )
        assert isinstance(entry.lines, tuple)
        assert entry.total_debits == entry.total_credits == Decimal("10")

    def test_page_count(self):
        assert JournalPage(items=(), total=0, current_page=1, limit=20).total_pages == 0
        assert JournalPage(items=(), total=41, current_page=1, limit=20).total_pages == 3


class TestClock:

    def test_fixed_until_advanced(self):
        clock = DeterministicClock()
        first = clock.now()
        assert clock.now() == first
        assert (clock.tick() - first).total_seconds() == 1
        clock.advance_days(1)
        assert (clock.now() - first).days == 1
        assert first.tzinfo is not None


class TestHashing:

    def test_trailing_zeros_do_not_change_hash(self):
        assert hash_payload({"amount": Decimal("1.50")}) == hash_payload({"amount": Decimal("1.5")})

    def test_key_order_does_not_change_hash(self):
        assert hash_payload({"a": 1, "b": 2}) == hash_payload({"b": 2, "a": 1})
