"""
Tests for AccountDirectory -- the chart of accounts.

Covers:
- seed_chart(): levels, natures, idempotence, chart_seeded log record
- find_by_id / find_by_code / find_first_by_basic_type lookups
- create_account(): nature default from type, duplicate code, missing parent
- update_account(): rename, re-parent with re-levelling, cycle rejection,
  re-parent blocked when totals are carried
- delete_account(): leaves only
- get_tree(): nested structure ordered by code
"""

from uuid import uuid4

import pytest

from microfinance_kernel.exceptions import (
    AccountCodeExistsError,
    AccountHierarchyCycleError,
    AccountNotFoundError,
    AccountReferencedError,
)
from microfinance_kernel.models.account import AccountNature, AccountType, BasicType
from microfinance_kernel.models.audit_event import AuditAction
from tests.helpers import line


class TestSeedChart:

    def test_levels_and_natures(self, standard_accounts):
        assert standard_accounts["current_assets"].level == 1
        assert standard_accounts["bank"].level == 2
        assert standard_accounts["bank"].parent_id == standard_accounts["current_assets"].id
        assert standard_accounts["bank"].nature == AccountNature.DEBIT
        assert standard_accounts["savings"].nature == AccountNature.CREDIT
        assert standard_accounts["expenses"].nature == AccountNature.DEBIT
        assert standard_accounts["loan_income"].basic_type == BasicType.LOAN_INCOME

    def test_reseeding_creates_nothing(self, ledger, standard_accounts):
        assert ledger.seed_chart() == []

    def test_seeding_is_audited_per_account(self, auditor_service, standard_accounts):
        records = auditor_service.records_for(standard_accounts["bank"].id)
        assert [r.action for r in records] == [AuditAction.CREATE]
        assert records[0].screen == "accounts"
        assert "1100" in records[0].description

    def test_seeding_is_logged(self, ledger, captured_logs):
        created = ledger.seed_chart()

        seeded = [r for r in captured_logs() if r["message"] == "chart_seeded"]
        assert len(seeded) == 1
        assert seeded[0]["level"] == "INFO"
        assert seeded[0]["account_count"] == len(created) == 14


class TestLookups:

    def test_find_by_code_and_id(self, account_directory, standard_accounts):
        bank = account_directory.find_by_code("1100")
        assert bank.name == "Bank"
        assert account_directory.find_by_id(bank.id) == bank

    def test_missing_lookups_return_none(self, account_directory, standard_accounts):
        assert account_directory.find_by_code("9999") is None
        assert account_directory.find_by_id(uuid4()) is None

    def test_first_by_basic_type_is_lowest_code(self, account_directory, standard_accounts):
        account_directory.create_account(
            code="2050",
            name="Second savings",
            account_type=AccountType.LIABILITY,
            basic_type=BasicType.SAVINGS,
        )
        assert account_directory.find_first_by_basic_type(BasicType.SAVINGS).code == "2050"

    def test_first_by_basic_type_absent(self, account_directory):
        assert account_directory.find_first_by_basic_type(BasicType.BANK) is None

    def test_get_model_names_missing_id(self, account_directory):
        missing = uuid4()
        with pytest.raises(AccountNotFoundError) as exc_info:
            account_directory.get_model(missing)
        assert exc_info.value.account_id == str(missing)


class TestCreateAccount:

    def test_nature_defaults_from_type(self, account_directory):
        asset = account_directory.create_account("A1", "Cash", AccountType.ASSET)
        equity = account_directory.create_account("E1", "Equity", AccountType.EQUITY)
        assert asset.nature == AccountNature.DEBIT
        assert equity.nature == AccountNature.CREDIT
        assert asset.level == 1

    def test_explicit_nature_wins(self, account_directory):
        contra = account_directory.create_account(
            "A2", "Allowance", AccountType.ASSET, nature=AccountNature.CREDIT
        )
        assert contra.nature == AccountNature.CREDIT

    def test_duplicate_code(self, account_directory, standard_accounts):
        with pytest.raises(AccountCodeExistsError):
            account_directory.create_account("1100", "Another bank", AccountType.ASSET)

    def test_unknown_parent(self, account_directory):
        with pytest.raises(AccountNotFoundError):
            account_directory.create_account(
                "X1", "Orphan", AccountType.ASSET, parent_id=uuid4()
            )


class TestUpdateAccount:

    def test_rename_and_deactivate(self, account_directory, standard_accounts, test_actor_id):
        updated = account_directory.update_account(
            standard_accounts["bank"].id, test_actor_id, name="Main bank", is_active=False
        )
        assert updated.name == "Main bank"
        assert updated.is_active is False

    def test_reparent_relevels_subtree(self, account_directory, standard_accounts):
        loans = standard_accounts["loans"]
        child = account_directory.create_account(
            "1210", "Branch loans", AccountType.ASSET, parent_id=loans.id
        )

        account_directory.update_account(loans.id, parent_id=standard_accounts["bank"].id)

        assert account_directory.find_by_id(loans.id).level == 3
        assert account_directory.find_by_id(child.id).level == 4

    def test_make_root(self, account_directory, standard_accounts):
        moved = account_directory.update_account(standard_accounts["loans"].id, parent_id=None)
        assert moved.parent_id is None
        assert moved.level == 1

    def test_parent_under_own_descendant_rejected(self, account_directory, standard_accounts):
        with pytest.raises(AccountHierarchyCycleError):
            account_directory.update_account(
                standard_accounts["current_assets"].id,
                parent_id=standard_accounts["bank"].id,
            )

    def test_parent_to_self_rejected(self, account_directory, standard_accounts):
        bank = standard_accounts["bank"]
        with pytest.raises(AccountHierarchyCycleError):
            account_directory.update_account(bank.id, parent_id=bank.id)

    def test_reparent_with_totals_rejected(self, account_directory, standard_accounts, create_journal):
        bank, capital = standard_accounts["bank"], standard_accounts["capital"]
        create_journal([line(bank, debit="5"), line(capital, credit="5")], post=True)

        with pytest.raises(AccountReferencedError):
            account_directory.update_account(bank.id, parent_id=None)


class TestDeleteAndTree:

    def test_delete_leaf(self, account_directory, standard_accounts):
        leaf = account_directory.create_account(
            "1290", "Unused", AccountType.ASSET, parent_id=standard_accounts["loans"].id
        )
        deleted = account_directory.delete_account(leaf.id)
        assert deleted.code == "1290"
        assert account_directory.find_by_code("1290") is None

    def test_tree_structure(self, account_directory, standard_accounts):
        tree = account_directory.get_tree()
        assert [node.account.code for node in tree] == ["1000", "2000", "3000", "4000", "5000"]

        liabilities = tree[1]
        assert [c.account.code for c in liabilities.children] == ["2100", "2200", "2300"]
        assert len(list(liabilities.walk())) == 4

    def test_descendant_ids(self, account_directory, standard_accounts):
        found = account_directory.descendant_ids(standard_accounts["revenue"].id)
        assert found == {standard_accounts["loan_income"].id, standard_accounts["company_share"].id}
