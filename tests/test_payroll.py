"""Tests for salary transactions and their mirrored expenses."""

from dataclasses import replace
from decimal import Decimal

import pytest

from hotel_ledger.errors import RecordNotFoundError, UnknownStaffError, ValidationError
from hotel_ledger.models import (
    ExpenseCategory,
    ExpenseEntry,
    PaymentMode,
    SalaryTransaction,
    SalaryTransactionType,
)
from hotel_ledger.payroll import (
    DiscrepancyKind,
    PayrollReconciler,
    build_mirror_expense,
)


@pytest.fixture
def payroll(store):
    return PayrollReconciler(store)


@pytest.fixture
def advance():
    return SalaryTransaction(
        "sal-1", "s1", "2024-03-05", SalaryTransactionType.ADVANCE, Decimal("5000"), "Urgent need"
    )


def _assert_invariant(store):
    """Every transaction has exactly one matching mirror and vice versa."""
    expenses = {e.id: e for e in store.expenses if e.is_payroll_mirror}
    assert len(expenses) == len(store.salary_transactions)
    for tx in store.salary_transactions:
        mirror = expenses[tx.mirror_id]
        assert mirror.category is ExpenseCategory.SALARY
        assert mirror.amount == tx.amount
        assert mirror.date == tx.date


class TestBuildMirror:
    """Tests for build_mirror_expense."""

    def test_mirror_fields(self, advance):
        """Test the mirrored expense for an advance."""
        mirror = build_mirror_expense(advance, "John Doe")

        assert mirror.id == "pay-sync-sal-1"
        assert mirror.category is ExpenseCategory.SALARY
        assert mirror.payment_mode is PaymentMode.ONLINE
        assert mirror.amount == Decimal("5000")
        assert mirror.date == "2024-03-05"
        assert mirror.notes == "[PAYROLL-AUTO] Advance for John Doe. Memo: Urgent need"

    def test_mirror_without_notes(self, advance):
        """Test the memo placeholder when the transaction has no notes."""
        mirror = build_mirror_expense(replace(advance, notes=None), "John Doe")

        assert mirror.notes.endswith("Memo: None")


class TestRecord:
    """Tests for recording a salary transaction."""

    def test_record_adds_exactly_one_mirror(self, store, payroll, advance):
        """Test that recording creates the transaction and one expense."""
        tx, mirror = payroll.record(advance)

        assert store.salary_transactions == (tx,)
        assert store.expenses == (mirror,)
        _assert_invariant(store)

    def test_unknown_staff_changes_nothing(self, store, payroll, advance):
        """Test that payroll for a missing staff member is rejected."""
        with pytest.raises(UnknownStaffError):
            payroll.record(replace(advance, staff_id="ghost"))

        assert store.salary_transactions == ()
        assert store.expenses == ()

    def test_negative_amount_gets_no_mirror(self, store, payroll, advance):
        """Test that a negative advance is rejected before anything is stored."""
        with pytest.raises(ValidationError) as exc_info:
            payroll.record(replace(advance, amount=Decimal("-5000")))

        assert exc_info.value.field == "amount"
        assert store.salary_transactions == ()
        assert store.expenses == ()

    def test_mirror_failure_rolls_back_transaction(self, store, payroll, advance):
        """Test that a transaction never lands without its mirror."""
        store.add(
            ExpenseEntry(
                "pay-sync-sal-1",
                "2024-01-01",
                ExpenseCategory.OTHERS,
                Decimal("1"),
                PaymentMode.CASH,
            )
        )

        with pytest.raises(ValidationError):
            payroll.record(advance)

        assert store.salary_transactions == ()
        assert len(store.expenses) == 1


class TestUpdateDelete:
    """Tests for editing and deleting salary transactions."""

    def test_update_rebuilds_mirror(self, store, payroll, advance):
        """Test that an edit carries over to the mirrored expense."""
        payroll.record(advance)

        payroll.update(replace(advance, amount=Decimal("7500"), date="2024-03-06"))

        mirror = payroll.mirror_for("sal-1")
        assert mirror.amount == Decimal("7500")
        assert mirror.date == "2024-03-06"
        _assert_invariant(store)

    def test_update_recreates_missing_mirror(self, store, payroll, advance):
        """Test that editing restores a mirror that went missing."""
        payroll.record(advance)
        store.remove(ExpenseEntry, "pay-sync-sal-1")

        payroll.update(advance)

        _assert_invariant(store)

    def test_update_unknown_transaction(self, payroll, advance):
        """Test that editing a missing transaction raises."""
        with pytest.raises(RecordNotFoundError):
            payroll.update(advance)

    def test_delete_removes_both(self, store, payroll, advance):
        """Test that deleting cascades to the mirror."""
        payroll.record(advance)

        tx, mirror = payroll.delete("sal-1")

        assert tx.id == "sal-1"
        assert mirror is not None and mirror.id == "pay-sync-sal-1"
        assert store.salary_transactions == ()
        assert store.expenses == ()

    def test_delete_without_mirror(self, store, payroll, advance):
        """Test deleting a transaction whose mirror is already gone."""
        payroll.record(advance)
        store.remove(ExpenseEntry, "pay-sync-sal-1")

        _, mirror = payroll.delete("sal-1")

        assert mirror is None

    def test_mirror_for_missing(self, payroll):
        """Test that looking up an absent mirror raises."""
        with pytest.raises(RecordNotFoundError):
            payroll.mirror_for("sal-404")


class TestDiscrepancies:
    """Tests for detecting and repairing broken pairings."""

    def test_clean_store_has_none(self, payroll, advance):
        """Test that a consistent store reports nothing."""
        payroll.record(advance)

        assert payroll.find_discrepancies() == []

    def test_detect_and_repair(self, store, payroll, advance):
        """Test missing, mismatched and orphan mirrors are found and fixed."""
        payroll.record(advance)
        payroll.record(replace(advance, id="sal-2"))
        payroll.record(replace(advance, id="sal-3"))
        store.remove(ExpenseEntry, "pay-sync-sal-1")
        mirror = store.require(ExpenseEntry, "pay-sync-sal-2")
        store.replace(replace(mirror, amount=Decimal("1")))
        store.remove(SalaryTransaction, "sal-3")

        kinds = {(d.kind, d.expense_id) for d in payroll.find_discrepancies()}
        assert kinds == {
            (DiscrepancyKind.MISSING_MIRROR, "pay-sync-sal-1"),
            (DiscrepancyKind.MISMATCHED_MIRROR, "pay-sync-sal-2"),
            (DiscrepancyKind.ORPHAN_MIRROR, "pay-sync-sal-3"),
        }

        fixed = payroll.repair()

        assert len(fixed) == 3
        assert payroll.find_discrepancies() == []
        _assert_invariant(store)
