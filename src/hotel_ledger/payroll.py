"""Salary transactions and their mirrored expenses.

Every salary transaction is shadowed by exactly one expense entry in the
Salary category, for the same amount and day, whose id is derived from the
transaction id (``pay-sync-<id>``). Create, edit and delete touch both
records inside one ``RecordStore.atomic()`` block, so locally they are
never out of step. Syncing the pair to the remote store is the caller's job
and happens afterwards as two independent calls.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import structlog

from hotel_ledger.errors import RecordNotFoundError, UnknownStaffError
from hotel_ledger.models import (
    ExpenseCategory,
    ExpenseEntry,
    PaymentMode,
    SalaryTransaction,
    StaffMember,
    mirror_expense_id,
    mirrored_transaction_id,
)
from hotel_ledger.store import RecordStore

logger = structlog.get_logger(__name__)

AUTO_NOTE_PREFIX = "[PAYROLL-AUTO]"


class DiscrepancyKind(str, Enum):
    """Ways the transaction/mirror pairing can be broken."""

    MISSING_MIRROR = "missing_mirror"
    MISMATCHED_MIRROR = "mismatched_mirror"
    ORPHAN_MIRROR = "orphan_mirror"


@dataclass(frozen=True)
class PayrollDiscrepancy:
    kind: DiscrepancyKind
    transaction_id: str | None
    expense_id: str


def build_mirror_expense(transaction: SalaryTransaction, staff_name: str) -> ExpenseEntry:
    """The expense entry that represents ``transaction`` in the expense ledger."""
    memo = transaction.notes or "None"
    return ExpenseEntry(
        id=mirror_expense_id(transaction.id),
        date=transaction.date,
        category=ExpenseCategory.SALARY,
        amount=transaction.amount,
        payment_mode=PaymentMode.ONLINE,
        notes=f"{AUTO_NOTE_PREFIX} {transaction.type.value} for {staff_name}. Memo: {memo}",
    )


def _mirror_matches(expense: ExpenseEntry, transaction: SalaryTransaction) -> bool:
    return (
        expense.category is ExpenseCategory.SALARY
        and expense.amount == transaction.amount
        and expense.date == transaction.date
    )


class PayrollReconciler:
    """Keeps salary transactions and their mirrored expenses in lockstep."""

    def __init__(self, store: RecordStore):
        self._store = store
        self._logger = logger.bind(component="payroll")

    def _staff(self, staff_id: str) -> StaffMember:
        member = self._store.get(StaffMember, staff_id)
        if member is None:
            raise UnknownStaffError(staff_id)
        return member

    def record(self, transaction: SalaryTransaction) -> tuple[SalaryTransaction, ExpenseEntry]:
        """Add a salary transaction together with its mirrored expense."""
        transaction.validate()
        member = self._staff(transaction.staff_id)
        mirror = build_mirror_expense(transaction, member.name)

        with self._store.atomic():
            self._store.add(transaction)
            self._store.add(mirror)

        self._logger.info(
            "salary_recorded",
            transaction_id=transaction.id,
            staff_id=transaction.staff_id,
            type=transaction.type.value,
            amount=str(transaction.amount),
        )
        return transaction, mirror

    def update(self, transaction: SalaryTransaction) -> tuple[SalaryTransaction, ExpenseEntry]:
        """Replace a salary transaction and rebuild its mirror."""
        transaction.validate()
        self._store.require(SalaryTransaction, transaction.id)
        member = self._staff(transaction.staff_id)
        mirror = build_mirror_expense(transaction, member.name)

        with self._store.atomic():
            self._store.replace(transaction)
            if self._store.get(ExpenseEntry, mirror.id) is None:
                self._store.add(mirror)
            else:
                self._store.replace(mirror)

        self._logger.info("salary_updated", transaction_id=transaction.id)
        return transaction, mirror

    def delete(self, transaction_id: str) -> tuple[SalaryTransaction, ExpenseEntry | None]:
        """Remove a salary transaction and its mirror, if the mirror exists."""
        mirror_id = mirror_expense_id(transaction_id)
        with self._store.atomic():
            transaction = self._store.remove(SalaryTransaction, transaction_id)
            mirror = None
            if self._store.get(ExpenseEntry, mirror_id) is not None:
                mirror = self._store.remove(ExpenseEntry, mirror_id)

        self._logger.info(
            "salary_deleted", transaction_id=transaction_id, mirror_removed=mirror is not None
        )
        return transaction, mirror

    def find_discrepancies(self) -> list[PayrollDiscrepancy]:
        """Every place where the one-mirror-per-transaction rule is broken."""
        transactions = {tx.id: tx for tx in self._store.salary_transactions}
        expenses = {expense.id: expense for expense in self._store.expenses}
        found: list[PayrollDiscrepancy] = []

        for tx in transactions.values():
            mirror = expenses.get(tx.mirror_id)
            if mirror is None:
                found.append(
                    PayrollDiscrepancy(DiscrepancyKind.MISSING_MIRROR, tx.id, tx.mirror_id)
                )
            elif not _mirror_matches(mirror, tx):
                found.append(
                    PayrollDiscrepancy(DiscrepancyKind.MISMATCHED_MIRROR, tx.id, mirror.id)
                )

        for expense in expenses.values():
            tx_id = mirrored_transaction_id(expense.id)
            if tx_id is not None and tx_id not in transactions:
                found.append(PayrollDiscrepancy(DiscrepancyKind.ORPHAN_MIRROR, None, expense.id))

        return found

    def repair(self) -> list[PayrollDiscrepancy]:
        """Rebuild missing or wrong mirrors and drop orphans.

        Transactions whose staff member is gone are skipped; their mirrors are
        left as they are.
        """
        found = self.find_discrepancies()
        fixed: list[PayrollDiscrepancy] = []
        with self._store.atomic():
            for issue in found:
                if issue.kind is DiscrepancyKind.ORPHAN_MIRROR:
                    self._store.remove(ExpenseEntry, issue.expense_id)
                    fixed.append(issue)
                    continue

                tx = self._store.require(SalaryTransaction, issue.transaction_id or "")
                member = self._store.get(StaffMember, tx.staff_id)
                if member is None:
                    self._logger.warning("payroll_repair_skipped", transaction_id=tx.id)
                    continue
                mirror = build_mirror_expense(tx, member.name)
                if issue.kind is DiscrepancyKind.MISSING_MIRROR:
                    self._store.add(mirror)
                else:
                    self._store.replace(mirror)
                fixed.append(issue)

        if fixed:
            self._logger.info("payroll_repaired", fixed=len(fixed))
        return fixed

    def mirror_for(self, transaction_id: str) -> ExpenseEntry:
        expense = self._store.get(ExpenseEntry, mirror_expense_id(transaction_id))
        if expense is None:
            raise RecordNotFoundError(ExpenseEntry.KIND, mirror_expense_id(transaction_id))
        return expense
