"""Derived metrics over a store snapshot.

Every function here is pure: it reads a :class:`StoreSnapshot` and returns
plain dataclasses holding ``Decimal`` amounts. Nothing is cached and nothing
raises on bad data. Records with a missing or malformed date are left out of
every bucketed figure, and attendance or payroll rows pointing at a staff id
no longer on the roster are skipped.

Monthly and annual expense figures are the expense entries plus the live
salary transactions of the month. A recorded salary payment also has a
mirrored expense (see :mod:`hotel_ledger.payroll`), so payroll appears in
those totals twice: once as the mirror and once as the transaction itself.
The itemized ledger and the category mix only add transactions whose mirror
is missing.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any

import structlog

from hotel_ledger.dates import month_label, parse_date, shift_month
from hotel_ledger.models import (
    AttendanceRecord,
    AttendanceStatus,
    ExpenseCategory,
    ExpenseEntry,
    IncomeEntry,
    SalaryTransaction,
)
from hotel_ledger.store import StoreSnapshot

logger = structlog.get_logger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")


class EntryKind(str, Enum):
    """Side of the ledger an entry sits on."""

    CREDIT = "CR"
    DEBIT = "DR"


class MixDimension(str, Enum):
    """What a category mix is broken down by."""

    INCOME_SOURCE = "income-source"
    EXPENSE_CATEGORY = "expense-category"


@dataclass(frozen=True)
class DailyMetrics:
    """Dashboard figures for one day."""

    date: str
    income: Decimal = ZERO
    expenses: Decimal = ZERO
    profit: Decimal = ZERO
    staff_present: int = 0
    total_staff: int = 0
    margin: Decimal = ZERO

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date,
            "income": self.income,
            "expenses": self.expenses,
            "profit": self.profit,
            "staffPresent": self.staff_present,
            "totalStaff": self.total_staff,
            "margin": self.margin,
        }


@dataclass(frozen=True)
class MonthBucket:
    """Income and expenses for one calendar month. ``month`` is 0-indexed."""

    label: str
    year: int
    month: int
    income: Decimal = ZERO
    expenses: Decimal = ZERO

    def to_dict(self) -> dict[str, Any]:
        return {
            "label": self.label,
            "year": self.year,
            "month": self.month,
            "income": self.income,
            "expenses": self.expenses,
        }


@dataclass(frozen=True)
class MonthTrajectory:
    """One point of the annual trajectory."""

    label: str
    month: int
    income: Decimal = ZERO
    expenses: Decimal = ZERO
    profit: Decimal = ZERO

    def to_dict(self) -> dict[str, Any]:
        return {
            "label": self.label,
            "month": self.month,
            "income": self.income,
            "expenses": self.expenses,
            "profit": self.profit,
        }


@dataclass(frozen=True)
class LedgerLine:
    id: str
    date: str
    kind: EntryKind
    label: str
    amount: Decimal
    notes: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "date": self.date,
            "kind": self.kind.value,
            "label": self.label,
            "amount": self.amount,
            "notes": self.notes,
        }


@dataclass(frozen=True)
class MonthlyLedger:
    """Itemized credits and debits for one month, newest first."""

    year: int
    month: int
    entries: tuple[LedgerLine, ...] = ()
    total_income: Decimal = ZERO
    total_expense: Decimal = ZERO

    def to_dict(self) -> dict[str, Any]:
        return {
            "year": self.year,
            "month": self.month,
            "entries": [line.to_dict() for line in self.entries],
            "totalIncome": self.total_income,
            "totalExpense": self.total_expense,
        }


@dataclass(frozen=True)
class MonthlyReport:
    """Figures handed to the PDF and spreadsheet exporters.

    ``expenses`` is the expense ledger plus the month's salary transactions;
    ``salaries`` is that salary share on its own.
    """

    year: int
    month: int
    income: Decimal = ZERO
    expenses: Decimal = ZERO
    salaries: Decimal = ZERO
    net_profit: Decimal = ZERO

    def to_dict(self) -> dict[str, Any]:
        return {
            "year": self.year,
            "month": self.month,
            "monthlyIncome": self.income,
            "monthlyExpenses": self.expenses,
            "monthlySalaries": self.salaries,
            "netProfit": self.net_profit,
        }


@dataclass(frozen=True)
class StaffMonthSummary:
    staff_id: str
    year: int
    month: int
    monthly_salary: Decimal
    total_paid: Decimal = ZERO
    balance: Decimal = ZERO
    present_days: int = 0
    marked_days: int = 0
    attendance_score: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "staffId": self.staff_id,
            "year": self.year,
            "month": self.month,
            "monthlySalary": self.monthly_salary,
            "totalPaid": self.total_paid,
            "balance": self.balance,
            "presentDays": self.present_days,
            "markedDays": self.marked_days,
            "attendanceScore": self.attendance_score,
        }


@dataclass(frozen=True)
class StaffHistory:
    staff_id: str
    salary_transactions: tuple[SalaryTransaction, ...] = field(default_factory=tuple)
    attendance: tuple[AttendanceRecord, ...] = field(default_factory=tuple)


# === Internal helpers ===


def _day_of(record: Any) -> date | None:
    parsed = parse_date(record.date)
    if parsed is None:
        logger.debug("record_skipped", record_id=record.id, reason="malformed_date")
    return parsed


def _in_month(record: Any, year: int, month: int) -> bool:
    parsed = _day_of(record)
    return parsed is not None and parsed.year == year and parsed.month == month + 1


def _total(records: Iterable[Any]) -> Decimal:
    return sum((record.amount for record in records), ZERO)


def _live_transactions(snapshot: StoreSnapshot) -> list[SalaryTransaction]:
    """Salary transactions whose staff member is still on the roster."""
    staff_ids = snapshot.staff_ids
    live = []
    for tx in snapshot.salary_transactions:
        if tx.staff_id in staff_ids:
            live.append(tx)
        else:
            logger.debug("record_skipped", record_id=tx.id, reason="dangling_staff")
    return live


def _unmirrored_payroll(snapshot: StoreSnapshot) -> list[SalaryTransaction]:
    """Live salary transactions not yet represented in the expense ledger."""
    expense_ids = {expense.id for expense in snapshot.expenses}
    return [tx for tx in _live_transactions(snapshot) if tx.mirror_id not in expense_ids]


def _month_totals(snapshot: StoreSnapshot, year: int, month: int) -> tuple[Decimal, Decimal]:
    income = _total(e for e in snapshot.income if _in_month(e, year, month))
    expenses = _total(e for e in snapshot.expenses if _in_month(e, year, month))
    expenses += _total(t for t in _live_transactions(snapshot) if _in_month(t, year, month))
    return income, expenses


def _valid_month(year: Any, month: Any) -> bool:
    return isinstance(year, int) and isinstance(month, int) and 0 <= month < 12


def _income_of(value: Any) -> Decimal:
    if isinstance(value, Mapping):
        raw = value.get("income", ZERO)
    else:
        raw = getattr(value, "income", ZERO)
    try:
        return Decimal(str(raw))
    except ArithmeticError:
        return ZERO


# === Public queries ===


def daily_metrics(snapshot: StoreSnapshot, day: str | date) -> DailyMetrics:
    """Income, expenses, profit, margin and head count for one day."""
    target = parse_date(day)
    total_staff = len(snapshot.staff)
    if target is None:
        return DailyMetrics(date="", total_staff=total_staff)

    income = _total(e for e in snapshot.income if _day_of(e) == target)
    expenses = _total(e for e in snapshot.expenses if _day_of(e) == target)
    staff_ids = snapshot.staff_ids
    present = sum(
        1
        for record in snapshot.attendance
        if record.status is AttendanceStatus.PRESENT
        and record.staff_id in staff_ids
        and _day_of(record) == target
    )

    profit = income - expenses
    margin = profit / income * HUNDRED if income > 0 else ZERO
    return DailyMetrics(
        date=target.isoformat(),
        income=income,
        expenses=expenses,
        profit=profit,
        staff_present=present,
        total_staff=total_staff,
        margin=margin,
    )


def monthly_summary(
    snapshot: StoreSnapshot, year: int, month: int, window_size: int = 6
) -> list[MonthBucket]:
    """``window_size`` consecutive months ending at (year, month), oldest first."""
    if not _valid_month(year, month) or not isinstance(window_size, int) or window_size < 1:
        return []

    buckets = []
    for offset in range(window_size - 1, -1, -1):
        bucket_year, bucket_month = shift_month(year, month, -offset)
        income, expenses = _month_totals(snapshot, bucket_year, bucket_month)
        buckets.append(
            MonthBucket(
                label=month_label(bucket_month),
                year=bucket_year,
                month=bucket_month,
                income=income,
                expenses=expenses,
            )
        )
    return buckets


def monthly_ledger(snapshot: StoreSnapshot, year: int, month: int) -> MonthlyLedger:
    """Itemized CR/DR lines for a month, newest first; ties keep input order."""
    if not _valid_month(year, month):
        return MonthlyLedger(year=year, month=month)

    lines: list[tuple[date, LedgerLine]] = []
    for entry in snapshot.income:
        if _in_month(entry, year, month):
            lines.append((_day_of(entry), _line(entry, EntryKind.CREDIT)))  # type: ignore[arg-type]
    for expense in snapshot.expenses:
        if _in_month(expense, year, month):
            lines.append((_day_of(expense), _line(expense, EntryKind.DEBIT)))  # type: ignore[arg-type]
    for tx in _unmirrored_payroll(snapshot):
        if _in_month(tx, year, month):
            lines.append(
                (
                    _day_of(tx),  # type: ignore[arg-type]
                    LedgerLine(
                        id=tx.id,
                        date=tx.date,
                        kind=EntryKind.DEBIT,
                        label=ExpenseCategory.SALARY.value,
                        amount=tx.amount,
                        notes=tx.notes,
                    ),
                )
            )

    # sorted() is stable with reverse=True, so equal days keep input order
    ordered = tuple(line for _, line in sorted(lines, key=lambda item: item[0], reverse=True))
    return MonthlyLedger(
        year=year,
        month=month,
        entries=ordered,
        total_income=_total(line for line in ordered if line.kind is EntryKind.CREDIT),
        total_expense=_total(line for line in ordered if line.kind is EntryKind.DEBIT),
    )


def _line(record: IncomeEntry | ExpenseEntry, kind: EntryKind) -> LedgerLine:
    return LedgerLine(
        id=record.id,
        date=record.date,
        kind=kind,
        label=record.label,
        amount=record.amount,
        notes=record.notes,
    )


def annual_trajectory(snapshot: StoreSnapshot, year: int) -> list[MonthTrajectory]:
    """Twelve monthly points for ``year``, zero-filled."""
    points = []
    for month in range(12):
        if isinstance(year, int):
            income, expenses = _month_totals(snapshot, year, month)
        else:
            income, expenses = ZERO, ZERO
        points.append(
            MonthTrajectory(
                label=month_label(month),
                month=month,
                income=income,
                expenses=expenses,
                profit=income - expenses,
            )
        )
    return points


def category_mix(
    snapshot: StoreSnapshot, year: int, month: int, dimension: MixDimension | str
) -> dict[str, Decimal]:
    """Amount per category label for one month, in order of first appearance."""
    try:
        dimension = MixDimension(dimension)
    except ValueError:
        logger.debug("unknown_mix_dimension", dimension=dimension)
        return {}
    if not _valid_month(year, month):
        return {}

    mix: dict[str, Decimal] = {}
    if dimension is MixDimension.INCOME_SOURCE:
        for entry in snapshot.income:
            if _in_month(entry, year, month):
                mix[entry.label] = mix.get(entry.label, ZERO) + entry.amount
        return mix

    for expense in snapshot.expenses:
        if _in_month(expense, year, month):
            mix[expense.label] = mix.get(expense.label, ZERO) + expense.amount
    salary = ExpenseCategory.SALARY.value
    for tx in _unmirrored_payroll(snapshot):
        if _in_month(tx, year, month):
            mix[salary] = mix.get(salary, ZERO) + tx.amount
    return mix


def month_over_month_growth(current: Any, previous: Any) -> Decimal:
    """Percent change in income; 0 when the previous month had none."""
    previous_income = _income_of(previous)
    if previous_income == 0:
        return ZERO
    return (_income_of(current) - previous_income) / previous_income * HUNDRED


def monthly_report(snapshot: StoreSnapshot, year: int, month: int) -> MonthlyReport:
    """Income, expenses (payroll included), salaries and net profit for a month."""
    if not _valid_month(year, month):
        return MonthlyReport(year=year, month=month)
    income, expenses = _month_totals(snapshot, year, month)
    salaries = _total(t for t in _live_transactions(snapshot) if _in_month(t, year, month))
    return MonthlyReport(
        year=year,
        month=month,
        income=income,
        expenses=expenses,
        salaries=salaries,
        net_profit=income - expenses,
    )


def available_years(snapshot: StoreSnapshot, default_year: int) -> list[int]:
    """Years that have income, expenses or payroll, newest first."""
    years: set[int] = set()
    for records in (snapshot.income, snapshot.expenses, snapshot.salary_transactions):
        for record in records:
            parsed = _day_of(record)
            if parsed is not None:
                years.add(parsed.year)
    if not years:
        return [default_year]
    return sorted(years, reverse=True)


def staff_month_summary(
    snapshot: StoreSnapshot, staff_id: str, year: int, month: int
) -> StaffMonthSummary | None:
    """Pay and attendance figures for one staff member in one month."""
    member = snapshot.get_staff(staff_id)
    if member is None or not _valid_month(year, month):
        return None

    paid = _total(
        t
        for t in snapshot.salary_transactions
        if t.staff_id == staff_id and _in_month(t, year, month)
    )
    marks = [
        a for a in snapshot.attendance if a.staff_id == staff_id and _in_month(a, year, month)
    ]
    present = sum(1 for a in marks if a.status is AttendanceStatus.PRESENT)
    score = 0
    if marks:
        ratio = Decimal(present) / Decimal(len(marks)) * HUNDRED
        score = int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    return StaffMonthSummary(
        staff_id=staff_id,
        year=year,
        month=month,
        monthly_salary=member.monthly_salary,
        total_paid=paid,
        balance=max(ZERO, member.monthly_salary - paid),
        present_days=present,
        marked_days=len(marks),
        attendance_score=score,
    )


def _newest_first(records: Iterable[Any]) -> list[Any]:
    dated = [(record, parse_date(record.date)) for record in records]
    dated.sort(key=lambda item: item[1] or date.min, reverse=True)
    return [record for record, _ in dated]


def staff_history(snapshot: StoreSnapshot, staff_id: str) -> StaffHistory:
    """A staff member's payroll and attendance, newest first."""
    return StaffHistory(
        staff_id=staff_id,
        salary_transactions=tuple(
            _newest_first(t for t in snapshot.salary_transactions if t.staff_id == staff_id)
        ),
        attendance=tuple(_newest_first(a for a in snapshot.attendance if a.staff_id == staff_id)),
    )


def filter_entries(
    entries: Iterable[IncomeEntry | ExpenseEntry],
    on_date: str | date | None = None,
    search: str = "",
) -> list[IncomeEntry | ExpenseEntry]:
    """List-page filter: optional exact day, then a case-insensitive search.

    The search term matches notes, the source or category label, or the
    amount's digits. Results are newest first.
    """
    target = parse_date(on_date) if on_date else None
    term = search.strip().lower()
    matched = []
    for entry in entries:
        if on_date and (target is None or parse_date(entry.date) != target):
            continue
        if term and not (
            term in (entry.notes or "").lower()
            or term in entry.label.lower()
            or term in str(entry.amount)
        ):
            continue
        matched.append(entry)
    return _newest_first(matched)


def day_attendance(snapshot: StoreSnapshot, day: str | date) -> dict[str, AttendanceStatus]:
    """Staff id -> status for everyone marked on ``day``."""
    target = parse_date(day)
    if target is None:
        return {}
    staff_ids = snapshot.staff_ids
    return {
        record.staff_id: record.status
        for record in snapshot.attendance
        if record.staff_id in staff_ids and parse_date(record.date) == target
    }


def search_staff(snapshot: StoreSnapshot, term: str) -> list[Any]:
    """Roster members whose name or role contains ``term``."""
    needle = term.strip().lower()
    return [
        member
        for member in snapshot.staff
        if needle in member.name.lower() or needle in member.role.value.lower()
    ]
