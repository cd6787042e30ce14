"""Demonstration dataset, dated relative to a given day."""

import calendar
from datetime import date
from decimal import Decimal

import structlog

from hotel_ledger.dates import parse_date, shift_days, today as current_day
from hotel_ledger.models import (
    AttendanceStatus,
    ExpenseCategory,
    ExpenseEntry,
    IncomeEntry,
    IncomeSource,
    PaymentMode,
    SalaryTransaction,
    SalaryTransactionType,
    StaffMember,
    StaffRole,
)
from hotel_ledger.payroll import PayrollReconciler
from hotel_ledger.store import RecordStore

logger = structlog.get_logger(__name__)

DEMO_STAFF = [
    ("staff-1", "John Doe", StaffRole.MANAGER, "50000", "2023-01-15"),
    ("staff-2", "Jane Smith", StaffRole.RECEPTIONIST, "25000", "2023-03-01"),
    ("staff-3", "Peter Jones", StaffRole.COOK, "30000", "2023-02-20"),
    ("staff-4", "Mary Williams", StaffRole.CLEANER, "18000", "2023-05-10"),
    ("staff-5", "David Brown", StaffRole.SECURITY, "22000", "2023-04-01"),
]


def _same_day_last_month(day: date) -> str:
    year, month = (day.year - 1, 12) if day.month == 1 else (day.year, day.month - 1)
    last = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last)).isoformat()


def seed_demo_data(store: RecordStore, today: str | None = None) -> RecordStore:
    """Fill ``store`` with the demo roster, a few days of entries and payroll.

    Salary transactions go through :class:`PayrollReconciler`, so each gets
    its mirrored expense.
    """
    anchor = parse_date(today or current_day()) or date.today()
    day0 = anchor.isoformat()
    day1 = shift_days(day0, -1)
    day2 = shift_days(day0, -2)
    last_month = _same_day_last_month(anchor)
    mid_month = anchor.replace(day=15).isoformat()

    with store.atomic():
        for staff_id, name, role, salary, joined in DEMO_STAFF:
            store.add(StaffMember(staff_id, name, role, Decimal(salary), joined))

        for entry in (
            IncomeEntry("inc-1", day0, IncomeSource.ROOM_RENT, Decimal("15000"), "Rooms 101, 102"),
            IncomeEntry("inc-2", day0, IncomeSource.RESTAURANT, Decimal("4500")),
            IncomeEntry("inc-3", day1, IncomeSource.ROOM_RENT, Decimal("12000")),
            IncomeEntry("inc-4", day2, IncomeSource.EXTRA_SERVICES, Decimal("2000"), "Laundry service"),
            IncomeEntry("inc-5", last_month, IncomeSource.ROOM_RENT, Decimal("18000")),
        ):
            store.add(entry)

        for expense in (
            ExpenseEntry("exp-1", day0, ExpenseCategory.FOOD, Decimal("3000"), PaymentMode.CASH, "Vegetables"),
            ExpenseEntry("exp-2", day1, ExpenseCategory.MAINTENANCE, Decimal("1500"), PaymentMode.ONLINE, "Plumbing repair"),
            ExpenseEntry("exp-3", day2, ExpenseCategory.ELECTRICITY, Decimal("8000"), PaymentMode.ONLINE),
            ExpenseEntry("exp-4", last_month, ExpenseCategory.SALARY, Decimal("145000"), PaymentMode.ONLINE),
        ):
            store.add(expense)

        today_marks = {"staff-3": AttendanceStatus.ABSENT}
        for index, (staff_id, *_rest) in enumerate(DEMO_STAFF, start=1):
            status = today_marks.get(staff_id, AttendanceStatus.PRESENT)
            store.mark_attendance(staff_id, day0, status, record_id=f"att-{index}")
            store.mark_attendance(
                staff_id, day1, AttendanceStatus.PRESENT, record_id=f"att-{index + 5}"
            )

        payroll = PayrollReconciler(store)
        for tx in (
            SalaryTransaction("sal-1", "staff-2", mid_month, SalaryTransactionType.ADVANCE, Decimal("5000"), "Urgent need"),
            SalaryTransaction("sal-2", "staff-1", last_month, SalaryTransactionType.SALARY, Decimal("50000")),
            SalaryTransaction("sal-3", "staff-2", last_month, SalaryTransactionType.SALARY, Decimal("25000")),
        ):
            payroll.record(tx)

    logger.info("demo_data_seeded", today=day0)
    return store
