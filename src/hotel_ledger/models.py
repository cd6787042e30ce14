"""Ledger record types.

Five record kinds make up the store: income, expenses, the staff roster,
attendance marks and salary transactions. Records are frozen dataclasses;
edits produce a new instance via ``dataclasses.replace`` and are swapped into
the store by id. Amounts are ``Decimal`` and are never rounded here.
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass, fields
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, ClassVar, TypeVar
from uuid import uuid4

from hotel_ledger.dates import parse_date
from hotel_ledger.errors import ValidationError

MIRROR_PREFIX = "pay-sync-"


class IncomeSource(str, Enum):
    """Where an income entry came from."""

    ROOM_RENT = "Room Rent"
    RESTAURANT = "Restaurant"
    EXTRA_SERVICES = "Extra Services"
    OTHERS = "Others"


class ExpenseCategory(str, Enum):
    """Expense ledger categories."""

    FOOD = "Food & Grocery"
    ELECTRICITY = "Electricity"
    MAINTENANCE = "Maintenance"
    SALARY = "Salary"
    OTHERS = "Others"


class PaymentMode(str, Enum):
    CASH = "Cash"
    ONLINE = "Online"


class StaffRole(str, Enum):
    MANAGER = "Manager"
    RECEPTIONIST = "Receptionist"
    COOK = "Cook"
    CLEANER = "Cleaner"
    SECURITY = "Security"


class AttendanceStatus(str, Enum):
    PRESENT = "Present"
    ABSENT = "Absent"


class SalaryTransactionType(str, Enum):
    SALARY = "Salary"
    ADVANCE = "Advance"


E = TypeVar("E", bound=Enum)


def _squash(text: str) -> str:
    return re.sub(r"[^a-z0-9]", "", text.lower())


def coerce_enum(enum_cls: type[E], value: Any, field: str) -> E:
    """Accept an enum member, its value, or its name in any spelling.

    ``"Room Rent"``, ``"ROOM_RENT"`` and ``"RoomRent"`` all resolve to
    ``IncomeSource.ROOM_RENT``.
    """
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        wanted = _squash(value)
        for member in enum_cls:
            if wanted in (_squash(member.value), _squash(member.name)):
                return member
    raise ValidationError(
        f"Invalid {field}: {value!r}", field=field, value=value
    )


def coerce_amount(value: Any, field: str = "amount") -> Decimal:
    """Convert to a non-negative finite Decimal or raise ValidationError."""
    if value is None or value == "" or isinstance(value, bool):
        raise ValidationError(f"{field} is required", field=field, value=value)
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid {field}: {value!r}", field=field, value=value) from None
    if not amount.is_finite():
        raise ValidationError(f"Invalid {field}: {value!r}", field=field, value=value)
    if amount < 0:
        raise ValidationError(f"{field} cannot be negative", field=field, value=value)
    return amount


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value)
    return text if text.strip() else None


def _require_text(value: Any, field: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required", field=field, value=value)


def _require_date(value: Any, field: str = "date") -> None:
    if parse_date(value) is None:
        raise ValidationError(f"Invalid {field}: {value!r}", field=field, value=value)


def _require_amount(value: Any, field: str = "amount") -> None:
    if not isinstance(value, Decimal):
        raise ValidationError(f"Invalid {field}: {value!r}", field=field, value=value)
    coerce_amount(value, field)


def new_id(prefix: str) -> str:
    """Fresh time-based id, e.g. ``inc-1709251200000-3f9a1c``."""
    return f"{prefix}-{int(time.time() * 1000)}-{uuid4().hex[:6]}"


def mirror_expense_id(transaction_id: str) -> str:
    """Id of the expense that mirrors a salary transaction."""
    return f"{MIRROR_PREFIX}{transaction_id}"


def is_mirror_id(expense_id: str) -> bool:
    return expense_id.startswith(MIRROR_PREFIX)


def mirrored_transaction_id(expense_id: str) -> str | None:
    """Inverse of :func:`mirror_expense_id`."""
    if not is_mirror_id(expense_id):
        return None
    return expense_id[len(MIRROR_PREFIX):]


def _serialize(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    return value


class _Record:
    """Shared serialization for the record dataclasses."""

    KIND: ClassVar[str]
    TABLE: ClassVar[str]
    ID_PREFIX: ClassVar[str]

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-ready dict (amounts as strings, enums as values)."""
        return {
            f.name: _serialize(getattr(self, f.name))
            for f in fields(self)  # type: ignore[arg-type]
        }


@dataclass(frozen=True)
class IncomeEntry(_Record):
    """Money received on a given day."""

    KIND: ClassVar[str] = "income"
    TABLE: ClassVar[str] = "income"
    ID_PREFIX: ClassVar[str] = "inc"

    id: str
    date: str
    source: IncomeSource
    amount: Decimal
    notes: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> IncomeEntry:
        return cls(
            id=str(data.get("id") or ""),
            date=str(data.get("date") or ""),
            source=coerce_enum(IncomeSource, data.get("source"), "source"),
            amount=coerce_amount(data.get("amount")),
            notes=_optional_text(data.get("notes")),
        )

    def validate(self) -> None:
        _require_text(self.id, "id")
        _require_date(self.date)
        _require_amount(self.amount)

    @property
    def label(self) -> str:
        return self.source.value


@dataclass(frozen=True)
class ExpenseEntry(_Record):
    """Money paid out on a given day."""

    KIND: ClassVar[str] = "expense"
    TABLE: ClassVar[str] = "expenses"
    ID_PREFIX: ClassVar[str] = "exp"

    id: str
    date: str
    category: ExpenseCategory
    amount: Decimal
    payment_mode: PaymentMode
    notes: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExpenseEntry:
        return cls(
            id=str(data.get("id") or ""),
            date=str(data.get("date") or ""),
            category=coerce_enum(ExpenseCategory, data.get("category"), "category"),
            amount=coerce_amount(data.get("amount")),
            payment_mode=coerce_enum(PaymentMode, data.get("payment_mode"), "payment_mode"),
            notes=_optional_text(data.get("notes")),
        )

    def validate(self) -> None:
        _require_text(self.id, "id")
        _require_date(self.date)
        _require_amount(self.amount)

    @property
    def label(self) -> str:
        return self.category.value

    @property
    def is_payroll_mirror(self) -> bool:
        return is_mirror_id(self.id)


@dataclass(frozen=True)
class StaffMember(_Record):
    KIND: ClassVar[str] = "staff"
    TABLE: ClassVar[str] = "staff"
    ID_PREFIX: ClassVar[str] = "staff"

    id: str
    name: str
    role: StaffRole
    monthly_salary: Decimal
    joining_date: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StaffMember:
        return cls(
            id=str(data.get("id") or ""),
            name=str(data.get("name") or ""),
            role=coerce_enum(StaffRole, data.get("role"), "role"),
            monthly_salary=coerce_amount(data.get("monthly_salary"), "monthly_salary"),
            joining_date=str(data.get("joining_date") or ""),
        )

    def validate(self) -> None:
        _require_text(self.id, "id")
        _require_text(self.name, "name")
        _require_date(self.joining_date, "joining_date")
        _require_amount(self.monthly_salary, "monthly_salary")


@dataclass(frozen=True)
class AttendanceRecord(_Record):
    """Presence mark for one staff member on one day."""

    KIND: ClassVar[str] = "attendance"
    TABLE: ClassVar[str] = "attendance"
    ID_PREFIX: ClassVar[str] = "att"

    id: str
    staff_id: str
    date: str
    status: AttendanceStatus

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AttendanceRecord:
        return cls(
            id=str(data.get("id") or ""),
            staff_id=str(data.get("staff_id") or ""),
            date=str(data.get("date") or ""),
            status=coerce_enum(AttendanceStatus, data.get("status"), "status"),
        )

    def validate(self) -> None:
        _require_text(self.id, "id")
        _require_text(self.staff_id, "staff_id")
        _require_date(self.date)


@dataclass(frozen=True)
class SalaryTransaction(_Record):
    """A salary payment or advance handed to a staff member."""

    KIND: ClassVar[str] = "salary_transaction"
    TABLE: ClassVar[str] = "salary_transactions"
    ID_PREFIX: ClassVar[str] = "sal"

    id: str
    staff_id: str
    date: str
    type: SalaryTransactionType
    amount: Decimal
    notes: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SalaryTransaction:
        return cls(
            id=str(data.get("id") or ""),
            staff_id=str(data.get("staff_id") or ""),
            date=str(data.get("date") or ""),
            type=coerce_enum(SalaryTransactionType, data.get("type"), "type"),
            amount=coerce_amount(data.get("amount")),
            notes=_optional_text(data.get("notes")),
        )

    def validate(self) -> None:
        _require_text(self.id, "id")
        _require_text(self.staff_id, "staff_id")
        _require_date(self.date)
        _require_amount(self.amount)

    @property
    def mirror_id(self) -> str:
        return mirror_expense_id(self.id)


Record = IncomeEntry | ExpenseEntry | StaffMember | AttendanceRecord | SalaryTransaction

RECORD_TYPES: dict[str, type[Any]] = {
    IncomeEntry.TABLE: IncomeEntry,
    ExpenseEntry.TABLE: ExpenseEntry,
    StaffMember.TABLE: StaffMember,
    AttendanceRecord.TABLE: AttendanceRecord,
    SalaryTransaction.TABLE: SalaryTransaction,
}
