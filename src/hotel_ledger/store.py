"""In-memory record store and its local JSON snapshot.

The store is a plain object owned by the ledger service. Aggregations never
read it directly; they take a :class:`StoreSnapshot`, an immutable copy made
between two mutations, so a read can never observe a half-applied change.
"""

from __future__ import annotations

import json
import os
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, TypeVar

import structlog

from hotel_ledger.dates import parse_date
from hotel_ledger.errors import RecordNotFoundError, UnknownStaffError, ValidationError
from hotel_ledger.models import (
    AttendanceRecord,
    AttendanceStatus,
    ExpenseEntry,
    IncomeEntry,
    Record,
    SalaryTransaction,
    StaffMember,
    coerce_enum,
    mirror_expense_id,
    new_id,
)

logger = structlog.get_logger(__name__)

R = TypeVar("R", IncomeEntry, ExpenseEntry, StaffMember, AttendanceRecord, SalaryTransaction)

# Keys of the persisted document, in the order they are written
DOCUMENT_KEYS: dict[str, type[Any]] = {
    "income": IncomeEntry,
    "expenses": ExpenseEntry,
    "staff": StaffMember,
    "attendance": AttendanceRecord,
    "salaryTransactions": SalaryTransaction,
}


@dataclass(frozen=True)
class StoreSnapshot:
    """Read-only view of every collection at one point in time."""

    income: tuple[IncomeEntry, ...] = ()
    expenses: tuple[ExpenseEntry, ...] = ()
    staff: tuple[StaffMember, ...] = ()
    attendance: tuple[AttendanceRecord, ...] = ()
    salary_transactions: tuple[SalaryTransaction, ...] = ()

    @property
    def staff_ids(self) -> frozenset[str]:
        return frozenset(member.id for member in self.staff)

    def get_staff(self, staff_id: str) -> StaffMember | None:
        for member in self.staff:
            if member.id == staff_id:
                return member
        return None


@dataclass
class CascadeResult:
    """Everything removed when a staff member is deleted."""

    staff: StaffMember
    attendance: list[AttendanceRecord] = field(default_factory=list)
    salary_transactions: list[SalaryTransaction] = field(default_factory=list)
    mirror_expenses: list[ExpenseEntry] = field(default_factory=list)

    def removed(self) -> list[Record]:
        """All removed records, staff member first."""
        return [
            self.staff,
            *self.attendance,
            *self.salary_transactions,
            *self.mirror_expenses,
        ]


class RecordStore:
    """Ordered in-memory collections for the five record kinds."""

    def __init__(self, snapshot: StoreSnapshot | None = None):
        self._collections: dict[type[Any], list[Any]] = {
            IncomeEntry: [],
            ExpenseEntry: [],
            StaffMember: [],
            AttendanceRecord: [],
            SalaryTransaction: [],
        }
        if snapshot is not None:
            self.restore(snapshot)
        self._logger = logger.bind(component="record_store")

    # === Views ===

    @property
    def income(self) -> tuple[IncomeEntry, ...]:
        return tuple(self._collections[IncomeEntry])

    @property
    def expenses(self) -> tuple[ExpenseEntry, ...]:
        return tuple(self._collections[ExpenseEntry])

    @property
    def staff(self) -> tuple[StaffMember, ...]:
        return tuple(self._collections[StaffMember])

    @property
    def attendance(self) -> tuple[AttendanceRecord, ...]:
        return tuple(self._collections[AttendanceRecord])

    @property
    def salary_transactions(self) -> tuple[SalaryTransaction, ...]:
        return tuple(self._collections[SalaryTransaction])

    def snapshot(self) -> StoreSnapshot:
        """Copy the current state for aggregation."""
        return StoreSnapshot(
            income=self.income,
            expenses=self.expenses,
            staff=self.staff,
            attendance=self.attendance,
            salary_transactions=self.salary_transactions,
        )

    def restore(self, snapshot: StoreSnapshot) -> None:
        """Replace every collection wholesale."""
        self._collections[IncomeEntry] = list(snapshot.income)
        self._collections[ExpenseEntry] = list(snapshot.expenses)
        self._collections[StaffMember] = list(snapshot.staff)
        self._collections[AttendanceRecord] = list(snapshot.attendance)
        self._collections[SalaryTransaction] = list(snapshot.salary_transactions)

    def is_empty(self) -> bool:
        return not any(self._collections.values())

    @contextmanager
    def atomic(self) -> Iterator[RecordStore]:
        """Apply a group of mutations all-or-nothing.

        If the block raises, every collection is put back as it was and the
        exception propagates.
        """
        saved = self.snapshot()
        try:
            yield self
        except BaseException:
            self.restore(saved)
            self._logger.warning("store_rolled_back")
            raise

    # === Generic CRUD ===

    def get(self, kind: type[R], record_id: str) -> R | None:
        for record in self._collections[kind]:
            if record.id == record_id:
                return record
        return None

    def require(self, kind: type[R], record_id: str) -> R:
        record = self.get(kind, record_id)
        if record is None:
            raise RecordNotFoundError(kind.KIND, record_id)
        return record

    def add(self, record: R) -> R:
        """Validate and append a record; returns the stored record.

        An attendance mark for a (staff, day) pair that already has one
        updates the existing mark instead of appending.
        """
        record.validate()
        kind = type(record)
        if isinstance(record, AttendanceRecord):
            return self.mark_attendance(  # type: ignore[return-value]
                record.staff_id, record.date, record.status, record_id=record.id
            )
        if isinstance(record, SalaryTransaction):
            self._check_staff(record.staff_id)
        if self.get(kind, record.id) is not None:
            raise ValidationError(f"Duplicate {kind.KIND} id '{record.id}'", field="id")

        self._collections[kind].append(record)
        self._logger.debug("record_added", kind=kind.KIND, record_id=record.id)
        return record

    def replace(self, record: R) -> R:
        """Edit-and-replace by id, keeping the record's position."""
        record.validate()
        kind = type(record)
        items = self._collections[kind]
        index = self._index_of(kind, record.id)

        if isinstance(record, (AttendanceRecord, SalaryTransaction)):
            self._check_staff(record.staff_id)
        if isinstance(record, AttendanceRecord):
            clash = self.find_attendance(record.staff_id, record.date)
            if clash is not None and clash.id != record.id:
                raise ValidationError(
                    f"Attendance for {record.staff_id} on {record.date} already exists",
                    field="date",
                )

        items[index] = record
        self._logger.debug("record_replaced", kind=kind.KIND, record_id=record.id)
        return record

    def remove(self, kind: type[R], record_id: str) -> R:
        """Delete by id and return the removed record."""
        index = self._index_of(kind, record_id)
        record = self._collections[kind].pop(index)
        self._logger.debug("record_removed", kind=kind.KIND, record_id=record_id)
        return record

    def _index_of(self, kind: type[Any], record_id: str) -> int:
        for index, record in enumerate(self._collections[kind]):
            if record.id == record_id:
                return index
        raise RecordNotFoundError(kind.KIND, record_id)

    def _check_staff(self, staff_id: str) -> None:
        if self.get(StaffMember, staff_id) is None:
            raise UnknownStaffError(staff_id)

    # === Attendance ===

    def find_attendance(self, staff_id: str, day: str) -> AttendanceRecord | None:
        """The mark for staff_id on the calendar day of ``day``, if any."""
        wanted = parse_date(day)
        if wanted is None:
            return None
        for record in self._collections[AttendanceRecord]:
            if record.staff_id == staff_id and parse_date(record.date) == wanted:
                return record
        return None

    def mark_attendance(
        self,
        staff_id: str,
        day: str,
        status: AttendanceStatus | str,
        record_id: str | None = None,
    ) -> AttendanceRecord:
        """Set the mark for (staff_id, day); at most one record per pair."""
        status = coerce_enum(AttendanceStatus, status, "status")
        self._check_staff(staff_id)

        existing = self.find_attendance(staff_id, day)
        if existing is not None:
            updated = replace(existing, status=status)
            items = self._collections[AttendanceRecord]
            items[items.index(existing)] = updated
            self._logger.debug(
                "attendance_updated", staff_id=staff_id, date=day, status=status.value
            )
            return updated

        record = AttendanceRecord(
            id=record_id or new_id(AttendanceRecord.ID_PREFIX),
            staff_id=staff_id,
            date=day,
            status=status,
        )
        record.validate()
        self._collections[AttendanceRecord].append(record)
        self._logger.debug("attendance_marked", staff_id=staff_id, date=day, status=status.value)
        return record

    # === Staff cascade ===

    def remove_staff(self, staff_id: str) -> CascadeResult:
        """Delete a staff member with their attendance, payroll and mirrors."""
        with self.atomic():
            member = self.remove(StaffMember, staff_id)
            result = CascadeResult(staff=member)

            attendance = self._collections[AttendanceRecord]
            result.attendance = [a for a in attendance if a.staff_id == staff_id]
            self._collections[AttendanceRecord] = [
                a for a in attendance if a.staff_id != staff_id
            ]

            transactions = self._collections[SalaryTransaction]
            result.salary_transactions = [t for t in transactions if t.staff_id == staff_id]
            self._collections[SalaryTransaction] = [
                t for t in transactions if t.staff_id != staff_id
            ]

            mirror_ids = {mirror_expense_id(t.id) for t in result.salary_transactions}
            expenses = self._collections[ExpenseEntry]
            result.mirror_expenses = [e for e in expenses if e.id in mirror_ids]
            self._collections[ExpenseEntry] = [e for e in expenses if e.id not in mirror_ids]

        self._logger.info(
            "staff_removed",
            staff_id=staff_id,
            attendance=len(result.attendance),
            salary_transactions=len(result.salary_transactions),
            mirror_expenses=len(result.mirror_expenses),
        )
        return result

    # === Persistence ===

    def to_document(self) -> dict[str, list[dict[str, Any]]]:
        """Serialize all collections into one JSON-ready document."""
        return {
            key: [record.to_dict() for record in self._collections[kind]]
            for key, kind in DOCUMENT_KEYS.items()
        }

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> RecordStore:
        """Rebuild a store from a persisted document.

        Rows that cannot be decoded (bad amount, unknown enum) or repeat an
        id are dropped with a warning. Rows with a malformed date are kept;
        aggregation skips them.
        """
        collections: dict[type[Any], list[Any]] = {}
        for key, kind in DOCUMENT_KEYS.items():
            rows = document.get(key) or []
            seen: set[str] = set()
            decoded = []
            for row in rows if isinstance(rows, list) else []:
                if not isinstance(row, dict):
                    logger.warning("snapshot_row_skipped", collection=key, reason="not an object")
                    continue
                try:
                    record = kind.from_dict(row)
                except ValidationError as e:
                    logger.warning(
                        "snapshot_row_skipped",
                        collection=key,
                        record_id=row.get("id"),
                        reason=str(e),
                    )
                    continue
                if not record.id or record.id in seen:
                    logger.warning("snapshot_row_skipped", collection=key, record_id=record.id,
                                   reason="missing or duplicate id")
                    continue
                seen.add(record.id)
                decoded.append(record)
            collections[kind] = decoded

        return cls(
            StoreSnapshot(
                income=tuple(collections[IncomeEntry]),
                expenses=tuple(collections[ExpenseEntry]),
                staff=tuple(collections[StaffMember]),
                attendance=tuple(collections[AttendanceRecord]),
                salary_transactions=tuple(collections[SalaryTransaction]),
            )
        )


class LocalSnapshotStorage:
    """Persists the store as a single JSON document on disk."""

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self._logger = logger.bind(component="snapshot_storage", path=str(self.path))

    def exists(self) -> bool:
        return self.path.is_file()

    def save(self, store: RecordStore) -> None:
        """Write the document next to its final location, then swap it in."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(store.to_document(), indent=2, ensure_ascii=False)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
            os.replace(tmp_name, self.path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        self._logger.debug("snapshot_saved")

    def load_into(self, store: RecordStore) -> bool:
        """Rehydrate ``store`` wholesale if a readable snapshot exists.

        Returns False (store untouched) when there is no file or it is corrupt.
        """
        if not self.exists():
            self._logger.info("snapshot_missing")
            return False
        try:
            document = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            self._logger.warning("snapshot_unreadable", error=str(e))
            return False
        if not isinstance(document, dict):
            self._logger.warning("snapshot_unreadable", error="document is not an object")
            return False

        store.restore(RecordStore.from_document(document).snapshot())
        self._logger.info(
            "snapshot_loaded",
            income=len(store.income),
            expenses=len(store.expenses),
            staff=len(store.staff),
        )
        return True
