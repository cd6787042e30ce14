"""Tests for the record store and its local snapshot."""

import json
from decimal import Decimal

import pytest

from hotel_ledger.errors import RecordNotFoundError, UnknownStaffError, ValidationError
from hotel_ledger.models import (
    AttendanceRecord,
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
from hotel_ledger.store import LocalSnapshotStorage, RecordStore


def _income(record_id: str, day: str = "2024-03-01", amount: str = "100") -> IncomeEntry:
    return IncomeEntry(record_id, day, IncomeSource.ROOM_RENT, Decimal(amount))


class TestCrud:
    """Tests for add, replace, remove and lookups."""

    def test_add_and_get(self, store):
        """Test that an added record can be looked up by id."""
        entry = store.add(_income("inc-1"))

        assert store.get(IncomeEntry, "inc-1") == entry
        assert store.income == (entry,)

    def test_duplicate_id_rejected(self, store):
        """Test that adding an existing id raises and leaves the store alone."""
        store.add(_income("inc-1"))

        with pytest.raises(ValidationError):
            store.add(_income("inc-1", amount="999"))
        assert len(store.income) == 1

    def test_invalid_record_rejected(self, store):
        """Test that validation runs before anything is stored."""
        with pytest.raises(ValidationError):
            store.add(_income("inc-1", day="not a day"))
        assert store.income == ()

    @pytest.mark.parametrize(
        "amount", [Decimal("-500"), Decimal("NaN"), Decimal("Infinity"), 500, "500"]
    )
    def test_bad_amount_rejected(self, store, amount):
        """Test that a record instance needs a finite, non-negative Decimal amount."""
        entry = IncomeEntry("inc-1", "2024-03-01", IncomeSource.ROOM_RENT, amount)

        with pytest.raises(ValidationError) as exc_info:
            store.add(entry)
        assert exc_info.value.field == "amount"
        assert store.income == ()

    def test_replace_with_negative_amount_rejected(self, store):
        """Test that an edit cannot turn an amount negative."""
        expense = ExpenseEntry(
            "exp-1", "2024-03-01", ExpenseCategory.FOOD, Decimal("300"), PaymentMode.CASH
        )
        store.add(expense)

        with pytest.raises(ValidationError):
            store.replace(
                ExpenseEntry(
                    "exp-1", "2024-03-01", ExpenseCategory.FOOD, Decimal("-300"), PaymentMode.CASH
                )
            )
        assert store.expenses == (expense,)

    def test_negative_monthly_salary_rejected(self, store):
        """Test that the roster cannot hold a negative salary."""
        member = StaffMember("s3", "Ravi", StaffRole.COOK, Decimal("-1"), "2023-02-20")

        with pytest.raises(ValidationError) as exc_info:
            store.add(member)
        assert exc_info.value.field == "monthly_salary"

    def test_replace_keeps_position(self, store):
        """Test that edit-and-replace swaps the record in place."""
        for record_id in ("inc-1", "inc-2", "inc-3"):
            store.add(_income(record_id))

        store.replace(_income("inc-2", amount="500"))

        assert [e.id for e in store.income] == ["inc-1", "inc-2", "inc-3"]
        assert store.income[1].amount == Decimal("500")

    def test_replace_unknown_id(self, store):
        """Test that replacing a missing id raises RecordNotFoundError."""
        with pytest.raises(RecordNotFoundError) as exc_info:
            store.replace(_income("inc-404"))

        assert exc_info.value.record_id == "inc-404"
        assert exc_info.value.kind == "income"

    def test_remove_returns_record(self, store):
        """Test that remove hands back what it removed."""
        entry = store.add(_income("inc-1"))

        assert store.remove(IncomeEntry, "inc-1") == entry
        assert store.get(IncomeEntry, "inc-1") is None
        with pytest.raises(RecordNotFoundError):
            store.remove(IncomeEntry, "inc-1")

    def test_salary_for_unknown_staff(self, store):
        """Test that payroll cannot point at a staff id missing from the roster."""
        tx = SalaryTransaction(
            "sal-1", "ghost", "2024-03-05", SalaryTransactionType.SALARY, Decimal("1")
        )

        with pytest.raises(UnknownStaffError):
            store.add(tx)

    def test_snapshot_is_detached(self, store):
        """Test that later mutations do not leak into an earlier snapshot."""
        snapshot = store.snapshot()
        store.add(_income("inc-1"))

        assert snapshot.income == ()
        assert len(snapshot.staff) == 2


class TestAttendance:
    """Tests for the (staff, day) attendance upsert."""

    def test_second_mark_replaces_first(self, store):
        """Test that Present then Absent leaves one Absent record."""
        first = store.mark_attendance("s1", "2024-03-01", AttendanceStatus.PRESENT)
        second = store.mark_attendance("s1", "2024-03-01", "Absent")

        marks = [a for a in store.attendance if a.staff_id == "s1" and a.date == "2024-03-01"]
        assert len(marks) == 1
        assert marks[0].status is AttendanceStatus.ABSENT
        assert second.id == first.id

    def test_timestamp_and_plain_day_share_a_mark(self, store):
        """Test that a timestamp and a plain date on the same day are one pair."""
        first = store.mark_attendance("s1", "2024-03-05T09:00:00", AttendanceStatus.PRESENT)
        second = store.mark_attendance("s1", "2024-03-05", AttendanceStatus.ABSENT)

        assert len(store.attendance) == 1
        assert second.id == first.id
        assert store.find_attendance("s1", "2024-03-05T18:30:00") == second
        assert store.attendance[0].status is AttendanceStatus.ABSENT

    def test_replace_onto_same_day_timestamp(self, store):
        """Test that the clash check compares calendar days."""
        store.mark_attendance("s1", "2024-03-01", AttendanceStatus.PRESENT, record_id="att-1")
        store.mark_attendance("s1", "2024-03-02", AttendanceStatus.PRESENT, record_id="att-2")

        with pytest.raises(ValidationError):
            store.replace(
                AttendanceRecord("att-2", "s1", "2024-03-01T20:00:00", AttendanceStatus.ABSENT)
            )

    def test_add_attendance_upserts(self, store):
        """Test that add() on an existing pair updates rather than appends."""
        store.add(AttendanceRecord("att-1", "s1", "2024-03-01", AttendanceStatus.PRESENT))
        store.add(AttendanceRecord("att-2", "s1", "2024-03-01", AttendanceStatus.ABSENT))

        assert len(store.attendance) == 1
        assert store.attendance[0].id == "att-1"
        assert store.attendance[0].status is AttendanceStatus.ABSENT

    def test_mark_for_unknown_staff(self, store):
        """Test that attendance needs a roster member."""
        with pytest.raises(UnknownStaffError):
            store.mark_attendance("ghost", "2024-03-01", AttendanceStatus.PRESENT)

    def test_replace_onto_taken_pair(self, store):
        """Test that an edit cannot create a second mark for a pair."""
        store.mark_attendance("s1", "2024-03-01", AttendanceStatus.PRESENT, record_id="att-1")
        store.mark_attendance("s1", "2024-03-02", AttendanceStatus.PRESENT, record_id="att-2")

        with pytest.raises(ValidationError):
            store.replace(
                AttendanceRecord("att-2", "s1", "2024-03-01", AttendanceStatus.ABSENT)
            )


class TestStaffCascade:
    """Tests for deleting a staff member."""

    def test_cascade_removes_everything_for_staff(self, store):
        """Test that attendance, payroll and mirrors go with the staff member."""
        store.mark_attendance("s1", "2024-03-01", AttendanceStatus.PRESENT)
        store.mark_attendance("s2", "2024-03-01", AttendanceStatus.PRESENT)
        payroll = PayrollReconciler(store)
        payroll.record(
            SalaryTransaction(
                "sal-1", "s1", "2024-03-05", SalaryTransactionType.ADVANCE, Decimal("5000")
            )
        )
        payroll.record(
            SalaryTransaction(
                "sal-2", "s2", "2024-03-05", SalaryTransactionType.SALARY, Decimal("25000")
            )
        )

        result = store.remove_staff("s1")

        assert result.staff.id == "s1"
        assert [a.staff_id for a in result.attendance] == ["s1"]
        assert [t.id for t in result.salary_transactions] == ["sal-1"]
        assert [e.id for e in result.mirror_expenses] == ["pay-sync-sal-1"]
        assert len(result.removed()) == 4

        assert all(a.staff_id != "s1" for a in store.attendance)
        assert all(t.staff_id != "s1" for t in store.salary_transactions)
        assert [e.id for e in store.expenses] == ["pay-sync-sal-2"]

    def test_unknown_staff_leaves_store_untouched(self, store):
        """Test that a failed cascade changes nothing."""
        store.mark_attendance("s1", "2024-03-01", AttendanceStatus.PRESENT)
        before = store.snapshot()

        with pytest.raises(RecordNotFoundError):
            store.remove_staff("ghost")
        assert store.snapshot() == before


class TestAtomic:
    """Tests for all-or-nothing mutation blocks."""

    def test_rollback_on_error(self, store):
        """Test that a failing block restores every collection."""
        with pytest.raises(ValidationError):
            with store.atomic():
                store.add(_income("inc-1"))
                store.add(_income("inc-1"))

        assert store.income == ()

    def test_commit_on_success(self, store):
        """Test that a clean block keeps its changes."""
        with store.atomic():
            store.add(_income("inc-1"))
            store.add(_income("inc-2"))

        assert len(store.income) == 2


class TestDocument:
    """Tests for the persisted document format."""

    def test_document_keys(self, march_store):
        """Test that the document uses the storage collection names."""
        document = march_store.to_document()

        assert list(document) == ["income", "expenses", "staff", "attendance", "salaryTransactions"]
        assert document["income"][0]["amount"] == "15000"

    def test_from_document_skips_bad_rows(self):
        """Test that undecodable and duplicate rows are dropped, bad dates kept."""
        document = {
            "income": [
                {"id": "inc-1", "date": "2024-03-01", "source": "Room Rent", "amount": "10"},
                {"id": "inc-1", "date": "2024-03-02", "source": "Room Rent", "amount": "20"},
                {"id": "inc-2", "date": "2024-03-02", "source": "Room Rent", "amount": "oops"},
                {"id": "inc-3", "date": "broken", "source": "Others", "amount": "5"},
                "not a row",
            ],
            "expenses": None,
        }

        store = RecordStore.from_document(document)

        assert [e.id for e in store.income] == ["inc-1", "inc-3"]
        assert store.income[0].amount == Decimal("10")
        assert store.expenses == ()


class TestLocalSnapshotStorage:
    """Tests for saving and loading the snapshot file."""

    def test_save_and_load(self, tmp_path, march_store):
        """Test that a saved store rehydrates to the same state."""
        storage = LocalSnapshotStorage(tmp_path / "data" / "hotel_pro_data.json")
        storage.save(march_store)

        restored = RecordStore()
        assert storage.load_into(restored) is True
        assert restored.snapshot() == march_store.snapshot()

    def test_missing_file_keeps_defaults(self, tmp_path, store):
        """Test that loading without a file leaves the store as it was."""
        storage = LocalSnapshotStorage(tmp_path / "missing.json")

        assert storage.load_into(store) is False
        assert len(store.staff) == 2

    def test_corrupt_file_ignored(self, tmp_path, store):
        """Test that an unreadable file is ignored."""
        path = tmp_path / "snapshot.json"
        path.write_text("{not json", encoding="utf-8")

        assert LocalSnapshotStorage(path).load_into(store) is False
        assert len(store.staff) == 2

    def test_load_replaces_wholesale(self, tmp_path, store):
        """Test that a found snapshot replaces the in-memory collections."""
        path = tmp_path / "snapshot.json"
        path.write_text(json.dumps({"staff": [], "income": []}), encoding="utf-8")

        assert LocalSnapshotStorage(path).load_into(store) is True
        assert store.is_empty()

    def test_save_leaves_no_temp_files(self, tmp_path, store):
        """Test that only the final file remains after a save."""
        storage = LocalSnapshotStorage(tmp_path / "snapshot.json")
        storage.save(store)
        storage.save(store)

        assert [p.name for p in tmp_path.iterdir()] == ["snapshot.json"]


def test_staff_member_lookup_on_snapshot(store):
    """Test snapshot staff helpers."""
    snapshot = store.snapshot()

    assert snapshot.staff_ids == frozenset({"s1", "s2"})
    assert isinstance(snapshot.get_staff("s1"), StaffMember)
    assert snapshot.get_staff("nobody") is None
