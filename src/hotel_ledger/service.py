"""Ledger service: the single owner of the record store.

``HotelLedger`` is created at start-up, opened once (which rehydrates the
local snapshot), and closed at shutdown. Every mutation follows the same
path: validate, apply to the store and persist the snapshot as one atomic
step, then mirror the change to the remote store. Remote failures are
reported on the returned :class:`MutationResult` and tracked for retry; they
never undo the local change.

Usage:
    async with HotelLedger.from_settings() as ledger:
        result = await ledger.add_income(
            {"date": "2024-03-01", "source": "Room Rent", "amount": 15000}
        )
        if not result.synced:
            ...  # saved locally only, ledger.retry_sync() later
        print(ledger.dashboard("2024-03-01").to_dict())
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from typing import Any, TypeVar

import structlog

from hotel_ledger import aggregation
from hotel_ledger.aggregation import (
    DailyMetrics,
    MixDimension,
    MonthBucket,
    MonthlyLedger,
    MonthlyReport,
    MonthTrajectory,
    StaffMonthSummary,
)
from hotel_ledger.config import LedgerSettings, get_settings
from hotel_ledger.dates import bucket, today
from hotel_ledger.demo import seed_demo_data
from hotel_ledger.errors import ValidationError
from hotel_ledger.models import (
    AttendanceRecord,
    AttendanceStatus,
    ExpenseEntry,
    IncomeEntry,
    Record,
    SalaryTransaction,
    StaffMember,
    is_mirror_id,
    new_id,
)
from hotel_ledger.payroll import PayrollDiscrepancy, PayrollReconciler
from hotel_ledger.remote import RemoteStoreClient
from hotel_ledger.store import LocalSnapshotStorage, RecordStore, StoreSnapshot
from hotel_ledger.sync import SyncAdapter, SyncReport, SyncRequest, SyncState

logger = structlog.get_logger(__name__)

R = TypeVar("R", IncomeEntry, ExpenseEntry, StaffMember, AttendanceRecord, SalaryTransaction)


@dataclass
class MutationResult:
    """What a mutation did locally and how far it got remotely."""

    record: Any
    report: SyncReport = field(default_factory=SyncReport)
    removed: list[Record] = field(default_factory=list)

    @property
    def synced(self) -> bool:
        """True when every remote call for this mutation succeeded."""
        return self.report.ok

    @property
    def partial(self) -> bool:
        return self.report.partial


@dataclass(frozen=True)
class Dashboard:
    """Daily figures plus the trailing monthly window around that day."""

    metrics: DailyMetrics
    months: list[MonthBucket]
    growth: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "metrics": self.metrics.to_dict(),
            "months": [m.to_dict() for m in self.months],
            "growth": self.growth,
        }


class HotelLedger:
    """Local-first ledger with best-effort remote mirroring."""

    def __init__(
        self,
        store: RecordStore | None = None,
        storage: LocalSnapshotStorage | None = None,
        sync: SyncAdapter | None = None,
        settings: LedgerSettings | None = None,
    ):
        self._settings = settings or get_settings()
        self._store = store or RecordStore()
        self._storage = storage
        self._sync = sync
        self._payroll = PayrollReconciler(self._store)
        self._opened = False
        self._logger = logger.bind(component="hotel_ledger")

    @classmethod
    def from_settings(
        cls, settings: LedgerSettings | None = None, remote: bool = True
    ) -> HotelLedger:
        """Wire storage and (optionally) the remote mirror from settings."""
        settings = settings or get_settings()
        sync = SyncAdapter(RemoteStoreClient()) if remote else None
        return cls(
            storage=LocalSnapshotStorage(settings.snapshot_path),
            sync=sync,
            settings=settings,
        )

    # === Lifecycle ===

    async def open(self, seed_if_empty: bool = False) -> HotelLedger:
        """Rehydrate from the local snapshot, optionally seeding demo data."""
        loaded = self._storage.load_into(self._store) if self._storage else False
        if not loaded and seed_if_empty and self._store.is_empty():
            with self._store.atomic():
                seed_demo_data(self._store, today(self._settings.timezone))
                self._persist()
        self._opened = True
        self._logger.info("ledger_opened", loaded=loaded)
        return self

    async def close(self) -> None:
        """Persist the store and release the remote client."""
        if self._opened:
            self._persist()
        if self._sync is not None:
            await self._sync.client.close()
        self._opened = False
        self._logger.info("ledger_closed")

    async def __aenter__(self) -> HotelLedger:
        return await self.open()

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    @property
    def store(self) -> RecordStore:
        return self._store

    @property
    def sync_adapter(self) -> SyncAdapter | None:
        return self._sync

    @property
    def is_syncing(self) -> bool:
        return self._sync is not None and self._sync.is_syncing

    def snapshot(self) -> StoreSnapshot:
        return self._store.snapshot()

    def _persist(self) -> None:
        if self._storage is not None:
            self._storage.save(self._store)

    async def _mirror(self, requests: Iterable[SyncRequest]) -> SyncReport:
        batch = list(requests)
        if self._sync is None or not batch:
            return SyncReport()
        return await self._sync.sync_many(batch)

    # === Record construction ===

    @staticmethod
    def _build(kind: type[R], data: R | dict[str, Any], fresh_id: bool) -> R:
        """Turn form data into a record, assigning an id to new records."""
        if isinstance(data, kind):
            record = data
            if fresh_id and not record.id:
                record = replace(record, id=new_id(kind.ID_PREFIX))
            return record
        if not isinstance(data, dict):
            raise ValidationError(f"Expected {kind.__name__} or dict", field=None, value=data)
        payload = dict(data)
        if fresh_id and not payload.get("id"):
            payload["id"] = new_id(kind.ID_PREFIX)
        return kind.from_dict(payload)

    @staticmethod
    def _guard_mirror(expense_id: str) -> None:
        if is_mirror_id(expense_id):
            raise ValidationError(
                "Payroll expenses are managed through their salary transaction",
                field="id",
                value=expense_id,
            )

    async def _add(self, kind: type[R], data: R | dict[str, Any]) -> MutationResult:
        record = self._build(kind, data, fresh_id=True)
        with self._store.atomic():
            stored = self._store.add(record)
            self._persist()
        report = await self._mirror([SyncRequest.upsert(kind.TABLE, stored)])
        return MutationResult(record=stored, report=report)

    async def _update(self, kind: type[R], data: R | dict[str, Any]) -> MutationResult:
        record = self._build(kind, data, fresh_id=False)
        with self._store.atomic():
            stored = self._store.replace(record)
            self._persist()
        report = await self._mirror([SyncRequest.upsert(kind.TABLE, stored)])
        return MutationResult(record=stored, report=report)

    async def _delete(self, kind: type[R], record_id: str) -> MutationResult:
        with self._store.atomic():
            removed = self._store.remove(kind, record_id)
            self._persist()
        report = await self._mirror([SyncRequest.delete(kind.TABLE, record_id)])
        return MutationResult(record=removed, report=report, removed=[removed])

    # === Income ===

    async def add_income(self, data: IncomeEntry | dict[str, Any]) -> MutationResult:
        return await self._add(IncomeEntry, data)

    async def update_income(self, data: IncomeEntry | dict[str, Any]) -> MutationResult:
        return await self._update(IncomeEntry, data)

    async def delete_income(self, income_id: str) -> MutationResult:
        return await self._delete(IncomeEntry, income_id)

    # === Expenses ===

    async def add_expense(self, data: ExpenseEntry | dict[str, Any]) -> MutationResult:
        record = self._build(ExpenseEntry, data, fresh_id=True)
        self._guard_mirror(record.id)
        return await self._add(ExpenseEntry, record)

    async def update_expense(self, data: ExpenseEntry | dict[str, Any]) -> MutationResult:
        record = self._build(ExpenseEntry, data, fresh_id=False)
        self._guard_mirror(record.id)
        return await self._update(ExpenseEntry, record)

    async def delete_expense(self, expense_id: str) -> MutationResult:
        self._guard_mirror(expense_id)
        return await self._delete(ExpenseEntry, expense_id)

    # === Staff ===

    async def add_staff(self, data: StaffMember | dict[str, Any]) -> MutationResult:
        return await self._add(StaffMember, data)

    async def update_staff(self, data: StaffMember | dict[str, Any]) -> MutationResult:
        return await self._update(StaffMember, data)

    async def delete_staff(self, staff_id: str) -> MutationResult:
        """Remove a staff member and everything that references them."""
        with self._store.atomic():
            cascade = self._store.remove_staff(staff_id)
            self._persist()
        removed = cascade.removed()
        report = await self._mirror(
            SyncRequest.delete(type(record).TABLE, record.id) for record in removed
        )
        return MutationResult(record=cascade.staff, report=report, removed=removed)

    # === Attendance ===

    async def mark_attendance(
        self, staff_id: str, day: str, status: AttendanceStatus | str
    ) -> MutationResult:
        """Set one staff member's mark for a day, replacing any earlier mark."""
        with self._store.atomic():
            record = self._store.mark_attendance(staff_id, day, status)
            self._persist()
        report = await self._mirror([SyncRequest.upsert(AttendanceRecord.TABLE, record)])
        return MutationResult(record=record, report=report)

    # === Payroll ===

    async def record_salary(self, data: SalaryTransaction | dict[str, Any]) -> MutationResult:
        """Add a salary transaction and its mirrored expense, then sync both."""
        transaction = self._build(SalaryTransaction, data, fresh_id=True)
        with self._store.atomic():
            transaction, mirror = self._payroll.record(transaction)
            self._persist()
        report = await self._mirror(
            [
                SyncRequest.upsert(SalaryTransaction.TABLE, transaction),
                SyncRequest.upsert(ExpenseEntry.TABLE, mirror),
            ]
        )
        if report.partial:
            self._logger.warning("payroll_sync_partial", transaction_id=transaction.id)
        return MutationResult(record=transaction, report=report)

    async def update_salary(self, data: SalaryTransaction | dict[str, Any]) -> MutationResult:
        transaction = self._build(SalaryTransaction, data, fresh_id=False)
        with self._store.atomic():
            transaction, mirror = self._payroll.update(transaction)
            self._persist()
        report = await self._mirror(
            [
                SyncRequest.upsert(SalaryTransaction.TABLE, transaction),
                SyncRequest.upsert(ExpenseEntry.TABLE, mirror),
            ]
        )
        return MutationResult(record=transaction, report=report)

    async def delete_salary(self, transaction_id: str) -> MutationResult:
        with self._store.atomic():
            transaction, mirror = self._payroll.delete(transaction_id)
            self._persist()
        removed: list[Record] = [transaction] + ([mirror] if mirror else [])
        report = await self._mirror(
            SyncRequest.delete(type(record).TABLE, record.id) for record in removed
        )
        return MutationResult(record=transaction, report=report, removed=removed)

    def check_payroll(self) -> list[PayrollDiscrepancy]:
        return self._payroll.find_discrepancies()

    async def repair_payroll(self) -> MutationResult:
        """Fix broken payroll mirrors locally and push the fixes."""
        with self._store.atomic():
            fixed = self._payroll.repair()
            self._persist()
        requests = []
        for issue in fixed:
            mirror = self._store.get(ExpenseEntry, issue.expense_id)
            if mirror is None:
                requests.append(SyncRequest.delete(ExpenseEntry.TABLE, issue.expense_id))
            else:
                requests.append(SyncRequest.upsert(ExpenseEntry.TABLE, mirror))
        report = await self._mirror(requests)
        return MutationResult(record=fixed, report=report)

    # === Sync status ===

    async def retry_sync(self) -> SyncReport:
        if self._sync is None:
            return SyncReport()
        return await self._sync.retry_failed()

    def failed_syncs(self) -> list[SyncState]:
        return self._sync.tracker.failed() if self._sync else []

    def pending_syncs(self) -> list[SyncState]:
        return self._sync.tracker.pending() if self._sync else []

    # === Read side ===

    def _month_of(self, day: str | date | None) -> tuple[int, int]:
        """(year, 0-indexed month) of ``day``, or of today when it is unusable."""
        parts = bucket(day, self._settings.timezone) if day else None
        if parts is None:
            current = today(self._settings.timezone)
            return current.year, current.month - 1
        return parts.year, parts.month

    def dashboard(self, day: str | date | None = None) -> Dashboard:
        """Daily metrics, the trailing month window and income growth."""
        year, month = self._month_of(day)
        snapshot = self.snapshot()
        metrics = aggregation.daily_metrics(snapshot, day or today(self._settings.timezone))
        months = aggregation.monthly_summary(
            snapshot, year, month, max(self._settings.dashboard_window_months, 2)
        )
        growth = aggregation.month_over_month_growth(months[-1], months[-2])
        return Dashboard(metrics=metrics, months=months, growth=growth)

    def daily(self, day: str | date) -> DailyMetrics:
        return aggregation.daily_metrics(self.snapshot(), day)

    def report(self, year: int, month: int) -> MonthlyReport:
        return aggregation.monthly_report(self.snapshot(), year, month)

    def ledger(self, year: int, month: int) -> MonthlyLedger:
        return aggregation.monthly_ledger(self.snapshot(), year, month)

    def trajectory(self, year: int) -> list[MonthTrajectory]:
        return aggregation.annual_trajectory(self.snapshot(), year)

    def mix(self, year: int, month: int, dimension: MixDimension | str) -> dict[str, Decimal]:
        return aggregation.category_mix(self.snapshot(), year, month, dimension)

    def staff_summary(self, staff_id: str, year: int, month: int) -> StaffMonthSummary | None:
        return aggregation.staff_month_summary(self.snapshot(), staff_id, year, month)

    def years(self) -> list[int]:
        year, _ = self._month_of(None)
        return aggregation.available_years(self.snapshot(), year)
