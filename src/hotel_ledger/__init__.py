"""Hotel Ledger - back-office income, expense, attendance and payroll ledger."""

__version__ = "0.1.0"

from hotel_ledger.aggregation import (
    DailyMetrics,
    EntryKind,
    MixDimension,
    MonthBucket,
    MonthlyLedger,
    MonthlyReport,
    MonthTrajectory,
    annual_trajectory,
    category_mix,
    daily_metrics,
    month_over_month_growth,
    monthly_ledger,
    monthly_report,
    monthly_summary,
)
from hotel_ledger.config import configure_logging, get_settings
from hotel_ledger.errors import (
    LedgerError,
    RecordNotFoundError,
    UnknownStaffError,
    ValidationError,
)
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
from hotel_ledger.remote import RemoteStoreClient, RemoteStoreError
from hotel_ledger.service import HotelLedger, MutationResult
from hotel_ledger.store import LocalSnapshotStorage, RecordStore, StoreSnapshot
from hotel_ledger.sync import SyncAdapter, SyncReport, SyncStatus

__all__ = [
    # Version
    "__version__",
    # Records
    "IncomeEntry",
    "ExpenseEntry",
    "StaffMember",
    "AttendanceRecord",
    "SalaryTransaction",
    "IncomeSource",
    "ExpenseCategory",
    "PaymentMode",
    "StaffRole",
    "AttendanceStatus",
    "SalaryTransactionType",
    # Store
    "RecordStore",
    "StoreSnapshot",
    "LocalSnapshotStorage",
    # Aggregation
    "DailyMetrics",
    "MonthBucket",
    "MonthlyLedger",
    "MonthlyReport",
    "MonthTrajectory",
    "EntryKind",
    "MixDimension",
    "daily_metrics",
    "monthly_summary",
    "monthly_ledger",
    "monthly_report",
    "annual_trajectory",
    "category_mix",
    "month_over_month_growth",
    # Payroll & sync
    "PayrollReconciler",
    "RemoteStoreClient",
    "RemoteStoreError",
    "SyncAdapter",
    "SyncReport",
    "SyncStatus",
    # Service
    "HotelLedger",
    "MutationResult",
    # Errors
    "LedgerError",
    "ValidationError",
    "RecordNotFoundError",
    "UnknownStaffError",
    # Config
    "get_settings",
    "configure_logging",
]
