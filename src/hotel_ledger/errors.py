"""Exceptions raised at the ledger boundary."""

from typing import Any


class LedgerError(Exception):
    """Base exception for hotel ledger errors."""


class ValidationError(LedgerError):
    """Input rejected before it reached the record store."""

    def __init__(self, message: str, field: str | None = None, value: Any = None):
        super().__init__(message)
        self.field = field
        self.value = value


class RecordNotFoundError(LedgerError):
    """Replace or delete targeted an id that is not in the store."""

    def __init__(self, kind: str, record_id: str):
        super().__init__(f"{kind} '{record_id}' not found")
        self.kind = kind
        self.record_id = record_id


class UnknownStaffError(LedgerError):
    """Attendance or payroll entry references a staff id missing from the roster."""

    def __init__(self, staff_id: str):
        super().__init__(f"Unknown staff member '{staff_id}'")
        self.staff_id = staff_id
