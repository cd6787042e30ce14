"""Best-effort mirroring of local mutations to the remote store.

Local state is always committed first. Each remote call then runs on its own
and its outcome is recorded per ``(table, record_id)`` as pending, synced or
failed, so callers can tell "saved locally" from "fully persisted" and retry
later. A failed call never rolls back local state and never raises.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

import httpx
import structlog

from hotel_ledger.remote import RemoteStoreClient, RemoteStoreError

logger = structlog.get_logger(__name__)


class SyncStatus(str, Enum):
    PENDING = "pending"
    SYNCED = "synced"
    FAILED = "failed"


class SyncOperation(str, Enum):
    UPSERT = "upsert"
    DELETE = "delete"


@dataclass(frozen=True)
class SyncRequest:
    """One remote call: upsert a payload or delete an id."""

    table: str
    record_id: str
    operation: SyncOperation
    payload: dict[str, Any] | None = None

    @classmethod
    def upsert(cls, table: str, record: Any) -> SyncRequest:
        payload = record.to_dict() if hasattr(record, "to_dict") else dict(record)
        return cls(table, str(payload.get("id", "")), SyncOperation.UPSERT, payload)

    @classmethod
    def delete(cls, table: str, record_id: str) -> SyncRequest:
        return cls(table, record_id, SyncOperation.DELETE)

    @property
    def key(self) -> tuple[str, str]:
        return (self.table, self.record_id)


@dataclass
class SyncState:
    """Latest known remote status of one record."""

    request: SyncRequest
    status: SyncStatus = SyncStatus.PENDING
    error: str | None = None
    attempts: int = 0
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    generation: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "table": self.request.table,
            "recordId": self.request.record_id,
            "operation": self.request.operation.value,
            "status": self.status.value,
            "error": self.error,
            "attempts": self.attempts,
            "updatedAt": self.updated_at.isoformat(),
        }


@dataclass
class SyncReport:
    """Outcome of a batch of independent remote calls."""

    succeeded: list[SyncRequest] = field(default_factory=list)
    failed: list[SyncRequest] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    @property
    def partial(self) -> bool:
        """Some calls went through and some did not."""
        return bool(self.succeeded) and bool(self.failed)

    def merge(self, other: SyncReport) -> SyncReport:
        return SyncReport(self.succeeded + other.succeeded, self.failed + other.failed)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "partial": self.partial,
            "succeeded": [list(r.key) for r in self.succeeded],
            "failed": [list(r.key) for r in self.failed],
        }


class SyncTracker:
    """Per-record sync status.

    Two calls for the same record may overlap and finish in either order;
    only the outcome of the most recently started call is kept.
    """

    def __init__(self) -> None:
        self._states: dict[tuple[str, str], SyncState] = {}

    def begin(self, request: SyncRequest) -> int:
        previous = self._states.get(request.key)
        generation = previous.generation + 1 if previous else 1
        attempts = previous.attempts if previous and previous.status is SyncStatus.FAILED else 0
        self._states[request.key] = SyncState(
            request=request, generation=generation, attempts=attempts + 1
        )
        return generation

    def finish(self, request: SyncRequest, generation: int, error: str | None = None) -> None:
        state = self._states.get(request.key)
        if state is None or state.generation != generation:
            return
        state.status = SyncStatus.FAILED if error else SyncStatus.SYNCED
        state.error = error
        state.updated_at = datetime.now(UTC)

    def get(self, table: str, record_id: str) -> SyncState | None:
        return self._states.get((table, record_id))

    def status_of(self, table: str, record_id: str) -> SyncStatus | None:
        state = self.get(table, record_id)
        return state.status if state else None

    def pending(self) -> list[SyncState]:
        return [s for s in self._states.values() if s.status is SyncStatus.PENDING]

    def failed(self) -> list[SyncState]:
        return [s for s in self._states.values() if s.status is SyncStatus.FAILED]

    def all(self) -> list[SyncState]:
        return list(self._states.values())

    def forget_synced(self) -> int:
        """Drop synced entries; returns how many were dropped."""
        synced = [k for k, s in self._states.items() if s.status is SyncStatus.SYNCED]
        for key in synced:
            del self._states[key]
        return len(synced)


class SyncAdapter:
    """Forwards local mutations to the remote store and reports the outcome."""

    def __init__(self, client: RemoteStoreClient, tracker: SyncTracker | None = None):
        self.client = client
        self.tracker = tracker or SyncTracker()
        self._in_flight = 0
        self._logger = logger.bind(component="sync_adapter")

    @property
    def is_syncing(self) -> bool:
        """True while any remote call is outstanding."""
        return self._in_flight > 0

    async def sync_to_cloud(self, table: str, record: Any) -> bool:
        """Upsert ``record`` into ``table``; False if the remote call failed."""
        return await self.execute(SyncRequest.upsert(table, record))

    async def delete_from_cloud(self, table: str, record_id: str) -> bool:
        """Delete ``record_id`` from ``table``; False if the remote call failed."""
        return await self.execute(SyncRequest.delete(table, record_id))

    async def execute(self, request: SyncRequest) -> bool:
        generation = self.tracker.begin(request)
        self._in_flight += 1
        try:
            if request.operation is SyncOperation.UPSERT:
                await self.client.upsert(request.table, request.payload or {})
            else:
                await self.client.delete(request.table, request.record_id)
        except (RemoteStoreError, httpx.HTTPError, ValueError) as e:
            self.tracker.finish(request, generation, error=str(e) or type(e).__name__)
            self._logger.warning(
                "sync_failed",
                table=request.table,
                record_id=request.record_id,
                operation=request.operation.value,
                error=str(e),
            )
            return False
        finally:
            self._in_flight -= 1

        self.tracker.finish(request, generation)
        self._logger.debug(
            "sync_succeeded",
            table=request.table,
            record_id=request.record_id,
            operation=request.operation.value,
        )
        return True

    async def sync_many(self, requests: Iterable[SyncRequest]) -> SyncReport:
        """Run independent remote calls concurrently and collect the outcome."""
        batch = list(requests)
        results = await asyncio.gather(*(self.execute(r) for r in batch))
        report = SyncReport()
        for request, success in zip(batch, results):
            (report.succeeded if success else report.failed).append(request)
        if report.partial:
            self._logger.warning(
                "sync_partial_failure",
                succeeded=[list(r.key) for r in report.succeeded],
                failed=[list(r.key) for r in report.failed],
            )
        return report

    async def retry_failed(self) -> SyncReport:
        """Re-issue every failed call with the payload captured at the time."""
        requests = [state.request for state in self.tracker.failed()]
        if not requests:
            return SyncReport()
        self._logger.info("retrying_failed_syncs", count=len(requests))
        return await self.sync_many(requests)
