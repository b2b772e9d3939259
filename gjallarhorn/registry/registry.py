"""In-memory service registry with snapshot persistence."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable, Sequence

import structlog

from ..errors import NotFoundError, PersistenceError
from ..models import CheckOutcome, ServiceRecord, ServiceSpec, ServiceStatusView, utc_now
from ..storage import JsonStore
from .rwlock import ReadWriteLock
from .state_machine import (
    FAILURE_THRESHOLD,
    REMINDER_INTERVAL,
    Transition,
    apply_check_outcome,
    apply_reminder,
    reminder_due,
)


logger = structlog.get_logger(__name__)


class ServiceRegistry:
    """
    Authoritative map of monitored services.

    Every read takes the shared lock and every mutation the exclusive lock.
    Mutations persist the full snapshot before releasing the lock, so the file
    on disk always matches some state the map was actually in.

    Single-item writes are best-effort: a failed save is logged and the
    in-memory change stays. Bulk writes are all-or-nothing: a failed save
    restores the map and raises PersistenceError.
    """

    def __init__(
        self,
        store: JsonStore,
        *,
        failure_threshold: int = FAILURE_THRESHOLD,
        reminder_interval: timedelta = REMINDER_INTERVAL,
    ):
        self.store = store
        self.failure_threshold = failure_threshold
        self.reminder_interval = reminder_interval
        self._records: dict[str, ServiceRecord] = {}
        self._lock = ReadWriteLock()

    async def load(self) -> int:
        """Replace the in-memory map with the stored snapshot; start empty if it is unreadable."""
        try:
            records = self.store.load_all()
        except PersistenceError as exc:
            logger.warning("Failed to load services from storage, starting empty", error=str(exc))
            records = {}
        async with self._lock.write():
            self._records = dict(records)
        logger.info("Loaded services", count=len(records))
        return len(records)

    # -------- Reads --------

    async def list(self) -> list[ServiceRecord]:
        async with self._lock.read():
            return list(self._records.values())

    async def count(self) -> int:
        async with self._lock.read():
            return len(self._records)

    async def get(self, service_id: str) -> ServiceRecord:
        async with self._lock.read():
            record = self._records.get(service_id)
        if record is None:
            raise NotFoundError([service_id])
        return record

    async def status(self, service_id: str) -> ServiceStatusView:
        record = await self.get(service_id)
        return ServiceStatusView(service_id=record.id, status=record.status, last_checked=record.last_checked)

    # -------- Single-item CRUD --------

    async def create(self, spec: ServiceSpec) -> ServiceRecord:
        record = ServiceRecord.create(spec)
        async with self._lock.write():
            self._records[record.id] = record
            self._save_best_effort("create", service_id=record.id)
        logger.info("Created service", service_id=record.id, name=record.name, url=record.url)
        return record

    async def update(self, service_id: str, spec: ServiceSpec) -> ServiceRecord:
        async with self._lock.write():
            current = self._records.get(service_id)
            if current is None:
                raise NotFoundError([service_id])
            record = current.with_spec(spec)
            self._records[service_id] = record
            self._save_best_effort("update", service_id=service_id)
        logger.info("Updated service", service_id=service_id, name=record.name, url=record.url)
        return record

    async def delete(self, service_id: str) -> None:
        async with self._lock.write():
            if service_id not in self._records:
                raise NotFoundError([service_id])
            del self._records[service_id]
            self._save_best_effort("delete", service_id=service_id)
        logger.info("Deleted service", service_id=service_id)

    # -------- Bulk (all-or-nothing) --------

    async def bulk_create(self, specs: Sequence[ServiceSpec]) -> list[ServiceRecord]:
        now = utc_now()
        created = [ServiceRecord.create(spec, now=now) for spec in specs]
        async with self._lock.write():
            before = dict(self._records)
            for record in created:
                self._records[record.id] = record
            self._save_or_rollback("bulk_create", before)
        logger.info("Bulk created services", count=len(created))
        return created

    async def bulk_update(self, updates: Sequence[tuple[str, ServiceSpec]]) -> list[ServiceRecord]:
        async with self._lock.write():
            self._require_all([service_id for service_id, _ in updates])
            before = dict(self._records)
            now = utc_now()
            updated: list[ServiceRecord] = []
            for service_id, spec in updates:
                record = self._records[service_id].with_spec(spec, now=now)
                self._records[service_id] = record
                updated.append(record)
            self._save_or_rollback("bulk_update", before)
        logger.info("Bulk updated services", count=len(updated))
        return updated

    async def bulk_delete(self, service_ids: Iterable[str]) -> int:
        ids = list(dict.fromkeys(service_ids))
        async with self._lock.write():
            self._require_all(ids)
            before = dict(self._records)
            for service_id in ids:
                del self._records[service_id]
            self._save_or_rollback("bulk_delete", before)
        logger.info("Bulk deleted services", count=len(ids))
        return len(ids)

    # -------- Scheduler-facing transitions --------

    async def apply_outcome(self, outcome: CheckOutcome) -> Transition | None:
        """
        Feed one probe result through the state machine.

        Returns None when the service was deleted while its probe was in flight.
        """
        async with self._lock.write():
            current = self._records.get(outcome.service_id)
            if current is None:
                return None
            transition = apply_check_outcome(current, outcome, failure_threshold=self.failure_threshold)
            self._records[current.id] = transition.record
            if not outcome.ok and not transition.status_changed:
                logger.info(
                    "Failure counted",
                    service=current.name,
                    url=current.url,
                    consecutive_failures=transition.record.consecutive_failures,
                    threshold=self.failure_threshold,
                )
            if transition.status_changed:
                self._save_best_effort("status_change", service_id=current.id)
        if transition.status_changed:
            logger.info(
                "Service status changed",
                service=current.name,
                previous=transition.previous.status.value,
                current=transition.record.status.value,
            )
        return transition

    async def record_reminder(self, service_id: str, now: datetime | None = None) -> Transition | None:
        """Stamp a reminder if one is still due; None if the service recovered or vanished meanwhile."""
        now = now or utc_now()
        async with self._lock.write():
            current = self._records.get(service_id)
            if current is None or not reminder_due(current, now, interval=self.reminder_interval):
                return None
            transition = apply_reminder(current, now)
            self._records[service_id] = transition.record
            self._save_best_effort("reminder", service_id=service_id)
        return transition

    # -------- Internals (caller holds the write lock) --------

    def _require_all(self, service_ids: Sequence[str]) -> None:
        missing = [service_id for service_id in service_ids if service_id not in self._records]
        if missing:
            raise NotFoundError(missing)

    def _save_best_effort(self, operation: str, **context: str) -> None:
        try:
            self.store.save_all(self._records)
        except PersistenceError as exc:
            logger.warning("Failed to save services to storage", operation=operation, error=str(exc), **context)

    def _save_or_rollback(self, operation: str, before: dict[str, ServiceRecord]) -> None:
        try:
            self.store.save_all(self._records)
        except PersistenceError as exc:
            self._records = before
            logger.error("Failed to save services to storage, rolled back", operation=operation, error=str(exc))
            raise
