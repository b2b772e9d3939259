"""Periodic probe and reminder cycles."""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Optional

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..models import AlertKind, ServiceRecord, utc_now
from ..notifications import AlertSink
from ..registry import ServiceRegistry, Transition, reminder_due
from .probe import HttpProber


logger = structlog.get_logger(__name__)

CHECK_JOB_ID = "health_checks"
REMINDER_JOB_ID = "reminders"


class MonitorScheduler:
    """
    Runs the health-check cycle and the reminder sweep as two interval jobs.

    Each job allows a single running instance: a probe batch that overruns its
    interval makes the scheduler skip the overlapping tick instead of stacking
    a second batch on top, and neither job waits on the other.
    """

    def __init__(
        self,
        registry: ServiceRegistry,
        prober: HttpProber,
        sink: AlertSink,
        *,
        check_interval_seconds: int = 60,
        reminder_interval_seconds: int = 3600,
        max_concurrent_checks: int = 10,
    ):
        self.registry = registry
        self.prober = prober
        self.sink = sink
        self.check_interval_seconds = max(1, int(check_interval_seconds))
        self.reminder_interval_seconds = max(1, int(reminder_interval_seconds))
        self.max_concurrent_checks = max(1, int(max_concurrent_checks))
        self.scheduler = AsyncIOScheduler()
        self.running = False

    async def start(self) -> None:
        if self.running:
            logger.warning("Scheduler already running")
            return

        self.scheduler.add_job(
            func=self.run_check_cycle,
            trigger=IntervalTrigger(seconds=self.check_interval_seconds),
            id=CHECK_JOB_ID,
            name="Probe all services",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=None,
            replace_existing=True,
        )
        self.scheduler.add_job(
            func=self.run_reminder_cycle,
            trigger=IntervalTrigger(seconds=self.reminder_interval_seconds),
            id=REMINDER_JOB_ID,
            name="Send outage reminders",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=None,
            replace_existing=True,
        )
        self.scheduler.start()
        self.running = True
        logger.info(
            "Started health check monitoring",
            check_interval_seconds=self.check_interval_seconds,
            reminder_interval_seconds=self.reminder_interval_seconds,
            max_concurrent_checks=self.max_concurrent_checks,
        )

    async def stop(self) -> None:
        if not self.running:
            return
        self.scheduler.shutdown(wait=False)
        self.running = False
        logger.info("Scheduler stopped")

    def get_status(self) -> dict[str, Any]:
        jobs = {}
        for job in self.scheduler.get_jobs():
            next_run = getattr(job, "next_run_time", None)
            jobs[job.id] = next_run.isoformat() if next_run else None
        return {
            "running": self.running,
            "check_interval_seconds": self.check_interval_seconds,
            "reminder_interval_seconds": self.reminder_interval_seconds,
            "next_runs": jobs,
        }

    async def run_check_cycle(self) -> int:
        """Probe every service with bounded concurrency; returns once the whole batch is done."""
        records = await self.registry.list()
        if not records:
            return 0

        semaphore = asyncio.Semaphore(self.max_concurrent_checks)

        async def _safe_check(record: ServiceRecord) -> None:
            async with semaphore:
                try:
                    await self.check_service(record)
                except Exception as exc:
                    logger.exception("Service check crashed", service=record.name, error=str(exc))

        started = utc_now()
        await asyncio.gather(*(_safe_check(record) for record in records))
        elapsed = (utc_now() - started).total_seconds()
        logger.info("Check cycle complete", services=len(records), elapsed_seconds=round(elapsed, 3))
        return len(records)

    async def check_service(self, record: ServiceRecord) -> Optional[Transition]:
        outcome = await self.prober.probe(record)
        transition = await self.registry.apply_outcome(outcome)
        if transition is not None and transition.alert is not None:
            await self._deliver(transition)
        return transition

    async def run_reminder_cycle(self, now: Optional[datetime] = None) -> int:
        """Send a reminder for every service that has been offline past the reminder interval."""
        now = now or utc_now()
        records = await self.registry.list()
        sent = 0
        for record in records:
            if not reminder_due(record, now, interval=self.registry.reminder_interval):
                continue
            try:
                transition = await self.registry.record_reminder(record.id, now)
                if transition is None:
                    continue
                await self._deliver(transition)
                sent += 1
            except Exception as exc:
                logger.exception("Reminder failed", service=record.name, error=str(exc))
        if sent:
            logger.info("Reminder sweep complete", reminders_sent=sent)
        return sent

    async def _deliver(self, transition: Transition) -> None:
        record = transition.record
        if transition.alert is AlertKind.OUTAGE:
            await self.sink.notify_outage(record, transition.alert_detail)
        elif transition.alert is AlertKind.REMINDER:
            await self.sink.notify_reminder(record, transition.alert_detail)
        elif transition.alert is AlertKind.RECOVERY:
            await self.sink.notify_recovery(record, transition.alert_detail)
