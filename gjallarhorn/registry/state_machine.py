"""Status transitions driven by check outcomes and the reminder sweep."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta

from ..models import AlertKind, CheckOutcome, ServiceRecord, ServiceStatus


FAILURE_THRESHOLD = 3
REMINDER_INTERVAL = timedelta(hours=1)


@dataclass(frozen=True)
class Transition:
    """Before/after view of one record plus the alert the change calls for."""

    previous: ServiceRecord
    record: ServiceRecord
    alert: AlertKind | None = None
    # Error text for outages, downtime text for reminders and recoveries.
    alert_detail: str = ""

    @property
    def status_changed(self) -> bool:
        return self.previous.status is not self.record.status


def format_downtime(duration: timedelta) -> str:
    seconds = max(0.0, duration.total_seconds())
    hours = seconds / 3600.0
    if hours >= 24:
        return f"{int(hours // 24)} day(s)"
    if hours >= 1:
        return f"{int(hours)} hour(s)"
    return f"{int(seconds // 60)} minute(s)"


def downtime_since(record: ServiceRecord, now: datetime) -> str:
    if record.went_offline_at is None:
        return ""
    return format_downtime(now - record.went_offline_at)


def apply_check_outcome(
    record: ServiceRecord,
    outcome: CheckOutcome,
    *,
    failure_threshold: int = FAILURE_THRESHOLD,
) -> Transition:
    now = outcome.timestamp
    previous_status = record.status
    checked = replace(record, last_checked=now)

    if outcome.ok:
        if previous_status is ServiceStatus.OFFLINE:
            downtime = downtime_since(record, now)
            recovered = replace(
                checked,
                status=ServiceStatus.ONLINE,
                consecutive_failures=0,
                went_offline_at=None,
                last_reminder_at=None,
            )
            return Transition(record, recovered, AlertKind.RECOVERY, downtime)
        return Transition(record, replace(checked, status=ServiceStatus.ONLINE, consecutive_failures=0))

    failures = record.consecutive_failures + 1
    if previous_status is ServiceStatus.OFFLINE:
        return Transition(record, replace(checked, consecutive_failures=failures))

    if failures < max(1, failure_threshold):
        # Within the hysteresis window the endpoint is still treated as reachable.
        return Transition(record, replace(checked, status=ServiceStatus.ONLINE, consecutive_failures=failures))

    went_offline = replace(
        checked,
        status=ServiceStatus.OFFLINE,
        consecutive_failures=failures,
        went_offline_at=now,
        last_reminder_at=now,
    )
    return Transition(record, went_offline, AlertKind.OUTAGE, outcome.error or "")


def reminder_due(record: ServiceRecord, now: datetime, *, interval: timedelta = REMINDER_INTERVAL) -> bool:
    if record.status is not ServiceStatus.OFFLINE or record.went_offline_at is None:
        return False
    cutoff = now - interval
    if not record.went_offline_at < cutoff:
        return False
    return record.last_reminder_at is None or record.last_reminder_at < cutoff


def apply_reminder(record: ServiceRecord, now: datetime) -> Transition:
    reminded = replace(record, last_reminder_at=now)
    return Transition(record, reminded, AlertKind.REMINDER, downtime_since(record, now))
