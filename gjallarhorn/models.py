"""Domain types shared by the registry, scheduler, store and API."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ServiceStatus(str, Enum):
    UNKNOWN = "unknown"
    ONLINE = "online"
    OFFLINE = "offline"


class CheckClassification(str, Enum):
    ONLINE = "online"
    FAILED = "failed"


class AlertKind(str, Enum):
    OUTAGE = "outage"
    REMINDER = "reminder"
    RECOVERY = "recovery"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_service_id() -> str:
    return str(uuid.uuid4())


def _format_ts(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat()


def _parse_ts(value: Any, *, field_name: str) -> datetime | None:
    if value is None or value == "":
        return None
    s = str(value).strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(s)
    except ValueError as exc:
        raise ValueError(f"Invalid timestamp for {field_name}: {value!r}") from exc
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


@dataclass(frozen=True)
class ServiceSpec:
    """User-supplied fields of a monitored service (already validated)."""

    name: str
    url: str
    interval: int


@dataclass(frozen=True)
class ServiceRecord:
    """
    One monitored endpoint.

    Records are values: the registry swaps whole records in and out of its map
    instead of mutating them, so a copy handed to a caller never changes under it.
    """

    id: str
    name: str
    url: str
    interval: int
    status: ServiceStatus = ServiceStatus.UNKNOWN
    last_checked: datetime | None = None
    consecutive_failures: int = 0
    went_offline_at: datetime | None = None
    last_reminder_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def create(cls, spec: ServiceSpec, *, now: datetime | None = None) -> "ServiceRecord":
        ts = now or utc_now()
        return cls(
            id=new_service_id(),
            name=spec.name,
            url=spec.url,
            interval=int(spec.interval),
            created_at=ts,
            updated_at=ts,
        )

    def with_spec(self, spec: ServiceSpec, *, now: datetime | None = None) -> "ServiceRecord":
        return replace(
            self,
            name=spec.name,
            url=spec.url,
            interval=int(spec.interval),
            updated_at=now or utc_now(),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "url": self.url,
            "interval": self.interval,
            "status": self.status.value,
            "lastChecked": _format_ts(self.last_checked),
            "createdAt": _format_ts(self.created_at),
            "updatedAt": _format_ts(self.updated_at),
            "wentOfflineAt": _format_ts(self.went_offline_at),
            "lastReminderAt": _format_ts(self.last_reminder_at),
            "consecutiveFailures": self.consecutive_failures,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ServiceRecord":
        if not isinstance(data, dict):
            raise ValueError(f"Service record must be a mapping, got {type(data).__name__}")
        service_id = str(data.get("id") or "").strip()
        if not service_id:
            raise ValueError("Service record is missing an id")
        try:
            status = ServiceStatus(str(data.get("status") or ServiceStatus.UNKNOWN.value))
        except ValueError as exc:
            raise ValueError(f"Invalid status for service {service_id}: {data.get('status')!r}") from exc
        return cls(
            id=service_id,
            name=str(data.get("name") or ""),
            url=str(data.get("url") or ""),
            interval=int(data.get("interval") or 0),
            status=status,
            last_checked=_parse_ts(data.get("lastChecked"), field_name="lastChecked"),
            consecutive_failures=max(0, int(data.get("consecutiveFailures") or 0)),
            went_offline_at=_parse_ts(data.get("wentOfflineAt"), field_name="wentOfflineAt"),
            last_reminder_at=_parse_ts(data.get("lastReminderAt"), field_name="lastReminderAt"),
            created_at=_parse_ts(data.get("createdAt"), field_name="createdAt"),
            updated_at=_parse_ts(data.get("updatedAt"), field_name="updatedAt"),
        )


@dataclass(frozen=True)
class ServiceStatusView:
    service_id: str
    status: ServiceStatus
    last_checked: datetime | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "serviceId": self.service_id,
            "status": self.status.value,
            "lastChecked": _format_ts(self.last_checked),
        }


@dataclass(frozen=True)
class CheckOutcome:
    """Result of a single probe; consumed by the state machine and discarded."""

    service_id: str
    classification: CheckClassification
    latency_ms: float
    timestamp: datetime
    error: str | None = None
    status_code: int | None = None

    @property
    def ok(self) -> bool:
        return self.classification is CheckClassification.ONLINE


@dataclass(frozen=True)
class NotificationConfig:
    user_key: str = ""
    app_token: str = ""
    enabled: bool = False

    @property
    def deliverable(self) -> bool:
        return bool(self.enabled and self.user_key and self.app_token)

    def to_dict(self) -> dict[str, Any]:
        return {"userKey": self.user_key, "appToken": self.app_token, "enabled": self.enabled}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "NotificationConfig":
        if not isinstance(data, dict):
            raise ValueError(f"Notification config must be a mapping, got {type(data).__name__}")
        return cls(
            user_key=str(data.get("userKey") or ""),
            app_token=str(data.get("appToken") or ""),
            enabled=bool(data.get("enabled")),
        )
