"""Pushover delivery for outage, reminder and recovery alerts."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

import httpx
import structlog

from ..errors import AlertDeliveryError
from ..models import ServiceRecord
from .base import NotificationSettings


logger = structlog.get_logger(__name__)

PUSHOVER_API_URL = "https://api.pushover.net/1/messages.json"
PUSHOVER_TIMEOUT_SECONDS = 10.0


@dataclass(frozen=True)
class PushoverMessage:
    title: str
    message: str
    sound: str
    priority: int


def _format_checked(value: datetime | None) -> str:
    return value.isoformat() if value is not None else "never"


def build_outage_message(record: ServiceRecord, error_text: str) -> PushoverMessage:
    message = (
        f"Service {record.name} ({record.url}) is currently offline.\n"
        f"Last checked: {_format_checked(record.last_checked)}"
    )
    if error_text:
        message += f"\nError: {error_text}"
    return PushoverMessage(title=f"🚨 Service Down: {record.name}", message=message, sound="siren", priority=1)


def build_reminder_message(record: ServiceRecord, downtime_text: str) -> PushoverMessage:
    message = (
        f"Service {record.name} ({record.url}) has been offline for {downtime_text}.\n"
        f"Last checked: {_format_checked(record.last_checked)}\n\n"
        "This is a reminder notification."
    )
    return PushoverMessage(
        title=f"⏰ Service Still Down: {record.name}", message=message, sound="pushover", priority=0
    )


def build_recovery_message(record: ServiceRecord, downtime_text: str) -> PushoverMessage:
    message = (
        f"Service {record.name} ({record.url}) is back online!\n"
        f"Last checked: {_format_checked(record.last_checked)}"
    )
    if downtime_text:
        message += f"\n\nTotal downtime: {downtime_text}"
    return PushoverMessage(title=f"✅ Service Recovered: {record.name}", message=message, sound="magic", priority=0)


class PushoverNotifier:
    """Alert sink that posts to the Pushover API and swallows every delivery error."""

    def __init__(self, client: httpx.AsyncClient, settings: NotificationSettings, *, api_url: str = PUSHOVER_API_URL):
        self.client = client
        self.settings = settings
        self.api_url = api_url

    async def notify_outage(self, record: ServiceRecord, error_text: str) -> None:
        await self._send("outage", record, build_outage_message(record, error_text))

    async def notify_reminder(self, record: ServiceRecord, downtime_text: str) -> None:
        await self._send("reminder", record, build_reminder_message(record, downtime_text))

    async def notify_recovery(self, record: ServiceRecord, downtime_text: str) -> None:
        await self._send("recovery", record, build_recovery_message(record, downtime_text))

    async def _send(self, kind: str, record: ServiceRecord, msg: PushoverMessage) -> bool:
        config = self.settings.get()
        if not config.deliverable:
            logger.debug("Notifications disabled; skipping alert", kind=kind, service=record.name)
            return False

        payload = {
            "token": config.app_token,
            "user": config.user_key,
            "title": msg.title,
            "message": msg.message,
            "sound": msg.sound,
            "priority": str(msg.priority),
        }
        try:
            resp = await self.client.post(self.api_url, json=payload, timeout=PUSHOVER_TIMEOUT_SECONDS)
            if resp.status_code != 200:
                raise AlertDeliveryError(f"Pushover API returned HTTP {resp.status_code}")
        except AlertDeliveryError as e:
            logger.error("Pushover API error", kind=kind, service=record.name, error=str(e))
            return False
        except Exception as e:
            err = f"{type(e).__name__}: {e}".replace(config.app_token, "<redacted>")
            logger.error("Error sending notification", kind=kind, service=record.name, error=err)
            return False

        logger.info("Notification sent", kind=kind, service=record.name)
        return True
