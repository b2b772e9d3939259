"""Alert sink interface and the lock-guarded notification settings."""

from __future__ import annotations

import threading
from typing import Protocol

import structlog

from ..errors import PersistenceError
from ..models import NotificationConfig, ServiceRecord
from ..storage import JsonStore


logger = structlog.get_logger(__name__)


class AlertSink(Protocol):
    """Receives the three alert kinds. Implementations must never raise."""

    async def notify_outage(self, record: ServiceRecord, error_text: str) -> None: ...

    async def notify_reminder(self, record: ServiceRecord, downtime_text: str) -> None: ...

    async def notify_recovery(self, record: ServiceRecord, downtime_text: str) -> None: ...


class NotificationSettings:
    """Process-wide notification config, replaced wholesale and persisted."""

    def __init__(self, store: JsonStore, initial: NotificationConfig | None = None):
        self.store = store
        self._config = initial or NotificationConfig()
        self._lock = threading.Lock()

    def load(self, fallback: NotificationConfig) -> NotificationConfig:
        """Use the stored config if there is one, otherwise the fallback (usually from env)."""
        try:
            stored = self.store.load_config()
        except PersistenceError as exc:
            logger.warning("Failed to load notification config, using defaults", error=str(exc))
            stored = None
        config = stored if stored is not None else fallback
        with self._lock:
            self._config = config
        logger.info("Notification config loaded", source="storage" if stored is not None else "environment",
                    enabled=config.enabled)
        return config

    def get(self) -> NotificationConfig:
        with self._lock:
            return self._config

    def replace(self, config: NotificationConfig) -> None:
        with self._lock:
            self.store.save_config(config)
            self._config = config
        logger.info("Notification config updated", enabled=config.enabled)
