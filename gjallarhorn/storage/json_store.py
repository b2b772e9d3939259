"""Whole-snapshot JSON persistence for service records and notification config."""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Any, Mapping

import structlog

from ..errors import PersistenceError
from ..models import NotificationConfig, ServiceRecord


logger = structlog.get_logger(__name__)

SERVICES_FILENAME = "services.json"
CONFIG_FILENAME = "config.json"


def _write_atomic(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f"{path.name}.tmp")
    tmp.write_text(json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True), encoding="utf-8")
    tmp.replace(path)


def _read_json(path: Path) -> Any:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise PersistenceError(f"Failed to read {path}: {exc}") from exc
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise PersistenceError(f"Malformed JSON in {path}: {exc}") from exc


class JsonStore:
    """
    Durable snapshot of the registry.

    Every save serializes the full mapping and replaces the file in one rename,
    so a reader never sees a half-written snapshot.
    """

    def __init__(self, data_dir: str | Path):
        self.data_dir = Path(data_dir)
        self.services_path = self.data_dir / SERVICES_FILENAME
        self.config_path = self.data_dir / CONFIG_FILENAME
        self._lock = threading.Lock()

    def load_all(self) -> dict[str, ServiceRecord]:
        with self._lock:
            if not self.services_path.exists():
                return {}
            data = _read_json(self.services_path)

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise PersistenceError(
                f"Services file must contain a JSON object, got {type(data).__name__}: {self.services_path}"
            )

        records: dict[str, ServiceRecord] = {}
        for key, item in data.items():
            try:
                record = ServiceRecord.from_dict(item)
            except (TypeError, ValueError) as exc:
                raise PersistenceError(f"Malformed service record {key!r}: {exc}") from exc
            records[record.id] = record
        return records

    def save_all(self, records: Mapping[str, ServiceRecord]) -> None:
        payload = {service_id: record.to_dict() for service_id, record in records.items()}
        with self._lock:
            try:
                _write_atomic(self.services_path, payload)
            except OSError as exc:
                raise PersistenceError(f"Failed to write services file {self.services_path}: {exc}") from exc
        logger.debug("Saved services snapshot", path=str(self.services_path), count=len(payload))

    def load_config(self) -> NotificationConfig | None:
        with self._lock:
            if not self.config_path.exists():
                return None
            data = _read_json(self.config_path)
        try:
            return NotificationConfig.from_dict(data)
        except ValueError as exc:
            raise PersistenceError(f"Malformed notification config {self.config_path}: {exc}") from exc

    def save_config(self, config: NotificationConfig) -> None:
        with self._lock:
            try:
                _write_atomic(self.config_path, config.to_dict())
            except OSError as exc:
                raise PersistenceError(f"Failed to write config file {self.config_path}: {exc}") from exc
