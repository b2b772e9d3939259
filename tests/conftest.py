from __future__ import annotations

from pathlib import Path
from typing import Mapping

import pytest

from gjallarhorn.errors import PersistenceError
from gjallarhorn.models import ServiceRecord
from gjallarhorn.storage import JsonStore


class FlakyStore(JsonStore):
    """JsonStore whose service snapshot writes can be switched to fail."""

    def __init__(self, data_dir: Path) -> None:
        super().__init__(data_dir)
        self.fail_saves = False
        self.save_calls = 0

    def save_all(self, records: Mapping[str, ServiceRecord]) -> None:
        self.save_calls += 1
        if self.fail_saves:
            raise PersistenceError("simulated write failure: disk full")
        super().save_all(records)


class RecordingSink:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str, str]] = []

    async def notify_outage(self, record: ServiceRecord, error_text: str) -> None:
        self.calls.append(("outage", record.id, error_text))

    async def notify_reminder(self, record: ServiceRecord, downtime_text: str) -> None:
        self.calls.append(("reminder", record.id, downtime_text))

    async def notify_recovery(self, record: ServiceRecord, downtime_text: str) -> None:
        self.calls.append(("recovery", record.id, downtime_text))

    def kinds(self) -> list[str]:
        return [kind for kind, _, _ in self.calls]


@pytest.fixture()
def flaky_store(tmp_path: Path) -> FlakyStore:
    return FlakyStore(tmp_path / "data")


@pytest.fixture()
def recording_sink() -> RecordingSink:
    return RecordingSink()
