from __future__ import annotations

import json
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from gjallarhorn.errors import PersistenceError
from gjallarhorn.models import NotificationConfig, ServiceRecord, ServiceSpec, ServiceStatus
from gjallarhorn.storage import JsonStore


def _records() -> dict[str, ServiceRecord]:
    now = datetime(2025, 3, 4, 5, 6, 7, tzinfo=timezone.utc)
    online = replace(
        ServiceRecord.create(ServiceSpec(name="web", url="https://example.org", interval=60), now=now),
        status=ServiceStatus.ONLINE,
        last_checked=now,
    )
    offline = replace(
        ServiceRecord.create(ServiceSpec(name="plex", url="http://plex.local:32400", interval=300), now=now),
        status=ServiceStatus.OFFLINE,
        last_checked=now,
        consecutive_failures=4,
        went_offline_at=now - timedelta(minutes=10),
        last_reminder_at=now - timedelta(minutes=10),
    )
    fresh = ServiceRecord.create(ServiceSpec(name="new", url="https://new.example.org", interval=30), now=now)
    return {r.id: r for r in (online, offline, fresh)}


def test_missing_file_loads_empty(tmp_path: Path) -> None:
    store = JsonStore(tmp_path / "nope")
    assert store.load_all() == {}
    assert store.load_config() is None


def test_round_trip_preserves_records(tmp_path: Path) -> None:
    store = JsonStore(tmp_path)
    records = _records()
    store.save_all(records)

    loaded = JsonStore(tmp_path).load_all()
    assert loaded == records
    fresh = next(r for r in loaded.values() if r.name == "new")
    assert fresh.status is ServiceStatus.UNKNOWN
    assert fresh.last_checked is None


def test_round_trip_empty_map(tmp_path: Path) -> None:
    store = JsonStore(tmp_path)
    store.save_all({})
    assert json.loads(store.services_path.read_text(encoding="utf-8")) == {}
    assert store.load_all() == {}


def test_save_uses_camel_case_and_leaves_no_temp_file(tmp_path: Path) -> None:
    store = JsonStore(tmp_path)
    records = _records()
    store.save_all(records)

    data = json.loads(store.services_path.read_text(encoding="utf-8"))
    assert set(data) == set(records)
    sample = next(iter(data.values()))
    for key in ("id", "name", "url", "interval", "status", "lastChecked", "createdAt", "updatedAt"):
        assert key in sample
    assert list(tmp_path.glob("*.tmp")) == []


def test_save_replaces_previous_snapshot(tmp_path: Path) -> None:
    store = JsonStore(tmp_path)
    records = _records()
    store.save_all(records)
    keep = next(iter(records))
    store.save_all({keep: records[keep]})
    assert list(store.load_all()) == [keep]


def test_malformed_json_raises(tmp_path: Path) -> None:
    store = JsonStore(tmp_path)
    store.services_path.write_text("{not json", encoding="utf-8")
    with pytest.raises(PersistenceError):
        store.load_all()


def test_non_object_snapshot_raises(tmp_path: Path) -> None:
    store = JsonStore(tmp_path)
    store.services_path.write_text("[1, 2, 3]", encoding="utf-8")
    with pytest.raises(PersistenceError):
        store.load_all()


def test_bad_record_raises(tmp_path: Path) -> None:
    store = JsonStore(tmp_path)
    store.services_path.write_text(json.dumps({"x": {"id": "x", "status": "sideways"}}), encoding="utf-8")
    with pytest.raises(PersistenceError):
        store.load_all()


def test_unwritable_directory_raises(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("file, not a directory", encoding="utf-8")
    store = JsonStore(blocker / "data")
    with pytest.raises(PersistenceError):
        store.save_all(_records())


def test_notification_config_round_trip(tmp_path: Path) -> None:
    store = JsonStore(tmp_path)
    config = NotificationConfig(user_key="u-123", app_token="a-456", enabled=True)
    store.save_config(config)

    assert JsonStore(tmp_path).load_config() == config
    assert json.loads(store.config_path.read_text(encoding="utf-8")) == {
        "appToken": "a-456",
        "enabled": True,
        "userKey": "u-123",
    }


def test_malformed_notification_config_raises(tmp_path: Path) -> None:
    store = JsonStore(tmp_path)
    store.config_path.write_text('"just a string"', encoding="utf-8")
    with pytest.raises(PersistenceError):
        store.load_config()
