from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import timedelta

import pytest

from gjallarhorn.models import CheckClassification, CheckOutcome, ServiceRecord, ServiceSpec, ServiceStatus, utc_now
from gjallarhorn.registry import ServiceRegistry
from gjallarhorn.scheduler import MonitorScheduler


class FakeProber:
    """Returns scripted outcomes and tracks how many probes overlap."""

    def __init__(self, healthy: bool = True, delay: float = 0.0) -> None:
        self.healthy = healthy
        self.delay = delay
        self.in_flight = 0
        self.max_in_flight = 0
        self.probed: list[str] = []

    async def probe(self, record: ServiceRecord) -> CheckOutcome:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            self.probed.append(record.id)
            return CheckOutcome(
                service_id=record.id,
                classification=CheckClassification.ONLINE if self.healthy else CheckClassification.FAILED,
                latency_ms=1.0,
                timestamp=utc_now(),
                error=None if self.healthy else "HTTP 503",
                status_code=200 if self.healthy else 503,
            )
        finally:
            self.in_flight -= 1


class ExplodingProber(FakeProber):
    async def probe(self, record: ServiceRecord) -> CheckOutcome:
        if record.name == "explodes":
            raise RuntimeError("probe bug")
        return await super().probe(record)


def _spec(i: int) -> ServiceSpec:
    return ServiceSpec(name=f"svc-{i}", url=f"https://svc{i}.example.org", interval=60)


@pytest.mark.asyncio
async def test_check_cycle_bounds_concurrency(flaky_store, recording_sink) -> None:
    registry = ServiceRegistry(flaky_store)
    await registry.bulk_create([_spec(i) for i in range(25)])
    prober = FakeProber(delay=0.02)
    scheduler = MonitorScheduler(registry, prober, recording_sink, max_concurrent_checks=10)

    assert await scheduler.run_check_cycle() == 25
    assert len(prober.probed) == 25
    assert 1 < prober.max_in_flight <= 10
    assert all(r.status is ServiceStatus.ONLINE for r in await registry.list())
    assert recording_sink.calls == []


@pytest.mark.asyncio
async def test_empty_registry_cycle_is_noop(flaky_store, recording_sink) -> None:
    registry = ServiceRegistry(flaky_store)
    scheduler = MonitorScheduler(registry, FakeProber(), recording_sink)
    assert await scheduler.run_check_cycle() == 0


@pytest.mark.asyncio
async def test_three_failed_cycles_send_one_outage(flaky_store, recording_sink) -> None:
    registry = ServiceRegistry(flaky_store)
    record = await registry.create(_spec(1))
    prober = FakeProber(healthy=False)
    scheduler = MonitorScheduler(registry, prober, recording_sink)

    for _ in range(2):
        await scheduler.run_check_cycle()
    assert recording_sink.calls == []
    assert (await registry.get(record.id)).status is ServiceStatus.ONLINE

    for _ in range(3):
        await scheduler.run_check_cycle()
    assert recording_sink.calls == [("outage", record.id, "HTTP 503")]
    current = await registry.get(record.id)
    assert current.status is ServiceStatus.OFFLINE
    assert current.consecutive_failures == 5

    prober.healthy = True
    await scheduler.run_check_cycle()
    assert recording_sink.kinds() == ["outage", "recovery"]
    assert recording_sink.calls[-1] == ("recovery", record.id, "0 minute(s)")
    recovered = await registry.get(record.id)
    assert recovered.status is ServiceStatus.ONLINE
    assert recovered.went_offline_at is None


@pytest.mark.asyncio
async def test_crashing_check_does_not_stop_the_cycle(flaky_store, recording_sink) -> None:
    registry = ServiceRegistry(flaky_store)
    await registry.create(ServiceSpec(name="explodes", url="https://boom.example.org", interval=60))
    healthy = await registry.create(_spec(2))
    prober = ExplodingProber()
    scheduler = MonitorScheduler(registry, prober, recording_sink)

    assert await scheduler.run_check_cycle() == 2
    assert prober.probed == [healthy.id]
    assert (await registry.get(healthy.id)).status is ServiceStatus.ONLINE


@pytest.mark.asyncio
async def test_reminder_sweep_only_for_long_outages(flaky_store, recording_sink) -> None:
    now = utc_now()
    base = [ServiceRecord.create(_spec(i), now=now - timedelta(days=1)) for i in range(3)]
    long_outage = replace(
        base[0],
        status=ServiceStatus.OFFLINE,
        consecutive_failures=90,
        went_offline_at=now - timedelta(minutes=90),
        last_reminder_at=now - timedelta(minutes=70),
    )
    short_outage = replace(
        base[1],
        status=ServiceStatus.OFFLINE,
        consecutive_failures=30,
        went_offline_at=now - timedelta(minutes=30),
        last_reminder_at=now - timedelta(minutes=30),
    )
    online = replace(base[2], status=ServiceStatus.ONLINE, last_checked=now)
    flaky_store.save_all({r.id: r for r in (long_outage, short_outage, online)})

    registry = ServiceRegistry(flaky_store)
    await registry.load()
    scheduler = MonitorScheduler(registry, FakeProber(), recording_sink)

    assert await scheduler.run_reminder_cycle(now) == 1
    assert recording_sink.calls == [("reminder", long_outage.id, "1 hour(s)")]
    assert (await registry.get(long_outage.id)).last_reminder_at == now
    assert (await registry.get(short_outage.id)).last_reminder_at == short_outage.last_reminder_at

    # Stamped reminders survive a restart.
    reloaded = ServiceRegistry(flaky_store)
    await reloaded.load()
    assert (await reloaded.get(long_outage.id)).last_reminder_at == now

    assert await scheduler.run_reminder_cycle(now + timedelta(minutes=10)) == 0
    assert len(recording_sink.calls) == 1


@pytest.mark.asyncio
async def test_start_and_stop_register_jobs(flaky_store, recording_sink) -> None:
    registry = ServiceRegistry(flaky_store)
    scheduler = MonitorScheduler(
        registry, FakeProber(), recording_sink, check_interval_seconds=60, reminder_interval_seconds=3600
    )

    await scheduler.start()
    try:
        status = scheduler.get_status()
        assert status["running"] is True
        assert set(status["next_runs"]) == {"health_checks", "reminders"}
        assert status["check_interval_seconds"] == 60
    finally:
        await scheduler.stop()
    assert scheduler.get_status()["running"] is False
