"""
Tests for the broadcast loop: per-source isolation and tick overlap.
"""

import asyncio

from nocmon.broadcaster import BroadcastLoop, zone_payload
from nocmon.datasource import FetchError
from nocmon.models import ElectricalData, FireSmokeData, NocSensorData, UpsSensorData


class RecordingRegistry:
    def __init__(self):
        self.published = []

    def publish(self, event, data):
        self.published.append((event, data))


class FakeDataSource:
    def __init__(self, rows, failing=(), delay=0.0):
        self.rows = rows
        self.failing = set(failing)
        self.delay = delay
        self.calls = 0

    async def latest(self, model):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if model in self.failing:
            raise FetchError(f"Failed to fetch latest {model.__tablename__}")
        return self.rows.get(model)

    async def access_logs(self):
        return self.rows.get("access_logs", [])


ROW = {"id": 1, "suhu": 22.5, "kelembapan": 48.0, "waktu": "2026-10-18 10:00:00"}


def test_zone_payload():
    assert zone_payload(ROW) == {"suhu": 22.5, "kelembapan": 48.0, "waktu": "2026-10-18 10:00:00"}


def test_tick_publishes_every_source():
    rows = {
        NocSensorData: ROW,
        UpsSensorData: ROW,
        ElectricalData: {"phase_r": 220.0},
        FireSmokeData: {"api_value": 80, "asap_value": 1},
        "access_logs": [{"username": "budi"}],
    }
    registry = RecordingRegistry()
    loop = BroadcastLoop(FakeDataSource(rows), registry, interval=60)

    emitted = asyncio.run(loop.tick())

    events = [event for event, _ in registry.published]
    # datacenter table is empty, so it contributes nothing
    assert events == [
        "noc_temperature", "noc_humidity",
        "ups_temperature", "ups_humidity",
        "electrical_data", "fire_smoke_data", "access_logs",
    ]
    assert emitted == 7


def test_failing_source_does_not_block_others():
    rows = {NocSensorData: ROW, ElectricalData: {"phase_r": 220.0}}
    registry = RecordingRegistry()
    loop = BroadcastLoop(FakeDataSource(rows, failing=[ElectricalData]), registry, interval=60)

    asyncio.run(loop.tick())

    events = [event for event, _ in registry.published]
    assert "electrical_data" not in events
    assert events[:2] == ["noc_temperature", "noc_humidity"]


def test_malformed_row_is_skipped():
    rows = {
        NocSensorData: {"id": 1, "suhu": None, "kelembapan": 40.0, "waktu": "x"},
        UpsSensorData: ROW,
    }
    registry = RecordingRegistry()
    loop = BroadcastLoop(FakeDataSource(rows), registry, interval=60)

    asyncio.run(loop.tick())

    assert [event for event, _ in registry.published] == ["ups_temperature", "ups_humidity"]


def test_slow_tick_causes_skip_not_overlap():
    async def scenario():
        ds = FakeDataSource({NocSensorData: ROW}, delay=0.05)
        loop = BroadcastLoop(ds, RecordingRegistry(), interval=0.02)
        loop.start()
        await asyncio.sleep(0.09)
        await loop.stop()
        return loop, ds

    loop, ds = asyncio.run(scenario())
    assert loop.skipped_ticks >= 1
    assert loop.running is False
    assert ds.calls > 0
