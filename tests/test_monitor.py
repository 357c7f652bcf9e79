"""Tests for end-to-end reading processing."""

import asyncio
import json

import pytest

from tempmon.lib.alerts import NotificationRequest
from tempmon.lib.config import AlertKind
from tempmon.lib.db import close_db, init_db
from tempmon.lib.monitor import Dispatch, TemperatureMonitor
from tempmon.lib.store import SensorStateStore
from tests.helpers import make_reading, make_settings


class Capture:
    """Dispatcher double that records what it is given."""

    def __init__(self, fail: bool = False) -> None:
        self.sent: list[NotificationRequest] = []
        self._fail = fail

    async def __call__(self, request: NotificationRequest) -> None:
        self.sent.append(request)
        if self._fail:
            raise RuntimeError("transport down")


async def make_monitor(
    dispatch: Dispatch, settings=None
) -> tuple[TemperatureMonitor, SensorStateStore]:
    store = SensorStateStore(settings)
    await store.load()
    return TemperatureMonitor(store, dispatch, settings), store


class TestProcess:
    """Tests for TemperatureMonitor.process."""

    @pytest.mark.asyncio
    async def test_reference_scenario(self):
        capture = Capture()
        monitor, store = await make_monitor(capture)

        for minutes, value in [
            (0, 35),
            (5, 25),
            (35, 24),
            (50, 23),
            (95, 22),
            (100, 36),
        ]:
            await monitor.process(make_reading(value, minutes, name="Garage"))
        await monitor.drain()

        assert [(r.kind, r.message) for r in capture.sent] == [
            (
                AlertKind.INITIAL,
                "Temperature Alert: Garage is too cold at 24°F "
                "(minimum: 32°F)",
            ),
            (
                AlertKind.REPEAT,
                "Temperature Alert: Garage is still too cold at 22°F "
                "(minimum: 32°F)",
            ),
            (
                AlertKind.RESTORE,
                "Temperature Restored: Garage has returned to normal range "
                "at 36°F",
            ),
        ]
        status = store.get("A")
        assert status is not None
        assert status.in_range is True

    @pytest.mark.asyncio
    async def test_first_reading_never_notifies(self):
        capture = Capture()
        monitor, store = await make_monitor(
            capture, make_settings(initial_delay_min=0)
        )

        result = await monitor.process(make_reading(10, 0))

        assert result is None
        assert capture.sent == []
        assert store.get("A") is not None

    @pytest.mark.asyncio
    async def test_first_reading_out_of_range_starts_delay(self):
        capture = Capture()
        monitor, _ = await make_monitor(capture)

        await monitor.process(make_reading(45, 0))
        await monitor.process(make_reading(45, 29))
        await monitor.drain()
        assert capture.sent == []

        await monitor.process(make_reading(45, 30))
        await monitor.drain()
        assert [r.kind for r in capture.sent] == [AlertKind.INITIAL]

    @pytest.mark.asyncio
    async def test_status_persisted_between_monitors(self):
        capture = Capture()
        monitor, _ = await make_monitor(capture)
        await monitor.process(make_reading(35, 0))
        await monitor.process(make_reading(25, 5))

        # Restart: a new store and monitor pick up the excursion
        restarted, _ = await make_monitor(capture)
        await restarted.process(make_reading(24, 35))
        await restarted.drain()

        assert [r.kind for r in capture.sent] == [AlertKind.INITIAL]

    @pytest.mark.asyncio
    async def test_identity_forms_share_one_status(self, raw_rows):
        capture = Capture()
        monitor, _ = await make_monitor(capture)

        await monitor.process(make_reading(35, 0, sensor_id=12))
        await monitor.process(make_reading(25, 5, sensor_id="12"))
        await monitor.process(make_reading(24, 35, sensor_id=12.0))
        await monitor.drain()

        assert [r.kind for r in capture.sent] == [AlertKind.INITIAL]
        assert [row[0] for row in raw_rows()] == ["12"]

    @pytest.mark.asyncio
    async def test_legacy_record_migrated_without_spurious_restore(
        self, insert_raw_row, raw_rows
    ):
        insert_raw_row(
            "A",
            json.dumps(
                {"lastTemp": 20, "lastStatus": "cold", "lastNotification": 0}
            ),
        )
        capture = Capture()
        monitor, _ = await make_monitor(capture)

        await monitor.process(make_reading(36, 0))
        await monitor.drain()

        assert capture.sent == []
        stored = json.loads(raw_rows()[0][1])
        assert "lastStatus" not in stored
        assert stored["last_value"] == "36"
        assert stored["in_range"] is True

    @pytest.mark.asyncio
    async def test_legacy_out_of_range_restarts_delay(self, insert_raw_row):
        insert_raw_row(
            "A", json.dumps({"lastTemp": 20, "lastStatus": "cold"})
        )
        capture = Capture()
        monitor, _ = await make_monitor(capture)

        await monitor.process(make_reading(20, 0))
        await monitor.process(make_reading(20, 29))
        await monitor.drain()
        assert capture.sent == []

        await monitor.process(make_reading(20, 30))
        await monitor.drain()
        assert [r.kind for r in capture.sent] == [AlertKind.INITIAL]

    @pytest.mark.asyncio
    async def test_dispatch_failure_does_not_propagate(self, caplog):
        capture = Capture(fail=True)
        monitor, store = await make_monitor(capture)
        await monitor.process(make_reading(35, 0))
        await monitor.process(make_reading(25, 5))

        result = await monitor.process(make_reading(24, 35))
        await monitor.drain()

        assert result is not None
        assert len(capture.sent) == 1
        status = store.get("A")
        assert status is not None
        assert status.notified is True
        assert "Failed to dispatch" in caplog.text

    @pytest.mark.asyncio
    async def test_sensors_are_independent(self):
        capture = Capture()
        monitor, _ = await make_monitor(capture)

        await monitor.process(make_reading(35, 0, sensor_id="A"))
        await monitor.process(make_reading(35, 0, sensor_id="B"))
        await monitor.process(make_reading(25, 5, sensor_id="A"))
        await monitor.process(make_reading(45, 10, sensor_id="B"))
        await monitor.process(make_reading(25, 35, sensor_id="A"))
        await monitor.process(make_reading(45, 35, sensor_id="B"))
        await monitor.process(make_reading(45, 40, sensor_id="B"))
        await monitor.drain()

        assert [(r.sensor_id, r.kind) for r in capture.sent] == [
            ("A", AlertKind.INITIAL),
            ("B", AlertKind.INITIAL),
        ]

    @pytest.mark.asyncio
    async def test_concurrent_readings_for_same_sensor_are_serialized(self):
        capture = Capture()
        monitor, _ = await make_monitor(
            capture, make_settings(initial_delay_min=0)
        )
        await monitor.process(make_reading(35, 0))
        await monitor.process(make_reading(25, 1))

        # Without serialization both would see notified=False and alert
        results = await asyncio.gather(
            monitor.process(make_reading(24, 2)),
            monitor.process(make_reading(24, 2)),
        )
        await monitor.drain()

        assert [r.kind for r in results if r] == [AlertKind.INITIAL]
        assert [r.kind for r in capture.sent] == [AlertKind.INITIAL]

    @pytest.mark.asyncio
    async def test_slow_dispatch_does_not_hold_up_readings(self):
        release = asyncio.Event()
        sent: list[NotificationRequest] = []

        async def slow_dispatch(request: NotificationRequest) -> None:
            await release.wait()
            sent.append(request)

        monitor, store = await make_monitor(
            slow_dispatch, make_settings(initial_delay_min=0)
        )
        await monitor.process(make_reading(35, 0))
        await monitor.process(make_reading(25, 1))
        notification = await monitor.process(make_reading(24, 2))

        # The alert is still in flight, the next reading goes through anyway
        assert notification is not None
        assert monitor.pending == 1
        await asyncio.wait_for(monitor.process(make_reading(36, 3)), 1)
        status = store.get("A")
        assert status is not None
        assert status.in_range is True

        release.set()
        await monitor.drain()
        assert monitor.pending == 0
        assert [r.kind for r in sent] == [
            AlertKind.INITIAL,
            AlertKind.RESTORE,
        ]

    @pytest.mark.asyncio
    async def test_concurrent_sensors_on_shared_connection(self, raw_rows):
        await init_db()
        try:
            capture = Capture()
            monitor, _ = await make_monitor(
                capture, make_settings(initial_delay_min=0)
            )
            sensors = [f"S{n}" for n in range(6)]

            for minutes, value in [(0, 35), (1, 25), (2, 24)]:
                await asyncio.gather(
                    *(
                        monitor.process(
                            make_reading(value, minutes, sensor_id=sensor)
                        )
                        for sensor in sensors
                    )
                )
            await monitor.drain()
        finally:
            await close_db()

        assert sorted(r.sensor_id for r in capture.sent) == sensors
        rows = {key: json.loads(record) for key, record in raw_rows()}
        assert sorted(rows) == sensors
        assert all(row["notified"] is True for row in rows.values())
