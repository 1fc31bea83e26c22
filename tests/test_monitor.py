"""
Tests for the Monitor facade.
"""

import asyncio

import pytest

from svcwatch.config.constants import ConfigErrorKind, Protocol, SchedulerState
from svcwatch.exceptions.config import (
    AlreadyRunningError,
    DuplicateNameError,
    InvalidIntervalError,
    InvalidOptionError,
)
from svcwatch.monitoring.monitor import Monitor

from tests.fakes import ScriptedProbe, fake_probes


class TestLifecycle:

    async def test_start_and_stop(self, monitor, probe):
        monitor.register("db", Protocol.TCP, "db:5432")
        await monitor.start(interval_seconds=60)
        assert monitor.state is SchedulerState.RUNNING
        assert monitor.is_running

        await asyncio.sleep(0.05)
        assert probe.calls == ["db:5432"]

        await monitor.stop()
        assert monitor.state is SchedulerState.IDLE

    async def test_stop_twice(self, monitor):
        await monitor.start(interval_seconds=60)
        await monitor.stop()
        await monitor.stop()
        assert monitor.state is SchedulerState.IDLE

    async def test_stop_without_start(self, monitor):
        await monitor.stop()
        assert monitor.state is SchedulerState.IDLE

    async def test_start_twice_fails(self, monitor):
        await monitor.start(interval_seconds=60)
        with pytest.raises(AlreadyRunningError):
            await monitor.start(interval_seconds=60)

    @pytest.mark.parametrize("interval", [0, -5])
    async def test_invalid_interval(self, monitor, interval):
        with pytest.raises(InvalidIntervalError):
            await monitor.start(interval_seconds=interval)
        assert monitor.state is SchedulerState.IDLE

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"per_check_timeout_ms": 0},
            {"history_size": 0},
            {"pool_size": -1},
            {"pool_size": 2.5},
        ],
    )
    async def test_invalid_options(self, monitor, kwargs):
        with pytest.raises(InvalidOptionError) as exc_info:
            await monitor.start(interval_seconds=60, **kwargs)
        assert exc_info.value.kind is ConfigErrorKind.INVALID_OPTION
        assert monitor.state is SchedulerState.IDLE

    async def test_start_options_are_applied(self, monitor, probe):
        monitor.register("db", Protocol.TCP, "db:1")
        await monitor.start(interval_seconds=60, per_check_timeout_ms=250, history_size=4, pool_size=2)
        await asyncio.sleep(0.05)

        stats = monitor.get_stats()
        assert probe.timeouts == [0.25]
        assert stats["pool"]["pool_size"] == 2
        assert monitor.get_status("db").history_capacity == 4

    async def test_context_manager_stops(self, monitor_settings):
        async with Monitor(monitor_settings, probes=fake_probes(ScriptedProbe())) as monitor:
            await monitor.start(interval_seconds=60)
        assert monitor.state is SchedulerState.IDLE

    async def test_no_writes_after_stop(self, monitor_settings):
        probe = ScriptedProbe(delay=5)
        monitor_settings.stop_grace_seconds = 0.05
        monitor = Monitor(monitor_settings, probes=fake_probes(probe))
        monitor.register("slow", Protocol.TCP, "slow:1")

        await monitor.start(interval_seconds=60)
        await asyncio.sleep(0.02)
        await monitor.stop()
        await asyncio.sleep(0.05)

        assert monitor.get_status("slow").history == ()

    async def test_interrupted_stop_leaves_one_round_in_flight(self, monitor_settings):
        probe = ScriptedProbe(delay=0.4)
        monitor_settings.stop_grace_seconds = 5
        monitor = Monitor(monitor_settings, probes=fake_probes(probe))
        monitor.register("db", Protocol.TCP, "db:5432")

        await monitor.start(interval_seconds=60)
        await asyncio.sleep(0.02)
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(monitor.stop(), timeout=0.05)

        assert monitor.state is SchedulerState.IDLE
        assert monitor.get_stats()["pool"]["closed"] is True

        try:
            await monitor.start(interval_seconds=60)
            await asyncio.sleep(0.6)
        finally:
            await monitor.stop()

        assert probe.max_in_flight == 1
        assert len(monitor.get_status("db").history) == 1
        assert monitor.get_stats()["scheduler"]["rounds_completed"] == 1


class TestRounds:

    async def test_history_eviction(self, monitor_settings):
        monitor_settings.history_size = 3
        probe = ScriptedProbe({"svc:1": [True, False, True, False]})
        monitor = Monitor(monitor_settings, probes=fake_probes(probe))
        monitor.register("svc", Protocol.TCP, "svc:1")

        for _ in range(4):
            await monitor.run_round()

        history = monitor.get_status("svc").history
        assert len(history) == 3
        assert [record.up for record in history] == [False, True, False]
        assert history[0].timestamp >= history[1].timestamp >= history[2].timestamp

    async def test_transition_counting(self, monitor, probe):
        probe.script["svc:1"] = [True, True, False, False, True]
        monitor.register("svc", Protocol.TCP, "svc:1")
        fired = []
        monitor.add_listener(lambda name, status: fired.append(status.up))

        for _ in range(5):
            await monitor.run_round()

        assert fired == [False, True]

    async def test_run_round_while_running_fails(self, monitor):
        await monitor.start(interval_seconds=60)
        with pytest.raises(AlreadyRunningError):
            await monitor.run_round()

    async def test_run_round_after_stop(self, monitor):
        monitor.register("db", Protocol.TCP, "db:1")
        await monitor.start(interval_seconds=60)
        await asyncio.sleep(0.02)
        await monitor.stop()

        summary = await monitor.run_round()

        assert summary.checked == 1
        assert len(monitor.get_status("db").history) == 2

    async def test_metrics_by_name(self, monitor, probe):
        probe.script["svc:1"] = [True, False, True, True]
        monitor.register("svc", Protocol.TCP, "svc:1")
        for _ in range(4):
            await monitor.run_round()

        assert monitor.uptime_percentage("svc") == pytest.approx(75.0)
        assert monitor.average_latency_ms("svc") == pytest.approx(5.0)

    def test_unknown_service(self, monitor):
        with pytest.raises(KeyError):
            monitor.uptime_percentage("missing")


class TestRegistration:

    def test_duplicate(self, monitor):
        monitor.register("svc", Protocol.TCP, "a:1")
        with pytest.raises(DuplicateNameError):
            monitor.register("svc", Protocol.HTTP, "b:2")
        assert monitor.snapshot_all()[0].address == "a:1"

    async def test_registration_while_running_joins_next_round(self, monitor, probe):
        await monitor.start(interval_seconds=0.05)
        await asyncio.sleep(0.01)
        monitor.register("late", Protocol.TCP, "late:1")
        await asyncio.sleep(0.1)
        assert "late:1" in probe.calls


async def test_get_stats(monitor):
    monitor.register("db", Protocol.TCP, "db:1")
    await monitor.run_round()
    stats = monitor.get_stats()
    assert stats["state"] == "idle"
    assert stats["services"] == 1
    assert stats["services_up"] == 1
    assert stats["scheduler"]["rounds_started"] == 0
    assert stats["pool"]["total_checks"] == 1


async def test_generate_report(monitor):
    monitor.register("db", Protocol.TCP, "db:1")
    await monitor.run_round()
    assert "db" in monitor.generate_report("text")
    assert monitor.generate_report("html").startswith("<!DOCTYPE html>")
