import pytest

from svcwatch.config.settings import MonitorSettings, get_settings
from svcwatch.monitoring.monitor import Monitor

from tests.fakes import ScriptedProbe, fake_probes


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    # keep the developer's environment out of the settings under test
    for key in ("MONITOR_SERVICES", "MONITOR_SERVICES_FILE", "SERVER_ENABLED", "LOG_FILE_ENABLED"):
        monkeypatch.delenv(key, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def monitor_settings():
    return MonitorSettings(
        check_interval_seconds=60,
        per_check_timeout_ms=500,
        round_grace_ms=200,
        stop_grace_seconds=1,
        history_size=10,
        pool_size=5,
        services=[],
        services_file=None,
    )


@pytest.fixture
def probe():
    return ScriptedProbe()


@pytest.fixture
async def monitor(monitor_settings, probe):
    m = Monitor(monitor_settings, probes=fake_probes(probe))
    yield m
    await m.stop()
