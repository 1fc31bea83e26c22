"""
============================================================================
SVCWATCH - MONITOR
============================================================================
The public entry point of the engine. A Monitor owns one of everything:

Monitor
├── Registry        ← name → ServiceStatus
├── Notifier        ← ordered listeners
├── CheckerPool     ← one round: bounded fan-out of probes
└── RoundScheduler  ← fires rounds, at most one in flight

Nothing is global; two Monitor instances never share state.

    monitor = Monitor()
    monitor.register("web", "HTTP", "https://example.com")
    monitor.add_listener(lambda name, status: print(name, status.up))
    await monitor.start(interval_seconds=30)
    ...
    await monitor.stop()

License: MIT
============================================================================
"""

import numbers
from typing import Any, Dict, List, Mapping, Optional, Union

from svcwatch.config.constants import Protocol, ReportFormat, SchedulerState
from svcwatch.config.settings import MonitorSettings, get_settings
from svcwatch.exceptions.config import AlreadyRunningError, InvalidOptionError
from svcwatch.monitoring import metrics
from svcwatch.monitoring.checker import CheckerPool
from svcwatch.monitoring.models import RoundSummary, ServiceDefinition, ServiceStatusView
from svcwatch.monitoring.notifier import Listener, Notifier
from svcwatch.monitoring.probes import Probe, default_probes
from svcwatch.monitoring.registry import Registry
from svcwatch.monitoring.scheduler import RoundScheduler, validate_interval
from svcwatch.utils.logger import get_logger


logger = get_logger("Monitor")


def _positive_int(field: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, numbers.Integral) or value < 1:
        raise InvalidOptionError(field, value, "must be an integer >= 1")
    return int(value)


class Monitor:
    """
    Scheduled concurrent health checker.

    Parameters
    ----------
    settings : MonitorSettings | None
        Defaults for every ``start()`` option. Falls back to the cached
        application settings.
    probes : Mapping[Protocol, Probe] | None
        Overrides for the built-in probes, keyed by protocol.
    """

    def __init__(
        self,
        settings: Optional[MonitorSettings] = None,
        probes: Optional[Mapping[Protocol, Probe]] = None,
    ):
        self.settings = settings or get_settings().monitor

        available = default_probes(self.settings)
        if probes:
            available.update(probes)

        self._registry = Registry(self.settings.history_size)
        self._notifier = Notifier()
        self._pool = CheckerPool(
            self._registry,
            self._notifier,
            available,
            per_check_timeout=self.settings.per_check_timeout,
            round_grace=self.settings.round_grace,
            pool_size=self.settings.pool_size,
        )
        self._scheduler = RoundScheduler(self._pool.run_round, stop_grace=self.settings.stop_grace_seconds)
        self._manual_round = False

    # ------------------------------------------------------------------
    # REGISTRATION
    # ------------------------------------------------------------------

    def register(self, name: str, protocol: Union[Protocol, str], address: str) -> ServiceDefinition:
        """
        Add a service. Takes effect from the next round.

        Raises:
            ConfigError: DuplicateName, InvalidAddress or InvalidOption
        """
        return self._registry.register(name, protocol, address)

    def add_listener(self, listener: Listener) -> None:
        """Call *listener(name, status_view)* on every up/down transition."""
        self._notifier.add_listener(listener)

    # ------------------------------------------------------------------
    # LIFECYCLE
    # ------------------------------------------------------------------

    @property
    def state(self) -> SchedulerState:
        return self._scheduler.state

    @property
    def is_running(self) -> bool:
        return self._scheduler.is_running

    async def start(
        self,
        interval_seconds: Optional[float] = None,
        per_check_timeout_ms: Optional[int] = None,
        history_size: Optional[int] = None,
        pool_size: Optional[int] = None,
    ) -> None:
        """
        Start firing rounds, the first one immediately.

        Arguments left as None take their value from the settings. All
        arguments are validated before anything changes.

        Raises:
            AlreadyRunningError: the monitor is not idle
            InvalidIntervalError: interval is not > 0
            InvalidOptionError: timeout, history size or pool size < 1
        """
        if self._scheduler.state is not SchedulerState.IDLE or self._manual_round:
            raise AlreadyRunningError()

        interval = validate_interval(
            self.settings.check_interval_seconds if interval_seconds is None else interval_seconds
        )
        timeout_ms = _positive_int(
            "per_check_timeout_ms",
            self.settings.per_check_timeout_ms if per_check_timeout_ms is None else per_check_timeout_ms,
        )
        capacity = _positive_int(
            "history_size",
            self.settings.history_size if history_size is None else history_size,
        )
        workers = _positive_int(
            "pool_size",
            self.settings.pool_size if pool_size is None else pool_size,
        )

        if capacity != self._registry.history_size:
            logger.info(f"History size {self._registry.history_size} → {capacity}")
            self._registry.set_history_size(capacity)

        self._pool.configure(per_check_timeout=timeout_ms / 1000.0, pool_size=workers)
        self._pool.open()
        await self._scheduler.start(interval)

        logger.info(
            f"✓ Monitor started: {len(self._registry)} service(s), interval={interval:g}s, "
            f"timeout={timeout_ms}ms, history={capacity}, pool={workers}"
        )

    async def stop(self) -> None:
        """
        Stop the scheduler, bounded by ``stop_grace_seconds``.

        Results that arrive after this returns are dropped. Idempotent.
        """
        if self._scheduler.state is SchedulerState.IDLE:
            return
        try:
            await self._scheduler.stop()
        finally:
            self._pool.close()
        logger.info("✓ Monitor stopped")

    async def run_round(self) -> RoundSummary:
        """
        Run one round now, outside the scheduler.

        Raises:
            AlreadyRunningError: the scheduler or another manual round is running
        """
        busy = self._scheduler.state is not SchedulerState.IDLE or self._scheduler.round_in_flight
        if busy or self._manual_round:
            raise AlreadyRunningError("A round cannot be run by hand while the monitor is running")

        self._manual_round = True
        self._pool.open()
        try:
            return await self._pool.run_round()
        finally:
            self._manual_round = False

    async def __aenter__(self) -> "Monitor":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    # ------------------------------------------------------------------
    # READ PATH
    # ------------------------------------------------------------------

    def snapshot_all(self) -> List[ServiceStatusView]:
        """Consistent copy of every service, in registration order."""
        return self._registry.snapshot()

    def get_status(self, name: str) -> ServiceStatusView:
        record = self._registry.get(name)
        if record is None:
            raise KeyError(f"Unknown service {name!r}")
        return record.view()

    def uptime_percentage(self, name: str) -> float:
        return metrics.uptime_percentage(self.get_status(name))

    def average_latency_ms(self, name: str) -> float:
        return metrics.average_latency_ms(self.get_status(name))

    def generate_report(self, format: Union[ReportFormat, str] = ReportFormat.TEXT) -> str:
        """Render the current snapshot as plain text or HTML."""
        # reporting depends on this package, import it late
        from svcwatch.reporting.report import render_report

        return render_report(self.snapshot_all(), format)

    def get_stats(self) -> Dict[str, Any]:
        views = self.snapshot_all()
        return {
            "state": self.state.value,
            "services": len(views),
            "services_up": sum(1 for view in views if view.up),
            "listeners": len(self._notifier),
            "scheduler": self._scheduler.get_stats(),
            "pool": {
                "closed": self._pool.closed,
                "pool_size": self._pool.pool_size,
                "per_check_timeout_seconds": self._pool.per_check_timeout,
                "round_grace_seconds": self._pool.round_grace,
                "in_flight_checks": self._pool.in_flight_checks,
                "abandoned_probes": self._pool.abandoned_probes,
                "total_checks": self._pool.total_checks,
                "total_failures": self._pool.total_failures,
                "total_timeouts": self._pool.total_timeouts,
                "dropped_writes": self._pool.dropped_writes,
            },
            "notifier": {
                "delivered": self._notifier.delivered,
                "failed": self._notifier.failed,
            },
        }
