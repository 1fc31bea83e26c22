"""
============================================================================
SVCWATCH - ROUND SCHEDULER
============================================================================
Fires check rounds at a fixed interval on the running event loop, as a
plain asyncio task: no APScheduler, no threads.

State machine
-------------
    IDLE ──start()──▶ RUNNING ──stop()──▶ STOPPING ──▶ IDLE

Round overlap
-------------
At most one round is in flight. A tick that fires while the previous round
is still running is skipped, counted as an overrun and logged; ticks are
never queued. Slow probes therefore cost samples, not memory.

Stopping
--------
``stop()`` cancels the tick loop at once, gives the in-flight round
``stop_grace`` seconds to finish, then cancels it.

License: MIT
============================================================================
"""

import asyncio
import numbers
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional

from svcwatch.config.constants import Defaults, SchedulerState
from svcwatch.exceptions.config import AlreadyRunningError, InvalidIntervalError
from svcwatch.monitoring.models import RoundSummary
from svcwatch.utils.helpers import TimeHelper
from svcwatch.utils.logger import get_logger


logger = get_logger("Scheduler")

RoundFactory = Callable[[], Awaitable[RoundSummary]]


def validate_interval(interval: Any) -> float:
    """Return *interval* as float seconds, or raise InvalidIntervalError."""
    if isinstance(interval, bool) or not isinstance(interval, numbers.Real):
        raise InvalidIntervalError(interval)
    if not interval > 0:
        raise InvalidIntervalError(interval)
    return float(interval)


class RoundScheduler:
    """
    Periodic driver for check rounds.

    Usage
    -----
        scheduler = RoundScheduler(pool.run_round, stop_grace=5.0)
        await scheduler.start(60)
        # ... later ...
        await scheduler.stop()
    """

    def __init__(self, round_factory: RoundFactory, stop_grace: float = Defaults.STOP_GRACE_SECONDS):
        self._round_factory = round_factory
        self.stop_grace = stop_grace

        self._state = SchedulerState.IDLE
        self._interval: Optional[float] = None
        self._tick_task: Optional[asyncio.Task] = None
        self._round_task: Optional[asyncio.Task] = None
        self._stopping: Optional[asyncio.Future] = None

        # --- diagnostics ---
        self.rounds_started = 0
        self.rounds_completed = 0
        self.rounds_failed = 0
        self.overruns = 0
        self.last_round_started: Optional[datetime] = None
        self.last_round_finished: Optional[datetime] = None
        self.last_overrun: Optional[datetime] = None
        self.last_summary: Optional[RoundSummary] = None

    # ------------------------------------------------------------------
    # STATE
    # ------------------------------------------------------------------

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is SchedulerState.RUNNING

    @property
    def interval(self) -> Optional[float]:
        return self._interval

    @property
    def round_in_flight(self) -> bool:
        return self._round_task is not None and not self._round_task.done()

    # ------------------------------------------------------------------
    # LIFECYCLE
    # ------------------------------------------------------------------

    async def start(self, interval: float) -> None:
        """
        Move to RUNNING and fire the first round immediately.

        Raises:
            InvalidIntervalError: interval is not a number > 0
            AlreadyRunningError: the scheduler is not IDLE
        """
        seconds = validate_interval(interval)
        if self._state is not SchedulerState.IDLE:
            raise AlreadyRunningError(f"Scheduler is {self._state.value}, stop it before starting again")

        self._interval = seconds
        self._state = SchedulerState.RUNNING

        if self.round_in_flight:
            # a cancelled round from an interrupted stop() is still unwinding
            await asyncio.wait({self._round_task}, timeout=1.0)
            if self._state is not SchedulerState.RUNNING:
                return

        self._tick_task = asyncio.create_task(self._tick_loop())
        logger.info(f"✓ Scheduler started, interval={seconds:g}s")

    async def stop(self) -> None:
        """
        Stop firing rounds and wait, bounded, for the one in flight.

        Calling it while IDLE does nothing. A concurrent second call waits
        for the first to finish.
        """
        if self._state is SchedulerState.IDLE:
            return
        if self._state is SchedulerState.STOPPING:
            await asyncio.shield(self._stopping)
            return

        self._state = SchedulerState.STOPPING
        self._stopping = asyncio.get_running_loop().create_future()
        try:
            await self._cancel_tick_loop()
            await self._drain_round()
        finally:
            # a round still running here outlived the force-cancel wait or stop() was
            # itself cancelled; it stays tracked until it unwinds
            if self.round_in_flight:
                self._round_task.cancel()
            else:
                self._round_task = None
            self._state = SchedulerState.IDLE
            self._tick_task = None
            self._stopping.set_result(None)
        logger.info("✓ Scheduler stopped")

    async def _cancel_tick_loop(self) -> None:
        if self._tick_task is None:
            return
        self._tick_task.cancel()
        try:
            await self._tick_task
        except asyncio.CancelledError:
            pass

    async def _drain_round(self) -> None:
        task = self._round_task
        if task is None or task.done():
            return

        logger.info(f"[Scheduler] Waiting up to {self.stop_grace:g}s for the round in flight")
        done, _ = await asyncio.wait({task}, timeout=self.stop_grace)
        if done:
            return

        logger.warning(f"[Scheduler] Round still running after {self.stop_grace:g}s, cancelling it")
        task.cancel()
        # cancellation only has to unwind the round's own tasks
        await asyncio.wait({task}, timeout=1.0)

    # ------------------------------------------------------------------
    # TICK LOOP
    # ------------------------------------------------------------------

    async def _tick_loop(self) -> None:
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        logger.debug("[Scheduler] Tick loop started")

        while True:
            self._tick()

            next_tick += self._interval
            now = loop.time()
            if next_tick < now:
                # the loop itself was blocked; realign instead of bursting
                behind = int((now - next_tick) // self._interval) + 1
                next_tick += behind * self._interval
            await asyncio.sleep(next_tick - now)

    def _tick(self) -> None:
        if self.round_in_flight:
            self.overruns += 1
            self.last_overrun = TimeHelper.get_utc_now()
            logger.warning(
                f"[Scheduler] Round overrun: round {self.rounds_started} still running "
                f"after {self._interval:g}s, skipping this tick (overruns={self.overruns})"
            )
            return
        self._round_task = asyncio.create_task(self._execute_round())

    async def _execute_round(self) -> None:
        self.rounds_started += 1
        self.last_round_started = TimeHelper.get_utc_now()
        try:
            self.last_summary = await self._round_factory()
            self.rounds_completed += 1
        except asyncio.CancelledError:
            logger.warning(f"[Scheduler] Round {self.rounds_started} cancelled")
            raise
        except Exception:
            self.rounds_failed += 1
            logger.exception(f"[Scheduler] Round {self.rounds_started} failed")
        finally:
            self.last_round_finished = TimeHelper.get_utc_now()

    # ------------------------------------------------------------------
    # DIAGNOSTICS
    # ------------------------------------------------------------------

    def get_stats(self) -> Dict[str, Any]:
        def iso(value: Optional[datetime]) -> Optional[str]:
            return value.isoformat() if value else None

        return {
            "state": self._state.value,
            "interval_seconds": self._interval,
            "rounds_started": self.rounds_started,
            "rounds_completed": self.rounds_completed,
            "rounds_failed": self.rounds_failed,
            "overruns": self.overruns,
            "last_round_started": iso(self.last_round_started),
            "last_round_finished": iso(self.last_round_finished),
            "last_overrun": iso(self.last_overrun),
        }
