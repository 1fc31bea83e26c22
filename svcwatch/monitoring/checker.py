"""
============================================================================
SVCWATCH - CHECKER POOL
============================================================================
Runs one check round: one task per registered service, at most
``pool_size`` probes in flight.

CheckerPool
├── run_round()          ← snapshot names + listeners, fan out via gather
├── _run_guarded()       ← semaphore bookkeeping around one service
├── _run_single_check()  ← probe → apply outcome → notify on transition
└── _probe()             ← bounded wait, abandons hung probes

Every probe gets ``per_check_timeout`` to work with and is cut off at
``per_check_timeout + round_grace``. A probe still running at that point
is cancelled without waiting for it and its result is thrown away; the
service records a Timeout. Nothing a probe raises leaves its task.

Once the pool is closed (monitor stopped) results that arrive late are
dropped instead of written to the registry.

License: MIT
============================================================================
"""

import asyncio
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Sequence, Set, Tuple

from svcwatch.config.constants import Defaults, Protocol
from svcwatch.exceptions.probe import ProbeFailure, ProbeProtocolError, ProbeTimeout
from svcwatch.monitoring.models import Outcome, RoundSummary, ServiceDefinition, TransitionEvent
from svcwatch.monitoring.notifier import Listener, Notifier
from svcwatch.monitoring.probes import Probe
from svcwatch.monitoring.registry import Registry
from svcwatch.utils.helpers import StringHelper, TimeHelper
from svcwatch.utils.logger import get_logger


logger = get_logger("CheckerPool")


@dataclass(frozen=True)
class _TaskResult:
    up: bool = False
    transitioned: bool = False
    timed_out: bool = False
    dropped: bool = False


class CheckerPool:
    """
    Bounded fan-out of probes over the registry.

    Parameters
    ----------
    registry : Registry
        Records to check; owned by the Monitor.
    notifier : Notifier
        Receives transition events.
    probes : Mapping[Protocol, Probe]
        One probe per protocol.
    per_check_timeout : float
        Seconds handed to each probe.
    round_grace : float
        Extra seconds before a probe is abandoned.
    pool_size : int
        Maximum probes in flight.
    """

    def __init__(
        self,
        registry: Registry,
        notifier: Notifier,
        probes: Mapping[Protocol, Probe],
        per_check_timeout: float = Defaults.PER_CHECK_TIMEOUT_MS / 1000,
        round_grace: float = Defaults.ROUND_GRACE_MS / 1000,
        pool_size: int = Defaults.POOL_SIZE,
    ):
        self._registry = registry
        self._notifier = notifier
        self._probes: Dict[Protocol, Probe] = dict(probes)

        self.per_check_timeout = per_check_timeout
        self.round_grace = round_grace
        self.pool_size = pool_size

        self._closed = False
        self._round_counter = 0
        self._in_flight = 0
        self._abandoned: Set[asyncio.Task] = set()

        # --- lifetime counters ---
        self.total_checks = 0
        self.total_failures = 0
        self.total_timeouts = 0
        self.dropped_writes = 0

    # ------------------------------------------------------------------
    # CONFIGURATION & LIFECYCLE
    # ------------------------------------------------------------------

    def configure(
        self,
        per_check_timeout: Optional[float] = None,
        round_grace: Optional[float] = None,
        pool_size: Optional[int] = None,
    ) -> None:
        """Apply new limits; they take effect from the next round."""
        if per_check_timeout is not None:
            self.per_check_timeout = per_check_timeout
        if round_grace is not None:
            self.round_grace = round_grace
        if pool_size is not None:
            self.pool_size = pool_size

    def open(self) -> None:
        self._closed = False

    def close(self) -> None:
        """Drop every result that arrives from now on."""
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def in_flight_checks(self) -> int:
        return self._in_flight

    @property
    def abandoned_probes(self) -> int:
        """Probes cut off at their deadline that have not finished unwinding."""
        return len(self._abandoned)

    @property
    def deadline(self) -> float:
        return self.per_check_timeout + self.round_grace

    # ------------------------------------------------------------------
    # ROUND
    # ------------------------------------------------------------------

    async def run_round(self) -> RoundSummary:
        """
        Check every service registered at the moment the round starts.
        """
        self._round_counter += 1
        round_id = self._round_counter
        started_at = TimeHelper.get_utc_now()

        names = self._registry.names()
        listeners = self._notifier.snapshot_listeners()
        semaphore = asyncio.Semaphore(self.pool_size)

        logger.debug(f"[Round {round_id}] Checking {len(names)} service(s), pool_size={self.pool_size}")

        tasks = [
            asyncio.create_task(self._run_guarded(name, semaphore, listeners))
            for name in names
        ]
        try:
            results = await asyncio.gather(*tasks, return_exceptions=True)
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            raise

        up = down = transitions = timed_out = dropped = 0
        for name, result in zip(names, results):
            if isinstance(result, BaseException):
                # _run_single_check converts probe errors, so this is a bug
                logger.opt(exception=result).error(f"[Round {round_id}] Check task for '{name}' crashed")
                continue
            if result.dropped:
                dropped += 1
                continue
            if result.up:
                up += 1
            else:
                down += 1
            transitions += int(result.transitioned)
            timed_out += int(result.timed_out)

        summary = RoundSummary(
            round_id=round_id,
            started_at=started_at,
            finished_at=TimeHelper.get_utc_now(),
            checked=up + down,
            up=up,
            down=down,
            transitions=transitions,
            timed_out=timed_out,
            dropped=dropped,
        )
        logger.debug(
            f"[Round {round_id}] Done in {summary.duration_seconds:.3f}s: "
            f"{up} up, {down} down, {transitions} transition(s), {timed_out} timeout(s)"
        )
        return summary

    async def _run_guarded(
        self,
        name: str,
        semaphore: asyncio.Semaphore,
        listeners: Sequence[Listener],
    ) -> _TaskResult:
        async with semaphore:
            self._in_flight += 1
            try:
                return await self._run_single_check(name, listeners)
            finally:
                self._in_flight -= 1

    async def _run_single_check(self, name: str, listeners: Sequence[Listener]) -> _TaskResult:
        record = self._registry.get(name)
        if record is None:
            return _TaskResult(dropped=True)

        outcome, timed_out = await self._probe(record.definition)

        self.total_checks += 1
        if not outcome.up:
            self.total_failures += 1
        if timed_out:
            self.total_timeouts += 1

        if self._closed:
            self.dropped_writes += 1
            logger.debug(f"[CheckerPool] Pool closed, dropping late result for '{name}'")
            return _TaskResult(dropped=True)

        was_checked, previous_up, view = record.apply(outcome, TimeHelper.get_utc_now())

        # the first observation only replaces "unknown"
        transitioned = was_checked and previous_up != outcome.up
        if transitioned:
            event = TransitionEvent(name=name, previous_up=previous_up, new_up=outcome.up, status=view)
            await self._notifier.notify(event, listeners)

        return _TaskResult(up=outcome.up, transitioned=transitioned, timed_out=timed_out)

    # ------------------------------------------------------------------
    # PROBE INVOCATION
    # ------------------------------------------------------------------

    async def _probe(self, definition: ServiceDefinition) -> Tuple[Outcome, bool]:
        """
        Run the probe for *definition* under the hard deadline.

        Returns:
            (outcome, timed_out)
        """
        probe = self._probes.get(definition.protocol)
        if probe is None:
            failure = ProbeProtocolError(f"no probe for protocol {definition.protocol.value}")
            return Outcome.down(failure.diagnostic), False

        task = asyncio.ensure_future(probe.check(definition.address, self.per_check_timeout))
        try:
            done, _ = await asyncio.wait({task}, timeout=self.deadline)
        except asyncio.CancelledError:
            task.cancel()
            raise

        if not done:
            self._abandon(task, definition.name)
            failure = ProbeTimeout(f"no result after {self.deadline:.3f}s, probe abandoned")
            return Outcome.down(failure.diagnostic), True

        if task.cancelled():
            failure = ProbeProtocolError("probe was cancelled")
            return Outcome.down(failure.diagnostic), False

        error = task.exception()
        if error is None:
            return self._normalize(task.result(), definition), False

        if isinstance(error, ProbeFailure):
            logger.debug(f"[CheckerPool] '{definition.name}' down: {error.diagnostic}")
            return Outcome.down(error.diagnostic), isinstance(error, ProbeTimeout)

        if isinstance(error, asyncio.TimeoutError):
            return Outcome.down(ProbeTimeout(str(error) or "timed out").diagnostic), True

        logger.opt(exception=error).warning(
            f"[CheckerPool] Probe for '{definition.name}' raised {type(error).__name__}"
        )
        detail = StringHelper.truncate(f"{type(error).__name__}: {error}", Defaults.DIAGNOSTIC_MAX_LENGTH)
        return Outcome.down(ProbeProtocolError(detail).diagnostic), False

    @staticmethod
    def _normalize(result: object, definition: ServiceDefinition) -> Outcome:
        if not isinstance(result, Outcome):
            failure = ProbeProtocolError(f"probe returned {type(result).__name__}, not an Outcome")
            return Outcome.down(failure.diagnostic)
        if not result.up and result.latency_ms != -1:
            return Outcome.down(result.diagnostic)
        return result

    def _abandon(self, task: asyncio.Task, name: str) -> None:
        """Cancel *task* without waiting; its eventual result is discarded."""
        logger.warning(f"[CheckerPool] Probe for '{name}' exceeded {self.deadline:.3f}s, abandoning it")
        self._abandoned.add(task)
        task.add_done_callback(self._discard_abandoned)
        task.cancel()

    def _discard_abandoned(self, task: asyncio.Task) -> None:
        self._abandoned.discard(task)
        if not task.cancelled():
            # retrieve it so asyncio does not report an unretrieved exception
            task.exception()
