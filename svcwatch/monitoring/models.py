"""
============================================================================
SVCWATCH - MONITORING DATA MODEL
============================================================================
Value objects that flow through a check round, plus the one mutable record
per service.

    ServiceDefinition   ← immutable, created by register()
    Outcome             ← produced by a Probe for one attempt
    HistoryRecord       ← immutable entry in a HistoryRing
    HistoryRing         ← bounded, newest-first
    ServiceStatus       ← live record, mutated only by its check task
    ServiceStatusView   ← immutable snapshot handed to every reader

License: MIT
============================================================================
"""

import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Deque, Iterator, Optional, Tuple

from svcwatch.config.constants import Protocol, UNKNOWN_LATENCY_MS


# ============================================================================
# VALUE OBJECTS
# ============================================================================

@dataclass(frozen=True)
class ServiceDefinition:
    """What to check: unique name, protocol and address."""

    name: str
    protocol: Protocol
    address: str


@dataclass(frozen=True)
class Outcome:
    """
    Result of a single probe attempt.

    A down outcome never carries a latency; use ``Outcome.down()`` to build
    one so ``latency_ms`` is always -1 when ``up`` is False.
    """

    up: bool
    latency_ms: int = UNKNOWN_LATENCY_MS
    diagnostic: Optional[str] = None

    @classmethod
    def success(cls, latency_ms: int, diagnostic: Optional[str] = None) -> "Outcome":
        return cls(up=True, latency_ms=max(0, int(latency_ms)), diagnostic=diagnostic)

    @classmethod
    def down(cls, diagnostic: Optional[str] = None) -> "Outcome":
        return cls(up=False, latency_ms=UNKNOWN_LATENCY_MS, diagnostic=diagnostic)


@dataclass(frozen=True)
class HistoryRecord:
    """One past check, as stored in the ring."""

    up: bool
    latency_ms: int
    timestamp: datetime


# ============================================================================
# HISTORY RING
# ============================================================================

class HistoryRing:
    """
    Fixed-capacity, newest-first sequence of HistoryRecord.

    Backed by a ``deque(maxlen=capacity)`` with ``appendleft``, so insertion
    and eviction of the oldest record are both O(1). Not thread-safe on its
    own; ServiceStatus guards it.
    """

    __slots__ = ("_records",)

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError(f"History capacity must be >= 1, got {capacity}")
        self._records: Deque[HistoryRecord] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._records.maxlen

    def append(self, record: HistoryRecord) -> None:
        """Insert *record* as the newest entry, evicting the oldest if full."""
        self._records.appendleft(record)

    def resize(self, capacity: int) -> None:
        """Change capacity, keeping the newest records."""
        if capacity < 1:
            raise ValueError(f"History capacity must be >= 1, got {capacity}")
        if capacity == self.capacity:
            return
        # deque(iterable, maxlen) keeps the *last* items, we want the first
        self._records = deque(list(self._records)[:capacity], maxlen=capacity)

    def newest(self) -> Optional[HistoryRecord]:
        return self._records[0] if self._records else None

    def to_tuple(self) -> Tuple[HistoryRecord, ...]:
        return tuple(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[HistoryRecord]:
        return iter(self._records)

    def __repr__(self) -> str:
        return f"HistoryRing(len={len(self)}, capacity={self.capacity})"


# ============================================================================
# SNAPSHOT VIEW
# ============================================================================

@dataclass(frozen=True)
class ServiceStatusView:
    """
    Immutable copy of a ServiceStatus.

    ``history`` is a tuple, newest first. Length and content come from the
    same locked copy, so they always agree.
    """

    definition: ServiceDefinition
    up: bool
    last_timestamp: Optional[datetime]
    last_latency_ms: int
    last_diagnostic: Optional[str]
    history: Tuple[HistoryRecord, ...] = ()
    history_capacity: int = 0

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def protocol(self) -> Protocol:
        return self.definition.protocol

    @property
    def address(self) -> str:
        return self.definition.address

    @property
    def checked(self) -> bool:
        """False until the first round has observed this service."""
        return self.last_timestamp is not None


@dataclass(frozen=True)
class TransitionEvent:
    """Emitted by a check task when ``up`` changed between observations."""

    name: str
    previous_up: bool
    new_up: bool
    status: ServiceStatusView


# ============================================================================
# LIVE RECORD
# ============================================================================

@dataclass
class ServiceStatus:
    """
    Live health record of one service.

    Created in the unknown state (``up=False``, empty history). Written only
    by the check task that owns it for the current round, read through
    ``view()``; both go through ``_lock`` so a reader never sees a half
    applied outcome.
    """

    definition: ServiceDefinition
    history: HistoryRing
    up: bool = False
    last_timestamp: Optional[datetime] = None
    last_latency_ms: int = UNKNOWN_LATENCY_MS
    last_diagnostic: Optional[str] = None
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @classmethod
    def create(cls, definition: ServiceDefinition, history_size: int) -> "ServiceStatus":
        return cls(definition=definition, history=HistoryRing(history_size))

    def apply(self, outcome: Outcome, timestamp: datetime) -> Tuple[bool, bool, ServiceStatusView]:
        """
        Record *outcome* observed at *timestamp*.

        Returns:
            (was_checked, previous_up, view after the update)
        """
        with self._lock:
            was_checked = self.last_timestamp is not None
            previous_up = self.up

            self.up = outcome.up
            self.last_timestamp = timestamp
            self.last_latency_ms = outcome.latency_ms if outcome.up else UNKNOWN_LATENCY_MS
            self.last_diagnostic = outcome.diagnostic
            self.history.append(HistoryRecord(
                up=outcome.up,
                latency_ms=self.last_latency_ms,
                timestamp=timestamp,
            ))
            return was_checked, previous_up, self._view_locked()

    def resize_history(self, capacity: int) -> None:
        with self._lock:
            self.history.resize(capacity)

    def view(self) -> ServiceStatusView:
        with self._lock:
            return self._view_locked()

    def _view_locked(self) -> ServiceStatusView:
        return ServiceStatusView(
            definition=self.definition,
            up=self.up,
            last_timestamp=self.last_timestamp,
            last_latency_ms=self.last_latency_ms,
            last_diagnostic=self.last_diagnostic,
            history=self.history.to_tuple(),
            history_capacity=self.history.capacity,
        )


@dataclass(frozen=True)
class RoundSummary:
    """What one check round did."""

    round_id: int
    started_at: datetime
    finished_at: datetime
    checked: int = 0
    up: int = 0
    down: int = 0
    transitions: int = 0
    timed_out: int = 0
    dropped: int = 0

    @property
    def duration_seconds(self) -> float:
        return (self.finished_at - self.started_at).total_seconds()
