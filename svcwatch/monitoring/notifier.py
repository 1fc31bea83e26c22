"""
============================================================================
SVCWATCH - NOTIFIER
============================================================================
Fans transition events out to the registered listeners.

A listener is any callable taking ``(service_name, ServiceStatusView)``.
Coroutine functions are awaited inline, so a slow async listener delays
the check task that emitted the event and nothing else.

Listeners run in registration order. One failing listener is logged and
skipped; the remaining listeners and the rest of the round carry on.

The checker pool takes ``snapshot_listeners()`` once per round, so a
listener added mid-round is first called on the next round.

License: MIT
============================================================================
"""

import inspect
from typing import Any, Callable, List, Sequence, Tuple

from svcwatch.exceptions.base import ListenerFailure
from svcwatch.monitoring.models import ServiceStatusView, TransitionEvent
from svcwatch.utils.helpers import TimeHelper
from svcwatch.utils.logger import get_logger


logger = get_logger("Notifier")

Listener = Callable[[str, ServiceStatusView], Any]


def _listener_name(listener: Listener) -> str:
    return getattr(listener, "__qualname__", None) or type(listener).__name__


class Notifier:
    """
    Ordered set of transition listeners.

    No duplicate detection: adding the same callable twice calls it twice.
    """

    def __init__(self):
        self._listeners: List[Listener] = []
        self.delivered = 0
        self.failed = 0

    def add_listener(self, listener: Listener) -> None:
        if not callable(listener):
            raise TypeError(f"Listener must be callable, got {type(listener).__name__}")
        self._listeners.append(listener)
        logger.debug(f"[Notifier] Listener added: {_listener_name(listener)}")

    def snapshot_listeners(self) -> Tuple[Listener, ...]:
        """Copy of the current listeners, taken once per round."""
        return tuple(self._listeners)

    def __len__(self) -> int:
        return len(self._listeners)

    async def notify(self, event: TransitionEvent, listeners: Sequence[Listener]) -> int:
        """
        Call every listener with ``(event.name, event.status)``.

        Returns:
            Number of listeners that completed without raising
        """
        succeeded = 0
        for listener in listeners:
            try:
                result = listener(event.name, event.status)
                if inspect.isawaitable(result):
                    await result
                succeeded += 1
                self.delivered += 1
            except Exception as e:
                self.failed += 1
                failure = ListenerFailure(_listener_name(listener), event.name, e)
                logger.opt(exception=e).error(f"[Notifier] {failure.log_format()}")
        return succeeded


# ============================================================================
# BUILT-IN LISTENER
# ============================================================================

class LoggingListener:
    """
    Logs every transition: DOWN at warning level, RECOVERY at info level.
    """

    def __init__(self, name: str = "svcwatch"):
        self._logger = get_logger(name)

    def __call__(self, service_name: str, status: ServiceStatusView) -> None:
        checked_at = TimeHelper.format_datetime(status.last_timestamp)
        if status.up:
            self._logger.info(
                f"✅ RECOVERY {service_name} ({status.protocol.value} {status.address}) "
                f"up again at {checked_at}, latency {status.last_latency_ms}ms"
            )
        else:
            self._logger.warning(
                f"🔴 DOWN {service_name} ({status.protocol.value} {status.address}) "
                f"at {checked_at}: {status.last_diagnostic or 'no diagnostic'}"
            )
