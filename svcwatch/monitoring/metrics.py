"""
============================================================================
SVCWATCH - METRICS
============================================================================
Pure functions over a ServiceStatusView. A view is an immutable copy, so
nothing here can observe a history ring mid-update.

License: MIT
============================================================================
"""

from typing import Any, Dict

from svcwatch.config.constants import UNKNOWN_LATENCY_MS
from svcwatch.monitoring.models import ServiceStatusView


def uptime_percentage(view: ServiceStatusView) -> float:
    """
    Share of history records that were up, in percent.

    With no history yet, 100.0 if the service is currently up, else 0.0.
    """
    if not view.history:
        return 100.0 if view.up else 0.0
    ups = sum(1 for record in view.history if record.up)
    return 100.0 * ups / len(view.history)


def average_latency_ms(view: ServiceStatusView) -> float:
    """Mean latency over records with a known latency, -1 if there are none."""
    latencies = [record.latency_ms for record in view.history if record.latency_ms >= 0]
    if not latencies:
        return float(UNKNOWN_LATENCY_MS)
    return sum(latencies) / len(latencies)


def summarize(view: ServiceStatusView) -> Dict[str, Any]:
    """Flat dict for reports and the /status endpoint."""
    return {
        "name": view.name,
        "protocol": view.protocol.value,
        "address": view.address,
        "up": view.up,
        "checked": view.checked,
        "uptime_percentage": round(uptime_percentage(view), 2),
        "average_latency_ms": round(average_latency_ms(view), 1),
        "last_latency_ms": view.last_latency_ms,
        "last_check": view.last_timestamp.isoformat() if view.last_timestamp else None,
        "diagnostic": view.last_diagnostic,
        "history_length": len(view.history),
        "history_capacity": view.history_capacity,
    }
