"""
Monitoring Package for svcwatch

The scheduled concurrent health-checking engine.
"""

from svcwatch.monitoring.models import (
    HistoryRecord,
    HistoryRing,
    Outcome,
    RoundSummary,
    ServiceDefinition,
    ServiceStatus,
    ServiceStatusView,
    TransitionEvent,
)
from svcwatch.monitoring.probes import (
    DNSProbe,
    HTTPProbe,
    Probe,
    SMTPProbe,
    TCPProbe,
    TLSProbe,
    default_probes,
)
from svcwatch.monitoring.registry import Registry
from svcwatch.monitoring.notifier import LoggingListener, Notifier
from svcwatch.monitoring.checker import CheckerPool
from svcwatch.monitoring.scheduler import RoundScheduler
from svcwatch.monitoring.metrics import average_latency_ms, summarize, uptime_percentage
from svcwatch.monitoring.monitor import Monitor

__all__ = [
    # Data model
    "HistoryRecord",
    "HistoryRing",
    "Outcome",
    "RoundSummary",
    "ServiceDefinition",
    "ServiceStatus",
    "ServiceStatusView",
    "TransitionEvent",

    # Probes
    "Probe",
    "HTTPProbe",
    "TCPProbe",
    "TLSProbe",
    "SMTPProbe",
    "DNSProbe",
    "default_probes",

    # Engine
    "Registry",
    "Notifier",
    "LoggingListener",
    "CheckerPool",
    "RoundScheduler",
    "Monitor",

    # Metrics
    "uptime_percentage",
    "average_latency_ms",
    "summarize",
]
