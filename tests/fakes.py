"""
Scripted probes that drive the engine deterministically.
"""

import asyncio
from typing import Dict, List, Optional, Sequence, Union

from svcwatch.config.constants import Protocol
from svcwatch.exceptions.probe import ProbeConnectRefused
from svcwatch.monitoring.models import Outcome
from svcwatch.monitoring.probes import Probe


Step = Union[bool, Outcome, BaseException]


class ScriptedProbe(Probe):
    """
    Plays back a list of steps per address.

    True → up (latency 5ms), False → ConnectRefused, an Outcome is
    returned as is, an exception is raised. Once a script runs out the
    probe answers ``default``.
    """

    protocol = Protocol.TCP

    def __init__(
        self,
        script: Optional[Dict[str, Sequence[Step]]] = None,
        default: Step = True,
        delay: float = 0.0,
        latency_ms: int = 5,
    ):
        self.script: Dict[str, List[Step]] = {k: list(v) for k, v in (script or {}).items()}
        self.default = default
        self.delay = delay
        self.latency_ms = latency_ms
        self.calls: List[str] = []
        self.timeouts: List[float] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def check(self, address: str, timeout: float) -> Outcome:
        self.calls.append(address)
        self.timeouts.append(timeout)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            steps = self.script.get(address)
            step = steps.pop(0) if steps else self.default
            if isinstance(step, BaseException):
                raise step
            if isinstance(step, Outcome):
                return step
            if step:
                return Outcome.success(self.latency_ms)
            raise ProbeConnectRefused("scripted refusal", address=address)
        finally:
            self.in_flight -= 1


class HangingProbe(Probe):
    """Never answers; records how often it was started and cancelled."""

    protocol = Protocol.TCP

    def __init__(self):
        self.started = 0
        self.cancelled = 0

    async def check(self, address: str, timeout: float) -> Outcome:
        self.started += 1
        try:
            await asyncio.sleep(3600)
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        return Outcome.success(1)


def fake_probes(probe: Probe) -> Dict[Protocol, Probe]:
    """Use one probe for every protocol."""
    return {protocol: probe for protocol in Protocol}
