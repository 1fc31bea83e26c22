"""
============================================================================
SVCWATCH - SERVICE REGISTRY
============================================================================
Single source of truth for the monitored services: name → ServiceStatus.
Owned by one Monitor instance and handed to the checker pool by reference;
there is no process-wide registry.

Services are only ever added. A round works on a snapshot of names, so a
service registered mid-round is first checked on the next round.

License: MIT
============================================================================
"""

import threading
from typing import Dict, List, Optional

from svcwatch.config.constants import Protocol
from svcwatch.exceptions.config import DuplicateNameError, InvalidOptionError
from svcwatch.monitoring.models import ServiceDefinition, ServiceStatus, ServiceStatusView
from svcwatch.utils.logger import get_logger
from svcwatch.utils.validators import AddressValidator


logger = get_logger("Registry")


class Registry:
    """
    Mapping of service name to live ServiceStatus, in registration order.

    The lock protects the mapping itself; each ServiceStatus has its own
    lock for its fields and history.
    """

    def __init__(self, history_size: int):
        self._records: Dict[str, ServiceStatus] = {}
        self._lock = threading.Lock()
        self._history_size = history_size

    # ------------------------------------------------------------------
    # REGISTRATION
    # ------------------------------------------------------------------

    def register(self, name: str, protocol, address: str) -> ServiceDefinition:
        """
        Add a service in the unknown state.

        Raises:
            InvalidOptionError: empty name or unknown protocol
            DuplicateNameError: *name* is already registered (nothing is overwritten)
            InvalidAddressError: *address* does not parse for *protocol*
        """
        if not isinstance(name, str) or not name.strip():
            raise InvalidOptionError("name", name, "service name must be a non-empty string")

        try:
            protocol = Protocol.parse(protocol)
        except ValueError:
            raise InvalidOptionError(
                "protocol", protocol,
                f"expected one of {', '.join(p.value for p in Protocol)}"
            )

        with self._lock:
            if name in self._records:
                raise DuplicateNameError(name)

            AddressValidator.parse(protocol, address)

            definition = ServiceDefinition(name=name, protocol=protocol, address=address.strip())
            self._records[name] = ServiceStatus.create(definition, self._history_size)

        logger.info(f"Registered {protocol.value} service '{name}' → {definition.address}")
        return definition

    # ------------------------------------------------------------------
    # HISTORY CAPACITY
    # ------------------------------------------------------------------

    @property
    def history_size(self) -> int:
        return self._history_size

    def set_history_size(self, history_size: int) -> None:
        """Resize every ring, keeping the newest records."""
        with self._lock:
            self._history_size = history_size
            records = list(self._records.values())
        for record in records:
            record.resize_history(history_size)

    # ------------------------------------------------------------------
    # READ PATH
    # ------------------------------------------------------------------

    def get(self, name: str) -> Optional[ServiceStatus]:
        with self._lock:
            return self._records.get(name)

    def names(self) -> List[str]:
        with self._lock:
            return list(self._records)

    def records(self) -> List[ServiceStatus]:
        with self._lock:
            return list(self._records.values())

    def snapshot(self) -> List[ServiceStatusView]:
        """
        Independent copy of every record, in registration order.

        The registry lock is held only while copying references; each view
        is then built under its own record lock.
        """
        return [record.view() for record in self.records()]

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._records
