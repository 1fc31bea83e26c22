"""
============================================================================
SVCWATCH - MAIN APPLICATION
============================================================================
Runs the monitor as a long-lived process.

Startup Order
-------------
1.  Load settings & configure logging
2.  Create the Monitor and register services from
    MONITOR_SERVICES (JSON list) and MONITOR_SERVICES_FILE (JSON file)
3.  Install the logging listener
4.  Start StatusServer (aiohttp, only if SERVER_ENABLED)
5.  Start the Monitor (first round fires immediately)
6.  Wait for SIGINT / SIGTERM

Shutdown Order (reverse)
------------------------
    Stop monitor (bounded by MONITOR_STOP_GRACE_SECONDS) →
    stop status server → exit

License: MIT
============================================================================
"""

import asyncio
import json
import signal
import sys
from pathlib import Path
from typing import List, Optional

from pydantic import TypeAdapter, ValidationError

from svcwatch.config.settings import ServiceEntry, Settings, get_settings
from svcwatch.exceptions.config import ConfigError
from svcwatch.monitoring.monitor import Monitor
from svcwatch.monitoring.notifier import LoggingListener
from svcwatch.server import StatusServer
from svcwatch.utils.logger import get_logger, setup_logging


logger = get_logger("Main")

_service_list = TypeAdapter(List[ServiceEntry])


def load_services_file(path: Path) -> List[ServiceEntry]:
    """
    Read a JSON list of ``{name, protocol, address}`` objects.

    Raises:
        ConfigError: the file is missing, not JSON, or fails validation
    """
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"Cannot read services file {path}: {e}", field="services_file", cause=e)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Services file {path} is not valid JSON: {e}", field="services_file", cause=e)

    try:
        return _service_list.validate_python(raw)
    except ValidationError as e:
        raise ConfigError(
            f"Services file {path} has invalid entries: {e.error_count()} error(s)",
            field="services_file",
            cause=e,
        )


# ============================================================================
# APPLICATION CLASS
# ============================================================================

class MonitorApplication:
    """
    Top-level application orchestrator.

    Owns the Monitor and the optional StatusServer, and is the single
    place that knows the startup / shutdown order.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

        self.monitor: Optional[Monitor] = None
        self.status_server: Optional[StatusServer] = None

        self._shutdown_event = asyncio.Event()
        self._is_running = False

    # ------------------------------------------------------------------
    # STARTUP PHASES
    # ------------------------------------------------------------------

    def _collect_services(self) -> List[ServiceEntry]:
        entries = list(self.settings.monitor.services)
        if self.settings.monitor.services_file:
            entries.extend(load_services_file(self.settings.monitor.services_file))
        return entries

    def _register_services(self) -> int:
        """Register every configured service; a bad entry is logged and skipped."""
        registered = 0
        for entry in self._collect_services():
            try:
                self.monitor.register(entry.name, entry.protocol, entry.address)
                registered += 1
            except ConfigError as e:
                logger.error(f"  ✗ Skipping service {entry.name!r}: {e.log_format()}")
        return registered

    async def startup(self) -> bool:
        """
        Execute the startup sequence.
        Returns False (and logs errors) if a critical phase fails.
        """
        logger.info("=" * 74)
        logger.info(f"  STARTING {self.settings.app_name} v{self.settings.app_version} …")
        logger.info("=" * 74)

        self.monitor = Monitor(self.settings.monitor)

        try:
            registered = self._register_services()
        except ConfigError as e:
            logger.error(f"  ✗ {e.log_format()}")
            return False

        if registered == 0:
            logger.warning("  ⚠ No services configured, set MONITOR_SERVICES or MONITOR_SERVICES_FILE")

        self.monitor.add_listener(LoggingListener("Transitions"))

        if self.settings.server.enabled:
            self.status_server = StatusServer(self.monitor, self.settings.server)
            try:
                await self.status_server.start()
            except OSError as e:
                logger.error(f"  ✗ StatusServer failed to bind: {e}")
                return False

        try:
            await self.monitor.start()
        except ConfigError as e:
            logger.error(f"  ✗ Monitor failed to start: {e.log_format()}")
            return False

        self._is_running = True
        logger.info(f"  ✓ Monitoring {registered} service(s)")
        return True

    # ------------------------------------------------------------------
    # SHUTDOWN
    # ------------------------------------------------------------------

    async def shutdown(self) -> None:
        """
        Graceful shutdown in reverse order. A failure in one step does not
        prevent the next one from running.
        """
        logger.info("  SHUTTING DOWN …")
        self._is_running = False

        if self.monitor:
            try:
                await self.monitor.stop()
            except Exception:
                logger.exception("  ✗ Monitor stop error")

        if self.status_server:
            try:
                await self.status_server.stop()
            except Exception:
                logger.exception("  ✗ StatusServer stop error")

        logger.info("  ✓ SHUTDOWN COMPLETE")

    def request_shutdown(self) -> None:
        self._shutdown_event.set()

    async def run(self) -> None:
        """Block until a shutdown is requested."""
        await self._shutdown_event.wait()


# ============================================================================
# SIGNAL HANDLER SETUP
# ============================================================================

def _install_signal_handlers(loop: asyncio.AbstractEventLoop, app: MonitorApplication) -> None:
    """
    Install SIGTERM / SIGINT handlers so that the monitor shuts down
    gracefully even when killed by the OS.
    """
    def _handle_signal(sig: signal.Signals) -> None:
        logger.info(f"  ⚡ {sig.name} received, initiating graceful shutdown…")
        app.request_shutdown()

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, _handle_signal, sig)
        except (NotImplementedError, RuntimeError):
            # not supported on Windows; KeyboardInterrupt still works
            logger.debug(f"  Signal handler for {sig.name} not supported here")


# ============================================================================
# MAIN ENTRY POINT
# ============================================================================

async def main() -> int:
    """
    Async main: creates the app, starts it, and runs until shutdown.
    """
    settings = get_settings()
    setup_logging(settings)

    app = MonitorApplication(settings)
    _install_signal_handlers(asyncio.get_running_loop(), app)

    if not await app.startup():
        logger.error("  ✗ Startup failed, exiting")
        await app.shutdown()
        return 1

    try:
        await app.run()
    finally:
        await app.shutdown()
    return 0


def run() -> None:
    """Console script entry point."""
    try:
        exit_code = asyncio.run(main())
    except KeyboardInterrupt:
        exit_code = 0
    sys.exit(exit_code)


if __name__ == "__main__":
    run()
