"""
============================================================================
SVCWATCH - STATUS SERVER
============================================================================
Small aiohttp server exposing the monitor's state over HTTP, so the
monitor can itself be monitored.

Routes
------
    GET /                    → "OK" (liveness)
    GET /health              → process and monitor health, JSON
    GET /status              → one summary per service, JSON
    GET /report?format=text  → rendered report (text or html)

License: MIT
============================================================================
"""

import time
from typing import Optional

from aiohttp import web

from svcwatch.config.constants import ReportFormat
from svcwatch.config.settings import ServerSettings
from svcwatch.exceptions.config import ConfigError
from svcwatch.monitoring.metrics import summarize
from svcwatch.monitoring.monitor import Monitor
from svcwatch.reporting.report import parse_format, render_report
from svcwatch.utils.helpers import PerformanceHelper, TimeHelper
from svcwatch.utils.logger import get_logger


logger = get_logger("StatusServer")


class StatusServer:
    """
    aiohttp front end for one Monitor.

    Attributes
    ----------
    app : aiohttp.web.Application
        Exposed so tests can serve it with aiohttp's test utilities.
    """

    def __init__(self, monitor: Monitor, settings: Optional[ServerSettings] = None):
        self.monitor = monitor
        self.settings = settings or ServerSettings()
        self._app = web.Application()
        self._runner: Optional[web.AppRunner] = None
        self._site: Optional[web.TCPSite] = None
        self._start_time: float = time.time()
        self._request_count: int = 0

        # Register routes
        self._app.router.add_get("/", self._handle_root)
        self._app.router.add_get("/health", self._handle_health)
        self._app.router.add_get("/status", self._handle_status)
        self._app.router.add_get("/report", self._handle_report)

    @property
    def app(self) -> web.Application:
        return self._app

    @property
    def request_count(self) -> int:
        return self._request_count

    async def start(self) -> None:
        """Bind and start serving."""
        self._start_time = time.time()
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, self.settings.host, self.settings.port)
        await self._site.start()
        logger.info(f"✓ StatusServer listening on http://{self.settings.host}:{self.settings.port}")

    async def stop(self) -> None:
        """Gracefully shut down the server."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            self._site = None
        logger.info("✓ StatusServer stopped")

    # ------------------------------------------------------------------
    # ROUTE HANDLERS
    # ------------------------------------------------------------------

    async def _handle_root(self, request: web.Request) -> web.Response:
        """GET / — simple liveness probe."""
        self._request_count += 1
        return web.Response(text="OK", status=200)

    async def _handle_health(self, request: web.Request) -> web.Response:
        """GET /health — detailed health JSON."""
        self._request_count += 1
        uptime_seconds = time.time() - self._start_time
        views = self.monitor.snapshot_all()

        health = {
            "status": "healthy",
            "uptime_seconds": round(uptime_seconds, 1),
            "uptime_human": TimeHelper.seconds_to_human_readable(int(uptime_seconds)),
            "monitor_state": self.monitor.state.value,
            "services": len(views),
            "services_up": sum(1 for view in views if view.up),
            "memory_mb": round(PerformanceHelper.get_memory_usage(), 2),
            "requests_served": self._request_count,
            "timestamp": TimeHelper.get_utc_now().isoformat(),
        }
        return web.json_response(health, status=200)

    async def _handle_status(self, request: web.Request) -> web.Response:
        """GET /status — per-service summaries."""
        self._request_count += 1
        return web.json_response([summarize(view) for view in self.monitor.snapshot_all()])

    async def _handle_report(self, request: web.Request) -> web.Response:
        """GET /report — the same report generate_report() returns."""
        self._request_count += 1
        try:
            report_format = parse_format(request.query.get("format", ReportFormat.TEXT.value))
        except ConfigError as e:
            return web.json_response(e.to_dict(), status=400)

        body = render_report(self.monitor.snapshot_all(), report_format)
        content_type = "text/html" if report_format is ReportFormat.HTML else "text/plain"
        return web.Response(text=body, content_type=content_type, charset="utf-8")
