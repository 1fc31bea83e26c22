"""
Tests for text and HTML reports.
"""

from datetime import datetime, timezone

import pytest

from svcwatch.config.constants import ConfigErrorKind, Protocol, ReportFormat
from svcwatch.exceptions.config import InvalidOptionError
from svcwatch.monitoring.models import HistoryRecord, ServiceDefinition, ServiceStatusView
from svcwatch.reporting.report import parse_format, render_report


NOW = datetime(2024, 6, 1, 12, 30, tzinfo=timezone.utc)


def _view(name, up, checked=True, diagnostic=None, address="db:5432"):
    history = (HistoryRecord(up, 12 if up else -1, NOW),) if checked else ()
    return ServiceStatusView(
        definition=ServiceDefinition(name, Protocol.TCP, address),
        up=up,
        last_timestamp=NOW if checked else None,
        last_latency_ms=12 if up else -1,
        last_diagnostic=diagnostic,
        history=history,
        history_capacity=10,
    )


@pytest.fixture
def views():
    return [
        _view("db", True),
        _view("cache", False, diagnostic="ConnectRefused: refused"),
        _view("new", False, checked=False),
    ]


class TestTextReport:

    def test_contains_every_service(self, views):
        report = render_report(views, "text", generated_at=NOW)
        for name in ("db", "cache", "new"):
            assert name in report
        assert "Services: 3 total, 1 up, 2 down" in report
        assert "2024-06-01 12:30:00" in report

    def test_status_columns(self, views):
        report = render_report(views, ReportFormat.TEXT, generated_at=NOW)
        lines = report.splitlines()
        assert any("db" in line and "UP" in line and "100.00%" in line and "12ms" in line for line in lines)
        assert any("cache" in line and "DOWN" in line and "ConnectRefused: refused" in line for line in lines)
        assert any("new" in line and "UNKNOWN" in line and "never" in line for line in lines)

    def test_empty(self):
        assert "No services registered." in render_report([], "text", generated_at=NOW)

    def test_is_pure(self, views):
        assert render_report(views, "text", generated_at=NOW) == render_report(views, "text", generated_at=NOW)


class TestHtmlReport:

    def test_structure(self, views):
        report = render_report(views, "HTML", generated_at=NOW)
        assert report.startswith("<!DOCTYPE html>")
        assert report.count('<tr class="') == 3
        assert '<tr class="up">' in report
        assert '<tr class="down">' in report
        assert '<tr class="unknown">' in report

    def test_escapes_user_content(self):
        report = render_report(
            [_view("<script>alert(1)</script>", False, diagnostic="ProtocolError: <b>bad</b>")],
            "html",
            generated_at=NOW,
        )
        assert "<script>" not in report
        assert "&lt;script&gt;" in report
        assert "&lt;b&gt;bad&lt;/b&gt;" in report


@pytest.mark.parametrize("value", ["pdf", "", "json"])
def test_unknown_format(value):
    with pytest.raises(InvalidOptionError) as exc_info:
        parse_format(value)
    assert exc_info.value.kind is ConfigErrorKind.INVALID_OPTION


def test_parse_format_is_case_insensitive():
    assert parse_format(" Text ") is ReportFormat.TEXT
    assert parse_format(ReportFormat.HTML) is ReportFormat.HTML
