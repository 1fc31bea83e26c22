"""
Reporting Package for svcwatch

Text and HTML renderings of a monitor snapshot.
"""

from svcwatch.reporting.report import parse_format, render_html, render_report, render_text

__all__ = [
    "parse_format",
    "render_report",
    "render_text",
    "render_html",
]
