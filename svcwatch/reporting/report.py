"""
============================================================================
SVCWATCH - REPORTS
============================================================================
Plain-text and HTML renderings of a list of ServiceStatusView.

Rendering is pure: it reads the views it is given and nothing else, so a
report always describes one consistent snapshot.

License: MIT
============================================================================
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Union

from svcwatch.config.constants import ReportFormat
from svcwatch.exceptions.config import InvalidOptionError
from svcwatch.monitoring.metrics import summarize
from svcwatch.monitoring.models import ServiceStatusView
from svcwatch.utils.helpers import StatusHelper, StringHelper, TimeHelper


TEXT_COLUMNS = ("NAME", "PROTOCOL", "ADDRESS", "STATUS", "UPTIME", "AVG LATENCY", "LAST CHECK", "DIAGNOSTIC")


def parse_format(value: Union[ReportFormat, str]) -> ReportFormat:
    """Case-insensitive report format lookup."""
    if isinstance(value, ReportFormat):
        return value
    try:
        return ReportFormat(str(value).strip().lower())
    except ValueError:
        raise InvalidOptionError(
            "format", value, f"expected one of {', '.join(f.value for f in ReportFormat)}"
        )


def render_report(
    views: Sequence[ServiceStatusView],
    format: Union[ReportFormat, str] = ReportFormat.TEXT,
    generated_at: Optional[datetime] = None,
) -> str:
    """
    Render *views* in the requested format.

    Raises:
        InvalidOptionError: unknown format
    """
    report_format = parse_format(format)
    generated_at = generated_at or TimeHelper.get_utc_now()
    rows = [summarize(view) for view in views]

    if report_format is ReportFormat.HTML:
        return render_html(rows, generated_at)
    return render_text(rows, generated_at)


def _latency(value: float) -> str:
    return "n/a" if value < 0 else f"{value:.0f}ms"


def _last_check(row: Dict[str, Any]) -> str:
    if row["last_check"] is None:
        return "never"
    return TimeHelper.format_datetime(datetime.fromisoformat(row["last_check"]))


def _header(rows: List[Dict[str, Any]], generated_at: datetime) -> List[str]:
    up = sum(1 for row in rows if row["up"])
    return [
        f"Service report, generated {TimeHelper.format_datetime(generated_at)} UTC",
        f"Services: {len(rows)} total, {up} up, {len(rows) - up} down",
    ]


# ============================================================================
# TEXT
# ============================================================================

def render_text(rows: List[Dict[str, Any]], generated_at: datetime) -> str:
    lines = _header(rows, generated_at)
    if not rows:
        lines.append("")
        lines.append("No services registered.")
        return "\n".join(lines) + "\n"

    table = [TEXT_COLUMNS]
    for row in rows:
        table.append((
            row["name"],
            row["protocol"],
            StringHelper.truncate(row["address"], 48),
            StatusHelper.format_uptime_status(row["up"], row["checked"]),
            f"{row['uptime_percentage']:.2f}%",
            _latency(row["average_latency_ms"]),
            _last_check(row),
            StringHelper.truncate(row["diagnostic"] or "-", 60),
        ))

    widths = [max(len(line[i]) for line in table) for i in range(len(TEXT_COLUMNS))]

    lines.append("")
    for i, line in enumerate(table):
        lines.append("  ".join(cell.ljust(width) for cell, width in zip(line, widths)).rstrip())
        if i == 0:
            lines.append("  ".join("-" * width for width in widths))
    return "\n".join(lines) + "\n"


# ============================================================================
# HTML
# ============================================================================

_HTML_STYLE = (
    "body{font-family:sans-serif;margin:2em}"
    "table{border-collapse:collapse}"
    "th,td{border:1px solid #ccc;padding:4px 8px;text-align:left}"
    "tr.up td.status{color:#1a7f37}"
    "tr.down td.status{color:#cf222e}"
    "tr.unknown td.status{color:#6e7781}"
)


def render_html(rows: List[Dict[str, Any]], generated_at: datetime) -> str:
    esc = StringHelper.escape_html
    header = _header(rows, generated_at)

    parts = [
        "<!DOCTYPE html>",
        "<html>",
        "<head>",
        '<meta charset="utf-8">',
        "<title>Service report</title>",
        f"<style>{_HTML_STYLE}</style>",
        "</head>",
        "<body>",
        f"<h1>{esc(header[0])}</h1>",
        f"<p>{esc(header[1])}</p>",
    ]

    if not rows:
        parts.append("<p>No services registered.</p>")
    else:
        parts.append("<table>")
        parts.append("<tr>" + "".join(f"<th>{esc(column.title())}</th>" for column in TEXT_COLUMNS) + "</tr>")
        for row in rows:
            css = "unknown" if not row["checked"] else ("up" if row["up"] else "down")
            cells = (
                ("name", row["name"]),
                ("protocol", row["protocol"]),
                ("address", row["address"]),
                ("status", StatusHelper.format_uptime_status(row["up"], row["checked"])),
                ("uptime", f"{row['uptime_percentage']:.2f}%"),
                ("latency", _latency(row["average_latency_ms"])),
                ("checked", _last_check(row)),
                ("diagnostic", row["diagnostic"] or "-"),
            )
            parts.append(
                f'<tr class="{css}">'
                + "".join(f'<td class="{key}">{esc(value)}</td>' for key, value in cells)
                + "</tr>"
            )
        parts.append("</table>")

    parts.extend(["</body>", "</html>"])
    return "\n".join(parts) + "\n"
