# Shop Reports - Report aggregation & export for fabrication shops
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Tabular export sinks for Shop Reports.

This module turns a ``(columns, rows)`` pair into an output artifact:

- CSV   : UTF-8 bytes; every field double-quoted (internal quotes doubled),
          header row from the column labels, one line per row in row order,
          ``None`` written as an empty field. No rows gives the header line
          only.
- print : a self-contained HTML document (doctype, external stylesheet link,
          inline styles, header block, one table with a totals footer),
          rendered with jinja2 and autoescaping. Money cells go through the
          currency formatter.

Both renderers are pure: they produce bytes or a string and never touch the
filesystem. Writing files, opening a browser or generating PDFs belongs to
the orchestrator and its collaborators.
"""

import csv
from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any, Optional, Union

import pandas as pd
from jinja2 import Environment, PackageLoader

from .aggregation import to_amount
from .config import DEFAULT_STYLESHEET_URL
from .errors import ExportError
from .models import ColumnSpec, ReportResult
from .periods import DEFAULT_ANCHOR, CalendarAnchor

FORMATS: tuple[str, ...] = ("csv", "print", "pdf")

CSV_CONTENT_TYPE = "text/csv;charset=utf-8"
HTML_CONTENT_TYPE = "text/html;charset=utf-8"
PDF_CONTENT_TYPE = "application/pdf"

_EXTENSIONS = {"csv": "csv", "print": "html", "pdf": "pdf"}

_ENV = Environment(
    loader=PackageLoader("shop_reports", "templates"),
    autoescape=True,
    trim_blocks=True,
    lstrip_blocks=True,
)


# ---------------------------------------------------------------------------
# Value formatting
# ---------------------------------------------------------------------------


def format_currency(value: Any, currency: str = "KES", decimals: int = 2) -> str:
    """Format an amount as 'KES 1,234.50' (negative: '-KES 1,234.50')."""
    amount = to_amount(value)
    sign = "-" if amount < 0 else ""
    return f"{sign}{currency} {abs(amount):,.{decimals}f}"


def format_number(value: Any, decimals: int = 2) -> str:
    """Thousands-grouped number; whole numbers are written without decimals."""
    amount = to_amount(value)
    if float(amount).is_integer():
        return f"{int(amount):,}"
    return f"{amount:,.{decimals}f}"


def format_cell(
    value: Any, column: ColumnSpec, *, currency: str = "KES", decimals: int = 2
) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if column.kind == "money":
        return format_currency(value, currency, decimals)
    if column.kind == "percent":
        return f"{to_amount(value):.1f}%"
    if isinstance(value, (int, float)):
        return format_number(value, decimals)
    return str(value)


def default_filename(report_type: str, fmt: str, name: Optional[str] = None) -> str:
    """
    File name of an export: '<report-type>-report.<ext>' unless ``name`` is
    given, in which case the extension is appended when missing.
    """
    try:
        extension = _EXTENSIONS[fmt]
    except KeyError as exc:
        raise ExportError(f"Unsupported export format: {fmt!r}") from exc
    if name:
        return name if name.lower().endswith(f".{extension}") else f"{name}.{extension}"
    return f"{report_type}-report.{extension}"


# ---------------------------------------------------------------------------
# Renderers
# ---------------------------------------------------------------------------


def _csv_value(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def render_csv(columns: Sequence[ColumnSpec], rows: Sequence[Mapping[str, Any]]) -> bytes:
    """Render rows as RFC 4180 style CSV bytes (UTF-8, '\\n' line endings)."""
    data = [[_csv_value(row.get(c.key)) for c in columns] for row in rows]
    frame = pd.DataFrame(data, columns=[c.label for c in columns], dtype=object)
    text = frame.to_csv(index=False, quoting=csv.QUOTE_ALL, lineterminator="\n")
    return text.encode("utf-8")


def render_html(
    columns: Sequence[ColumnSpec],
    rows: Sequence[Mapping[str, Any]],
    *,
    title: str = "Report",
    totals: Optional[Mapping[str, float]] = None,
    period: Optional[str] = None,
    generated: Optional[str] = None,
    degraded: Sequence[str] = (),
    currency: str = "KES",
    decimals: int = 2,
    stylesheet_url: str = DEFAULT_STYLESHEET_URL,
) -> str:
    """Render rows as a complete printable HTML document."""
    body = [
        [
            {
                "align": c.align,
                "text": format_cell(row.get(c.key), c, currency=currency, decimals=decimals),
            }
            for c in columns
        ]
        for row in rows
    ]

    footer = []
    if totals:
        for index, c in enumerate(columns):
            if c.key in totals:
                cell_text = format_cell(totals[c.key], c, currency=currency, decimals=decimals)
            else:
                cell_text = "Total" if index == 0 else ""
            footer.append({"align": c.align, "text": cell_text})

    template = _ENV.get_template("print.html.j2")
    return template.render(
        title=title,
        period=period,
        generated=generated or f"{datetime.now():%d %b %Y %H:%M}",
        degraded=list(degraded),
        columns=columns,
        rows=body,
        footer=footer,
        stylesheet_url=stylesheet_url,
    )


def render(
    columns: Sequence[ColumnSpec],
    rows: Sequence[Mapping[str, Any]],
    fmt: str,
    **options: Any,
) -> Union[bytes, str]:
    """
    Render ``(columns, rows)`` in the requested format.

    'csv' returns bytes, 'print' returns the HTML document string. PDF
    output is produced by a ``PdfGenerator`` (see ``pdf``).

    Raises:
        ExportError: unsupported format.
    """
    if fmt == "csv":
        return render_csv(columns, rows)
    if fmt in ("print", "html"):
        return render_html(columns, rows, **options)
    raise ExportError(f"Unsupported export format for tabular sinks: {fmt!r}")


def render_result(
    result: ReportResult,
    fmt: str,
    *,
    currency: str = "KES",
    decimals: int = 2,
    stylesheet_url: str = DEFAULT_STYLESHEET_URL,
    anchor: CalendarAnchor = DEFAULT_ANCHOR,
) -> Union[bytes, str]:
    """Render a ``ReportResult`` with its title, period and totals."""
    if fmt == "csv":
        return render_csv(result.columns, result.rows)
    generated = result.generated_at.astimezone(anchor.tzinfo)
    return render(
        result.columns,
        result.rows,
        fmt,
        title=result.title,
        totals=result.totals,
        period=result.period.describe(anchor) if result.period else None,
        generated=f"{generated:%d %b %Y %H:%M}",
        degraded=result.degraded,
        currency=currency,
        decimals=decimals,
        stylesheet_url=stylesheet_url,
    )
