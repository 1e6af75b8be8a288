# Shop Reports - Report aggregation & export for fabrication shops
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
PDF output for Shop Reports.

The orchestrator hands a fixed ``PdfPayload`` shape
(title, columns, rows, totals, period, generated date) to any object
implementing the ``PdfGenerator`` protocol. ``ReportLabPdfGenerator`` is the
shipped implementation: company header, report number, the report table and
its totals row, laid out with reportlab platypus flowables.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from io import BytesIO
from typing import Any, Optional, Protocol
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from .config import CompanyInfo
from .export import format_cell
from .models import ColumnSpec, ReportResult
from .periods import DEFAULT_ANCHOR, CalendarAnchor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PdfPayload:
    """Everything a PDF generator needs to lay out one report."""

    title: str
    columns: tuple[ColumnSpec, ...]
    rows: tuple[Mapping[str, Any], ...]
    totals: Mapping[str, float]
    period: str
    generated_date: str
    report_number: str = ""
    degraded: tuple[str, ...] = ()


class PdfGenerator(Protocol):
    def generate(self, payload: PdfPayload) -> bytes: ...


def report_number(code: str, generated_at: datetime) -> str:
    """Printed report number, e.g. 'SR-20250131-1430'."""
    return f"{code}-{generated_at:%Y%m%d-%H%M}"


def pdf_filename(report_type: str, generated_at: datetime) -> str:
    return f"{report_type}_report_{generated_at:%Y-%m-%d}.pdf"


def build_pdf_payload(
    result: ReportResult,
    *,
    report_code: str = "RP",
    anchor: CalendarAnchor = DEFAULT_ANCHOR,
) -> PdfPayload:
    generated = result.generated_at.astimezone(anchor.tzinfo)
    return PdfPayload(
        title=result.title,
        columns=result.columns,
        rows=result.rows,
        totals=result.totals,
        period=result.period.describe(anchor) if result.period else "",
        generated_date=f"{generated:%d %b %Y %H:%M}",
        report_number=report_number(report_code, generated),
        degraded=result.degraded,
    )


_ALIGN = {"left": "LEFT", "right": "RIGHT", "center": "CENTER"}


class ReportLabPdfGenerator:
    """``PdfGenerator`` rendering A4 reports with reportlab."""

    def __init__(
        self,
        company: Optional[CompanyInfo] = None,
        *,
        currency: str = "KES",
        decimals: int = 2,
    ) -> None:
        self.company = company or CompanyInfo()
        self.currency = currency
        self.decimals = decimals

    def _cell(self, value: Any, column: ColumnSpec) -> str:
        return format_cell(value, column, currency=self.currency, decimals=self.decimals)

    def _header(self, payload: PdfPayload, styles) -> list:
        company = self.company
        elements = [
            Paragraph(f"<b>{escape(company.name)}</b>", styles["Title"]),
            Paragraph(
                escape(f"{company.location} | {company.phone} | {company.email}"),
                styles["Normal"],
            ),
            Spacer(1, 0.15 * inch),
            Paragraph(escape(payload.title), styles["Heading2"]),
        ]
        meta = [
            ("Report No", payload.report_number),
            ("Period", payload.period),
            ("Generated", payload.generated_date),
        ]
        for label, value in meta:
            if value:
                elements.append(
                    Paragraph(f"<b>{label}:</b> {escape(value)}", styles["Normal"])
                )
        if payload.degraded:
            elements.append(
                Paragraph(
                    "<b>Incomplete data:</b> "
                    + escape(", ".join(payload.degraded))
                    + " shown as zero.",
                    styles["Normal"],
                )
            )
        elements.append(Spacer(1, 0.2 * inch))
        return elements

    def _table(self, payload: PdfPayload) -> Table:
        columns = payload.columns
        data = [[c.label for c in columns]]
        for row in payload.rows:
            data.append([self._cell(row.get(c.key), c) for c in columns])

        has_totals = bool(payload.totals)
        if has_totals:
            footer = []
            for index, c in enumerate(columns):
                if c.key in payload.totals:
                    footer.append(self._cell(payload.totals[c.key], c))
                else:
                    footer.append("Total" if index == 0 else "")
            data.append(footer)

        table = Table(data, repeatRows=1)
        style = [
            ("FONT", (0, 0), (-1, 0), "Helvetica-Bold", 9),
            ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#366092")),
            ("TEXTCOLOR", (0, 0), (-1, 0), colors.whitesmoke),
            ("FONT", (0, 1), (-1, -1), "Helvetica", 8),
            ("GRID", (0, 0), (-1, -1), 0.25, colors.HexColor("#cccccc")),
            ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#f5f5f5")]),
            ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ]
        for index, c in enumerate(columns):
            style.append(("ALIGN", (index, 0), (index, -1), _ALIGN[c.align]))
        if has_totals and len(data) > 1:
            style.append(("FONT", (0, -1), (-1, -1), "Helvetica-Bold", 8))
            style.append(("LINEABOVE", (0, -1), (-1, -1), 1, colors.black))
        table.setStyle(TableStyle(style))
        return table

    def generate(self, payload: PdfPayload) -> bytes:
        buffer = BytesIO()
        pagesize = landscape(A4) if len(payload.columns) > 6 else A4
        doc = SimpleDocTemplate(
            buffer,
            pagesize=pagesize,
            topMargin=0.6 * inch,
            bottomMargin=0.5 * inch,
            leftMargin=0.5 * inch,
            rightMargin=0.5 * inch,
            title=payload.title,
        )
        styles = getSampleStyleSheet()

        elements = self._header(payload, styles)
        elements.append(self._table(payload))
        if not payload.rows:
            elements.append(Spacer(1, 0.1 * inch))
            elements.append(Paragraph("<i>No data for the selected period.</i>", styles["Normal"]))

        doc.build(elements)
        logger.debug("Rendered PDF %r (%d rows)", payload.title, len(payload.rows))
        return buffer.getvalue()
