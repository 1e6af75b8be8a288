import csv
import io

import pytest

from shop_reports.errors import ExportError
from shop_reports.export import (
    default_filename,
    format_cell,
    format_currency,
    format_number,
    render,
    render_csv,
    render_html,
)
from shop_reports.models import money, number, text

COLUMNS = (text("date", "Date"), text("client", "Client"), money("amount", "Amount"))


def test_csv_round_trips_awkward_values():
    rows = [
        {"date": "2025-01-05", "client": 'Jane "JW" Wanjiru', "amount": 1000.5},
        {"date": "2025-01-06", "client": "Acme, Interiors\nThika", "amount": None},
    ]

    data = render_csv(COLUMNS, rows)

    parsed = list(csv.reader(io.StringIO(data.decode("utf-8"))))
    assert parsed == [
        ["Date", "Client", "Amount"],
        ["2025-01-05", 'Jane "JW" Wanjiru', "1000.5"],
        ["2025-01-06", "Acme, Interiors\nThika", ""],
    ]
    assert b'"Jane ""JW"" Wanjiru"' in data


def test_csv_without_rows_is_header_only():
    assert render_csv(COLUMNS, []) == b'"Date","Client","Amount"\n'


def test_html_document_structure():
    rows = [{"date": "2025-01-05", "client": "<b>Jane</b>", "amount": 1234.5}]

    html = render_html(
        COLUMNS,
        rows,
        title="Sales Report",
        totals={"amount": 1234.5},
        period="01 Jan 2025 - 31 Jan 2025",
        generated="15 Jan 2025 09:30",
        stylesheet_url="https://cdn.example.test/style.css",
    )

    assert html.startswith("<!DOCTYPE html>")
    assert '<link rel="stylesheet" href="https://cdn.example.test/style.css">' in html
    assert "<title>Sales Report</title>" in html
    assert "Period: 01 Jan 2025 - 31 Jan 2025" in html
    assert "&lt;b&gt;Jane&lt;/b&gt;" in html
    assert '<td class="text-right">KES 1,234.50</td>' in html
    assert "<tfoot>" in html
    assert '<td class="text-left">Total</td>' in html
    assert "No data for the selected period." not in html
    assert "Incomplete data:" not in html


def test_html_without_rows_and_with_degraded_fetches():
    html = render_html(COLUMNS, [], title="Custom Business Report", degraded=["inventory"])

    assert "No data for the selected period." in html
    assert "Incomplete data: inventory could not be loaded and is shown as zero." in html
    assert "<tfoot>" not in html


def test_render_dispatch_and_unknown_format():
    assert isinstance(render(COLUMNS, [], "csv"), bytes)
    assert isinstance(render(COLUMNS, [], "print", title="X"), str)
    with pytest.raises(ExportError):
        render(COLUMNS, [], "xlsx")


@pytest.mark.parametrize(
    "value, expected",
    [
        (1234.5, "KES 1,234.50"),
        (0, "KES 0.00"),
        (-80, "-KES 80.00"),
        ("1,000", "KES 1,000.00"),
        (None, "KES 0.00"),
    ],
)
def test_format_currency(value, expected):
    assert format_currency(value) == expected


def test_format_number_and_cells():
    assert format_number(1500) == "1,500"
    assert format_number(2.5) == "2.50"
    assert format_cell(None, money("amount", "Amount")) == ""
    assert format_cell("40.0%", text("share", "Share")) == "40.0%"
    assert format_cell(12, number("count", "Count")) == "12"
    assert format_cell(99.5, money("amount", "Amount"), currency="USD", decimals=0) == "USD 100"


def test_default_filename():
    assert default_filename("sales", "csv") == "sales-report.csv"
    assert default_filename("inventory", "print") == "inventory-report.html"
    assert default_filename("sales", "csv", "january") == "january.csv"
    assert default_filename("sales", "csv", "january.CSV") == "january.CSV"
    with pytest.raises(ExportError):
        default_filename("sales", "docx")
