import pytest

from shop_reports.engine import aggregate
from shop_reports.financial import (
    classify_activity,
    entry_sides,
    financial_figures,
    opex_category,
    transaction_reference,
)
from shop_reports.models import ReportFilter
from shop_reports.registry import REGISTRY, sub_types


def test_financial_figures_scenario():
    figures = financial_figures(100000, 40000, 20000)

    assert figures.gross_profit == 60000
    assert figures.operating_profit == 40000
    assert figures.net_income == -60000


def test_financial_figures_ignore_bad_inputs():
    figures = financial_figures(None, "n/a", float("nan"), "1,500")
    assert figures.total_sales == 0.0
    assert figures.gross_profit == 0.0
    assert figures.net_income == 1500.0


def statement_store(make_store):
    return make_store(
        sales_orders=[
            {"date_created": "2025-01-05", "grand_total": 60000},
            {"date_created": "2025-01-20", "grand_total": 40000},
        ],
        payments=[{"date_created": "2025-01-21", "amount": 70000}],
        expenses=[
            {"date_created": "2025-01-06", "amount": 40000, "expense_type": "client", "category": "Materials"},
            {"date_created": "2025-01-10", "amount": 12000, "expense_type": "company", "category": "Staff salaries"},
            {"date_created": "2025-01-11", "amount": 5000, "expense_type": "company", "category": "Workshop rent"},
            {"date_created": "2025-01-12", "amount": 3000, "expense_type": "company", "category": None},
        ],
    )


def test_financial_summary_report(make_store, january):
    result = aggregate(statement_store(make_store), ReportFilter("financial", january))

    lines = {r["metric"]: r for r in result.rows}
    assert lines["Sales"]["amount"] == 100000.0
    assert lines["Sales"]["share"] == "100.0%"
    assert lines["Cost of Goods Sold"]["amount"] == 40000.0
    assert lines["Gross Profit"]["amount"] == 60000.0
    assert lines["Operating Expenses"]["amount"] == 20000.0
    assert lines["Operating Profit"]["amount"] == 40000.0
    assert lines["Operating Profit"]["share"] == "40.0%"
    assert lines["Net Income"]["amount"] == 10000.0

    assert result.summary["gross_profit"] == 60000.0
    assert result.summary["operating_profit"] == 40000.0
    assert result.totals == {}


def test_profit_and_loss_breaks_down_operating_expenses(make_store, january):
    result = aggregate(
        statement_store(make_store),
        ReportFilter("financial", january, sub_type="profit_loss"),
    )

    lines = {r["metric"]: r["amount"] for r in result.rows}
    assert lines["Revenue"] == 100000.0
    assert lines["Salaries"] == 12000.0
    assert lines["Rent"] == 5000.0
    assert lines["Other"] == 3000.0
    assert lines["Utilities"] == 0.0
    assert lines["Total Operating Expenses"] == 20000.0
    assert lines["Operating Income"] == 40000.0


def test_statements_without_data_are_empty(make_store, january):
    result = aggregate(make_store(), ReportFilter("financial", january, sub_type="profit_loss"))
    assert result.rows == ()
    assert result.summary["net_income"] == 0.0


def test_opex_category_keywords():
    assert opex_category("Electricity bill") == "Utilities"
    assert opex_category("Fuel & transport") == "Fuel"
    assert opex_category(None) == "Other"


def test_entry_sides_for_assets_and_liabilities():
    assert entry_sides("in", "cash", 100.0) == (100.0, 0.0)
    assert entry_sides("out", "bank", 100.0) == (0.0, 100.0)
    assert entry_sides("in", "loan", 100.0) == (0.0, 100.0)
    assert entry_sides("out", "credit", 100.0) == (100.0, 0.0)
    assert entry_sides("transfer", "cash", 100.0) == (0.0, 0.0)


def test_transaction_reference_prefers_structured_field():
    assert transaction_reference({"reference": "MPESA-XYZ", "description": "Paid INV0001234"}) == "MPESA-XYZ"
    assert transaction_reference({"description": "Payment for INV0001234."}) == "INV0001234"
    assert transaction_reference({"description": "Misc"}) == "-"


def test_cash_book_running_balance(make_store, january):
    store = make_store(
        account_transactions=[
            {"transaction_date": "2025-01-03 09:00", "transaction_type": "in", "account_type": "cash", "amount": 5000, "description": "Payment PAY0000001"},
            {"transaction_date": "2025-01-02 08:00", "transaction_type": "in", "account_type": "bank", "amount": 10000, "reference": "DEP-1"},
            {"transaction_date": "2025-01-04 10:00", "transaction_type": "out", "account_type": "mpesa", "amount": 2500, "description": "Fuel"},
            {"transaction_date": "2025-01-05 11:00", "transaction_type": "in", "account_type": "loan", "amount": 1000, "description": "Loan drawdown"},
            {"transaction_date": "2025-02-01 11:00", "transaction_type": "in", "account_type": "cash", "amount": 777},
        ]
    )

    result = aggregate(
        store,
        ReportFilter(
            "financial", january, sub_type="cash_book", options={"opening_balance": 500}
        ),
    )

    debits = [r["debit"] for r in result.rows]
    credits = [r["credit"] for r in result.rows]
    expected = []
    balance = 500.0
    for debit, credit in zip(debits, credits):
        balance += debit - credit
        expected.append(balance)

    assert [r["balance"] for r in result.rows] == pytest.approx(expected)
    assert [r["reference"] for r in result.rows] == ["DEP-1", "PAY0000001", "-", "-"]
    assert [r["account"] for r in result.rows] == ["Bank", "Cash", "M-Pesa", "Loan"]
    assert result.rows[-1]["credit"] == 1000.0
    assert result.summary["opening_balance"] == 500.0
    assert result.summary["closing_balance"] == pytest.approx(12000.0)
    assert result.totals["debit"] == pytest.approx(15000.0)
    assert result.totals["credit"] == pytest.approx(3500.0)
    assert "balance" not in result.totals


def test_cash_book_account_filter(make_store, january):
    store = make_store(
        account_transactions=[
            {"transaction_date": "2025-01-02", "transaction_type": "in", "account_type": "bank", "amount": 100},
            {"transaction_date": "2025-01-03", "transaction_type": "in", "account_type": "cash", "amount": 50},
        ]
    )
    result = aggregate(
        store,
        ReportFilter("financial", january, sub_type="cash_book", options={"account": "cash"}),
    )
    assert [r["debit"] for r in result.rows] == [50.0]
    assert result.summary["closing_balance"] == 50.0


def test_cash_flow_by_activity(make_store, january):
    store = make_store(
        account_transactions=[
            {"transaction_date": "2025-01-02", "transaction_type": "in", "account_type": "bank", "amount": 8000, "description": "Client payment"},
            {"transaction_date": "2025-01-03", "transaction_type": "out", "account_type": "bank", "amount": 3000, "description": "New edge banding machine"},
            {"transaction_date": "2025-01-04", "transaction_type": "in", "account_type": "bank", "amount": 5000, "description": "Bank loan"},
            {"transaction_date": "2025-01-05", "transaction_type": "out", "account_type": "cash", "amount": 500, "category": "operating", "description": "Tool hire"},
        ]
    )

    result = aggregate(store, ReportFilter("financial", january, sub_type="cash_flow"))

    rows = {r["activity"]: r for r in result.rows}
    assert rows["Operating activities"]["net"] == 7500.0
    assert rows["Investing activities"]["outflow"] == 3000.0
    assert rows["Financing activities"]["inflow"] == 5000.0
    assert result.summary["net_change"] == pytest.approx(9500.0)


def test_classify_activity_prefers_category():
    assert classify_activity({"category": "Financing", "description": "Machine"}) == "financing"
    assert classify_activity({"description": "Owner drawing"}) == "financing"
    assert classify_activity({"description": "Sold offcuts"}) == "operating"


def test_balance_sheet_as_of_period_end(make_store, january):
    store = make_store(
        account_transactions=[
            {"transaction_date": "2024-12-20", "transaction_type": "in", "account_type": "cash", "amount": 20000},
            {"transaction_date": "2025-01-10", "transaction_type": "out", "account_type": "cash", "amount": 5000},
            {"transaction_date": "2025-01-05", "transaction_type": "in", "account_type": "cooperative_bank", "amount": 50000},
            {"transaction_date": "2025-01-15", "transaction_type": "in", "account_type": "loan", "amount": 30000, "description": "Loan drawdown"},
            # Naive local time, still 31 January in Nairobi.
            {"transaction_date": "2025-01-31 23:30:00", "transaction_type": "in", "account_type": "bank", "amount": 1000},
            {"transaction_date": "2025-02-01 09:00:00", "transaction_type": "in", "account_type": "cash", "amount": 999},
        ],
        sales_orders=[
            {"date_created": "2024-12-01", "grand_total": 10000},
            {"date_created": "2025-01-05", "grand_total": 60000},
            {"date_created": "2025-02-03", "grand_total": 99999},
        ],
        payments=[
            {"date_created": "2025-01-21", "amount": 45000},
            {"date_created": "2025-02-02", "amount": 5000},
        ],
        stock_items=[
            {"name": "MDF Board 18mm", "quantity": 40, "unit_price": 3200},
            {"name": "Edge Banding", "quantity": 3, "unit_price": 1500},
        ],
    )

    result = aggregate(store, ReportFilter("financial", january, sub_type="balance_sheet"))

    assert [(r["section"], r["metric"], r["amount"]) for r in result.rows] == [
        ("Assets", "Cash", 15000.0),
        ("Assets", "Bank", 1000.0),
        ("Assets", "Co-op Bank", 50000.0),
        ("Assets", "Accounts Receivable", 25000.0),
        ("Assets", "Inventory", 132500.0),
        ("Assets", "Total Assets", 223500.0),
        ("Liabilities", "Loan", 30000.0),
        ("Liabilities", "Total Liabilities", 30000.0),
        ("Equity", "Owner's Equity", 193500.0),
    ]
    assert result.summary["total_assets"] == 223500.0
    assert result.summary["equity"] == 193500.0
    assert result.totals == {}


def test_balance_sheet_without_data_is_empty(make_store, january):
    result = aggregate(make_store(), ReportFilter("financial", january, sub_type="balance_sheet"))

    assert result.is_empty
    assert result.summary["equity"] == 0.0


def test_financial_reports_share_the_fr_report_code():
    assert "balance_sheet" in sub_types("financial")
    codes = {key: d.report_code for key, d in REGISTRY.items()}
    assert {codes[k] for k in codes if k[0] == "financial"} == {"FR"}
    assert set(codes.values()) <= {"SR", "ER", "IR", "CR", "FR", "XR"}
