# Shop Reports - Report aggregation & export for fabrication shops
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Financial statements for Shop Reports.

Financial summary and profit & loss
-----------------------------------
Both statements are built from the same three fetches (sales orders,
payments, expenses) and derive every figure from those totals once:

    gross profit     = revenue - COGS
    operating profit = gross profit - operating expenses
    net income       = payments received - COGS - operating expenses

COGS are the client-attributable expenses (``expense_type = 'client'``);
operating expenses are the company expenses. Every line carries its share of
revenue, which is '0.0%' when there is no revenue.

Cash book
---------
Account transactions are scanned once, in timestamp order, keeping a running
``balance += debit - credit``. Whether a transaction is a debit or a credit
depends on its direction ('in' / 'out') and on the account kind: money
coming into an asset account (cash, bank, M-Pesa) is a debit, while for a
liability account (credit, loan) the sides are reversed.

Cash flow
---------
Transactions are classified into operating, investing and financing
activities, from their ``category`` when set, otherwise from keywords in the
description.

Balance sheet
-------------
Stated as of the end of the period: account balances (money in minus money
out) up to that instant, receivables as orders minus payments received, and
the current stock value. Credit and loan accounts are liabilities; equity is
total assets less total liabilities.
"""

import re
from dataclasses import dataclass
from typing import Any, Optional

from .aggregation import (
    chronological,
    first_amount,
    local_day,
    money_value,
    percent_of,
    running_balance,
    safe_instant,
    text_or_missing,
    to_amount,
)
from .models import (
    BuildContext,
    FetchedData,
    ReportBody,
    ReportDescriptor,
    ReportFilter,
    money,
    percent,
    text,
)
from .store import Query

# ---------------------------------------------------------------------------
# Shared figures
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FinancialFigures:
    """Derived figures of the financial summary and the P&L."""

    total_sales: float
    total_cogs: float
    total_expenses: float
    payments_received: float
    gross_profit: float
    operating_profit: float
    net_income: float

    def as_summary(self) -> dict[str, float]:
        return {
            "total_sales": self.total_sales,
            "total_cogs": self.total_cogs,
            "total_expenses": self.total_expenses,
            "payments_received": self.payments_received,
            "gross_profit": self.gross_profit,
            "operating_profit": self.operating_profit,
            "net_income": self.net_income,
        }


def financial_figures(
    total_sales: float,
    total_cogs: float,
    total_expenses: float,
    payments_received: float = 0.0,
) -> FinancialFigures:
    """Compute gross profit, operating profit and net income from totals."""
    sales = to_amount(total_sales)
    cogs = to_amount(total_cogs)
    expenses = to_amount(total_expenses)
    received = to_amount(payments_received)
    gross_profit = money_value(sales - cogs)
    return FinancialFigures(
        total_sales=money_value(sales),
        total_cogs=money_value(cogs),
        total_expenses=money_value(expenses),
        payments_received=money_value(received),
        gross_profit=gross_profit,
        operating_profit=money_value(gross_profit - expenses),
        net_income=money_value(received - cogs - expenses),
    )


OPEX_CATEGORIES: dict[str, tuple[str, ...]] = {
    "Salaries": ("salar", "wage", "payroll"),
    "Rent": ("rent",),
    "Utilities": ("utilit", "electric", "water", "internet"),
    "Supplies": ("suppl", "material"),
    "Fuel": ("fuel", "transport"),
}


def opex_category(category: Optional[str]) -> str:
    """Map a free-text expense category onto a P&L line."""
    name = (category or "").lower()
    for label, keywords in OPEX_CATEGORIES.items():
        if any(k in name for k in keywords):
            return label
    return "Other"


def plan_statement(report_filter: ReportFilter) -> dict[str, Query]:
    date_range = report_filter.date_range
    return {
        "orders": Query("sales_orders")
        .select("grand_total", "total_amount")
        .within("date_created", date_range),
        "payments": Query("payments")
        .select("amount")
        .within("date_created", date_range),
        "expenses": Query("expenses")
        .select("expense_type", "category", "amount")
        .within("date_created", date_range),
    }


def statement_totals(data: FetchedData) -> tuple[FinancialFigures, dict[str, float]]:
    """Fold the statement fetches into figures and operating expenses by line."""
    sales = sum(first_amount(r, "grand_total", "total_amount") for r in data.get("orders", []))
    received = sum(first_amount(r, "amount") for r in data.get("payments", []))

    cogs = 0.0
    opex: dict[str, float] = {label: 0.0 for label in OPEX_CATEGORIES}
    opex["Other"] = 0.0
    for record in data.get("expenses", []):
        amount = first_amount(record, "amount")
        if str(record.get("expense_type") or "").lower() == "client":
            cogs += amount
        else:
            opex[opex_category(record.get("category"))] += amount

    figures = financial_figures(sales, cogs, sum(opex.values()), received)
    return figures, {k: money_value(v) for k, v in opex.items()}


STATEMENT_COLUMNS = (
    text("metric", "Item"),
    money("amount", "Amount", total=False),
    percent("share", "% of Revenue"),
)


def _line(label: str, amount: float, revenue: float) -> dict[str, Any]:
    return {"metric": label, "amount": amount, "share": percent_of(amount, revenue)}


def _has_data(data: FetchedData) -> bool:
    return any(data.get(name) for name in ("orders", "payments", "expenses"))


def build_summary(
    report_filter: ReportFilter, data: FetchedData, ctx: BuildContext
) -> ReportBody:
    figures, _ = statement_totals(data)
    revenue = figures.total_sales
    rows = []
    if _has_data(data):
        rows = [
            _line("Sales", figures.total_sales, revenue),
            _line("Cost of Goods Sold", figures.total_cogs, revenue),
            _line("Gross Profit", figures.gross_profit, revenue),
            _line("Operating Expenses", figures.total_expenses, revenue),
            _line("Operating Profit", figures.operating_profit, revenue),
            _line("Payments Received", figures.payments_received, revenue),
            _line("Net Income", figures.net_income, revenue),
        ]
    return ReportBody(columns=STATEMENT_COLUMNS, rows=rows, summary=figures.as_summary())


def build_profit_loss(
    report_filter: ReportFilter, data: FetchedData, ctx: BuildContext
) -> ReportBody:
    figures, opex = statement_totals(data)
    revenue = figures.total_sales
    rows = []
    if _has_data(data):
        rows.append(_line("Revenue", figures.total_sales, revenue))
        rows.append(_line("Cost of Goods Sold", figures.total_cogs, revenue))
        rows.append(_line("Gross Profit", figures.gross_profit, revenue))
        for label, amount in opex.items():
            rows.append(_line(label, amount, revenue))
        rows.append(_line("Total Operating Expenses", figures.total_expenses, revenue))
        rows.append(_line("Operating Income", figures.operating_profit, revenue))
        rows.append(_line("Payments Received", figures.payments_received, revenue))
        rows.append(_line("Net Income", figures.net_income, revenue))
    return ReportBody(columns=STATEMENT_COLUMNS, rows=rows, summary=figures.as_summary())


# ---------------------------------------------------------------------------
# Cash book
# ---------------------------------------------------------------------------

ASSET_ACCOUNTS = frozenset({"cash", "bank", "cooperative_bank", "mpesa", "cheque"})
LIABILITY_ACCOUNTS = frozenset({"credit", "loan"})

ACCOUNT_LABELS = {
    "cash": "Cash",
    "bank": "Bank",
    "cooperative_bank": "Co-op Bank",
    "mpesa": "M-Pesa",
    "cheque": "Cheque",
    "credit": "Credit",
    "loan": "Loan",
}

# Document numbers such as INV0001234 or PAY0000042.
_REFERENCE_PATTERN = re.compile(r"^[A-Z]{2,4}\d{7}$")


def entry_sides(direction: Any, account_type: Any, amount: float) -> tuple[float, float]:
    """Return ``(debit, credit)`` of a transaction."""
    flow = str(direction or "").strip().lower()
    if flow not in ("in", "out"):
        return 0.0, 0.0
    incoming = flow == "in"
    if str(account_type or "").strip().lower() in LIABILITY_ACCOUNTS:
        incoming = not incoming
    return (amount, 0.0) if incoming else (0.0, amount)


def transaction_reference(record: dict[str, Any]) -> str:
    """Structured reference, else a document number found in the description."""
    reference = text_or_missing(record.get("reference"), "")
    if reference:
        return reference
    for token in str(record.get("description") or "").split():
        token = token.strip(".,;:()[]")
        if _REFERENCE_PATTERN.match(token):
            return token
    return "-"


def account_label(account_type: Any) -> str:
    key = str(account_type or "").strip().lower()
    if not key:
        return "-"
    return ACCOUNT_LABELS.get(key, key.replace("_", " ").title())


CASH_BOOK_COLUMNS = (
    text("date", "Date"),
    text("reference", "Reference"),
    text("description", "Description"),
    text("account", "Account"),
    money("debit", "Debit"),
    money("credit", "Credit"),
    money("balance", "Balance", total=False),
)


def plan_cash_book(report_filter: ReportFilter) -> dict[str, Query]:
    query = (
        Query("account_transactions")
        .within("transaction_date", report_filter.date_range)
        .order("transaction_date")
        .order("id")
    )
    account = report_filter.option("account")
    if account:
        query = query.eq("account_type", account)
    return {"transactions": query}


def build_cash_book(
    report_filter: ReportFilter, data: FetchedData, ctx: BuildContext
) -> ReportBody:
    opening = money_value(to_amount(report_filter.option("opening_balance", 0.0)))

    records = []
    for record in data.get("transactions", []):
        instant = safe_instant(record.get("transaction_date"), ctx.anchor)
        amount = money_value(abs(first_amount(record, "amount")))
        debit, credit = entry_sides(
            record.get("transaction_type"), record.get("account_type"), amount
        )
        records.append(
            {
                "_at": instant,
                "date": local_day(instant, ctx.anchor),
                "reference": transaction_reference(record),
                "description": text_or_missing(record.get("description"), ""),
                "account": account_label(record.get("account_type")),
                "debit": debit,
                "credit": credit,
            }
        )

    ordered = chronological(records)
    balances = running_balance(((r["debit"], r["credit"]) for r in ordered), opening)
    rows = [
        {
            "date": r["date"],
            "reference": r["reference"],
            "description": r["description"],
            "account": r["account"],
            "debit": r["debit"],
            "credit": r["credit"],
            "balance": balance,
        }
        for r, balance in zip(ordered, balances)
    ]

    summary = {
        "opening_balance": opening,
        "closing_balance": balances[-1] if balances else opening,
        "total_debit": money_value(sum(r["debit"] for r in rows)),
        "total_credit": money_value(sum(r["credit"] for r in rows)),
    }
    return ReportBody(columns=CASH_BOOK_COLUMNS, rows=rows, summary=summary)


# ---------------------------------------------------------------------------
# Cash flow
# ---------------------------------------------------------------------------

ACTIVITIES = ("operating", "investing", "financing")

_INVESTING_KEYWORDS = ("equipment", "machine", "vehicle", "property", "building", "tool")
_FINANCING_KEYWORDS = ("loan", "capital", "dividend", "drawing", "owner")


def classify_activity(record: dict[str, Any]) -> str:
    category = str(record.get("category") or "").strip().lower()
    if category in ACTIVITIES:
        return category
    description = str(record.get("description") or "").lower()
    if any(k in description for k in _INVESTING_KEYWORDS):
        return "investing"
    if any(k in description for k in _FINANCING_KEYWORDS):
        return "financing"
    return "operating"


CASH_FLOW_COLUMNS = (
    text("activity", "Activity"),
    money("inflow", "Inflow"),
    money("outflow", "Outflow"),
    money("net", "Net"),
)


def plan_cash_flow(report_filter: ReportFilter) -> dict[str, Query]:
    query = (
        Query("account_transactions")
        .within("transaction_date", report_filter.date_range)
        .order("transaction_date")
        .order("id")
    )
    return {"transactions": query}


def build_cash_flow(
    report_filter: ReportFilter, data: FetchedData, ctx: BuildContext
) -> ReportBody:
    transactions = data.get("transactions", [])
    flows = {a: {"inflow": 0.0, "outflow": 0.0} for a in ACTIVITIES}
    for record in transactions:
        amount = abs(first_amount(record, "amount"))
        direction = str(record.get("transaction_type") or "").strip().lower()
        if direction == "in":
            flows[classify_activity(record)]["inflow"] += amount
        elif direction == "out":
            flows[classify_activity(record)]["outflow"] += amount

    rows = []
    if transactions:
        for activity in ACTIVITIES:
            inflow = money_value(flows[activity]["inflow"])
            outflow = money_value(flows[activity]["outflow"])
            rows.append(
                {
                    "activity": f"{activity.capitalize()} activities",
                    "inflow": inflow,
                    "outflow": outflow,
                    "net": money_value(inflow - outflow),
                }
            )
    summary = {"net_change": money_value(sum(r["net"] for r in rows))}
    return ReportBody(columns=CASH_FLOW_COLUMNS, rows=rows, summary=summary)


# ---------------------------------------------------------------------------
# Balance sheet
# ---------------------------------------------------------------------------

BALANCE_SHEET_COLUMNS = (
    text("section", "Section"),
    text("metric", "Item"),
    money("amount", "Amount", total=False),
)


def plan_balance_sheet(report_filter: ReportFilter) -> dict[str, Query]:
    as_of = report_filter.date_range.end
    return {
        "transactions": Query("account_transactions")
        .select("transaction_type", "account_type", "amount")
        .lt("transaction_date", as_of),
        "orders": Query("sales_orders")
        .select("grand_total", "total_amount")
        .lt("date_created", as_of),
        "payments": Query("payments").select("amount").lt("date_created", as_of),
        "stock": Query("stock_items").select("quantity", "unit_price"),
    }


def account_balances(transactions: list[dict[str, Any]]) -> dict[str, float]:
    """Balance per account type: money in minus money out."""
    balances: dict[str, float] = {}
    for record in transactions:
        direction = str(record.get("transaction_type") or "").strip().lower()
        if direction not in ("in", "out"):
            continue
        key = str(record.get("account_type") or "").strip().lower() or "cash"
        amount = abs(first_amount(record, "amount"))
        signed = amount if direction == "in" else -amount
        balances[key] = balances.get(key, 0.0) + signed
    return {k: money_value(v) for k, v in balances.items()}


def _ordered_accounts(balances: dict[str, float]) -> list[str]:
    known = [k for k in ACCOUNT_LABELS if k in balances]
    return known + sorted(k for k in balances if k not in ACCOUNT_LABELS)


def build_balance_sheet(
    report_filter: ReportFilter, data: FetchedData, ctx: BuildContext
) -> ReportBody:
    balances = account_balances(data.get("transactions", []))
    orders = sum(first_amount(r, "grand_total", "total_amount") for r in data.get("orders", []))
    received = sum(first_amount(r, "amount") for r in data.get("payments", []))
    receivable = money_value(orders - received)
    inventory_value = money_value(
        sum(
            to_amount(r.get("quantity")) * to_amount(r.get("unit_price"))
            for r in data.get("stock", [])
        )
    )

    accounts = _ordered_accounts(balances)
    assets = [k for k in accounts if k not in LIABILITY_ACCOUNTS]
    liabilities = [k for k in accounts if k in LIABILITY_ACCOUNTS]

    cash_and_bank = money_value(sum(balances[k] for k in assets))
    total_assets = money_value(cash_and_bank + receivable + inventory_value)
    total_liabilities = money_value(sum(balances[k] for k in liabilities))
    equity = money_value(total_assets - total_liabilities)

    rows = []
    if any(data.get(name) for name in ("transactions", "orders", "payments", "stock")):
        for key in assets:
            rows.append(
                {"section": "Assets", "metric": account_label(key), "amount": balances[key]}
            )
        rows.append({"section": "Assets", "metric": "Accounts Receivable", "amount": receivable})
        rows.append({"section": "Assets", "metric": "Inventory", "amount": inventory_value})
        rows.append({"section": "Assets", "metric": "Total Assets", "amount": total_assets})
        for key in liabilities:
            rows.append(
                {"section": "Liabilities", "metric": account_label(key), "amount": balances[key]}
            )
        rows.append(
            {"section": "Liabilities", "metric": "Total Liabilities", "amount": total_liabilities}
        )
        rows.append({"section": "Equity", "metric": "Owner's Equity", "amount": equity})

    summary = {
        "cash_and_bank": cash_and_bank,
        "accounts_receivable": receivable,
        "inventory_value": inventory_value,
        "total_assets": total_assets,
        "total_liabilities": total_liabilities,
        "equity": equity,
    }
    return ReportBody(columns=BALANCE_SHEET_COLUMNS, rows=rows, summary=summary)


DESCRIPTORS = (
    ReportDescriptor(
        report_type="financial",
        sub_type="summary",
        title="Financial Summary",
        plan=plan_statement,
        build=build_summary,
        report_code="FR",
    ),
    ReportDescriptor(
        report_type="financial",
        sub_type="profit_loss",
        title="Profit & Loss Statement",
        plan=plan_statement,
        build=build_profit_loss,
        report_code="FR",
    ),
    ReportDescriptor(
        report_type="financial",
        sub_type="cash_book",
        title="Cash Book",
        plan=plan_cash_book,
        build=build_cash_book,
        report_code="FR",
    ),
    ReportDescriptor(
        report_type="financial",
        sub_type="cash_flow",
        title="Cash Flow Statement",
        plan=plan_cash_flow,
        build=build_cash_flow,
        report_code="FR",
    ),
    ReportDescriptor(
        report_type="financial",
        sub_type="balance_sheet",
        title="Balance Sheet",
        plan=plan_balance_sheet,
        build=build_balance_sheet,
        report_code="FR",
    ),
)
