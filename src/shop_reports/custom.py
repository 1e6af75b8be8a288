# Shop Reports - Report aggregation & export for fabrication shops
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Custom overview report: one line per selected business area.

Each include flag (clients, sales, expenses, inventory) adds an independent
fetch. The sections do not depend on each other, so the report uses the
degrade policy: a failed section is shown as zero and flagged on the result.
"""

from .aggregation import first_amount, money_value, to_amount
from .models import (
    BuildContext,
    FetchedData,
    ReportBody,
    ReportDescriptor,
    ReportFilter,
    money,
    number,
    text,
)
from .store import Query

SECTIONS = ("clients", "sales", "expenses", "inventory")

COLUMNS = (
    text("metric", "Metric"),
    number("count", "Records", total=False),
    money("amount", "Amount", total=False),
)


def plan_custom(report_filter: ReportFilter) -> dict[str, Query]:
    flags = report_filter.flags(SECTIONS)
    date_range = report_filter.date_range
    queries: dict[str, Query] = {}
    if "clients" in flags:
        queries["clients"] = Query("registered_entities").select("id").eq("type", "client")
    if "sales" in flags:
        queries["sales"] = (
            Query("sales_orders")
            .select("grand_total", "total_amount")
            .within("date_created", date_range)
        )
    if "expenses" in flags:
        queries["expenses"] = (
            Query("expenses").select("amount").within("date_created", date_range)
        )
    if "inventory" in flags:
        queries["inventory"] = Query("stock_items").select("quantity", "unit_price")
    return queries


def build_custom(
    report_filter: ReportFilter, data: FetchedData, ctx: BuildContext
) -> ReportBody:
    flags = report_filter.flags(SECTIONS)
    rows = []
    summary: dict[str, float] = {}
    failed = flags.intersection(ctx.degraded)
    if not failed and not any(data.get(name) for name in SECTIONS):
        return ReportBody(columns=COLUMNS, rows=rows)

    if "clients" in flags:
        clients = data.get("clients", [])
        rows.append({"metric": "Clients", "count": len(clients), "amount": None})
        summary["total_clients"] = float(len(clients))

    if "sales" in flags:
        sales = data.get("sales", [])
        total = money_value(sum(first_amount(r, "grand_total", "total_amount") for r in sales))
        rows.append({"metric": "Sales", "count": len(sales), "amount": total})
        summary["total_sales"] = total

    if "expenses" in flags:
        expenses = data.get("expenses", [])
        total = money_value(sum(first_amount(r, "amount") for r in expenses))
        rows.append({"metric": "Expenses", "count": len(expenses), "amount": total})
        summary["total_expenses"] = total

    if "sales" in flags and "expenses" in flags:
        net = money_value(summary["total_sales"] - summary["total_expenses"])
        rows.append({"metric": "Net (Sales - Expenses)", "count": None, "amount": net})
        summary["net"] = net

    if "inventory" in flags:
        items = data.get("inventory", [])
        value = money_value(
            sum(to_amount(r.get("quantity")) * to_amount(r.get("unit_price")) for r in items)
        )
        rows.append({"metric": "Stock Value", "count": len(items), "amount": value})
        summary["stock_value"] = value

    return ReportBody(columns=COLUMNS, rows=rows, summary=summary)


DESCRIPTORS = (
    ReportDescriptor(
        report_type="custom",
        sub_type="summary",
        title="Custom Business Report",
        plan=plan_custom,
        build=build_custom,
        failure_policy="degrade",
        optional_fetches=frozenset(SECTIONS),
        default_flags=frozenset(SECTIONS),
        flag_choices=frozenset(SECTIONS),
        report_code="XR",
    ),
)
