# Shop Reports - Report aggregation & export for fabrication shops
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Client reports.

Per-client figures are computed with one query per metric (orders, payments,
client expenses, ...) covering every client at once; the rows of each result
set are then folded into a map keyed by client id. The number of store
round trips therefore does not depend on the number of clients.

The balance report uses the degrade policy for its expenses column: the
expenses are informational only (the balance is orders minus payments), so a
failed expenses fetch zero-fills that column and flags it instead of failing
the whole report.
"""

from collections import defaultdict
from collections.abc import Iterable
from typing import Any, Optional

from .aggregation import first_amount, local_day, money_value, safe_instant, text_or_missing
from .models import (
    BuildContext,
    FetchedData,
    ReportBody,
    ReportDescriptor,
    ReportFilter,
    money,
    text,
)
from .store import Query


def _client_key(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def clients_query(report_filter: ReportFilter) -> Query:
    query = Query("registered_entities").eq("type", "client").order("name").order("id")
    if report_filter.entity_id is not None:
        query = query.eq("id", report_filter.entity_id)
    return query


def _metric_query(table: str, report_filter: ReportFilter, *amount_columns: str) -> Query:
    query = (
        Query(table)
        .select("client_id", *amount_columns)
        .within("date_created", report_filter.date_range)
    )
    if report_filter.entity_id is not None:
        query = query.eq("client_id", report_filter.entity_id)
    return query


def sum_by_client(
    records: Iterable[dict[str, Any]], *amount_columns: str
) -> dict[str, float]:
    """Fold a metric result set into ``{client id: summed amount}``."""
    totals: dict[str, float] = defaultdict(float)
    for record in records:
        key = _client_key(record.get("client_id"))
        if key is None:
            continue
        totals[key] += first_amount(record, *amount_columns)
    return dict(totals)


# ---------------------------------------------------------------------------
# Balances
# ---------------------------------------------------------------------------

BALANCE_COLUMNS = (
    text("client", "Client"),
    text("phone", "Phone"),
    text("location", "Location"),
    money("orders", "Orders"),
    money("payments", "Payments"),
    money("expenses", "Expenses"),
    money("balance", "Balance"),
)


def plan_balance(report_filter: ReportFilter) -> dict[str, Query]:
    return {
        "clients": clients_query(report_filter),
        "orders": _metric_query("sales_orders", report_filter, "grand_total", "total_amount"),
        "payments": _metric_query("payments", report_filter, "amount"),
        "expenses": _metric_query("expenses", report_filter, "amount").eq(
            "expense_type", "client"
        ),
    }


def build_balance(
    report_filter: ReportFilter, data: FetchedData, ctx: BuildContext
) -> ReportBody:
    orders = sum_by_client(data.get("orders", []), "grand_total", "total_amount")
    payments = sum_by_client(data.get("payments", []), "amount")
    expenses = sum_by_client(data.get("expenses", []), "amount")

    rows = []
    for client in data.get("clients", []):
        key = _client_key(client.get("id"))
        ordered = money_value(orders.get(key, 0.0))
        paid = money_value(payments.get(key, 0.0))
        rows.append(
            {
                "client": text_or_missing(client.get("name")),
                "phone": text_or_missing(client.get("phone")),
                "location": text_or_missing(client.get("location")),
                "orders": ordered,
                "payments": paid,
                "expenses": money_value(expenses.get(key, 0.0)),
                "balance": money_value(ordered - paid),
            }
        )
    return ReportBody(columns=BALANCE_COLUMNS, rows=rows)


# ---------------------------------------------------------------------------
# Activity
# ---------------------------------------------------------------------------

# fetch name -> (table, amount columns, column label)
ACTIVITY_METRICS: dict[str, tuple[str, tuple[str, ...], str]] = {
    "quotations": ("quotations", ("grand_total", "total_amount"), "Quotations"),
    "orders": ("sales_orders", ("grand_total", "total_amount"), "Orders"),
    "invoices": ("invoices", ("grand_total", "total_amount"), "Invoices"),
    "payments": ("payments", ("amount",), "Payments"),
}

ACTIVITY_COLUMNS = (text("client", "Client"),) + tuple(
    money(name, label) for name, (_, _, label) in ACTIVITY_METRICS.items()
)


def plan_activity(report_filter: ReportFilter) -> dict[str, Query]:
    queries = {"clients": clients_query(report_filter)}
    for name, (table, amount_columns, _) in ACTIVITY_METRICS.items():
        queries[name] = _metric_query(table, report_filter, *amount_columns)
    return queries


def build_activity(
    report_filter: ReportFilter, data: FetchedData, ctx: BuildContext
) -> ReportBody:
    sums = {
        name: sum_by_client(data.get(name, []), *amount_columns)
        for name, (_, amount_columns, _) in ACTIVITY_METRICS.items()
    }
    rows = []
    for client in data.get("clients", []):
        key = _client_key(client.get("id"))
        row: dict[str, Any] = {"client": text_or_missing(client.get("name"))}
        for name in ACTIVITY_METRICS:
            row[name] = money_value(sums[name].get(key, 0.0))
        rows.append(row)
    return ReportBody(columns=ACTIVITY_COLUMNS, rows=rows)


# ---------------------------------------------------------------------------
# New clients
# ---------------------------------------------------------------------------

NEW_CLIENT_COLUMNS = (
    text("client", "Client"),
    text("phone", "Phone"),
    text("location", "Location"),
    text("status", "Status", align="center"),
    text("registered", "Registered"),
)


def plan_new_clients(report_filter: ReportFilter) -> dict[str, Query]:
    query = (
        Query("registered_entities")
        .eq("type", "client")
        .within("date_added", report_filter.date_range)
        .order("date_added")
        .order("id")
    )
    return {"clients": query}


def build_new_clients(
    report_filter: ReportFilter, data: FetchedData, ctx: BuildContext
) -> ReportBody:
    rows = [
        {
            "client": text_or_missing(client.get("name")),
            "phone": text_or_missing(client.get("phone")),
            "location": text_or_missing(client.get("location")),
            "status": text_or_missing(client.get("status")),
            "registered": local_day(
                safe_instant(client.get("date_added"), ctx.anchor), ctx.anchor
            ),
        }
        for client in data.get("clients", [])
    ]
    return ReportBody(columns=NEW_CLIENT_COLUMNS, rows=rows)


DESCRIPTORS = (
    ReportDescriptor(
        report_type="clients",
        sub_type="balance",
        title="Client Balance Report",
        plan=plan_balance,
        build=build_balance,
        failure_policy="degrade",
        optional_fetches=frozenset({"expenses"}),
        report_code="CR",
    ),
    ReportDescriptor(
        report_type="clients",
        sub_type="activity",
        title="Client Activity Report",
        plan=plan_activity,
        build=build_activity,
        report_code="CR",
    ),
    ReportDescriptor(
        report_type="clients",
        sub_type="new",
        title="New Clients Report",
        plan=plan_new_clients,
        build=build_new_clients,
        report_code="CR",
    ),
)
