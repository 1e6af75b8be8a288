# Shop Reports - Report aggregation & export for fabrication shops
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Sales reports.

The sales listing is a union of up to four source tables (quotations, sales
orders, invoices, cash sales), each selected by an include flag. Every record
is normalized into the same row shape:

    date, type, reference, client, status, amount

where ``amount`` is the grand total, falling back to the total amount when
the grand total is missing or zero. Rows are listed chronologically. When a
``group_by`` is requested (day, week, month, client or type) the listing is
folded into one row per group with a record count and the summed amount.

A second sub type lists the payments received in the period.
"""

from typing import Any

from .aggregation import (
    chronological,
    first_amount,
    group_sum,
    local_day,
    money_value,
    period_key,
    related_value,
    safe_instant,
    text_or_missing,
)
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

# flag -> (table, document number column, row type label)
SALES_SOURCES: dict[str, tuple[str, str, str]] = {
    "quotations": ("quotations", "quotation_number", "Quotation"),
    "orders": ("sales_orders", "order_number", "Sales Order"),
    "invoices": ("invoices", "invoice_number", "Invoice"),
    "cash_sales": ("cash_sales", "sale_number", "Cash Sale"),
}

DEFAULT_SALES_FLAGS = frozenset({"orders", "invoices", "cash_sales"})

GROUP_LABELS = {
    "day": "Day",
    "week": "Week",
    "month": "Month",
    "client": "Client",
    "type": "Type",
}

DETAIL_COLUMNS = (
    text("date", "Date"),
    text("type", "Type"),
    text("reference", "Reference"),
    text("client", "Client"),
    text("status", "Status", align="center"),
    money("amount", "Amount"),
)


def sales_source_query(flag: str, report_filter: ReportFilter) -> Query:
    """Query of one sales source table scoped by the filter."""
    table, number_column, _ = SALES_SOURCES[flag]
    query = (
        Query(table)
        .select(
            "id",
            number_column,
            "client_id",
            "date_created",
            "grand_total",
            "total_amount",
            "status",
        )
        .expand("client", "registered_entities", "client_id", "name")
        .within("date_created", report_filter.date_range)
        .order("date_created")
        .order("id")
    )
    if report_filter.entity_id is not None:
        query = query.eq("client_id", report_filter.entity_id)
    status = report_filter.option("status")
    if status:
        query = query.eq("status", status)
    return query


def plan_sales(report_filter: ReportFilter) -> dict[str, Query]:
    flags = report_filter.flags(DEFAULT_SALES_FLAGS)
    return {
        flag: sales_source_query(flag, report_filter)
        for flag in SALES_SOURCES
        if flag in flags
    }


def normalize_sales(data: FetchedData, ctx: BuildContext) -> list[dict[str, Any]]:
    """Union every fetched source into chronologically ordered sales records."""
    records: list[dict[str, Any]] = []
    for flag, (_, number_column, label) in SALES_SOURCES.items():
        for record in data.get(flag, []):
            instant = safe_instant(record.get("date_created"), ctx.anchor)
            records.append(
                {
                    "_at": instant,
                    "date": local_day(instant, ctx.anchor),
                    "type": label,
                    "reference": text_or_missing(record.get(number_column)),
                    "client": related_value(record, "client"),
                    "status": text_or_missing(record.get("status")),
                    "amount": money_value(
                        first_amount(record, "grand_total", "total_amount")
                    ),
                }
            )
    return chronological(records)


def build_sales(
    report_filter: ReportFilter, data: FetchedData, ctx: BuildContext
) -> ReportBody:
    records = normalize_sales(data, ctx)
    group_by = report_filter.group_by

    if not group_by:
        rows = [{c.key: r[c.key] for c in DETAIL_COLUMNS} for r in records]
        return ReportBody(columns=DETAIL_COLUMNS, rows=rows)

    for r in records:
        if group_by in ("day", "week", "month"):
            r["group"] = period_key(r["_at"], group_by, ctx.anchor)
        else:
            r["group"] = r[group_by]

    columns = (
        text("group", GROUP_LABELS[group_by]),
        number("count", "Count"),
        money("amount", "Amount"),
    )
    rows = group_sum(records, "group", ["amount"], count="count")
    return ReportBody(columns=columns, rows=rows)


# ---------------------------------------------------------------------------
# Payments received
# ---------------------------------------------------------------------------

PAYMENT_COLUMNS = (
    text("date", "Date"),
    text("reference", "Reference"),
    text("client", "Client"),
    text("method", "Method"),
    text("account", "Account"),
    money("amount", "Amount"),
)


def plan_payments(report_filter: ReportFilter) -> dict[str, Query]:
    query = (
        Query("payments")
        .expand("client", "registered_entities", "client_id", "name")
        .within("date_created", report_filter.date_range)
        .order("date_created")
        .order("id")
    )
    if report_filter.entity_id is not None:
        query = query.eq("client_id", report_filter.entity_id)
    return {"payments": query}


def build_payments(
    report_filter: ReportFilter, data: FetchedData, ctx: BuildContext
) -> ReportBody:
    records = []
    for record in data.get("payments", []):
        instant = safe_instant(record.get("date_created"), ctx.anchor)
        records.append(
            {
                "_at": instant,
                "date": local_day(instant, ctx.anchor),
                "reference": text_or_missing(
                    record.get("payment_number") or record.get("reference")
                ),
                "client": related_value(record, "client"),
                "method": text_or_missing(record.get("payment_method")),
                "account": text_or_missing(record.get("account_credited")),
                "amount": money_value(first_amount(record, "amount")),
            }
        )
    rows = [{c.key: r[c.key] for c in PAYMENT_COLUMNS} for r in chronological(records)]
    return ReportBody(columns=PAYMENT_COLUMNS, rows=rows)


DESCRIPTORS = (
    ReportDescriptor(
        report_type="sales",
        sub_type="detail",
        title="Sales Report",
        plan=plan_sales,
        build=build_sales,
        default_flags=DEFAULT_SALES_FLAGS,
        flag_choices=frozenset(SALES_SOURCES),
        group_by_choices=tuple(GROUP_LABELS),
        report_code="SR",
    ),
    ReportDescriptor(
        report_type="sales",
        sub_type="payments",
        title="Payments Received",
        plan=plan_payments,
        build=build_payments,
        report_code="SR",
    ),
)
