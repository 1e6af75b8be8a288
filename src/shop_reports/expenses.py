# Shop Reports - Report aggregation & export for fabrication shops
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Expense reports.

Expenses are either company expenses (rent, salaries, fuel, ...) or client
expenses attributable to a job, the latter being the shop's cost of goods
sold. The include flags ``company_expenses`` / ``client_expenses`` select
which kinds are listed; a missing category or department falls back to
'Uncategorized' / 'General'.
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

EXPENSE_TYPES = {"company_expenses": "company", "client_expenses": "client"}

DEFAULT_EXPENSE_FLAGS = frozenset(EXPENSE_TYPES)

GROUP_LABELS = {
    "day": "Day",
    "week": "Week",
    "month": "Month",
    "category": "Category",
    "department": "Department",
}

DETAIL_COLUMNS = (
    text("date", "Date"),
    text("category", "Category"),
    text("department", "Department"),
    text("type", "Type"),
    text("client", "Client"),
    text("description", "Description"),
    money("amount", "Amount"),
)


def expenses_query(report_filter: ReportFilter) -> Query:
    query = (
        Query("expenses")
        .expand("client", "registered_entities", "client_id", "name")
        .within("date_created", report_filter.date_range)
        .order("date_created")
        .order("id")
    )
    flags = report_filter.flags(DEFAULT_EXPENSE_FLAGS)
    kinds = [kind for flag, kind in EXPENSE_TYPES.items() if flag in flags]
    if len(kinds) < len(EXPENSE_TYPES):
        query = query.in_("expense_type", kinds)
    if report_filter.entity_id is not None:
        query = query.eq("client_id", report_filter.entity_id)
    category = report_filter.option("category")
    if category:
        query = query.eq("category", category)
    return query


def plan_expenses(report_filter: ReportFilter) -> dict[str, Query]:
    return {"expenses": expenses_query(report_filter)}


def normalize_expenses(data: FetchedData, ctx: BuildContext) -> list[dict[str, Any]]:
    records = []
    for record in data.get("expenses", []):
        instant = safe_instant(record.get("date_created"), ctx.anchor)
        kind = text_or_missing(record.get("expense_type"), "company")
        records.append(
            {
                "_at": instant,
                "date": local_day(instant, ctx.anchor),
                "category": text_or_missing(record.get("category"), "Uncategorized"),
                "department": text_or_missing(record.get("department"), "General"),
                "type": kind.capitalize(),
                "client": related_value(record, "client"),
                "description": text_or_missing(record.get("description"), ""),
                "amount": money_value(first_amount(record, "amount")),
            }
        )
    return chronological(records)


def build_expenses(
    report_filter: ReportFilter, data: FetchedData, ctx: BuildContext
) -> ReportBody:
    records = normalize_expenses(data, ctx)
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


DESCRIPTORS = (
    ReportDescriptor(
        report_type="expenses",
        sub_type="detail",
        title="Expense Report",
        plan=plan_expenses,
        build=build_expenses,
        default_flags=DEFAULT_EXPENSE_FLAGS,
        flag_choices=DEFAULT_EXPENSE_FLAGS,
        group_by_choices=tuple(GROUP_LABELS),
        report_code="ER",
    ),
)
