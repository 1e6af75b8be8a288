# Shop Reports - Report aggregation & export for fabrication shops
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Inventory reports.

Stock levels are a snapshot of ``stock_items`` and do not depend on the date
range; only the movement report is scoped by it.

Sub types:
    current      : every item with its stock value (quantity x unit price)
    value        : stock value per category with its share of the total
    low_stock    : items at or below their reorder level
    out_of_stock : items with no quantity left
    movement     : stock in/out per item or category over the period
"""

from .aggregation import (
    MISSING,
    group_sum,
    money_value,
    percent_of,
    related_value,
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
    number,
    percent,
    text,
)
from .store import Query


def _stock_query(report_filter: ReportFilter) -> Query:
    query = Query("stock_items").order("name").order("id")
    category = report_filter.option("category")
    if category:
        query = query.eq("category", category)
    return query


def plan_stock(report_filter: ReportFilter) -> dict[str, Query]:
    return {"stock_items": _stock_query(report_filter)}


def _item_fields(record: dict) -> dict:
    quantity = to_amount(record.get("quantity"))
    unit_price = to_amount(record.get("unit_price"))
    return {
        "item": text_or_missing(record.get("name")),
        "sku": text_or_missing(record.get("sku")),
        "category": text_or_missing(record.get("category"), "Uncategorized"),
        "unit": text_or_missing(record.get("unit"), "pcs"),
        "quantity": quantity,
        "reorder_level": to_amount(record.get("reorder_level")),
        "unit_price": money_value(unit_price),
        "value": money_value(quantity * unit_price),
    }


CURRENT_COLUMNS = (
    text("item", "Item"),
    text("sku", "SKU"),
    text("category", "Category"),
    text("unit", "Unit", align="center"),
    number("quantity", "Quantity"),
    money("unit_price", "Unit Price", total=False),
    money("value", "Value"),
)


def build_current(
    report_filter: ReportFilter, data: FetchedData, ctx: BuildContext
) -> ReportBody:
    items = [_item_fields(r) for r in data.get("stock_items", [])]
    rows = [{c.key: item[c.key] for c in CURRENT_COLUMNS} for item in items]
    return ReportBody(columns=CURRENT_COLUMNS, rows=rows)


VALUE_COLUMNS = (
    text("category", "Category"),
    number("items", "Items"),
    number("quantity", "Quantity"),
    money("value", "Value"),
    percent("share", "Share"),
)


def build_value(
    report_filter: ReportFilter, data: FetchedData, ctx: BuildContext
) -> ReportBody:
    items = [_item_fields(r) for r in data.get("stock_items", [])]
    grouped = group_sum(items, "category", ["quantity", "value"], count="items")
    total_value = sum(g["value"] for g in grouped)
    rows = [
        {
            "category": g["category"],
            "items": g["items"],
            "quantity": g["quantity"],
            "value": g["value"],
            "share": percent_of(g["value"], total_value),
        }
        for g in grouped
    ]
    return ReportBody(
        columns=VALUE_COLUMNS, rows=rows, summary={"total_value": total_value}
    )


LOW_STOCK_COLUMNS = (
    text("item", "Item"),
    text("sku", "SKU"),
    text("category", "Category"),
    number("quantity", "Quantity"),
    number("reorder_level", "Reorder Level", total=False),
    number("shortfall", "Shortfall"),
)


def build_low_stock(
    report_filter: ReportFilter, data: FetchedData, ctx: BuildContext
) -> ReportBody:
    rows = []
    for record in data.get("stock_items", []):
        item = _item_fields(record)
        if item["quantity"] > item["reorder_level"]:
            continue
        item["shortfall"] = item["reorder_level"] - item["quantity"]
        rows.append({c.key: item[c.key] for c in LOW_STOCK_COLUMNS})
    return ReportBody(columns=LOW_STOCK_COLUMNS, rows=rows)


OUT_OF_STOCK_COLUMNS = (
    text("item", "Item"),
    text("sku", "SKU"),
    text("category", "Category"),
    number("reorder_level", "Reorder Level", total=False),
    money("unit_price", "Unit Price", total=False),
)


def build_out_of_stock(
    report_filter: ReportFilter, data: FetchedData, ctx: BuildContext
) -> ReportBody:
    rows = []
    for record in data.get("stock_items", []):
        item = _item_fields(record)
        if item["quantity"] <= 0:
            rows.append({c.key: item[c.key] for c in OUT_OF_STOCK_COLUMNS})
    return ReportBody(columns=OUT_OF_STOCK_COLUMNS, rows=rows)


# ---------------------------------------------------------------------------
# Stock movement
# ---------------------------------------------------------------------------

MOVEMENT_GROUPS = {"item": "Item", "category": "Category"}


def plan_movement(report_filter: ReportFilter) -> dict[str, Query]:
    query = (
        Query("stock_movements")
        .expand("stock_item", "stock_items", "stock_item_id", "name", "category")
        .within("date_created", report_filter.date_range)
        .order("date_created")
        .order("id")
    )
    return {"stock_movements": query}


def build_movement(
    report_filter: ReportFilter, data: FetchedData, ctx: BuildContext
) -> ReportBody:
    group_by = report_filter.group_by or "item"
    records = []
    for record in data.get("stock_movements", []):
        quantity = abs(to_amount(record.get("quantity")))
        outgoing = str(record.get("movement_type") or "").lower() == "out"
        if group_by == "category":
            key = related_value(record, "stock_item", "category", "Uncategorized")
        else:
            key = related_value(record, "stock_item", "name", MISSING)
        records.append(
            {
                "group": key,
                "quantity_in": 0.0 if outgoing else quantity,
                "quantity_out": quantity if outgoing else 0.0,
                "net": -quantity if outgoing else quantity,
            }
        )

    columns = (
        text("group", MOVEMENT_GROUPS[group_by]),
        number("quantity_in", "In"),
        number("quantity_out", "Out"),
        number("net", "Net"),
    )
    rows = group_sum(records, "group", ["quantity_in", "quantity_out", "net"])
    return ReportBody(columns=columns, rows=rows)


DESCRIPTORS = (
    ReportDescriptor(
        report_type="inventory",
        sub_type="current",
        title="Current Stock Report",
        plan=plan_stock,
        build=build_current,
        report_code="IR",
    ),
    ReportDescriptor(
        report_type="inventory",
        sub_type="value",
        title="Stock Value Report",
        plan=plan_stock,
        build=build_value,
        report_code="IR",
    ),
    ReportDescriptor(
        report_type="inventory",
        sub_type="low_stock",
        title="Low Stock Report",
        plan=plan_stock,
        build=build_low_stock,
        report_code="IR",
    ),
    ReportDescriptor(
        report_type="inventory",
        sub_type="out_of_stock",
        title="Out of Stock Report",
        plan=plan_stock,
        build=build_out_of_stock,
        report_code="IR",
    ),
    ReportDescriptor(
        report_type="inventory",
        sub_type="movement",
        title="Stock Movement Report",
        plan=plan_movement,
        build=build_movement,
        group_by_choices=tuple(MOVEMENT_GROUPS),
        report_code="IR",
    ),
)
