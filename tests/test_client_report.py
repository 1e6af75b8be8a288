import math

import pytest

from shop_reports.engine import aggregate
from shop_reports.models import ReportFilter


def seeded(make_store):
    return make_store(
        registered_entities=[
            {"id": 1, "name": "Jane Wanjiru", "type": "client", "phone": "0700000001", "location": "Ruiru", "date_added": "2024-11-02"},
            {"id": 2, "name": "Acme Interiors", "type": "client", "location": "Thika", "date_added": "2025-01-09"},
            {"id": 3, "name": "Timber Supplies Ltd", "type": "supplier", "date_added": "2025-01-10"},
            {"id": 4, "name": "Brian Otieno", "type": "client", "date_added": "2025-01-21 16:00:00"},
        ],
        sales_orders=[
            {"order_number": "SO0000001", "client_id": 1, "date_created": "2025-01-03", "grand_total": 5000},
            {"order_number": "SO0000002", "client_id": 1, "date_created": "2025-01-18", "total_amount": 2500},
            {"order_number": "SO0000003", "client_id": 2, "date_created": "2025-01-04", "grand_total": 1200},
            {"order_number": "SO0000004", "client_id": 1, "date_created": "2024-12-30", "grand_total": 9999},
        ],
        payments=[
            {"client_id": 1, "date_created": "2025-01-05", "amount": 2000},
            {"client_id": 2, "date_created": "2025-01-06", "amount": 1200},
        ],
        expenses=[
            {"client_id": 1, "date_created": "2025-01-07", "amount": 300, "expense_type": "client"},
            {"client_id": 1, "date_created": "2025-01-07", "amount": 999, "expense_type": "company"},
        ],
        quotations=[
            {"client_id": 2, "date_created": "2025-01-02", "grand_total": 4000},
        ],
        invoices=[
            {"client_id": 1, "date_created": "2025-01-19", "grand_total": 7500},
        ],
    )


def test_balance_is_orders_minus_payments(make_store, january):
    result = aggregate(seeded(make_store), ReportFilter("clients", january, sub_type="balance"))

    rows = {r["client"]: r for r in result.rows}
    assert list(rows) == ["Acme Interiors", "Brian Otieno", "Jane Wanjiru"]

    jane = rows["Jane Wanjiru"]
    assert jane["orders"] == 7500.0
    assert jane["payments"] == 2000.0
    assert jane["expenses"] == 300.0
    assert jane["balance"] == 5500.0
    assert jane["location"] == "Ruiru"

    assert rows["Acme Interiors"]["balance"] == 0.0
    assert rows["Acme Interiors"]["phone"] == "-"

    assert result.totals["balance"] == pytest.approx(5500.0)
    assert result.degraded == ()


def test_client_without_activity_has_zero_balance_not_nan(make_store, january):
    result = aggregate(seeded(make_store), ReportFilter("clients", january, sub_type="balance"))

    brian = next(r for r in result.rows if r["client"] == "Brian Otieno")
    for key in ("orders", "payments", "expenses", "balance"):
        assert brian[key] == 0.0
        assert not math.isnan(brian[key])


def test_balance_for_one_client(make_store, january):
    result = aggregate(
        seeded(make_store),
        ReportFilter("clients", january, sub_type="balance", entity_id=2),
    )
    assert [r["client"] for r in result.rows] == ["Acme Interiors"]


def test_activity_one_column_per_metric(make_store, january):
    result = aggregate(seeded(make_store), ReportFilter("clients", january, sub_type="activity"))

    assert [c.key for c in result.columns] == [
        "client",
        "quotations",
        "orders",
        "invoices",
        "payments",
    ]
    rows = {r["client"]: r for r in result.rows}
    assert rows["Acme Interiors"]["quotations"] == 4000.0
    assert rows["Jane Wanjiru"]["invoices"] == 7500.0
    assert result.totals["orders"] == pytest.approx(8700.0)


def test_new_clients_registered_in_period(make_store, january):
    result = aggregate(seeded(make_store), ReportFilter("clients", january, sub_type="new"))

    assert [r["client"] for r in result.rows] == ["Acme Interiors", "Brian Otieno"]
    assert [r["registered"] for r in result.rows] == ["2025-01-09", "2025-01-21"]
    assert result.totals == {}
