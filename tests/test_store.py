from datetime import date, datetime, timezone

import pytest

from shop_reports.store import (
    DatabaseConfig,
    Query,
    SQLiteStore,
    build_select,
    init_database,
)


def make_tmp_db_cfg(tmp_path) -> DatabaseConfig:
    """Helper to build a DatabaseConfig pointing to a temporary SQLite file."""
    return DatabaseConfig(engine="sqlite", path=tmp_path / "data" / "shop.sqlite")


def test_init_database_creates_file_and_schema(tmp_path):
    cfg = make_tmp_db_cfg(tmp_path)

    assert not cfg.path.exists()
    init_database(cfg)
    assert cfg.path.exists()

    store = SQLiteStore(cfg, initialize=False)
    assert store.fetch(Query("invoices")) == []


def test_unsupported_engine_is_rejected(tmp_path):
    cfg = DatabaseConfig(engine="postgres", path=tmp_path / "x.db")
    with pytest.raises(ValueError):
        init_database(cfg)


def test_query_builders_are_immutable():
    base = Query("invoices")
    narrowed = base.eq("client_id", 3).order("date_created")

    assert base.predicates == ()
    assert len(narrowed.predicates) == 1
    assert narrowed.ordering == (("date_created", True),)


def test_build_select_with_relation_predicates_and_order(january):
    query = (
        Query("cash_sales")
        .select("id", "grand_total")
        .expand("client", "registered_entities", "client_id", "name")
        .within("date_created", january)
        .eq("client_id", 7)
        .order("date_created", ascending=False)
    )

    sql, params = build_select(query)

    assert sql.startswith("SELECT t.id, t.grand_total, client.name AS \"client.name\" FROM cash_sales AS t")
    assert "LEFT JOIN registered_entities AS client ON client.id = t.client_id" in sql
    assert "julianday(t.date_created) >= julianday(?)" in sql
    assert "ORDER BY t.date_created DESC" in sql
    assert params == [
        "2024-12-31T21:00:00+00:00",
        "2025-01-31T21:00:00+00:00",
        7,
    ]


def test_build_select_in_with_no_values_matches_nothing():
    sql, params = build_select(Query("expenses").in_("expense_type", []))
    assert "1 = 0" in sql
    assert params == []


def test_build_select_rejects_bad_identifiers():
    with pytest.raises(ValueError):
        build_select(Query("invoices; DROP TABLE invoices"))
    with pytest.raises(ValueError):
        build_select(Query("invoices").eq("status = 1 OR 1", "x"))


def test_fetch_expands_relations(make_store):
    store = make_store(
        registered_entities=[{"id": 1, "name": "Jane Wanjiru", "type": "client"}],
        invoices=[
            {"invoice_number": "INV0000001", "client_id": 1, "date_created": "2025-01-10", "grand_total": 500},
            {"invoice_number": "INV0000002", "client_id": 99, "date_created": "2025-01-11", "grand_total": 700},
        ],
    )

    rows = store.fetch(
        Query("invoices")
        .expand("client", "registered_entities", "client_id", "name")
        .order("id")
    )

    assert rows[0]["client"] == {"name": "Jane Wanjiru"}
    assert rows[1]["client"] is None
    assert rows[0]["grand_total"] == 500


def test_within_compares_mixed_timestamp_formats_as_instants(make_store, january):
    store = make_store(
        payments=[
            # Plain date: local midnight, first instant of the range.
            {"payment_number": "A", "date_created": "2025-01-01", "amount": 1},
            # Naive local time late on the last day.
            {"payment_number": "B", "date_created": "2025-01-31 23:30:00", "amount": 1},
            # UTC instant that is already 1 February in Nairobi.
            {"payment_number": "C", "date_created": "2025-01-31T21:30:00Z", "amount": 1},
            # UTC instant that is 1 January 01:00 in Nairobi.
            {"payment_number": "D", "date_created": "2024-12-31T22:00:00+00:00", "amount": 1},
            # Naive local time on the last day of December.
            {"payment_number": "E", "date_created": "2024-12-31 23:59:00", "amount": 1},
        ]
    )

    rows = store.fetch(Query("payments").within("date_created", january).order("id"))

    assert [r["payment_number"] for r in rows] == ["A", "B", "D"]


def test_insert_rows_rejects_unknown_columns(make_store):
    store = make_store()
    with pytest.raises(ValueError):
        store.insert_rows("payments", [{"date_created": "2025-01-01", "amount": 1, "colour": "red"}])
    with pytest.raises(ValueError):
        store.insert_rows("ledger", [{"amount": 1}])


def test_insert_rows_returns_count(make_store):
    store = make_store()
    inserted = store.insert_rows(
        "expenses",
        [
            {"date_created": "2025-01-02", "amount": 100, "category": "Rent"},
            {"date_created": "2025-01-03", "amount": 50},
        ],
    )
    assert inserted == 2
    rows = store.fetch(Query("expenses").order("id"))
    assert [r["expense_type"] for r in rows] == ["company", "company"]


def test_comparison_predicates(make_store):
    store = make_store(
        stock_items=[
            {"name": "A", "quantity": 0, "category": "Boards"},
            {"name": "B", "quantity": 5, "category": "Hardware"},
            {"name": "C", "quantity": 10, "category": "Boards"},
        ]
    )

    def names(query):
        return [r["name"] for r in store.fetch(query.select("name").order("name"))]

    items = Query("stock_items")
    assert names(items.gt("quantity", 0)) == ["B", "C"]
    assert names(items.lte("quantity", 5)) == ["A", "B"]
    assert names(items.neq("category", "Boards")) == ["B"]
    assert names(items.in_("name", ["A", "C"])) == ["A", "C"]


def test_naive_bound_values_are_local_time():
    naive = Query("payments").gte("date_created", datetime(2025, 1, 1))
    _, params = build_select(naive, 3.0)
    assert params == ["-180 minutes", "2025-01-01T00:00:00", "-180 minutes"]

    aware = Query("payments").gte("date_created", datetime(2025, 1, 1, tzinfo=timezone.utc))
    _, params = build_select(aware, 3.0)
    assert params == ["-180 minutes", "2025-01-01T00:00:00+00:00"]

    _, params = build_select(Query("payments").lt("date_created", date(2025, 2, 1)))
    assert params == ["2025-02-01"]


def test_naive_and_date_predicates_match_naive_stored_values(make_store):
    store = make_store(
        payments=[
            {"payment_number": "A", "date_created": "2025-01-31 23:30:00", "amount": 1},
            {"payment_number": "B", "date_created": "2025-02-01 00:30:00", "amount": 1},
            # 31 January 22:00 in Nairobi.
            {"payment_number": "C", "date_created": "2025-01-31T19:00:00Z", "amount": 1},
        ]
    )

    def numbers(query):
        return [r["payment_number"] for r in store.fetch(query.order("id"))]

    payments = Query("payments")
    assert numbers(payments.lt("date_created", date(2025, 2, 1))) == ["A", "C"]
    assert numbers(payments.gte("date_created", datetime(2025, 2, 1))) == ["B"]
    assert numbers(payments.lt("date_created", datetime(2025, 1, 31, 23))) == ["C"]
