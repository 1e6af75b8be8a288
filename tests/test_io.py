import pytest

from shop_reports.io import import_table_csv, read_table_csv
from shop_reports.store import Query


def write_csv(path, text):
    path.write_text(text, encoding="utf-8")
    return path


def test_read_table_csv_normalizes_headers_and_blanks(tmp_path):
    path = write_csv(
        tmp_path / "cash_sales.csv",
        " Sale_Number ,DATE_CREATED,grand_total,Till Operator\n"
        "CS0000001,2025-01-05 10:00:00, 1000 ,Mary\n"
        "CS0000002,2025-01-06 11:00:00,,John\n",
    )

    rows, ignored = read_table_csv(path, "cash_sales")

    assert ignored == ("till operator",)
    assert rows == [
        {"sale_number": "CS0000001", "date_created": "2025-01-05 10:00:00", "grand_total": "1000"},
        {"sale_number": "CS0000002", "date_created": "2025-01-06 11:00:00"},
    ]


def test_read_table_csv_rejects_missing_required_column(tmp_path):
    path = write_csv(tmp_path / "expenses.csv", "category,amount\nRent,100\n")

    with pytest.raises(ValueError, match="missing column"):
        read_table_csv(path, "expenses")


def test_read_table_csv_unknown_table(tmp_path):
    path = write_csv(tmp_path / "x.csv", "a\n1\n")

    with pytest.raises(ValueError, match="Unknown table"):
        read_table_csv(path, "payroll")


def test_import_table_csv_inserts_rows(make_store, tmp_path):
    store = make_store()
    path = write_csv(
        tmp_path / "clients.csv",
        "name,type,phone,notes\nJane Wanjiru,client,0700000001,VIP\nAcme Interiors,client,,\n",
    )

    stats = import_table_csv(store, "registered_entities", path)

    assert stats.rows_read == 2
    assert stats.rows_inserted == 2
    assert stats.ignored_columns == ("notes",)
    names = [r["name"] for r in store.fetch(Query("registered_entities").order("name"))]
    assert names == ["Acme Interiors", "Jane Wanjiru"]


def test_blank_cells_take_column_defaults(make_store, tmp_path):
    store = make_store()
    path = write_csv(
        tmp_path / "expenses.csv",
        "date_created,amount,expense_type,category\n2025-01-10,3000,,Rent\n",
    )

    import_table_csv(store, "expenses", path)

    (row,) = store.fetch(Query("expenses"))
    assert row["expense_type"] == "company"
    assert row["amount"] == 3000.0
