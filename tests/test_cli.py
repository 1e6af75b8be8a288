import pytest

from shop_reports import __version__
from shop_reports.cli import main


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "shop_reports_config.toml"
    path.write_text(
        '[database]\npath = "data/shop.sqlite"\n\n[output]\ndir = "exports"\n',
        encoding="utf-8",
    )
    return path


def seed(tmp_path, config_file):
    clients = tmp_path / "clients.csv"
    clients.write_text("name,type\nJane Wanjiru,client\n", encoding="utf-8")
    sales = tmp_path / "cash_sales.csv"
    sales.write_text(
        "sale_number,client_id,date_created,grand_total,status\n"
        "CS0000001,1,2025-01-05 10:00:00,1000,paid\n"
        "CS0000002,1,2025-01-20 15:00:00,2500,paid\n"
        "CS0000003,1,2025-02-02 09:00:00,800,paid\n",
        encoding="utf-8",
    )
    assert main(["--config", str(config_file), "import", "registered_entities", str(clients)]) == 0
    assert main(["--config", str(config_file), "import", "cash_sales", str(sales)]) == 0


def test_version(capsys):
    assert main(["--version"]) == 0
    assert capsys.readouterr().out.strip() == f"shop_reports version {__version__}"


def test_missing_config_file(tmp_path, capsys):
    assert main(["--config", str(tmp_path / "missing.toml"), "list-reports"]) == 1
    assert "Config file not found" in capsys.readouterr().out


def test_no_command_prints_help(config_file, capsys):
    assert main(["--config", str(config_file)]) == 1
    assert "usage: shop-reports" in capsys.readouterr().out


def test_list_reports(config_file, capsys):
    assert main(["--config", str(config_file), "list-reports"]) == 0

    out = capsys.readouterr().out
    assert "sales" in out
    assert "cash_book" in out
    assert "include: cash_sales, invoices, orders, quotations" in out


def test_init_db_creates_file(tmp_path, config_file, capsys):
    assert main(["--config", str(config_file), "init-db"]) == 0

    assert (tmp_path / "data" / "shop.sqlite").is_file()
    assert "Database ready" in capsys.readouterr().out


def test_import_missing_csv_is_a_usage_error(config_file, tmp_path):
    with pytest.raises(SystemExit) as excinfo:
        main(["--config", str(config_file), "import", "expenses", str(tmp_path / "x.csv")])
    assert excinfo.value.code == 2


def test_report_table_output(tmp_path, config_file, capsys):
    seed(tmp_path, config_file)
    capsys.readouterr()

    code = main(
        [
            "--config",
            str(config_file),
            "report",
            "sales",
            "--from-date",
            "2025-01-01",
            "--to-date",
            "2025-01-31",
            "--include",
            "cash_sales",
            "--client-id",
            "1",
        ]
    )

    out = capsys.readouterr().out
    assert code == 0
    assert out.startswith("Sales Report\nPeriod: 01 Jan 2025 - 31 Jan 2025\n")
    assert "CS0000001" in out
    assert "CS0000003" not in out
    assert "Total Amount: KES 3,500.00" in out


def test_report_csv_export(tmp_path, config_file, capsys):
    seed(tmp_path, config_file)

    code = main(
        [
            "--config",
            str(config_file),
            "report",
            "sales",
            "--preset",
            "custom",
            "--from-date",
            "2025-01-01",
            "--to-date",
            "2025-01-31",
            "--format",
            "csv",
            "--output-name",
            "january",
        ]
    )

    path = tmp_path / "exports" / "january.csv"
    assert code == 0
    assert path.is_file()
    lines = path.read_text(encoding="utf-8").splitlines()
    assert lines[0] == '"Date","Type","Reference","Client","Status","Amount"'
    assert len(lines) == 3
    assert f"Written to {path}" in capsys.readouterr().out


def test_report_without_data_prints_message(config_file, capsys):
    code = main(
        [
            "--config",
            str(config_file),
            "report",
            "expenses",
            "--from-date",
            "2025-01-01",
            "--to-date",
            "2025-01-31",
        ]
    )

    assert code == 0
    assert "No data for the selected period." in capsys.readouterr().out


def test_inverted_range_fails(config_file, capsys):
    code = main(
        [
            "--config",
            str(config_file),
            "report",
            "sales",
            "--from-date",
            "2025-02-01",
            "--to-date",
            "2025-01-01",
        ]
    )

    assert code == 1
    assert "Error: Custom range end date cannot be before start date." in capsys.readouterr().out


def test_invalid_group_by_fails(config_file, capsys):
    code = main(
        [
            "--config",
            str(config_file),
            "report",
            "sales",
            "--from-date",
            "2025-01-01",
            "--to-date",
            "2025-01-31",
            "--group-by",
            "department",
        ]
    )

    assert code == 1
    assert "cannot be grouped by 'department'" in capsys.readouterr().out
