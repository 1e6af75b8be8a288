# Shop Reports - Report aggregation & export for fabrication shops
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
CSV import for Shop Reports.

Business records (clients, sales documents, payments, expenses, stock and
account transactions) are loaded into the local store from CSV exports, one
file per table.

Input format
------------
- Column names are case-insensitive and surrounding whitespace is ignored.
- Each table has a small set of required columns (see
  ``store.TABLE_SCHEMAS``); a file missing one of them is rejected with a
  clear ValueError.
- Columns that are not part of the table are ignored.
- Empty cells are left out of the row: the column default (or NULL) applies.

Values are read as text; SQLite column affinity stores numeric text in the
REAL / INTEGER columns as numbers.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Union

import pandas as pd

from .store import SQLiteStore, required_columns, table_columns

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImportStats:
    """
    Summary of a CSV import.

    Attributes
    ----------
    table:
        Target table.
    rows_read:
        Number of data rows in the file.
    rows_inserted:
        Number of rows written to the store.
    ignored_columns:
        File columns that are not part of the table.
    """

    table: str
    rows_read: int
    rows_inserted: int
    ignored_columns: tuple[str, ...] = ()


def _cell(value: Any) -> Any:
    if pd.isna(value):
        return None
    text = str(value).strip()
    return text or None


def read_table_csv(
    path: Union[str, "os.PathLike[str]"], table: str
) -> tuple[list[dict[str, Any]], tuple[str, ...]]:
    """
    Read a CSV export of one table.

    Returns
    -------
    (rows, ignored_columns)
        ``rows`` are plain dicts restricted to the table's columns.

    Raises
    ------
    ValueError
        Unknown table, or a required column is missing.
    """
    known = table_columns(table)
    required = required_columns(table)

    df = pd.read_csv(path, dtype=str, keep_default_na=True)
    df.columns = [str(c).lower().strip() for c in df.columns]

    missing = required - set(df.columns)
    if missing:
        raise ValueError(
            f"Invalid {table} CSV structure: missing column(s) "
            f"{', '.join(sorted(missing))}. Expected at least: "
            f"{', '.join(sorted(required))}."
        )

    kept = [c for c in df.columns if c in known]
    ignored = tuple(c for c in df.columns if c not in known)

    rows: list[dict[str, Any]] = []
    for record in df[kept].to_dict(orient="records"):
        # Blank cells are omitted; column defaults apply.
        cells = {column: _cell(value) for column, value in record.items()}
        rows.append({k: v for k, v in cells.items() if v is not None})
    return rows, ignored


def import_table_csv(
    store: SQLiteStore, table: str, path: Union[str, "os.PathLike[str]"]
) -> ImportStats:
    """Read a table CSV and insert its rows into the store."""
    rows, ignored = read_table_csv(path, table)
    if ignored:
        logger.warning(
            "Ignoring unknown column(s) for %s: %s", table, ", ".join(ignored)
        )
    inserted = store.insert_rows(table, rows)
    logger.info("Imported %d row(s) from %s into %s", inserted, Path(path), table)
    return ImportStats(
        table=table,
        rows_read=len(rows),
        rows_inserted=inserted,
        ignored_columns=ignored,
    )
