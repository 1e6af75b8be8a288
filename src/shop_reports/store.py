# Shop Reports - Report aggregation & export for fabrication shops
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.


"""
Data store layer for Shop Reports.

The report pipeline never talks to a database directly. It describes what it
needs with a small, store-agnostic ``Query`` value and hands it to any object
implementing the ``DataStore`` protocol (a single ``fetch(query)`` method).

------------------------------------------------------------------------------
Query capabilities
------------------------------------------------------------------------------

- table selection with column projection          Query("invoices", ("id",))
- equality / range / membership predicates        .eq() .gte() .lt() .in_()
- date range scoping on a timestamp column        .within("date_created", r)
- ordering                                        .order("date_created")
- relationship expansion (LEFT JOIN)              .expand("client",
                                                      "registered_entities",
                                                      "client_id", "name")

An expanded relation is returned as a nested mapping under its alias:
``row["client"] == {"name": "Jane"}``, or ``None`` when the foreign key does
not resolve.

------------------------------------------------------------------------------
SQLite implementation
------------------------------------------------------------------------------

``SQLiteStore`` implements the protocol on top of a local SQLite file whose
tables mirror the shop's business records:

    registered_entities, quotations, sales_orders, invoices, cash_sales,
    payments, expenses, stock_items, stock_movements, account_transactions

Notes
-----
- Timestamps are stored as ISO-8601 text, with or without offset (naive
  values are local time at the store's ``local_offset_hours``). Range
  predicates bound by ``date`` or ``datetime`` values are compared through
  ``julianday()`` so that mixed formats compare as instants; naive bound
  values are local time as well.
- Identifiers are validated against a strict pattern before being embedded
  in SQL; values are always bound as parameters.
- A connection is opened per call, so a store can be shared by the worker
  threads of the fan-out fetch.
"""

from __future__ import annotations

import logging
import re
import sqlite3
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Literal, Protocol

from .periods import DateRange

logger = logging.getLogger(__name__)

Operator = Literal["eq", "neq", "gt", "gte", "lt", "lte", "in"]

_OPERATORS: dict[str, str] = {
    "eq": "=",
    "neq": "!=",
    "gt": ">",
    "gte": ">=",
    "lt": "<",
    "lte": "<=",
}

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_BASE_ALIAS = "t"


def _check_identifier(name: str) -> str:
    if not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return name


# ---------------------------------------------------------------------------
# Query description
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Predicate:
    """One filter condition on a column of the base table."""

    column: str
    op: Operator
    value: Any

    def __post_init__(self) -> None:
        if self.op != "in" and self.op not in _OPERATORS:
            raise ValueError(f"Unsupported predicate operator: {self.op!r}")


@dataclass(frozen=True)
class Relation:
    """
    Relationship expansion.

    Rows of ``table`` whose ``remote_key`` equals the base row's ``local_key``
    are joined, and ``columns`` are returned nested under ``alias``.
    """

    alias: str
    table: str
    local_key: str
    columns: tuple[str, ...]
    remote_key: str = "id"


@dataclass(frozen=True)
class Query:
    """
    Immutable description of a read against one table.

    Builder methods return a new ``Query``; the original is never modified.
    """

    table: str
    columns: tuple[str, ...] = ("*",)
    predicates: tuple[Predicate, ...] = ()
    relations: tuple[Relation, ...] = ()
    ordering: tuple[tuple[str, bool], ...] = ()

    def select(self, *columns: str) -> Query:
        return replace(self, columns=tuple(columns) or ("*",))

    def where(self, column: str, op: Operator, value: Any) -> Query:
        return replace(self, predicates=self.predicates + (Predicate(column, op, value),))

    def eq(self, column: str, value: Any) -> Query:
        return self.where(column, "eq", value)

    def neq(self, column: str, value: Any) -> Query:
        return self.where(column, "neq", value)

    def gte(self, column: str, value: Any) -> Query:
        return self.where(column, "gte", value)

    def gt(self, column: str, value: Any) -> Query:
        return self.where(column, "gt", value)

    def lt(self, column: str, value: Any) -> Query:
        return self.where(column, "lt", value)

    def lte(self, column: str, value: Any) -> Query:
        return self.where(column, "lte", value)

    def in_(self, column: str, values: Iterable[Any]) -> Query:
        return self.where(column, "in", tuple(values))

    def within(self, column: str, date_range: DateRange) -> Query:
        """Restrict ``column`` to the half-open range ``[start, end)``."""
        return self.gte(column, date_range.start).lt(column, date_range.end)

    def order(self, column: str, *, ascending: bool = True) -> Query:
        return replace(self, ordering=self.ordering + ((column, ascending),))

    def expand(
        self,
        alias: str,
        table: str,
        local_key: str,
        *columns: str,
        remote_key: str = "id",
    ) -> Query:
        relation = Relation(alias, table, local_key, tuple(columns), remote_key)
        return replace(self, relations=self.relations + (relation,))


class DataStore(Protocol):
    """Anything able to run a ``Query`` and return plain dict rows."""

    def fetch(self, query: Query) -> list[dict[str, Any]]: ...


# ---------------------------------------------------------------------------
# SQLite implementation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseConfig:
    """
    Database configuration.

    Attributes
    ----------
    engine:
        Database engine identifier. Only "sqlite" is supported.
    path:
        Path to the SQLite database file.
    """

    engine: str
    path: Path


# table -> (column definitions, columns required on import)
TABLE_SCHEMAS: dict[str, tuple[dict[str, str], frozenset[str]]] = {
    "registered_entities": (
        {
            "id": "INTEGER PRIMARY KEY AUTOINCREMENT",
            "name": "TEXT NOT NULL",
            "type": "TEXT NOT NULL DEFAULT 'client'",
            "phone": "TEXT",
            "location": "TEXT",
            "email": "TEXT",
            "status": "TEXT NOT NULL DEFAULT 'active'",
            "date_added": "TEXT",
        },
        frozenset({"name"}),
    ),
    "quotations": (
        {
            "id": "INTEGER PRIMARY KEY AUTOINCREMENT",
            "quotation_number": "TEXT",
            "client_id": "INTEGER",
            "date_created": "TEXT NOT NULL",
            "total_amount": "REAL",
            "grand_total": "REAL",
            "discount_amount": "REAL",
            "status": "TEXT",
        },
        frozenset({"date_created"}),
    ),
    "sales_orders": (
        {
            "id": "INTEGER PRIMARY KEY AUTOINCREMENT",
            "order_number": "TEXT",
            "client_id": "INTEGER",
            "date_created": "TEXT NOT NULL",
            "total_amount": "REAL",
            "grand_total": "REAL",
            "status": "TEXT",
        },
        frozenset({"date_created"}),
    ),
    "invoices": (
        {
            "id": "INTEGER PRIMARY KEY AUTOINCREMENT",
            "invoice_number": "TEXT",
            "client_id": "INTEGER",
            "date_created": "TEXT NOT NULL",
            "total_amount": "REAL",
            "grand_total": "REAL",
            "status": "TEXT",
        },
        frozenset({"date_created"}),
    ),
    "cash_sales": (
        {
            "id": "INTEGER PRIMARY KEY AUTOINCREMENT",
            "sale_number": "TEXT",
            "client_id": "INTEGER",
            "date_created": "TEXT NOT NULL",
            "total_amount": "REAL",
            "grand_total": "REAL",
            "payment_method": "TEXT",
            "status": "TEXT",
        },
        frozenset({"date_created"}),
    ),
    "payments": (
        {
            "id": "INTEGER PRIMARY KEY AUTOINCREMENT",
            "payment_number": "TEXT",
            "client_id": "INTEGER",
            "invoice_id": "INTEGER",
            "date_created": "TEXT NOT NULL",
            "amount": "REAL",
            "payment_method": "TEXT",
            "account_credited": "TEXT",
            "reference": "TEXT",
            "status": "TEXT",
        },
        frozenset({"date_created", "amount"}),
    ),
    "expenses": (
        {
            "id": "INTEGER PRIMARY KEY AUTOINCREMENT",
            "expense_number": "TEXT",
            "date_created": "TEXT NOT NULL",
            "category": "TEXT",
            "department": "TEXT",
            "expense_type": "TEXT NOT NULL DEFAULT 'company'",
            "client_id": "INTEGER",
            "amount": "REAL",
            "description": "TEXT",
        },
        frozenset({"date_created", "amount"}),
    ),
    "stock_items": (
        {
            "id": "INTEGER PRIMARY KEY AUTOINCREMENT",
            "name": "TEXT NOT NULL",
            "sku": "TEXT",
            "category": "TEXT",
            "unit": "TEXT",
            "quantity": "REAL",
            "reorder_level": "REAL",
            "unit_price": "REAL",
        },
        frozenset({"name"}),
    ),
    "stock_movements": (
        {
            "id": "INTEGER PRIMARY KEY AUTOINCREMENT",
            "stock_item_id": "INTEGER",
            "movement_type": "TEXT NOT NULL",
            "quantity": "REAL",
            "date_created": "TEXT NOT NULL",
            "reference": "TEXT",
            "notes": "TEXT",
        },
        frozenset({"stock_item_id", "movement_type", "date_created"}),
    ),
    "account_transactions": (
        {
            "id": "INTEGER PRIMARY KEY AUTOINCREMENT",
            "transaction_date": "TEXT NOT NULL",
            "transaction_type": "TEXT NOT NULL",
            "account_type": "TEXT NOT NULL",
            "amount": "REAL",
            "description": "TEXT",
            "reference": "TEXT",
            "category": "TEXT",
        },
        frozenset({"transaction_date", "transaction_type", "account_type", "amount"}),
    ),
}


def table_columns(table: str) -> tuple[str, ...]:
    """Return the column names of a known table."""
    try:
        columns, _ = TABLE_SCHEMAS[table]
    except KeyError as exc:
        raise ValueError(f"Unknown table: {table!r}") from exc
    return tuple(columns)


def required_columns(table: str) -> frozenset[str]:
    """Return the columns an imported row must provide for a known table."""
    if table not in TABLE_SCHEMAS:
        raise ValueError(f"Unknown table: {table!r}")
    return TABLE_SCHEMAS[table][1]


def _ensure_sqlite(cfg: DatabaseConfig) -> None:
    """Raise if the configuration does not refer to a supported engine."""
    if cfg.engine.lower() != "sqlite":
        msg = (
            f"Unsupported database engine: {cfg.engine!r}. "
            "Only 'sqlite' is supported for now."
        )
        raise ValueError(msg)


def _connect(cfg: DatabaseConfig) -> sqlite3.Connection:
    """
    Open a SQLite connection with foreign keys enabled.

    The caller is responsible for closing the connection.
    """
    _ensure_sqlite(cfg)
    conn = sqlite3.connect(cfg.path)
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


def _create_schema_if_needed(conn: sqlite3.Connection) -> None:
    """Create every known table and the date indexes. Idempotent."""
    for table, (columns, _) in TABLE_SCHEMAS.items():
        body = ",\n            ".join(f"{name} {decl}" for name, decl in columns.items())
        conn.execute(f"CREATE TABLE IF NOT EXISTS {table} (\n            {body}\n        );")

    for table, column in (
        ("quotations", "date_created"),
        ("sales_orders", "date_created"),
        ("invoices", "date_created"),
        ("cash_sales", "date_created"),
        ("payments", "date_created"),
        ("expenses", "date_created"),
        ("stock_movements", "date_created"),
        ("account_transactions", "transaction_date"),
    ):
        conn.execute(
            f"CREATE INDEX IF NOT EXISTS idx_{table}_{column} ON {table}({column});"
        )

    conn.commit()


def init_database(cfg: DatabaseConfig) -> None:
    """
    Initialize the database schema if needed.

    - Creates the SQLite file (and its parent directory) if it does not exist.
    - Creates every table and index that is missing.

    Raises
    ------
    ValueError
        If cfg.engine is not supported.
    sqlite3.Error
        If schema creation fails.
    """
    cfg.path.parent.mkdir(parents=True, exist_ok=True)

    conn = _connect(cfg)
    try:
        _create_schema_if_needed(conn)
    finally:
        conn.close()


def _to_param(value: Any) -> Any:
    """Convert a Python value into a SQLite-bindable parameter."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.isoformat()
        return value.astimezone(timezone.utc).isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return value


def _offset_modifier(local_offset_hours: float) -> str:
    return f"{-local_offset_hours * 60:+g} minutes"


def _instant_sql(column: str, local_offset_hours: float) -> tuple[str, list[Any]]:
    """
    SQL instant of a stored timestamp column.

    Values carrying an offset (or a trailing Z) are absolute; naive values and
    plain dates are local time at ``local_offset_hours``.
    """
    if not local_offset_hours:
        return f"julianday({column})", []
    has_offset = (
        f"{column} GLOB '*[+-][0-9][0-9]:[0-9][0-9]' OR {column} GLOB '*[Zz]'"
    )
    return (
        f"(CASE WHEN {has_offset} THEN julianday({column}) "
        f"ELSE julianday({column}, ?) END)",
        [_offset_modifier(local_offset_hours)],
    )


def _bound_instant_sql(value: Any, local_offset_hours: float) -> tuple[str, list[Any]]:
    """SQL instant of a bound date or datetime; naive values are local time."""
    naive = not isinstance(value, datetime) or value.tzinfo is None
    if naive and local_offset_hours:
        return "julianday(?, ?)", [_to_param(value), _offset_modifier(local_offset_hours)]
    return "julianday(?)", [_to_param(value)]


def _predicate_sql(
    predicate: Predicate, local_offset_hours: float = 0.0
) -> tuple[str, list[Any]]:
    column = f"{_BASE_ALIAS}.{_check_identifier(predicate.column)}"

    if predicate.op == "in":
        values = list(predicate.value)
        if not values:
            return "1 = 0", []
        placeholders = ", ".join("?" for _ in values)
        return f"{column} IN ({placeholders})", [_to_param(v) for v in values]

    if predicate.value is None:
        if predicate.op == "eq":
            return f"{column} IS NULL", []
        if predicate.op == "neq":
            return f"{column} IS NOT NULL", []
        raise ValueError(f"Cannot compare {predicate.column!r} with NULL.")

    sql_op = _OPERATORS[predicate.op]
    if isinstance(predicate.value, (datetime, date)):
        instant, instant_params = _instant_sql(column, local_offset_hours)
        bound, bound_params = _bound_instant_sql(predicate.value, local_offset_hours)
        return f"{instant} {sql_op} {bound}", instant_params + bound_params
    return f"{column} {sql_op} ?", [predicate.value]


def build_select(query: Query, local_offset_hours: float = 0.0) -> tuple[str, list[Any]]:
    """
    Translate a ``Query`` into a parameterized SQLite SELECT statement.

    ``local_offset_hours`` is the UTC offset assumed for stored timestamps
    without one, used by date and datetime comparisons.

    Returns
    -------
    tuple[str, list]
        The SQL text and its bound parameters.
    """
    table = _check_identifier(query.table)

    select_parts: list[str] = []
    if query.columns == ("*",):
        select_parts.append(f"{_BASE_ALIAS}.*")
    else:
        for column in query.columns:
            select_parts.append(f"{_BASE_ALIAS}.{_check_identifier(column)}")

    join_parts: list[str] = []
    for relation in query.relations:
        alias = _check_identifier(relation.alias)
        if alias == _BASE_ALIAS:
            raise ValueError(f"Relation alias {alias!r} is reserved.")
        join_parts.append(
            f"LEFT JOIN {_check_identifier(relation.table)} AS {alias} "
            f"ON {alias}.{_check_identifier(relation.remote_key)} = "
            f"{_BASE_ALIAS}.{_check_identifier(relation.local_key)}"
        )
        for column in relation.columns:
            select_parts.append(
                f'{alias}.{_check_identifier(column)} AS "{alias}.{column}"'
            )

    where_clauses: list[str] = ["1 = 1"]
    params: list[Any] = []
    for predicate in query.predicates:
        clause, clause_params = _predicate_sql(predicate, local_offset_hours)
        where_clauses.append(clause)
        params.extend(clause_params)

    order_clause = ""
    if query.ordering:
        order_clause = "ORDER BY " + ", ".join(
            f"{_BASE_ALIAS}.{_check_identifier(column)} {'ASC' if asc else 'DESC'}"
            for column, asc in query.ordering
        )

    sql = (
        f"SELECT {', '.join(select_parts)} "
        f"FROM {table} AS {_BASE_ALIAS} "
        + " ".join(join_parts)
        + f" WHERE {' AND '.join(where_clauses)} {order_clause}"
    )
    return sql.strip() + ";", params


def _nest_relations(row: dict[str, Any], relations: tuple[Relation, ...]) -> dict[str, Any]:
    for relation in relations:
        values = {c: row.pop(f"{relation.alias}.{c}", None) for c in relation.columns}
        if all(v is None for v in values.values()):
            row[relation.alias] = None
        else:
            row[relation.alias] = values
    return row


class SQLiteStore:
    """
    ``DataStore`` backed by a local SQLite file.

    ``local_offset_hours`` is the UTC offset of stored timestamps that carry
    none (the shop's civil time).
    """

    def __init__(
        self,
        config: DatabaseConfig,
        *,
        initialize: bool = True,
        local_offset_hours: float = 0.0,
    ) -> None:
        self.config = config
        self.local_offset_hours = local_offset_hours
        if initialize:
            init_database(config)

    def fetch(self, query: Query) -> list[dict[str, Any]]:
        sql, params = build_select(query, self.local_offset_hours)
        logger.debug("Fetching from %s: %s %s", query.table, sql, params)

        conn = _connect(self.config)
        try:
            cur = conn.execute(sql, params)
            names = [d[0] for d in cur.description]
            rows = cur.fetchall()
        finally:
            conn.close()

        return [_nest_relations(dict(zip(names, row)), query.relations) for row in rows]

    def insert_rows(self, table: str, rows: Iterable[Mapping[str, Any]]) -> int:
        """
        Insert plain dict rows into a known table.

        Keys must be columns of the table; ``None`` values are stored as NULL.

        Returns
        -------
        int
            Number of inserted rows.

        Raises
        ------
        ValueError
            Unknown table or column.
        """
        known = set(table_columns(table))
        groups: dict[tuple[str, ...], list[list[Any]]] = {}
        for row in rows:
            unknown = set(row) - known
            if unknown:
                raise ValueError(
                    f"Unknown column(s) for table {table!r}: {', '.join(sorted(unknown))}"
                )
            keys = tuple(row)
            groups.setdefault(keys, []).append([_to_param(row[k]) for k in keys])

        inserted = 0
        conn = _connect(self.config)
        try:
            for keys, values in groups.items():
                placeholders = ", ".join("?" for _ in keys)
                conn.executemany(
                    f"INSERT INTO {table} ({', '.join(keys)}) VALUES ({placeholders});",
                    values,
                )
                inserted += len(values)
            conn.commit()
        finally:
            conn.close()

        logger.info("Inserted %d row(s) into %s", inserted, table)
        return inserted
