# Shop Reports - Report aggregation & export for fabrication shops
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Value objects shared by the report pipeline.

- ColumnSpec       : projection of one output column (label, alignment,
                     value kind, whether it is totaled).
- ReportFilter     : user-selected parameters of one report request.
- ReportResult     : immutable outcome of one aggregation, threaded from
                     the aggregator to exactly one sink.
- ReportDescriptor : registry entry describing how to plan the fetches of a
                     report and how to build its rows from fetched data.

Rows are plain mappings from column key to a scalar. ``ReportResult``
validates that every row carries exactly the declared column keys and
freezes rows and totals behind read-only mapping proxies.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Literal, Optional, Union

from .periods import CalendarAnchor, DateRange

Scalar = Union[str, int, float, None]
Row = Mapping[str, Scalar]
Align = Literal["left", "right", "center"]
ColumnKind = Literal["text", "money", "number", "percent"]
FailurePolicy = Literal["fail", "degrade"]


@dataclass(frozen=True)
class ColumnSpec:
    """
    Declaration of one report column.

    Attributes
    ----------
    key:
        Row key holding the value.
    label:
        Header text used by every sink.
    align:
        Horizontal alignment in printable output.
    kind:
        'money' values go through the currency formatter, 'number' values
        through the grouping number formatter, 'percent' and 'text' values
        are rendered as-is.
    total:
        Whether the column is summed into ``ReportResult.totals``.
    """

    key: str
    label: str
    align: Align = "left"
    kind: ColumnKind = "text"
    total: bool = False


def money(key: str, label: str, *, total: bool = True) -> ColumnSpec:
    return ColumnSpec(key, label, align="right", kind="money", total=total)


def number(key: str, label: str, *, total: bool = True) -> ColumnSpec:
    return ColumnSpec(key, label, align="right", kind="number", total=total)


def percent(key: str, label: str) -> ColumnSpec:
    return ColumnSpec(key, label, align="right", kind="percent")


def text(key: str, label: str, *, align: Align = "left") -> ColumnSpec:
    return ColumnSpec(key, label, align=align)


@dataclass(frozen=True)
class ReportFilter:
    """
    Parameters of one report request.

    ``include_flags=None`` means "use the descriptor defaults"; an empty set
    explicitly includes nothing. ``options`` carries report-specific knobs
    (expense category, opening balance, movement grouping, ...).
    """

    report_type: str
    date_range: DateRange
    sub_type: Optional[str] = None
    entity_id: Optional[int] = None
    include_flags: Optional[frozenset[str]] = None
    group_by: Optional[str] = None
    options: Mapping[str, Any] = field(default_factory=dict)

    def flags(self, defaults: Iterable[str]) -> frozenset[str]:
        """Return the effective include flags."""
        if self.include_flags is None:
            return frozenset(defaults)
        return frozenset(self.include_flags)

    def option(self, name: str, default: Any = None) -> Any:
        value = self.options.get(name)
        return default if value is None else value


@dataclass(frozen=True)
class ReportResult:
    """
    Outcome of one aggregation.

    Attributes
    ----------
    report_type, sub_type:
        Registry key of the report.
    title:
        Display title.
    columns:
        Ordered column declarations.
    rows:
        Ordered, read-only rows (display/print order).
    totals:
        Sum of every column declared with ``total=True``.
    period:
        Date range the report covers.
    generated_at:
        Aware timestamp of the aggregation.
    degraded:
        Names of fetches zero-filled under the degrade policy.
    summary:
        Named derived figures (e.g. gross profit, closing balance).
    """

    report_type: str
    title: str
    columns: tuple[ColumnSpec, ...]
    rows: tuple[Row, ...]
    totals: Mapping[str, float] = field(default_factory=dict)
    period: Optional[DateRange] = None
    sub_type: Optional[str] = None
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    degraded: tuple[str, ...] = ()
    summary: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        keys = [c.key for c in self.columns]
        if len(set(keys)) != len(keys):
            raise ValueError(f"Duplicate column keys in report columns: {keys}")
        expected = set(keys)

        frozen_rows = []
        for index, row in enumerate(self.rows):
            row_keys = set(row)
            if row_keys != expected:
                missing = sorted(expected - row_keys)
                extra = sorted(row_keys - expected)
                raise ValueError(
                    f"Row {index} does not match the declared columns "
                    f"(missing: {missing}, undeclared: {extra})."
                )
            frozen_rows.append(MappingProxyType(dict(row)))

        object.__setattr__(self, "columns", tuple(self.columns))
        object.__setattr__(self, "rows", tuple(frozen_rows))
        object.__setattr__(self, "totals", MappingProxyType(dict(self.totals)))
        object.__setattr__(self, "summary", MappingProxyType(dict(self.summary)))
        object.__setattr__(self, "degraded", tuple(self.degraded))

    @property
    def is_empty(self) -> bool:
        return not self.rows

    @property
    def total_columns(self) -> tuple[ColumnSpec, ...]:
        return tuple(c for c in self.columns if c.total)


@dataclass(frozen=True)
class BuildContext:
    """
    Settings an aggregator may need while building rows.

    degraded names the fetches that failed and were zero-filled.
    """

    anchor: CalendarAnchor
    degraded: tuple[str, ...] = ()


@dataclass(frozen=True)
class ReportBody:
    """Columns, rows and derived figures produced by a descriptor."""

    columns: tuple[ColumnSpec, ...]
    rows: list[dict[str, Scalar]]
    summary: Mapping[str, float] = field(default_factory=dict)


FetchedData = Mapping[str, list[dict[str, Any]]]


@dataclass(frozen=True)
class ReportDescriptor:
    """
    Registry entry for one (report type, sub type) pair.

    Attributes
    ----------
    plan:
        Builds the named store queries for a filter (fetch phase).
    build:
        Normalizes and aggregates fetched records into a ``ReportBody``.
    failure_policy:
        'fail' raises on any failed fetch; 'degrade' zero-fills the fetches
        listed in ``optional_fetches`` and flags them on the result.
    default_flags:
        Include flags used when the filter does not specify any.
    flag_choices:
        Every include flag the report understands.
    group_by_choices:
        Allowed ``ReportFilter.group_by`` values (empty: no grouping).
    report_code:
        Prefix of printed report numbers (e.g. 'SR' for sales).
    """

    report_type: str
    sub_type: str
    title: str
    plan: Callable[[ReportFilter], Mapping[str, Any]]
    build: Callable[[ReportFilter, FetchedData, BuildContext], ReportBody]
    failure_policy: FailurePolicy = "fail"
    optional_fetches: frozenset[str] = frozenset()
    default_flags: frozenset[str] = frozenset()
    flag_choices: frozenset[str] = frozenset()
    group_by_choices: tuple[str, ...] = ()
    report_code: str = "RP"

    @property
    def key(self) -> tuple[str, str]:
        return (self.report_type, self.sub_type)
