# Shop Reports - Report aggregation & export for fabrication shops
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Numeric and grouping primitives shared by every report.

Store records are loosely typed: amounts may be missing, empty strings,
strings with thousands separators, or NaN. Every amount goes through
``to_amount`` before arithmetic, so a bad source value contributes zero and
never turns a total into NaN.
"""

import math
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime, timezone
from typing import Any, Optional

import pandas as pd

from .models import ColumnSpec
from .periods import CalendarAnchor, parse_instant, unit_label

MISSING = "-"


def to_amount(value: Any) -> float:
    """Coerce a store value to a finite float; anything unusable gives 0.0."""
    if value is None:
        return 0.0
    if isinstance(value, str):
        text = value.strip().replace(",", "")
        if not text:
            return 0.0
        try:
            result = float(text)
        except ValueError:
            return 0.0
    else:
        try:
            result = float(value)
        except (TypeError, ValueError):
            return 0.0
    if math.isnan(result) or math.isinf(result):
        return 0.0
    return result


def first_amount(record: Mapping[str, Any], *keys: str) -> float:
    """Return the first non-zero amount among ``keys`` (0.0 if none)."""
    for key in keys:
        value = to_amount(record.get(key))
        if value:
            return value
    return 0.0


def money_value(value: float) -> float:
    return round(value, 2)


def text_or_missing(value: Any, default: str = MISSING) -> str:
    if value is None:
        return default
    if isinstance(value, float) and math.isnan(value):
        return default
    text = str(value).strip()
    return text or default


def related_value(
    record: Mapping[str, Any], alias: str, column: str = "name", default: str = MISSING
) -> str:
    """Value of an expanded relation column, or ``default`` when unresolved."""
    related = record.get(alias)
    if not isinstance(related, Mapping):
        return default
    return text_or_missing(related.get(column), default)


def percent_of(part: float, whole: float, decimals: int = 1) -> str:
    """Format ``part / whole`` as a percentage; a zero denominator gives '0.0%'."""
    if not whole:
        return f"{0:.{decimals}f}%"
    return f"{part / whole * 100:.{decimals}f}%"


def column_totals(
    columns: Sequence[ColumnSpec], rows: Iterable[Mapping[str, Any]]
) -> dict[str, float]:
    """Sum every column declared with ``total=True`` (all zero for no rows)."""
    rows = list(rows)
    return {
        c.key: math.fsum(to_amount(row.get(c.key)) for row in rows)
        for c in columns
        if c.total
    }


def group_sum(
    records: Sequence[Mapping[str, Any]],
    by: str,
    sums: Sequence[str],
    *,
    count: Optional[str] = None,
) -> list[dict[str, Any]]:
    """
    Group records on ``by`` and sum the ``sums`` columns.

    Groups keep the order in which their key first appears; an optional
    ``count`` column receives the number of records per group.
    """
    if not records:
        return []

    frame = pd.DataFrame(
        [{by: r[by], **{s: to_amount(r.get(s)) for s in sums}} for r in records]
    )
    grouped = frame.groupby(by, sort=False, dropna=False)
    summed = grouped[list(sums)].sum()
    sizes = grouped.size()

    out: list[dict[str, Any]] = []
    for key, values in summed.iterrows():
        row: dict[str, Any] = {by: key}
        if count:
            row[count] = int(sizes.loc[key])
        for s in sums:
            row[s] = money_value(float(values[s]))
        out.append(row)
    return out


def running_balance(
    movements: Iterable[tuple[float, float]], opening: float = 0.0
) -> list[float]:
    """
    Running ``balance += debit - credit`` over ordered (debit, credit) pairs.

    The order of ``movements`` is the order of the scan; callers must pass
    them sorted by timestamp.
    """
    balance = opening
    balances: list[float] = []
    for debit, credit in movements:
        balance = money_value(balance + to_amount(debit) - to_amount(credit))
        balances.append(balance)
    return balances


# ---------------------------------------------------------------------------
# Timestamps
# ---------------------------------------------------------------------------

_EARLIEST = datetime.min.replace(tzinfo=timezone.utc)


def safe_instant(value: Any, anchor: CalendarAnchor) -> Optional[datetime]:
    """``parse_instant`` that degrades unparseable values to ``None``."""
    try:
        return parse_instant(value, anchor)
    except ValueError:
        return None


def local_day(instant: Optional[datetime], anchor: CalendarAnchor) -> str:
    if instant is None:
        return MISSING
    return anchor.local_date(instant).isoformat()


def chronological(records: list[dict[str, Any]], key: str = "_at") -> list[dict[str, Any]]:
    """Stable sort on an instant key; records without one come last."""
    return sorted(records, key=lambda r: (r[key] is None, r[key] or _EARLIEST))


def period_key(instant: Optional[datetime], unit: str, anchor: CalendarAnchor) -> str:
    if instant is None:
        return MISSING
    return unit_label(instant, unit, anchor)
