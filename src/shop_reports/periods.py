# Shop Reports - Report aggregation & export for fabrication shops
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Date range helpers for Shop Reports.

This module turns a named preset ("today", "month", "last-quarter", ...)
into a concrete, timezone-aware ``DateRange``. All calendar arithmetic is
done on the *local civil date* of a ``CalendarAnchor`` (by default the
shop's timezone, Africa/Nairobi, UTC+3 without daylight saving, weeks
starting on Sunday) and the boundaries are then converted back to aware
instants at local midnight.

Conventions
-----------
- Ranges are half-open: ``start <= instant < end``.
- Calendar-unit presets cover the full unit containing ``now``
  (``month`` is the whole current month, not month-to-date).
- ``last-*`` presets shift the anchor date by exactly one unit before
  computing the unit boundaries. Month arithmetic clamps the day of month
  (31 March minus one month is 28/29 February).
- ``custom`` includes the entire end day: the exclusive end is the next
  local midnight, so ``DateRange.last_instant`` is 23:59:59.999 local.
- ``all`` spans from the application epoch to one year after ``now``.

``resolve`` is pure: it never reads the clock when ``now`` is given.
"""

import re
from calendar import monthrange
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Union

from .errors import InvalidRangeError

DayLike = Union[date, datetime, str]

WEEKDAYS: dict[str, int] = {
    "monday": 0,
    "tuesday": 1,
    "wednesday": 2,
    "thursday": 3,
    "friday": 4,
    "saturday": 5,
    "sunday": 6,
}

APPLICATION_EPOCH = date(2020, 1, 1)


@dataclass(frozen=True)
class CalendarAnchor:
    """
    Civil timezone used to compute calendar boundaries.

    Attributes
    ----------
    name:
        Display name of the zone (e.g. "Africa/Nairobi").
    utc_offset_hours:
        Fixed offset from UTC. The anchor never applies daylight saving.
    week_start:
        First day of the week, as a ``date.weekday()`` number
        (0 = Monday, 6 = Sunday).
    """

    name: str = "Africa/Nairobi"
    utc_offset_hours: float = 3.0
    week_start: int = 6

    def __post_init__(self) -> None:
        if not -14 <= self.utc_offset_hours <= 14:
            raise ValueError(
                f"Invalid UTC offset {self.utc_offset_hours!r}, "
                "expected a value between -14 and 14 hours."
            )
        if self.week_start not in range(7):
            raise ValueError(f"Invalid week start day: {self.week_start!r}")

    @property
    def tzinfo(self) -> timezone:
        return timezone(timedelta(hours=self.utc_offset_hours), self.name)

    def local_date(self, instant: datetime) -> date:
        """Return the civil date of an aware instant in this zone."""
        return instant.astimezone(self.tzinfo).date()

    def midnight(self, day: date) -> datetime:
        """Return the aware instant of local midnight starting ``day``."""
        return datetime.combine(day, time.min, tzinfo=self.tzinfo)


DEFAULT_ANCHOR = CalendarAnchor()


@dataclass(frozen=True)
class DateRange:
    """Half-open ``[start, end)`` pair of aware instants."""

    start: datetime
    end: datetime
    label: str = ""

    def __post_init__(self) -> None:
        if self.start.tzinfo is None or self.end.tzinfo is None:
            raise InvalidRangeError("Date range bounds must be timezone-aware.")
        if self.end < self.start:
            raise InvalidRangeError(
                f"Date range end {self.end.isoformat()} is before start "
                f"{self.start.isoformat()}.",
                context={"start": self.start, "end": self.end},
            )

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant < self.end

    @property
    def last_instant(self) -> datetime:
        """Last millisecond still inside the range."""
        if self.end == self.start:
            return self.end
        return self.end - timedelta(milliseconds=1)

    def describe(self, anchor: CalendarAnchor = DEFAULT_ANCHOR) -> str:
        """Human-readable local dates, e.g. '01 Jan 2025 - 31 Jan 2025'."""
        first = anchor.local_date(self.start)
        last = anchor.local_date(self.last_instant)
        return f"{first:%d %b %Y} - {last:%d %b %Y}"


# ---------------------------------------------------------------------------
# Calendar arithmetic
# ---------------------------------------------------------------------------

# preset -> (unit, number of units to shift, label)
_CALENDAR_PRESETS: dict[str, tuple[str, int, str]] = {
    "today": ("day", 0, "Today"),
    "yesterday": ("day", -1, "Yesterday"),
    "week": ("week", 0, "This week"),
    "last-week": ("week", -1, "Last week"),
    "month": ("month", 0, "This month"),
    "last-month": ("month", -1, "Last month"),
    "quarter": ("quarter", 0, "This quarter"),
    "last-quarter": ("quarter", -1, "Last quarter"),
    "year": ("year", 0, "This year"),
    "last-year": ("year", -1, "Last year"),
}

PRESETS: tuple[str, ...] = tuple(_CALENDAR_PRESETS) + ("custom", "all")

_MONTHS_PER_UNIT = {"month": 1, "quarter": 3, "year": 12}


def _now() -> datetime:
    """Return the current UTC instant (isolated for easier testing)."""
    return datetime.now(timezone.utc)


def shift_months(day: date, months: int) -> date:
    """Move ``day`` by a number of calendar months, clamping the day of month."""
    index = day.year * 12 + (day.month - 1) + months
    year, month_index = divmod(index, 12)
    last_day = monthrange(year, month_index + 1)[1]
    return date(year, month_index + 1, min(day.day, last_day))


def _shift(day: date, unit: str, steps: int) -> date:
    if unit == "day":
        return day + timedelta(days=steps)
    if unit == "week":
        return day + timedelta(weeks=steps)
    return shift_months(day, _MONTHS_PER_UNIT[unit] * steps)


def unit_bounds(day: date, unit: str, week_start: int = 6) -> tuple[date, date]:
    """Return the ``[first day, first day of next unit)`` pair containing ``day``."""
    if unit == "day":
        return day, day + timedelta(days=1)
    if unit == "week":
        start = day - timedelta(days=(day.weekday() - week_start) % 7)
        return start, start + timedelta(days=7)
    if unit == "month":
        start = day.replace(day=1)
        return start, shift_months(start, 1)
    if unit == "quarter":
        start = date(day.year, 3 * ((day.month - 1) // 3) + 1, 1)
        return start, shift_months(start, 3)
    if unit == "year":
        return date(day.year, 1, 1), date(day.year + 1, 1, 1)
    raise ValueError(f"Unknown calendar unit: {unit!r}")


def normalize_preset(preset: str) -> str:
    """
    Normalize a preset name to its kebab-case key.

    'lastMonth', 'last_month' and 'LAST-MONTH' all give 'last-month'.
    """
    key = re.sub(r"(?<=[a-z])(?=[A-Z])", "-", preset.strip())
    key = key.replace("_", "-").lower()
    if key not in PRESETS:
        raise InvalidRangeError(
            f"Unknown date range preset: {preset!r}",
            context={"preset": preset, "choices": PRESETS},
        )
    return key


def _coerce_day(value: Optional[DayLike], which: str, anchor: CalendarAnchor) -> date:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise InvalidRangeError(
            f"Custom range requires an explicit {which} date.",
            context={"bound": which},
        )
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.date()
        return anchor.local_date(value)
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError as exc:
        raise InvalidRangeError(
            f"Invalid {which} date {value!r}, expected YYYY-MM-DD format.",
            context={"bound": which, "value": value},
        ) from exc


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def resolve(
    preset: str,
    explicit_start: Optional[DayLike] = None,
    explicit_end: Optional[DayLike] = None,
    *,
    now: Optional[datetime] = None,
    anchor: CalendarAnchor = DEFAULT_ANCHOR,
    epoch: date = APPLICATION_EPOCH,
) -> DateRange:
    """
    Resolve a preset into a concrete ``DateRange``.

    Parameters
    ----------
    preset:
        One of ``PRESETS`` (camelCase and snake_case spellings accepted).
    explicit_start, explicit_end:
        Bounds for the ``custom`` preset (date, datetime or ISO string).
        Ignored by every other preset.
    now:
        Reference instant; must be timezone-aware. Defaults to the clock.
    anchor:
        Civil timezone used for calendar boundaries.
    epoch:
        First day of the ``all`` preset.

    Raises
    ------
    InvalidRangeError
        Unknown preset, naive ``now``, missing or malformed custom bounds,
        or a custom end before its start.
    """
    key = normalize_preset(preset)
    current = _now() if now is None else now
    if current.tzinfo is None:
        raise InvalidRangeError("'now' must be a timezone-aware datetime.")
    today = anchor.local_date(current)

    if key == "custom":
        start_day = _coerce_day(explicit_start, "start", anchor)
        end_day = _coerce_day(explicit_end, "end", anchor)
        if end_day < start_day:
            raise InvalidRangeError(
                "Custom range end date cannot be before start date.",
                context={"start": start_day, "end": end_day},
            )
        return DateRange(
            start=anchor.midnight(start_day),
            end=anchor.midnight(end_day + timedelta(days=1)),
            label=f"Custom period ({start_day} → {end_day})",
        )

    if key == "all":
        end_day = shift_months(today, 12) + timedelta(days=1)
        return DateRange(
            start=anchor.midnight(epoch),
            end=anchor.midnight(end_day),
            label="All time",
        )

    unit, steps, label = _CALENDAR_PRESETS[key]
    start_day, end_day = unit_bounds(_shift(today, unit, steps), unit, anchor.week_start)
    return DateRange(
        start=anchor.midnight(start_day),
        end=anchor.midnight(end_day),
        label=label,
    )


def parse_instant(
    value: object, anchor: CalendarAnchor = DEFAULT_ANCHOR
) -> Optional[datetime]:
    """
    Convert a store timestamp to an aware instant.

    Accepts ``datetime`` / ``date`` objects and ISO strings with or without
    time and offset (a trailing 'Z' means UTC). Naive values are read as
    local time in ``anchor``. Empty values give ``None``.

    Raises
    ------
    ValueError
        If a string cannot be parsed as an ISO date or date-time.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        return anchor.midnight(value)
    else:
        text = str(value).strip()
        if not text:
            return None
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            raise ValueError(f"Invalid timestamp value: {value!r}") from exc

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=anchor.tzinfo)
    return parsed


def unit_label(
    instant: datetime, unit: str, anchor: CalendarAnchor = DEFAULT_ANCHOR
) -> str:
    """Grouping key of an instant for 'day', 'week' or 'month' grouping."""
    day = anchor.local_date(instant)
    if unit == "day":
        return day.isoformat()
    if unit == "week":
        start, _ = unit_bounds(day, "week", anchor.week_start)
        return f"Week of {start.isoformat()}"
    if unit == "month":
        return f"{day:%b %Y}"
    raise ValueError(f"Unknown grouping unit: {unit!r}")
