from datetime import date, datetime, timedelta, timezone

import pytest

import shop_reports.periods as periods
from shop_reports.errors import InvalidRangeError
from shop_reports.periods import PRESETS, CalendarAnchor, DateRange, resolve

NAIROBI = timezone(timedelta(hours=3))
NOW = datetime(2025, 1, 15, 9, 30, tzinfo=timezone.utc)


def local(*args) -> datetime:
    return datetime(*args, tzinfo=NAIROBI)


@pytest.mark.parametrize("preset", [p for p in PRESETS if p != "custom"])
def test_every_preset_has_start_not_after_end(preset):
    r = resolve(preset, now=NOW)
    assert r.start <= r.end
    assert r.start.tzinfo is not None and r.end.tzinfo is not None


def test_month_covers_whole_local_month():
    r = resolve("month", now=NOW)

    assert r.start == local(2025, 1, 1)
    assert r.end == local(2025, 2, 1)
    assert r.contains(NOW)
    assert not r.contains(local(2025, 2, 15, 12, 0))
    assert not r.contains(local(2024, 12, 15, 12, 0))


def test_last_month_and_month_are_adjacent_and_disjoint():
    last = resolve("last-month", now=NOW)
    current = resolve("month", now=NOW)

    assert last.start == local(2024, 12, 1)
    assert last.end == current.start
    assert not last.contains(current.start)


def test_week_starts_on_sunday():
    # 15 January 2025 is a Wednesday.
    r = resolve("week", now=NOW)
    assert r.start == local(2025, 1, 12)
    assert r.end == local(2025, 1, 19)

    last = resolve("last-week", now=NOW)
    assert last.start == local(2025, 1, 5)
    assert last.end == r.start


def test_week_start_follows_anchor():
    monday_anchor = CalendarAnchor(week_start=0)
    r = resolve("week", now=NOW, anchor=monday_anchor)
    assert r.start == local(2025, 1, 13)


def test_quarter_and_year_presets():
    assert resolve("quarter", now=NOW).start == local(2025, 1, 1)
    assert resolve("quarter", now=NOW).end == local(2025, 4, 1)

    last_quarter = resolve("last-quarter", now=NOW)
    assert last_quarter.start == local(2024, 10, 1)
    assert last_quarter.end == local(2025, 1, 1)

    assert resolve("year", now=NOW).end == local(2026, 1, 1)
    assert resolve("last-year", now=NOW).start == local(2024, 1, 1)


def test_today_uses_local_date_not_utc_date():
    # 22:30 UTC on 31 January is already 1 February in Nairobi.
    late = datetime(2025, 1, 31, 22, 30, tzinfo=timezone.utc)

    today = resolve("today", now=late)
    assert today.start == local(2025, 2, 1)
    assert today.end == local(2025, 2, 2)
    assert resolve("month", now=late).start == local(2025, 2, 1)

    yesterday = resolve("yesterday", now=late)
    assert yesterday.start == local(2025, 1, 31)
    assert yesterday.end == today.start


def test_last_month_clamps_day_of_month():
    end_of_march = datetime(2025, 3, 31, 9, 0, tzinfo=timezone.utc)
    r = resolve("last-month", now=end_of_march)
    assert r.start == local(2025, 2, 1)
    assert r.end == local(2025, 3, 1)


def test_shift_months_clamps_and_handles_leap_years():
    assert periods.shift_months(date(2025, 3, 31), -1) == date(2025, 2, 28)
    assert periods.shift_months(date(2024, 3, 31), -1) == date(2024, 2, 29)
    assert periods.shift_months(date(2025, 1, 15), -1) == date(2024, 12, 15)
    assert periods.shift_months(date(2024, 2, 29), 12) == date(2025, 2, 28)


def test_custom_range_includes_entire_end_day():
    r = resolve("custom", "2025-01-01", "2025-01-31", now=NOW)

    assert r.start == local(2025, 1, 1)
    assert r.end == local(2025, 2, 1)
    assert r.last_instant == local(2025, 1, 31, 23, 59, 59, 999000)
    assert r.contains(local(2025, 1, 31, 23, 59))
    assert r.label == "Custom period (2025-01-01 → 2025-01-31)"


def test_custom_range_accepts_date_objects():
    r = resolve("custom", date(2025, 1, 10), date(2025, 1, 10), now=NOW)
    assert r.start == local(2025, 1, 10)
    assert r.end == local(2025, 1, 11)


def test_custom_range_requires_both_bounds():
    with pytest.raises(InvalidRangeError):
        resolve("custom", "2025-01-01", None, now=NOW)
    with pytest.raises(InvalidRangeError):
        resolve("custom", "", "2025-01-31", now=NOW)


def test_custom_range_rejects_end_before_start():
    with pytest.raises(InvalidRangeError):
        resolve("custom", "2025-02-01", "2025-01-01", now=NOW)


def test_custom_range_rejects_malformed_dates():
    with pytest.raises(InvalidRangeError):
        resolve("custom", "01/01/2025", "2025-01-31", now=NOW)


def test_all_spans_epoch_to_one_year_ahead():
    r = resolve("all", now=NOW)
    assert r.start == local(2020, 1, 1)
    assert r.end == local(2026, 1, 16)

    custom_epoch = resolve("all", now=NOW, epoch=date(2023, 6, 1))
    assert custom_epoch.start == local(2023, 6, 1)


def test_unknown_preset_and_aliases():
    with pytest.raises(InvalidRangeError):
        resolve("fortnight", now=NOW)

    assert resolve("lastMonth", now=NOW) == resolve("last-month", now=NOW)
    assert resolve("last_quarter", now=NOW) == resolve("last-quarter", now=NOW)


def test_naive_now_is_rejected():
    with pytest.raises(InvalidRangeError):
        resolve("month", now=datetime(2025, 1, 15, 12, 0))


def test_default_now_reads_clock(monkeypatch):
    monkeypatch.setattr(periods, "_now", lambda: NOW)
    assert resolve("month") == resolve("month", now=NOW)


def test_date_range_validation_and_describe():
    with pytest.raises(InvalidRangeError):
        DateRange(start=local(2025, 2, 1), end=local(2025, 1, 1))
    with pytest.raises(InvalidRangeError):
        DateRange(start=datetime(2025, 1, 1), end=datetime(2025, 2, 1))

    r = resolve("month", now=NOW)
    assert r.describe() == "01 Jan 2025 - 31 Jan 2025"


def test_parse_instant_formats():
    anchor = CalendarAnchor()

    assert periods.parse_instant("2025-01-15", anchor) == local(2025, 1, 15)
    assert periods.parse_instant("2025-01-15 10:00:00", anchor) == local(2025, 1, 15, 10)
    assert periods.parse_instant("2025-01-15T10:00:00Z", anchor) == datetime(
        2025, 1, 15, 10, tzinfo=timezone.utc
    )
    assert periods.parse_instant(date(2025, 1, 15), anchor) == local(2025, 1, 15)
    assert periods.parse_instant(None, anchor) is None
    assert periods.parse_instant("  ", anchor) is None

    with pytest.raises(ValueError):
        periods.parse_instant("yesterday-ish", anchor)


def test_unit_labels():
    instant = local(2025, 1, 15, 12, 0)
    assert periods.unit_label(instant, "day") == "2025-01-15"
    assert periods.unit_label(instant, "week") == "Week of 2025-01-12"
    assert periods.unit_label(instant, "month") == "Jan 2025"

    with pytest.raises(ValueError):
        periods.unit_label(instant, "decade")
