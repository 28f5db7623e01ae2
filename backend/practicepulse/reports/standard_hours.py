"""
Standard (expected) working hours per staff member.

Expected hours are weekdays worked times ``default_daily_hours * fte``,
counted month by month over the overlap of the query range and the staff
member's effective ``start_date``..``end_date`` (either end open).
"""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any

from practicepulse.reports.periods import PeriodWindow, financial_month_index, month_bounds, parse_date

DEFAULT_DAILY_HOURS = 8.0
DEFAULT_FTE = 1.0


def _optional_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class StaffProfile:
    """Read-only view of a staff settings row."""

    staff_name: str
    default_daily_hours: float | None = None
    fte: float | None = None
    target_billable_percentage: float | None = None
    start_date: date | None = None
    end_date: date | None = None
    is_hidden: bool = False
    report: bool | None = True

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "StaffProfile":
        return cls(
            staff_name=(row.get("staff_name") or "").strip(),
            default_daily_hours=_optional_float(row.get("default_daily_hours")),
            fte=_optional_float(row.get("fte")),
            target_billable_percentage=_optional_float(row.get("target_billable_percentage")),
            start_date=parse_date(row.get("start_date")),
            end_date=parse_date(row.get("end_date")),
            is_hidden=bool(row.get("is_hidden")),
            report=row.get("report"),
        )

    @property
    def is_reportable(self) -> bool:
        return not self.is_hidden and self.report is not False

    def daily_hours(self, default_daily_hours: float = DEFAULT_DAILY_HOURS, default_fte: float = DEFAULT_FTE) -> float:
        hours = self.default_daily_hours
        if hours is None or not 0 < hours <= 24:
            hours = default_daily_hours
        fte = self.fte if self.fte is not None and 0 <= self.fte <= 1 else default_fte
        return hours * fte

    def overlap(self, start: date, end: date) -> tuple[date, date] | None:
        """Part of ``start``..``end`` inside the effective range, or ``None``."""
        lower = max(start, self.start_date) if self.start_date else start
        upper = min(end, self.end_date) if self.end_date else end
        if lower > upper:
            return None
        return lower, upper


def default_profile(staff_name: str) -> StaffProfile:
    return StaffProfile(staff_name=staff_name)


def count_weekdays(start: date, end: date) -> int:
    """Monday-Friday days in ``start``..``end`` inclusive."""
    if end < start:
        return 0
    days = (end - start).days + 1
    full_weeks, remainder = divmod(days, 7)
    count = full_weeks * 5
    for offset in range(remainder):
        if (start + timedelta(days=full_weeks * 7 + offset)).weekday() < 5:
            count += 1
    return count


def iter_month_slices(start: date, end: date) -> Iterator[tuple[date, date]]:
    """Calendar-month pieces of ``start``..``end``, each clipped to the range."""
    cursor = start
    while cursor <= end:
        _, month_end = month_bounds(cursor.year, cursor.month)
        yield cursor, min(month_end, end)
        cursor = month_end + timedelta(days=1)


def standard_hours_by_month(
    profile: StaffProfile,
    start: date,
    end: date,
    *,
    default_daily_hours: float = DEFAULT_DAILY_HOURS,
    default_fte: float = DEFAULT_FTE,
) -> dict[tuple[int, int], float]:
    daily = profile.daily_hours(default_daily_hours, default_fte)
    result = {}
    for slice_start, slice_end in iter_month_slices(start, end):
        overlap = profile.overlap(slice_start, slice_end)
        weekdays = count_weekdays(*overlap) if overlap else 0
        result[(slice_start.year, slice_start.month)] = weekdays * daily
    return result


def standard_hours(
    profile: StaffProfile,
    start: date,
    end: date,
    *,
    default_daily_hours: float = DEFAULT_DAILY_HOURS,
    default_fte: float = DEFAULT_FTE,
) -> float:
    return sum(
        standard_hours_by_month(
            profile, start, end, default_daily_hours=default_daily_hours, default_fte=default_fte
        ).values()
    )


def standard_hours_by_staff(
    profiles: Mapping[str, StaffProfile],
    window: PeriodWindow,
    *,
    default_daily_hours: float = DEFAULT_DAILY_HOURS,
    default_fte: float = DEFAULT_FTE,
) -> dict[str, float]:
    return {
        name: standard_hours(
            profile, window.start, window.end, default_daily_hours=default_daily_hours, default_fte=default_fte
        )
        for name, profile in profiles.items()
    }


def monthly_standard_hours(
    profiles: Mapping[str, StaffProfile],
    window: PeriodWindow,
    *,
    default_daily_hours: float = DEFAULT_DAILY_HOURS,
    default_fte: float = DEFAULT_FTE,
) -> list[float]:
    """Twelve July-first buckets of summed standard hours over ``profiles``."""
    series = [0.0] * 12
    for profile in profiles.values():
        by_month = standard_hours_by_month(
            profile, window.start, window.end, default_daily_hours=default_daily_hours, default_fte=default_fte
        )
        for (_, month), hours in by_month.items():
            series[financial_month_index(month)] += hours
    return series


def available_hours(standard: float, capacity_reducing: float) -> float:
    """Standard hours less capacity-reducing hours, never negative."""
    return max(0.0, standard - capacity_reducing)
