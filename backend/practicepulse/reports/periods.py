"""
Financial-year windows.

A financial year runs 1 July to 30 June and is named by its start year.
Everything here is a pure function of an explicit reference date; callers
resolve "today" once at the edge and thread it through.
"""

import calendar
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

FY_START_MONTH = 7

MONTH_NAMES = tuple(calendar.month_name[1:])

# July ... June
FINANCIAL_MONTHS = MONTH_NAMES[FY_START_MONTH - 1 :] + MONTH_NAMES[: FY_START_MONTH - 1]

CURRENT = "current"
LAST = "last"


def financial_year_start(reference: date) -> int:
    """Start year of the financial year containing ``reference``."""
    return reference.year if reference.month >= FY_START_MONTH else reference.year - 1


def financial_month_index(month: int) -> int:
    """Column of a calendar month (1-12) in a July-first series."""
    return (month - FY_START_MONTH) % 12


def month_number(name: str | None) -> int | None:
    if not name:
        return None
    lowered = name.strip().lower()
    for number, month_name in enumerate(MONTH_NAMES, start=1):
        if month_name.lower() == lowered:
            return number
    return None


def same_day_last_year(reference: date) -> date:
    """Same calendar day one year earlier; 29 February falls back to the 28th."""
    try:
        return reference.replace(year=reference.year - 1)
    except ValueError:
        return reference.replace(year=reference.year - 1, day=28)


def month_bounds(year: int, month: int) -> tuple[date, date]:
    return date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1])


@dataclass(frozen=True)
class PeriodWindow:
    """Inclusive date range tagged ``current`` or ``last``."""

    start: date
    end: date
    label: str

    def contains(self, value: date | None) -> bool:
        return value is not None and self.start <= value <= self.end

    @property
    def start_iso(self) -> str:
        return self.start.isoformat()

    @property
    def end_iso(self) -> str:
        return self.end.isoformat()


@dataclass(frozen=True)
class FinancialPeriods:
    reference_date: date
    fy_start_year: int

    @classmethod
    def for_date(cls, reference_date: date) -> "FinancialPeriods":
        return cls(reference_date=reference_date, fy_start_year=financial_year_start(reference_date))

    @property
    def current_year(self) -> PeriodWindow:
        return PeriodWindow(date(self.fy_start_year, 7, 1), date(self.fy_start_year + 1, 6, 30), CURRENT)

    @property
    def last_year(self) -> PeriodWindow:
        return PeriodWindow(date(self.fy_start_year - 1, 7, 1), date(self.fy_start_year, 6, 30), LAST)

    @property
    def current_year_to_date(self) -> PeriodWindow:
        return PeriodWindow(self.current_year.start, self.reference_date, CURRENT)

    @property
    def last_year_to_date(self) -> PeriodWindow:
        """Prior FY up to the same day last year, never past that FY's 30 June."""
        last_year = self.last_year
        shifted = same_day_last_year(self.reference_date)
        end = shifted if shifted <= last_year.end else last_year.end
        return PeriodWindow(last_year.start, end, LAST)

    def full_years(self) -> tuple[PeriodWindow, PeriodWindow]:
        return self.current_year, self.last_year

    def as_of(self) -> tuple[PeriodWindow, PeriodWindow]:
        return self.current_year_to_date, self.last_year_to_date

    def month_windows(self, month_name: str | None) -> tuple[PeriodWindow, PeriodWindow] | None:
        """Whole-month windows for a named month in the current and last FY.

        Returns ``None`` for an unknown or missing month name.
        """
        month = month_number(month_name)
        if month is None:
            return None
        if month >= FY_START_MONTH:
            current_year, last_year = self.fy_start_year, self.fy_start_year - 1
        else:
            current_year, last_year = self.fy_start_year + 1, self.fy_start_year
        return (
            PeriodWindow(*month_bounds(current_year, month), CURRENT),
            PeriodWindow(*month_bounds(last_year, month), LAST),
        )

    def windows_for_month(self, month_name: str | None) -> tuple[PeriodWindow, PeriodWindow]:
        """Month windows when ``month_name`` resolves, else the full financial years."""
        return self.month_windows(month_name) or self.full_years()


def parse_date(value: Any) -> date | None:
    """A ``date``, or the date prefix of an ISO string; anything else is ``None``."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            return None
    return None


def resolve_reference_date(value: str | date | None, today: date) -> date:
    """Parse an ``asOfDate`` parameter, falling back to ``today`` when absent or unparsable."""
    return parse_date(value) or today
