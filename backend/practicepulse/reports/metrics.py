"""
KPI formulas applied once all sums are known.

Currency is rounded to cents, percentages and variances to one decimal,
both half-up. Percentage-point metrics (billable %, recoverability %) are
compared by subtraction; dollar and rate metrics by relative change.
"""

import math
from collections.abc import Iterable

from practicepulse.reports.standard_hours import available_hours

NEAR_ZERO = 0.01


def _round_half_up(value: float, digits: int) -> float:
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def round_currency(value: float) -> float:
    return _round_half_up(value, 2)


def round_percentage(value: float) -> float:
    return _round_half_up(value, 1)


def round_optional_percentage(value: float | None) -> float | None:
    return None if value is None else round_percentage(value)


def percentage_change(current: float, last: float) -> float | None:
    """Relative change for dollar metrics; ``None`` when both sides are effectively zero."""
    if abs(last) > NEAR_ZERO:
        return round_percentage((current - last) / abs(last) * 100)
    if abs(current) > NEAR_ZERO:
        return 100.0 if current > 0 else -100.0
    return None


def point_change(current: float, last: float) -> float:
    return round_percentage(current - last)


def billable_percentage(billable_hours: float, standard_hours: float, capacity_reducing_hours: float) -> float:
    available = available_hours(standard_hours, capacity_reducing_hours)
    if available <= 0:
        return 0.0
    return billable_hours / available * 100


def billable_variance(billable_pct: float, target_pct: float | None) -> float | None:
    if target_pct is None:
        return None
    return billable_pct - target_pct


def recoverability_percentage(write_on_amount: float, invoiced_amount: float) -> float:
    denominator = invoiced_amount - write_on_amount
    if denominator <= 0:
        return 0.0
    return (1 + write_on_amount / denominator) * 100


def recoverability_variance(recoverability_pct: float, target_pct: float = 95.0) -> float:
    return recoverability_pct - target_pct


def average_rate(billable_amount: float, billable_hours: float) -> float:
    if billable_hours <= 0:
        return 0.0
    return billable_amount / billable_hours


def mean_target(targets: Iterable[float | None]) -> float:
    """Equal-weight mean of the valid (0-100) targets; 0 when none are set."""
    valid = [t for t in targets if t is not None and 0 <= t <= 100]
    if not valid:
        return 0.0
    return sum(valid) / len(valid)

