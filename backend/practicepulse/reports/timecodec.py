"""
Timesheet time decoding.

Times are stored as a compact number, not a clock value: below 100 the
value is minutes; from 100 up the hundreds are whole hours and the last two
digits are minutes (``112`` is 1 hour 12 minutes, i.e. 1.2 hours).
"""

import math
from decimal import Decimal


def _as_number(value) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def decode_time(value) -> float:
    """Fractional hours for an encoded time; null, unparsable or non-positive input is 0."""
    number = _as_number(value)
    if number is None or not math.isfinite(number) or number <= 0:
        return 0.0
    # Round half up first to absorb numeric(10,2) noise
    rounded = math.floor(number + 0.5)
    if rounded < 100:
        return rounded / 60
    hours, minutes = divmod(rounded, 100)
    return hours + minutes / 60
