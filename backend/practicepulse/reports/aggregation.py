"""
Folding record streams into per-group totals.

Rows are plain mappings as returned by a RecordSource. Amounts are coerced
once here; categorical keys that are missing land in ``Uncategorized``
instead of being dropped. Results are immutable so the same rows can be
folded repeatedly with identical output.
"""

import math
from collections import Counter, defaultdict
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from types import MappingProxyType
from typing import Any

from practicepulse.reports.periods import PeriodWindow, financial_month_index, parse_date
from practicepulse.reports.timecodec import decode_time

UNCATEGORIZED = "Uncategorized"

Row = Mapping[str, Any]
KeyFunc = Callable[[Row], str | None]


def coerce_amount(value: Any) -> float:
    """Numbers pass through, strings are parsed, anything else (or a parse failure) is 0."""
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float, Decimal)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return 0.0
    else:
        return 0.0
    return number if math.isfinite(number) else 0.0


def category_key(field_name: str) -> KeyFunc:
    def key(row: Row) -> str:
        return row.get(field_name) or UNCATEGORIZED

    return key


def staff_key(excluded: Iterable[str] = ()) -> KeyFunc:
    """Key rows by trimmed staff name, skipping blank and excluded (pseudo-staff) names."""
    excluded_names = {name.strip().lower() for name in excluded}

    def key(row: Row) -> str | None:
        name = (row.get("staff") or "").strip()
        if not name or name.lower() in excluded_names:
            return None
        return name

    return key


@dataclass(frozen=True)
class Totals:
    amount: float = 0.0
    hours: float = 0.0
    records: int = 0

    def __add__(self, other: "Totals") -> "Totals":
        return Totals(self.amount + other.amount, self.hours + other.hours, self.records + other.records)


def row_totals(row: Row, amount_field: str | None = None, time_field: str | None = None) -> Totals:
    return Totals(
        amount=coerce_amount(row.get(amount_field)) if amount_field else 0.0,
        hours=decode_time(row.get(time_field)) if time_field else 0.0,
        records=1,
    )


def fold(
    rows: Iterable[Row],
    key: KeyFunc,
    *,
    amount_field: str | None = None,
    time_field: str | None = None,
) -> dict[str, Totals]:
    """Sum amount and decoded hours per group; rows whose key is ``None`` are skipped."""
    result: dict[str, Totals] = {}
    for row in rows:
        group = key(row)
        if group is None:
            continue
        result[group] = result.get(group, Totals()) + row_totals(row, amount_field, time_field)
    return result


def total(rows: Iterable[Row], *, amount_field: str | None = None, time_field: str | None = None) -> Totals:
    result = Totals()
    for row in rows:
        result = result + row_totals(row, amount_field, time_field)
    return result


def most_common(values: Iterable[str | None]) -> str | None:
    """Most frequent non-empty value; ties go to the value seen first."""
    counts = Counter(value for value in values if value)
    if not counts:
        return None
    return counts.most_common(1)[0][0]


def dominant_values(rows: Iterable[Row], key: KeyFunc, field_name: str) -> dict[str, str | None]:
    observed: dict[str, list[str | None]] = defaultdict(list)
    for row in rows:
        group = key(row)
        if group is not None:
            observed[group].append(row.get(field_name))
    return {group: most_common(values) for group, values in observed.items()}


@dataclass(frozen=True)
class Comparison:
    """Current and last period totals for one group key."""

    key: str
    current: Totals
    last: Totals
    tags: Mapping[str, str | None] = field(default_factory=lambda: MappingProxyType({}))


def compare(
    current_rows: Sequence[Row],
    last_rows: Sequence[Row],
    key: KeyFunc,
    *,
    amount_field: str | None = None,
    time_field: str | None = None,
    tag_fields: Sequence[str] = (),
) -> list[Comparison]:
    """Fold both periods by ``key``; tags are the most common value across both periods."""
    current = fold(current_rows, key, amount_field=amount_field, time_field=time_field)
    last = fold(last_rows, key, amount_field=amount_field, time_field=time_field)
    combined = [*current_rows, *last_rows]
    tags = {name: dominant_values(combined, key, name) for name in tag_fields}
    return [
        Comparison(
            key=group,
            current=current.get(group, Totals()),
            last=last.get(group, Totals()),
            tags=MappingProxyType({name: tags[name].get(group) for name in tag_fields}),
        )
        for group in dict.fromkeys([*current, *last])
    ]


def row_date(row: Row) -> date | None:
    return parse_date(row.get("date"))


def monthly_series(rows: Iterable[Row], window: PeriodWindow, value: Callable[[Row], float]) -> list[float]:
    """Twelve July-first buckets of ``value`` for rows dated inside ``window``."""
    series = [0.0] * 12
    for row in rows:
        when = row_date(row)
        if not window.contains(when):
            continue
        series[financial_month_index(when.month)] += value(row)
    return series
