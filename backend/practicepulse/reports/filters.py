"""
Report filters and the predicate they compose into.

Filters arrive either as a pipe string (``type:value|type:operator:value``,
segments URL-encoded) or as a JSON list of ``{type, value, operator?}``.
Malformed segments are dropped rather than rejected. All active filters are
ANDed; the same predicate is applied to every window of a report.
"""

import enum
import json
import logging
from collections.abc import Collection, Iterable, Mapping
from dataclasses import dataclass
from typing import Any
from urllib.parse import unquote

from pydantic import BaseModel, ValidationError, field_validator
from sqlalchemy import ColumnElement, or_

logger = logging.getLogger(__name__)

ALL_VALUES = "all"


class FilterType(str, enum.Enum):
    client_group = "client_group"
    account_manager = "account_manager"
    job_manager = "job_manager"
    job_name = "job_name"
    staff = "staff"


class FilterOperator(str, enum.Enum):
    contains = "contains"
    not_contains = "not_contains"


class ReportFilter(BaseModel):
    type: FilterType
    value: str
    operator: FilterOperator | None = None

    @field_validator("operator", mode="before")
    @classmethod
    def _lenient_operator(cls, value: Any) -> Any:
        # Unknown operators fall back to the default substring match
        if value in (None, ""):
            return None
        if value not in {op.value for op in FilterOperator}:
            return FilterOperator.contains
        return value

    @property
    def is_active(self) -> bool:
        return bool(self.value) and self.value != ALL_VALUES

    @property
    def effective_operator(self) -> FilterOperator:
        return self.operator or FilterOperator.contains


def _build_filter(type_: Any, value: Any, operator: Any = None) -> ReportFilter | None:
    try:
        return ReportFilter(type=type_, value=value, operator=operator)
    except ValidationError:
        logger.debug("Dropping malformed filter type=%r value=%r", type_, value)
        return None


def _parse_pipe_filters(raw: str) -> list[ReportFilter]:
    filters = []
    for segment in raw.split("|"):
        parts = segment.split(":")
        if len(parts) == 2:
            built = _build_filter(parts[0], unquote(parts[1]))
        elif len(parts) == 3:
            built = _build_filter(parts[0], unquote(parts[2]), unquote(parts[1]))
        else:
            built = None
        if built is not None:
            filters.append(built)
    return filters


def _parse_json_filters(raw: str) -> list[ReportFilter]:
    try:
        decoded = json.loads(raw)
    except ValueError:
        logger.debug("Ignoring filters that are not valid JSON")
        return []
    if not isinstance(decoded, list):
        return []
    filters = []
    for item in decoded:
        if not isinstance(item, dict):
            continue
        value = item.get("value")
        if isinstance(value, str):
            value = unquote(value)
        built = _build_filter(item.get("type"), value, item.get("operator"))
        if built is not None:
            filters.append(built)
    return filters


def parse_filters(raw: str | None) -> list[ReportFilter]:
    """Parse the ``filters`` query parameter in either of its two encodings."""
    if not raw:
        return []
    raw = raw.strip()
    if raw.startswith("[") or raw.startswith("%5B"):
        return _parse_json_filters(unquote(raw))
    return _parse_pipe_filters(raw)


def _like_pattern(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


@dataclass(frozen=True)
class FilterPredicate:
    """Conjunction of dimension filters plus an optional single-staff constraint."""

    filters: tuple[ReportFilter, ...] = ()
    staff: str | None = None

    @classmethod
    def build(cls, filters: Iterable[ReportFilter] = (), staff: str | None = None) -> "FilterPredicate":
        """Compose filters; a ``staff`` entry in the list wins over the explicit parameter."""
        active = [f for f in filters if f.is_active]
        for f in active:
            if f.type == FilterType.staff:
                staff = f.value
        if staff == ALL_VALUES:
            staff = None
        return cls(
            filters=tuple(f for f in active if f.type != FilterType.staff),
            staff=staff or None,
        )

    @property
    def is_all_staff(self) -> bool:
        return self.staff is None

    def without_dimensions(self) -> "FilterPredicate":
        return FilterPredicate(staff=self.staff)

    def clauses(self, model) -> list[ColumnElement[bool]]:
        """SQL constraints for ``model``; filters on columns the table lacks are skipped."""
        columns = model.__table__.c
        clauses: list[ColumnElement[bool]] = []
        if self.staff is not None and "staff" in columns:
            clauses.append(columns["staff"] == self.staff)
        for f in self.filters:
            if f.type.value not in columns:
                continue
            column = columns[f.type.value]
            if f.type != FilterType.job_name:
                clauses.append(column == f.value)
            elif f.effective_operator == FilterOperator.not_contains:
                clauses.append(or_(column.is_(None), ~column.ilike(_like_pattern(f.value), escape="\\")))
            else:
                clauses.append(column.ilike(_like_pattern(f.value), escape="\\"))
        return clauses

    def matches(self, row: Mapping[str, Any], columns: Collection[str]) -> bool:
        """Evaluate the predicate against one materialised row of a table with ``columns``."""
        if self.staff is not None and "staff" in columns and row.get("staff") != self.staff:
            return False
        for f in self.filters:
            if f.type.value not in columns:
                continue
            value = row.get(f.type.value)
            if f.type != FilterType.job_name:
                if value != f.value:
                    return False
            elif f.effective_operator == FilterOperator.not_contains:
                if value is not None and f.value.lower() in value.lower():
                    return False
            elif value is None or f.value.lower() not in value.lower():
                return False
        return True
