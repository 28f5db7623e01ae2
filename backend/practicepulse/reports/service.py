"""
Report assembly: fetch each window concurrently, fold, then derive KPIs.

Every report reads through a RecordSource and resolves its windows from the
request's reference date. Independent fetches are gathered; the first
failure fails the whole report.
"""

import asyncio
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date
from types import MappingProxyType
from typing import Any

from practicepulse.config import settings
from practicepulse.records.models import RecordTable
from practicepulse.records.source import RecordQuery, RecordSource, fetch_all
from practicepulse.reports.aggregation import (
    Comparison,
    Row,
    category_key,
    coerce_amount,
    compare,
    dominant_values,
    fold,
    monthly_series,
    row_date,
    staff_key,
    total,
)
from practicepulse.reports.eligibility import eligible_staff, is_reportable, select_profiles
from practicepulse.reports.filters import FilterPredicate
from practicepulse.reports.metrics import (
    average_rate,
    billable_percentage,
    billable_variance,
    mean_target,
    percentage_change,
    point_change,
    recoverability_percentage,
    recoverability_variance,
    round_currency,
    round_optional_percentage,
    round_percentage,
)
from practicepulse.reports.periods import FINANCIAL_MONTHS, PeriodWindow
from practicepulse.reports.schemas import (
    ClientGroupRow,
    DashboardKpis,
    Dimension,
    DimensionRow,
    FilterOptions,
    MonthlyPoint,
    ProductivityClientGroupRow,
    ProductivityKpis,
    RecoverabilityKpis,
    ReportRequest,
    StaffPerformanceFigures,
    StaffPerformanceReport,
    StaffPerformanceRow,
    StaffPerformanceTotals,
    WipAging,
    WipClientGroupRow,
    WipManagerRow,
    YearComparison,
)
from practicepulse.reports.standard_hours import (
    StaffProfile,
    monthly_standard_hours,
    standard_hours_by_staff,
)
from practicepulse.reports.timecodec import decode_time

logger = logging.getLogger(__name__)

MANAGER_TAGS = ("account_manager", "job_manager")

AGING_BUCKETS = (30, 60, 90, 120)


@dataclass(frozen=True)
class Measure:
    """An amount column of one table, with the fixed equality constraints it is read under."""

    table: RecordTable
    amount_field: str
    where: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))


BILLABLE = Measure(RecordTable.timesheet, "billable_amount", MappingProxyType({"billable": True}))
REVENUE = Measure(RecordTable.invoice, "amount")
WRITE_ON = Measure(RecordTable.recoverability, "write_on_amount")


# ---------------------------------------------------------------------------
# Fetch helpers
# ---------------------------------------------------------------------------


def _query(
    request: ReportRequest,
    table: RecordTable,
    columns: Iterable[str],
    window: PeriodWindow | None = None,
    predicate: FilterPredicate | None = None,
    **where: Any,
) -> RecordQuery:
    return RecordQuery(
        table=table,
        organization_id=request.organization_id,
        columns=tuple(columns),
        window=window,
        predicate=request.predicate if predicate is None else predicate,
        where=MappingProxyType(where),
    )


async def _fetch_windows(
    source: RecordSource,
    request: ReportRequest,
    measure: Measure,
    columns: Iterable[str],
    windows: Iterable[PeriodWindow],
) -> list[list[dict[str, Any]]]:
    columns = tuple(dict.fromkeys([measure.amount_field, *columns]))
    return await asyncio.gather(
        *(fetch_all(source, _query(request, measure.table, columns, window, **measure.where)) for window in windows)
    )


async def _fetch_staff_settings(source: RecordSource, organization_id: str) -> dict[str, StaffProfile]:
    rows = await fetch_all(
        source,
        RecordQuery(
            table=RecordTable.staff_settings,
            organization_id=organization_id,
            columns=(
                "staff_name",
                "default_daily_hours",
                "fte",
                "target_billable_percentage",
                "start_date",
                "end_date",
                "is_hidden",
                "report",
            ),
        ),
    )
    profiles = {}
    for row in rows:
        profile = StaffProfile.from_row(row)
        if profile.staff_name:
            profiles[profile.staff_name] = profile
    return profiles


async def _billable_hours_by_staff(
    source: RecordSource, request: ReportRequest, window: PeriodWindow
) -> dict[str, float]:
    """Unfiltered billable hours per staff member, used for roster and eligibility decisions."""
    rows = await fetch_all(
        source,
        _query(request, RecordTable.timesheet, ("staff", "time"), window, FilterPredicate(), billable=True),
    )
    return {name: totals.hours for name, totals in fold(rows, _staff_key(), time_field="time").items()}


async def _selected_profiles(source: RecordSource, request: ReportRequest) -> dict[str, StaffProfile]:
    """Staff that receive standard hours: the chosen staff member, or the eligible roster."""
    predicate = request.predicate
    if not predicate.is_all_staff:
        profiles = await _fetch_staff_settings(source, request.organization_id)
        return select_profiles(profiles, predicate.staff)
    periods = request.periods
    profiles, current_hours, last_hours = await asyncio.gather(
        _fetch_staff_settings(source, request.organization_id),
        _billable_hours_by_staff(source, request, periods.current_year),
        _billable_hours_by_staff(source, request, periods.last_year),
    )
    return select_profiles(profiles, None, eligible_staff(current_hours, last_hours, profiles))


def _staff_key():
    return staff_key(settings.excluded_staff_names)


def _capacity_query(request: ReportRequest, window: PeriodWindow, columns=("staff", "time")) -> RecordQuery:
    # Capacity-reducing time is not job work, so only the staff constraint applies
    return _query(
        request,
        RecordTable.timesheet,
        columns,
        window,
        request.predicate.without_dimensions(),
        capacity_reducing=True,
    )


def _monthly_points(current: list[float], last: list[float]) -> list[MonthlyPoint]:
    return [
        MonthlyPoint(month=month, current_year=round_currency(cur), last_year=round_currency(prev))
        for month, cur, prev in zip(FINANCIAL_MONTHS, current, last)
    ]


def _compare_years(current: float, last: float) -> YearComparison:
    return YearComparison(
        current_year=round_currency(current),
        last_year=round_currency(last),
        percentage_change=percentage_change(current, last),
    )


def _sorted_by_current(comparisons: list[Comparison], hours: bool = False) -> list[Comparison]:
    return sorted(comparisons, key=lambda c: c.current.hours if hours else c.current.amount, reverse=True)


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------


async def get_dashboard_kpis(source: RecordSource, request: ReportRequest) -> DashboardKpis:
    windows = request.periods.as_of()
    revenue_rows, billable_rows, wip_rows = await asyncio.gather(
        _fetch_windows(source, request, REVENUE, (), windows),
        _fetch_windows(source, request, BILLABLE, (), windows),
        fetch_all(source, _query(request, RecordTable.wip, ("billable_amount",), predicate=FilterPredicate())),
    )
    revenue = [total(rows, amount_field="amount").amount for rows in revenue_rows]
    billable = [total(rows, amount_field="billable_amount").amount for rows in billable_rows]
    return DashboardKpis(
        revenue=_compare_years(*revenue),
        billable_amount=_compare_years(*billable),
        wip_amount=round_currency(total(wip_rows, amount_field="billable_amount").amount),
    )


# ---------------------------------------------------------------------------
# Amount reports shared by billable, revenue and recoverability
# ---------------------------------------------------------------------------


async def get_client_groups(source: RecordSource, request: ReportRequest, measure: Measure) -> list[ClientGroupRow]:
    """Amounts per client group for the current and last FY (or one month of each)."""
    windows = request.periods.windows_for_month(request.month)
    current_rows, last_rows = await _fetch_windows(source, request, measure, ("client_group", *MANAGER_TAGS), windows)
    comparisons = compare(
        current_rows,
        last_rows,
        category_key("client_group"),
        amount_field=measure.amount_field,
        tag_fields=MANAGER_TAGS,
    )
    return [
        ClientGroupRow(
            client_group=c.key,
            current_year=round_currency(c.current.amount),
            last_year=round_currency(c.last.amount),
            partner=c.tags["account_manager"],
            client_manager=c.tags["job_manager"],
        )
        for c in _sorted_by_current(comparisons)
    ]


async def get_by_dimension(
    source: RecordSource, request: ReportRequest, measure: Measure, dimension: Dimension
) -> list[DimensionRow]:
    windows = request.periods.windows_for_month(request.month)
    current_rows, last_rows = await _fetch_windows(source, request, measure, (dimension.value,), windows)
    key = _staff_key() if dimension == Dimension.staff else category_key(dimension.value)
    comparisons = compare(current_rows, last_rows, key, amount_field=measure.amount_field)
    return [
        DimensionRow(name=c.key, current_year=round_currency(c.current.amount), last_year=round_currency(c.last.amount))
        for c in _sorted_by_current(comparisons)
    ]


async def get_monthly(source: RecordSource, request: ReportRequest, measure: Measure) -> list[MonthlyPoint]:
    windows = request.periods.full_years()
    current_rows, last_rows = await _fetch_windows(source, request, measure, ("date",), windows)

    def amount(row: Row) -> float:
        return coerce_amount(row.get(measure.amount_field))

    return _monthly_points(
        monthly_series(current_rows, windows[0], amount),
        monthly_series(last_rows, windows[1], amount),
    )


async def get_filter_options(source: RecordSource, request: ReportRequest) -> FilterOptions:
    rows = await fetch_all(
        source,
        _query(request, RecordTable.timesheet, ("client_group", *MANAGER_TAGS), predicate=FilterPredicate()),
    )

    def distinct(field_name: str) -> list[str]:
        return sorted({value.strip() for row in rows if (value := row.get(field_name)) and value.strip()})

    return FilterOptions(
        client_groups=distinct("client_group"),
        account_managers=distinct("account_manager"),
        job_managers=distinct("job_manager"),
    )


# ---------------------------------------------------------------------------
# Productivity
# ---------------------------------------------------------------------------


async def get_productivity_kpis(source: RecordSource, request: ReportRequest) -> ProductivityKpis:
    """Year-to-date billable % and average rate against the whole of last FY."""
    periods = request.periods
    current, last = periods.current_year_to_date, periods.last_year
    billable_columns = ("staff", "time", "billable_amount")
    (
        (current_rows, last_rows),
        current_capacity_rows,
        last_capacity_rows,
        profiles,
        all_profiles,
    ) = await asyncio.gather(
        _fetch_windows(source, request, BILLABLE, billable_columns, (current, last)),
        fetch_all(source, _capacity_query(request, current)),
        fetch_all(source, _capacity_query(request, last)),
        _selected_profiles(source, request),
        _fetch_staff_settings(source, request.organization_id),
    )

    def billable_pct(rows, capacity_rows, window: PeriodWindow) -> float:
        hours = fold(rows, _staff_key(), time_field="time")
        capacity = fold(capacity_rows, _staff_key(), time_field="time")
        standard = standard_hours_by_staff(
            profiles,
            window,
            default_daily_hours=settings.default_daily_hours,
            default_fte=settings.default_fte,
        )
        billable_hours = sum(hours[name].hours for name in profiles if name in hours)
        capacity_hours = sum(capacity[name].hours for name in profiles if name in capacity)
        return billable_percentage(billable_hours, sum(standard.values()), capacity_hours)

    current_pct = billable_pct(current_rows, current_capacity_rows, current)
    last_pct = billable_pct(last_rows, last_capacity_rows, last)
    current_totals = total(current_rows, amount_field="billable_amount", time_field="time")
    last_totals = total(last_rows, amount_field="billable_amount", time_field="time")
    current_rate = average_rate(current_totals.amount, current_totals.hours)
    last_rate = average_rate(last_totals.amount, last_totals.hours)

    staff = request.predicate.staff
    targets = [
        p.target_billable_percentage
        for name, p in all_profiles.items()
        if p.is_reportable and (staff is None or name == staff)
    ]
    return ProductivityKpis(
        ytd_billable_percentage=round_percentage(current_pct),
        last_year_billable_percentage=round_percentage(last_pct),
        billable_percentage_change=point_change(current_pct, last_pct),
        target_billable_percentage=round_percentage(mean_target(targets)),
        ytd_average_rate=round_currency(current_rate),
        last_year_average_rate=round_currency(last_rate),
        average_rate_change=percentage_change(current_rate, last_rate),
        billable_hours=_compare_years(current_totals.hours, last_totals.hours),
    )


async def get_productivity_monthly(source: RecordSource, request: ReportRequest) -> list[MonthlyPoint]:
    """Billable hours per month; the current series stops at the reference date."""
    periods = request.periods
    current, last = periods.current_year_to_date, periods.last_year
    current_rows, last_rows = await _fetch_windows(source, request, BILLABLE, ("date", "time"), (current, last))

    def hours(row: Row) -> float:
        return decode_time(row.get("time"))

    return _monthly_points(monthly_series(current_rows, current, hours), monthly_series(last_rows, last, hours))


async def get_productivity_client_groups(
    source: RecordSource, request: ReportRequest
) -> list[ProductivityClientGroupRow]:
    windows = request.periods.windows_for_month(request.month)
    current_rows, last_rows = await _fetch_windows(
        source, request, BILLABLE, ("client_group", "time", *MANAGER_TAGS), windows
    )
    comparisons = compare(
        current_rows,
        last_rows,
        category_key("client_group"),
        amount_field="billable_amount",
        time_field="time",
        tag_fields=MANAGER_TAGS,
    )
    return [
        ProductivityClientGroupRow(
            client_group=c.key,
            current_year=round_currency(c.current.hours),
            last_year=round_currency(c.last.hours),
            current_year_amount=round_currency(c.current.amount),
            last_year_amount=round_currency(c.last.amount),
            partner=c.tags["account_manager"],
            client_manager=c.tags["job_manager"],
        )
        for c in _sorted_by_current(comparisons, hours=True)
    ]


async def get_staff_roster(source: RecordSource, request: ReportRequest) -> list[str]:
    """Staff with billable hours in the current or last full FY."""
    periods = request.periods
    current_hours, last_hours = await asyncio.gather(
        _billable_hours_by_staff(source, request, periods.current_year),
        _billable_hours_by_staff(source, request, periods.last_year),
    )
    names = set(current_hours) | set(last_hours)
    return sorted(
        name
        for name in names
        if round(current_hours.get(name, 0.0), 2) > 0 or round(last_hours.get(name, 0.0), 2) > 0
    )


async def get_standard_hours_monthly(source: RecordSource, request: ReportRequest) -> list[MonthlyPoint]:
    current, last = request.periods.full_years()
    profiles = await _selected_profiles(source, request)
    kwargs = dict(default_daily_hours=settings.default_daily_hours, default_fte=settings.default_fte)
    return _monthly_points(
        monthly_standard_hours(profiles, current, **kwargs),
        monthly_standard_hours(profiles, last, **kwargs),
    )


async def get_capacity_reducing_monthly(source: RecordSource, request: ReportRequest) -> list[MonthlyPoint]:
    current, last = request.periods.full_years()
    current_rows, last_rows = await asyncio.gather(
        fetch_all(source, _capacity_query(request, current, ("date", "time"))),
        fetch_all(source, _capacity_query(request, last, ("date", "time"))),
    )

    def hours(row: Row) -> float:
        return decode_time(row.get("time"))

    return _monthly_points(monthly_series(current_rows, current, hours), monthly_series(last_rows, last, hours))


# ---------------------------------------------------------------------------
# Recoverability
# ---------------------------------------------------------------------------


async def get_recoverability_kpis(source: RecordSource, request: ReportRequest) -> RecoverabilityKpis:
    current_rows, last_rows = await _fetch_windows(
        source, request, WRITE_ON, ("invoiced_amount",), request.periods.as_of()
    )
    current = total(current_rows, amount_field="write_on_amount")
    last = total(last_rows, amount_field="write_on_amount")
    current_invoiced = total(current_rows, amount_field="invoiced_amount").amount
    last_invoiced = total(last_rows, amount_field="invoiced_amount").amount

    target = settings.recoverability_target_percentage
    current_pct = recoverability_percentage(current.amount, current_invoiced)
    last_pct = recoverability_percentage(last.amount, last_invoiced)
    return RecoverabilityKpis(
        current_year_amount=round_currency(current.amount),
        last_year_amount=round_currency(last.amount),
        percentage_change=percentage_change(current.amount, last.amount),
        current_year_percentage=round_percentage(current_pct),
        last_year_percentage=round_percentage(last_pct),
        percentage_point_change=point_change(current_pct, last_pct),
        target_percentage=target,
        current_year_variance=round_percentage(recoverability_variance(current_pct, target)),
    )


# ---------------------------------------------------------------------------
# Staff performance
# ---------------------------------------------------------------------------


def _performance_figures(
    *,
    billable_amount: float,
    billable_hours: float,
    standard: float,
    capacity: float,
    write_on: float,
    invoiced: float,
    target: float | None,
) -> StaffPerformanceFigures:
    recoverability_target = settings.recoverability_target_percentage
    billable_pct = billable_percentage(billable_hours, standard, capacity)
    recoverability_pct = recoverability_percentage(write_on, invoiced)
    return StaffPerformanceFigures(
        billable_amount=round_currency(billable_amount),
        billable_percentage=round_percentage(billable_pct),
        target_billable_percentage=round_optional_percentage(target),
        billable_variance=round_optional_percentage(billable_variance(billable_pct, target)),
        recoverability_amount=round_currency(write_on),
        recoverability_percentage=round_percentage(recoverability_pct),
        target_recoverability_percentage=recoverability_target,
        recoverability_variance=round_percentage(recoverability_variance(recoverability_pct, recoverability_target)),
        billable_hours=round_percentage(billable_hours),
        average_hourly_rate=round_currency(average_rate(billable_amount, billable_hours)),
    )


async def get_staff_performance(source: RecordSource, request: ReportRequest) -> StaffPerformanceReport:
    """Per-staff KPIs for the current FY to date plus a Totals row over the eligible roster."""
    window = request.periods.current_year_to_date
    staff = request.predicate.staff
    dimensions = FilterPredicate(filters=request.predicate.filters)
    billable_rows, capacity_rows, recoverability_rows, profiles, all_profiles = await asyncio.gather(
        fetch_all(
            source,
            _query(
                request,
                RecordTable.timesheet,
                ("staff", "time", "billable_amount"),
                window,
                dimensions,
                billable=True,
            ),
        ),
        fetch_all(source, _capacity_query(request, window)),
        fetch_all(
            source,
            _query(
                request, RecordTable.recoverability, ("staff", "write_on_amount", "invoiced_amount"), window, dimensions
            ),
        ),
        _selected_profiles(source, request),
        _fetch_staff_settings(source, request.organization_id),
    )
    key = _staff_key()
    billable = fold(billable_rows, key, amount_field="billable_amount", time_field="time")
    capacity = fold(capacity_rows, key, time_field="time")
    write_on = fold(recoverability_rows, key, amount_field="write_on_amount")
    invoiced = fold(recoverability_rows, key, amount_field="invoiced_amount")
    standard = standard_hours_by_staff(
        profiles, window, default_daily_hours=settings.default_daily_hours, default_fte=settings.default_fte
    )

    def figures(names: Iterable[str], target: float | None) -> StaffPerformanceFigures:
        names = list(names)
        return _performance_figures(
            billable_amount=sum(billable[n].amount for n in names if n in billable),
            billable_hours=sum(billable[n].hours for n in names if n in billable),
            standard=sum(standard.get(n, 0.0) for n in names),
            capacity=sum(capacity[n].hours for n in names if n in capacity),
            write_on=sum(write_on[n].amount for n in names if n in write_on),
            invoiced=sum(invoiced[n].amount for n in names if n in invoiced),
            target=target,
        )

    rows = []
    for name in sorted(billable):
        if staff is not None and name != staff:
            continue
        profile = all_profiles.get(name)
        if billable[name].amount <= 0 or not is_reportable(profile):
            continue
        rows.append(
            StaffPerformanceRow(
                staff=name,
                current_year=figures([name], profile.target_billable_percentage if profile else None),
            )
        )
    logger.debug("Staff performance: %d listed staff, %d in totals", len(rows), len(profiles))
    return StaffPerformanceReport(
        data=rows,
        totals=StaffPerformanceTotals(current_year=figures(profiles, None)),
    )


# ---------------------------------------------------------------------------
# Work in progress
# ---------------------------------------------------------------------------


def aging_bucket(reference_date: date, recorded: date | None) -> int:
    """Index into the aging buckets; undated and future-dated WIP count as newest."""
    if recorded is None:
        return 0
    age = (reference_date - recorded).days
    for index, limit in enumerate(AGING_BUCKETS):
        if age < limit:
            return index
    return len(AGING_BUCKETS)


def _aging(rows: Iterable[Row], reference_date: date) -> WipAging:
    buckets = [0.0] * (len(AGING_BUCKETS) + 1)
    for row in rows:
        buckets[aging_bucket(reference_date, row_date(row))] += coerce_amount(row.get("billable_amount"))
    return WipAging(
        less_than_30=round_currency(buckets[0]),
        days_30_to_60=round_currency(buckets[1]),
        days_60_to_90=round_currency(buckets[2]),
        days_90_to_120=round_currency(buckets[3]),
        days_120_plus=round_currency(buckets[4]),
        total=round_currency(sum(buckets)),
    )


async def get_wip_aging(source: RecordSource, request: ReportRequest) -> WipAging:
    rows = await fetch_all(source, _query(request, RecordTable.wip, ("date", "billable_amount")))
    return _aging(rows, request.reference_date)


async def get_wip_client_groups(source: RecordSource, request: ReportRequest) -> list[WipClientGroupRow]:
    """Outstanding WIP per client group, tagged with its usual managers and split by age."""
    rows = await fetch_all(
        source, _query(request, RecordTable.wip, ("client_group", "date", "billable_amount", *MANAGER_TAGS))
    )
    key = category_key("client_group")
    totals = fold(rows, key, amount_field="billable_amount")
    tags = {name: dominant_values(rows, key, name) for name in MANAGER_TAGS}
    by_group: dict[str, list[Row]] = {}
    for row in rows:
        by_group.setdefault(key(row), []).append(row)
    groups = sorted(totals, key=lambda group: totals[group].amount, reverse=True)
    return [
        WipClientGroupRow(
            client_group=group,
            amount=round_currency(totals[group].amount),
            partner=tags["account_manager"].get(group),
            client_manager=tags["job_manager"].get(group),
            aging=_aging(by_group[group], request.reference_date),
        )
        for group in groups
    ]


async def get_wip_by_client_manager(source: RecordSource, request: ReportRequest) -> list[WipManagerRow]:
    rows = await fetch_all(source, _query(request, RecordTable.wip, ("job_manager", "billable_amount")))
    totals = fold(rows, category_key("job_manager"), amount_field="billable_amount")
    return [
        WipManagerRow(client_manager=manager, amount=round_currency(t.amount))
        for manager, t in sorted(totals.items(), key=lambda item: item[1].amount, reverse=True)
    ]
