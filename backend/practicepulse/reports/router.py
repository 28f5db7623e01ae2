from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from practicepulse.auth.schemas import CallerContext
from practicepulse.database import get_session_factory
from practicepulse.dependencies import get_caller
from practicepulse.records.source import RecordSource, SqlRecordSource
from practicepulse.reports import service
from practicepulse.reports.filters import FilterType, ReportFilter, parse_filters
from practicepulse.reports.periods import resolve_reference_date
from practicepulse.reports.schemas import (
    ClientGroupRow,
    DashboardKpis,
    Dimension,
    DimensionRow,
    ErrorResponse,
    FilterOptions,
    MonthlyPoint,
    ProductivityClientGroupRow,
    ProductivityKpis,
    RecoverabilityKpis,
    ReportRequest,
    StaffPerformanceReport,
    WipAging,
    WipClientGroupRow,
    WipManagerRow,
)

router = APIRouter(responses={500: {"model": ErrorResponse}})


async def get_record_source(
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
) -> RecordSource:
    return SqlRecordSource(session_factory)


async def get_report_request(
    caller: Annotated[CallerContext, Depends(get_caller)],
    organization_id: Annotated[str | None, Query(alias="organizationId")] = None,
    as_of_date: Annotated[str | None, Query(alias="asOfDate")] = None,
    staff: str | None = None,
    month: str | None = None,
    filters: str | None = None,
) -> ReportRequest:
    if organization_id is not None and organization_id != caller.organization_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Organization mismatch")
    return ReportRequest(
        organization_id=caller.organization_id,
        reference_date=resolve_reference_date(as_of_date, date.today()),
        staff=staff,
        month=month,
        filters=parse_filters(filters),
    )


RecordSourceDep = Annotated[RecordSource, Depends(get_record_source)]
ReportRequestDep = Annotated[ReportRequest, Depends(get_report_request)]


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------


@router.get("/dashboard/kpis", response_model=DashboardKpis)
async def dashboard_kpis(source: RecordSourceDep, request: ReportRequestDep):
    return await service.get_dashboard_kpis(source, request)


@router.get("/filter-options", response_model=FilterOptions)
async def filter_options(source: RecordSourceDep, request: ReportRequestDep):
    return await service.get_filter_options(source, request)


# ---------------------------------------------------------------------------
# Billable
# ---------------------------------------------------------------------------


@router.get("/billable/client-groups", response_model=list[ClientGroupRow])
async def billable_client_groups(source: RecordSourceDep, request: ReportRequestDep):
    return await service.get_client_groups(source, request, service.BILLABLE)


@router.get("/billable/by-dimension", response_model=list[DimensionRow])
async def billable_by_dimension(
    source: RecordSourceDep,
    request: ReportRequestDep,
    dimension: Dimension = Dimension.account_manager,
):
    return await service.get_by_dimension(source, request, service.BILLABLE, dimension)


@router.get("/billable/monthly", response_model=list[MonthlyPoint])
async def billable_monthly(source: RecordSourceDep, request: ReportRequestDep):
    return await service.get_monthly(source, request, service.BILLABLE)


# ---------------------------------------------------------------------------
# Revenue
# ---------------------------------------------------------------------------


@router.get("/revenue/client-groups", response_model=list[ClientGroupRow])
async def revenue_client_groups(source: RecordSourceDep, request: ReportRequestDep):
    return await service.get_client_groups(source, request, service.REVENUE)


@router.get("/revenue/by-partner", response_model=list[DimensionRow])
async def revenue_by_partner(source: RecordSourceDep, request: ReportRequestDep):
    return await service.get_by_dimension(source, request, service.REVENUE, Dimension.account_manager)


@router.get("/revenue/monthly", response_model=list[MonthlyPoint])
async def revenue_monthly(source: RecordSourceDep, request: ReportRequestDep):
    return await service.get_monthly(source, request, service.REVENUE)


# ---------------------------------------------------------------------------
# Productivity
# ---------------------------------------------------------------------------


@router.get("/productivity/kpis", response_model=ProductivityKpis)
async def productivity_kpis(source: RecordSourceDep, request: ReportRequestDep):
    return await service.get_productivity_kpis(source, request)


@router.get("/productivity/monthly", response_model=list[MonthlyPoint])
async def productivity_monthly(source: RecordSourceDep, request: ReportRequestDep):
    return await service.get_productivity_monthly(source, request)


@router.get("/productivity/client-groups", response_model=list[ProductivityClientGroupRow])
async def productivity_client_groups(source: RecordSourceDep, request: ReportRequestDep):
    return await service.get_productivity_client_groups(source, request)


@router.get("/productivity/staff", response_model=list[str])
async def productivity_staff(source: RecordSourceDep, request: ReportRequestDep):
    return await service.get_staff_roster(source, request)


@router.get("/productivity/standard-hours", response_model=list[MonthlyPoint])
async def productivity_standard_hours(source: RecordSourceDep, request: ReportRequestDep):
    return await service.get_standard_hours_monthly(source, request)


@router.get("/productivity/capacity-reducing", response_model=list[MonthlyPoint])
async def productivity_capacity_reducing(source: RecordSourceDep, request: ReportRequestDep):
    return await service.get_capacity_reducing_monthly(source, request)


@router.get("/productivity/staff-performance", response_model=StaffPerformanceReport)
async def staff_performance(source: RecordSourceDep, request: ReportRequestDep):
    return await service.get_staff_performance(source, request)


# ---------------------------------------------------------------------------
# Recoverability
# ---------------------------------------------------------------------------


@router.get("/recoverability/kpis", response_model=RecoverabilityKpis)
async def recoverability_kpis(source: RecordSourceDep, request: ReportRequestDep):
    return await service.get_recoverability_kpis(source, request)


@router.get("/recoverability/client-groups", response_model=list[ClientGroupRow])
async def recoverability_client_groups(source: RecordSourceDep, request: ReportRequestDep):
    return await service.get_client_groups(source, request, service.WRITE_ON)


@router.get("/recoverability/monthly", response_model=list[MonthlyPoint])
async def recoverability_monthly(source: RecordSourceDep, request: ReportRequestDep):
    return await service.get_monthly(source, request, service.WRITE_ON)


# ---------------------------------------------------------------------------
# Work in progress
# ---------------------------------------------------------------------------


async def get_wip_request(
    request: ReportRequestDep,
    partner: str | None = None,
    client_manager: Annotated[str | None, Query(alias="clientManager")] = None,
) -> ReportRequest:
    """Report request with ``partner``/``clientManager`` added as manager filters."""
    extra = [
        ReportFilter(type=filter_type, value=value)
        for filter_type, value in ((FilterType.account_manager, partner), (FilterType.job_manager, client_manager))
        if value
    ]
    if not extra:
        return request
    return request.model_copy(update={"filters": [*request.filters, *extra]})


WipRequestDep = Annotated[ReportRequest, Depends(get_wip_request)]


@router.get("/wip/aging", response_model=WipAging)
async def wip_aging(source: RecordSourceDep, request: WipRequestDep):
    return await service.get_wip_aging(source, request)


@router.get("/wip/client-groups", response_model=list[WipClientGroupRow])
async def wip_client_groups(source: RecordSourceDep, request: WipRequestDep):
    return await service.get_wip_client_groups(source, request)


@router.get("/wip/by-client-manager", response_model=list[WipManagerRow])
async def wip_by_client_manager(source: RecordSourceDep, request: WipRequestDep):
    return await service.get_wip_by_client_manager(source, request)
