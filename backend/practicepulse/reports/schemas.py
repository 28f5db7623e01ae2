import enum
from datetime import date

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from practicepulse.reports.filters import FilterPredicate, ReportFilter
from practicepulse.reports.periods import FinancialPeriods


class Dimension(str, enum.Enum):
    client_group = "client_group"
    account_manager = "account_manager"
    job_manager = "job_manager"
    staff = "staff"


class ReportRequest(BaseModel):
    organization_id: str
    reference_date: date
    staff: str | None = None
    month: str | None = None
    filters: list[ReportFilter] = Field(default_factory=list)

    @property
    def predicate(self) -> FilterPredicate:
        return FilterPredicate.build(self.filters, self.staff)

    @property
    def periods(self) -> FinancialPeriods:
        return FinancialPeriods.for_date(self.reference_date)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class YearComparison(CamelModel):
    current_year: float
    last_year: float
    percentage_change: float | None  # relative change; None when both years are ~0


class DashboardKpis(CamelModel):
    revenue: YearComparison
    billable_amount: YearComparison
    wip_amount: float  # unfiltered running total


class ClientGroupRow(CamelModel):
    client_group: str
    current_year: float
    last_year: float
    partner: str | None  # most common account manager
    client_manager: str | None  # most common job manager


class DimensionRow(CamelModel):
    name: str
    current_year: float
    last_year: float


class MonthlyPoint(CamelModel):
    month: str
    current_year: float
    last_year: float


class ProductivityKpis(CamelModel):
    ytd_billable_percentage: float
    last_year_billable_percentage: float
    billable_percentage_change: float  # percentage points
    target_billable_percentage: float
    ytd_average_rate: float
    last_year_average_rate: float
    average_rate_change: float | None
    billable_hours: YearComparison


class ProductivityClientGroupRow(CamelModel):
    client_group: str
    current_year: float  # billable hours
    last_year: float
    current_year_amount: float
    last_year_amount: float
    partner: str | None
    client_manager: str | None


class RecoverabilityKpis(CamelModel):
    current_year_amount: float  # write-on/off $
    last_year_amount: float
    percentage_change: float | None
    current_year_percentage: float
    last_year_percentage: float
    percentage_point_change: float
    target_percentage: float
    current_year_variance: float


class StaffPerformanceFigures(CamelModel):
    billable_amount: float
    billable_percentage: float
    target_billable_percentage: float | None
    billable_variance: float | None
    recoverability_amount: float
    recoverability_percentage: float
    target_recoverability_percentage: float
    recoverability_variance: float
    billable_hours: float
    average_hourly_rate: float


class StaffPerformanceRow(CamelModel):
    staff: str
    current_year: StaffPerformanceFigures


class StaffPerformanceTotals(CamelModel):
    current_year: StaffPerformanceFigures


class StaffPerformanceReport(CamelModel):
    data: list[StaffPerformanceRow]
    totals: StaffPerformanceTotals


class FilterOptions(CamelModel):
    client_groups: list[str]
    account_managers: list[str]
    job_managers: list[str]


class WipAging(CamelModel):
    less_than_30: float
    days_30_to_60: float
    days_60_to_90: float
    days_90_to_120: float
    days_120_plus: float
    total: float


class WipClientGroupRow(CamelModel):
    client_group: str
    amount: float
    partner: str | None  # most common account manager
    client_manager: str | None  # most common job manager
    aging: WipAging


class WipManagerRow(CamelModel):
    client_manager: str
    amount: float


class ErrorResponse(BaseModel):
    error: str
