import enum
import datetime

from sqlalchemy import Boolean, Date, Float, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from practicepulse.common.base_models import OrganizationScopedBase, UploadedAtMixin


class RecordTable(str, enum.Enum):
    timesheet = "timesheet_uploads"
    invoice = "invoice_uploads"
    wip = "wip_timesheet_uploads"
    recoverability = "recoverability_timesheet_uploads"
    staff_settings = "staff_settings"


class TimesheetRecord(OrganizationScopedBase, UploadedAtMixin):
    __tablename__ = RecordTable.timesheet.value

    staff: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    date: Mapped[datetime.date] = mapped_column(Date, nullable=False, index=True)
    # Compact encoded time, decoded by practicepulse.reports.timecodec
    time: Mapped[float | None] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=True)
    billable_amount: Mapped[float | None] = mapped_column(Numeric(14, 2, asdecimal=False), nullable=True)
    billable: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    capacity_reducing: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    client_group: Mapped[str | None] = mapped_column(String(255), nullable=True)
    account_manager: Mapped[str | None] = mapped_column(String(255), nullable=True)
    job_manager: Mapped[str | None] = mapped_column(String(255), nullable=True)
    job_name: Mapped[str | None] = mapped_column(Text, nullable=True)


class InvoiceRecord(OrganizationScopedBase, UploadedAtMixin):
    __tablename__ = RecordTable.invoice.value

    date: Mapped[datetime.date] = mapped_column(Date, nullable=False, index=True)
    amount: Mapped[float | None] = mapped_column(Numeric(14, 2, asdecimal=False), nullable=True)
    client_group: Mapped[str | None] = mapped_column(String(255), nullable=True)
    account_manager: Mapped[str | None] = mapped_column(String(255), nullable=True)
    job_manager: Mapped[str | None] = mapped_column(String(255), nullable=True)


class WipRecord(OrganizationScopedBase, UploadedAtMixin):
    __tablename__ = RecordTable.wip.value

    date: Mapped[datetime.date | None] = mapped_column(Date, nullable=True)
    billable_amount: Mapped[float | None] = mapped_column(Numeric(14, 2, asdecimal=False), nullable=True)
    client_group: Mapped[str | None] = mapped_column(String(255), nullable=True)
    account_manager: Mapped[str | None] = mapped_column(String(255), nullable=True)
    job_manager: Mapped[str | None] = mapped_column(String(255), nullable=True)


class RecoverabilityRecord(OrganizationScopedBase, UploadedAtMixin):
    __tablename__ = RecordTable.recoverability.value

    staff: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    date: Mapped[datetime.date] = mapped_column(Date, nullable=False, index=True)
    # Signed: a negative write-on is a write-off
    write_on_amount: Mapped[float | None] = mapped_column(Numeric(14, 2, asdecimal=False), nullable=True)
    invoiced_amount: Mapped[float | None] = mapped_column(Numeric(14, 2, asdecimal=False), nullable=True)
    client_group: Mapped[str | None] = mapped_column(String(255), nullable=True)
    account_manager: Mapped[str | None] = mapped_column(String(255), nullable=True)
    job_manager: Mapped[str | None] = mapped_column(String(255), nullable=True)


class StaffSetting(OrganizationScopedBase):
    __tablename__ = RecordTable.staff_settings.value
    __table_args__ = (UniqueConstraint("organization_id", "staff_name", name="uq_staff_settings_org_staff"),)

    staff_name: Mapped[str] = mapped_column(String(255), nullable=False)
    default_daily_hours: Mapped[float | None] = mapped_column(Float, nullable=True)
    fte: Mapped[float | None] = mapped_column(Float, nullable=True)
    target_billable_percentage: Mapped[float | None] = mapped_column(Float, nullable=True)
    start_date: Mapped[datetime.date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[datetime.date | None] = mapped_column(Date, nullable=True)
    is_hidden: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    report: Mapped[bool | None] = mapped_column(Boolean, default=True, nullable=True)


RECORD_MODELS = {
    RecordTable.timesheet: TimesheetRecord,
    RecordTable.invoice: InvoiceRecord,
    RecordTable.wip: WipRecord,
    RecordTable.recoverability: RecoverabilityRecord,
    RecordTable.staff_settings: StaffSetting,
}
