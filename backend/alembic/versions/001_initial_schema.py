"""Initial record tables

Revision ID: 0001
Revises:
Create Date: 2026-10-18
"""

from collections.abc import Sequence
from typing import Union

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

CATEGORY_COLUMNS = ("client_group", "account_manager", "job_manager")


def _record_columns() -> list[sa.Column]:
    return [
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("organization_id", sa.String(64), nullable=False, index=True),
    ]


def _category_columns() -> list[sa.Column]:
    return [sa.Column(name, sa.String(255), nullable=True) for name in CATEGORY_COLUMNS]


def _uploaded_at() -> sa.Column:
    return sa.Column("uploaded_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)


def upgrade() -> None:
    op.create_table(
        "timesheet_uploads",
        *_record_columns(),
        sa.Column("staff", sa.String(255), nullable=True, index=True),
        sa.Column("date", sa.Date(), nullable=False, index=True),
        sa.Column("time", sa.Numeric(10, 2), nullable=True),
        sa.Column("billable_amount", sa.Numeric(14, 2), nullable=True),
        sa.Column("billable", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("capacity_reducing", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_category_columns(),
        sa.Column("job_name", sa.Text(), nullable=True),
        _uploaded_at(),
    )

    op.create_table(
        "invoice_uploads",
        *_record_columns(),
        sa.Column("date", sa.Date(), nullable=False, index=True),
        sa.Column("amount", sa.Numeric(14, 2), nullable=True),
        *_category_columns(),
        _uploaded_at(),
    )

    op.create_table(
        "wip_timesheet_uploads",
        *_record_columns(),
        sa.Column("date", sa.Date(), nullable=True),
        sa.Column("billable_amount", sa.Numeric(14, 2), nullable=True),
        *_category_columns(),
        _uploaded_at(),
    )

    op.create_table(
        "recoverability_timesheet_uploads",
        *_record_columns(),
        sa.Column("staff", sa.String(255), nullable=True, index=True),
        sa.Column("date", sa.Date(), nullable=False, index=True),
        sa.Column("write_on_amount", sa.Numeric(14, 2), nullable=True),
        sa.Column("invoiced_amount", sa.Numeric(14, 2), nullable=True),
        *_category_columns(),
        _uploaded_at(),
    )

    op.create_table(
        "staff_settings",
        *_record_columns(),
        sa.Column("staff_name", sa.String(255), nullable=False),
        sa.Column("default_daily_hours", sa.Float(), nullable=True),
        sa.Column("fte", sa.Float(), nullable=True),
        sa.Column("target_billable_percentage", sa.Float(), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("is_hidden", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("report", sa.Boolean(), nullable=True, server_default=sa.true()),
        sa.UniqueConstraint("organization_id", "staff_name", name="uq_staff_settings_org_staff"),
    )


def downgrade() -> None:
    op.drop_table("staff_settings")
    op.drop_table("recoverability_timesheet_uploads")
    op.drop_table("wip_timesheet_uploads")
    op.drop_table("invoice_uploads")
    op.drop_table("timesheet_uploads")
