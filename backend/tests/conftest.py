"""
Shared test fixtures for the PracticePulse backend test suite.

Sets up a file-backed async SQLite database (report requests open several
sessions concurrently), overrides the session-factory dependency, and
provides record factories plus an HTTP client authenticated for one
organisation.
"""

import os
import tempfile
import uuid
from datetime import date

import factory
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# ---- Environment overrides MUST come before any app imports ----
_DB_DIR = tempfile.mkdtemp(prefix="practicepulse-tests-")
TEST_DATABASE_URL = f"sqlite+aiosqlite:///{os.path.join(_DB_DIR, 'test.db')}"

os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["SECRET_KEY"] = "test-secret-key-for-unit-tests"
os.environ["ENVIRONMENT"] = "test"

from practicepulse.auth.service import create_access_token  # noqa: E402
from practicepulse.database import Base, get_session_factory  # noqa: E402
from practicepulse.main import app  # noqa: E402
from practicepulse.records.models import RECORD_MODELS, RecordTable  # noqa: E402
from practicepulse.records.source import InMemoryRecordSource, SqlRecordSource  # noqa: E402

ORG_ID = "org-test"
OTHER_ORG_ID = "org-other"

# ---------------------------------------------------------------------------
# Async engine & session factory for the test database
# ---------------------------------------------------------------------------
test_engine = create_async_engine(TEST_DATABASE_URL, echo=False)
TestSession = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


# ---------------------------------------------------------------------------
# Database lifecycle
# ---------------------------------------------------------------------------
@pytest_asyncio.fixture(autouse=True)
async def setup_database():
    """Create all tables before each test, drop them afterward."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


# ---------------------------------------------------------------------------
# Dependency override
# ---------------------------------------------------------------------------
async def _override_get_session_factory():
    yield TestSession


app.dependency_overrides[get_session_factory] = _override_get_session_factory


# ---------------------------------------------------------------------------
# Record sources
# ---------------------------------------------------------------------------
@pytest.fixture
def sql_source() -> SqlRecordSource:
    return SqlRecordSource(TestSession)


@pytest.fixture
def memory_source() -> InMemoryRecordSource:
    return InMemoryRecordSource()


async def insert_rows(table: RecordTable, *rows: dict) -> None:
    """Insert plain row dicts into ``table`` in the test database."""
    model = RECORD_MODELS[table]
    async with TestSession() as session:
        session.add_all([model(**row) for row in rows])
        await session.commit()


# ---------------------------------------------------------------------------
# HTTP client fixtures
# ---------------------------------------------------------------------------
def auth_header(organization_id: str = ORG_ID, user_id: str | None = None) -> dict[str, str]:
    token = create_access_token(user_id or str(uuid.uuid4()), organization_id)
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def client() -> AsyncClient:
    """Unauthenticated httpx async client wired to the FastAPI app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def org_client(client: AsyncClient) -> AsyncClient:
    """AsyncClient authenticated for ``ORG_ID``."""
    client.headers.update(auth_header())
    return client


# ---------------------------------------------------------------------------
# Factory Boy factories
# ---------------------------------------------------------------------------
class TimesheetRowFactory(factory.Factory):
    class Meta:
        model = dict

    organization_id = ORG_ID
    staff = "Alice"
    date = date(2024, 7, 15)
    time = 100
    billable_amount = 100.0
    billable = True
    capacity_reducing = False
    client_group = "Acme Group"
    account_manager = "Pat Partner"
    job_manager = "Morgan Manager"
    job_name = factory.Sequence(lambda n: f"Job {n}")


class InvoiceRowFactory(factory.Factory):
    class Meta:
        model = dict

    organization_id = ORG_ID
    date = date(2024, 7, 15)
    amount = 100.0
    client_group = "Acme Group"
    account_manager = "Pat Partner"
    job_manager = "Morgan Manager"


class WipRowFactory(factory.Factory):
    class Meta:
        model = dict

    organization_id = ORG_ID
    date = date(2025, 5, 20)
    billable_amount = 100.0
    client_group = "Acme Group"
    account_manager = "Pat Partner"
    job_manager = "Morgan Manager"


class RecoverabilityRowFactory(factory.Factory):
    class Meta:
        model = dict

    organization_id = ORG_ID
    staff = "Alice"
    date = date(2024, 7, 15)
    write_on_amount = 0.0
    invoiced_amount = 100.0
    client_group = "Acme Group"
    account_manager = "Pat Partner"
    job_manager = "Morgan Manager"


class StaffSettingRowFactory(factory.Factory):
    class Meta:
        model = dict

    organization_id = ORG_ID
    staff_name = "Alice"
    default_daily_hours = 8.0
    fte = 1.0
    target_billable_percentage = None
    start_date = None
    end_date = None
    is_hidden = False
    report = True


# ---------------------------------------------------------------------------
# Shared report scenario: "A" works in FY2024 (Jul 2024 - Jun 2025), "B" only in FY2023
# ---------------------------------------------------------------------------
REFERENCE_DATE = date(2025, 6, 1)

SCENARIO = {
    RecordTable.timesheet: [
        TimesheetRowFactory(staff="A", date=date(2024, 7, 15), time=112, billable_amount=300, job_name="PG Audit"),
        TimesheetRowFactory(staff="A", date=date(2024, 8, 1), time=30, billable_amount=100, job_name=None),
        TimesheetRowFactory(
            staff="B",
            date=date(2023, 7, 20),
            time=200,
            billable_amount=500,
            client_group="Beta Ltd",
            account_manager="Sam Senior",
            job_name="Tax Return",
        ),
        TimesheetRowFactory(
            staff="A",
            date=date(2024, 12, 24),
            time=800,
            billable_amount=0,
            billable=False,
            capacity_reducing=True,
            client_group=None,
        ),
    ],
    RecordTable.invoice: [
        InvoiceRowFactory(date=date(2024, 9, 1), amount=1000),
        InvoiceRowFactory(date=date(2023, 9, 1), amount=800),
    ],
    RecordTable.wip: [
        WipRowFactory(date=date(2025, 5, 20), billable_amount=10),
        WipRowFactory(date=None, billable_amount=5),
        WipRowFactory(date=date(2025, 7, 1), billable_amount=1),
        WipRowFactory(date=date(2025, 4, 15), billable_amount=20),
        WipRowFactory(date=date(2025, 3, 1), billable_amount=40, account_manager="Sam Senior"),
        WipRowFactory(date=date(2024, 1, 1), billable_amount=80),
    ],
    RecordTable.recoverability: [
        RecoverabilityRowFactory(staff="A", date=date(2024, 7, 15), write_on_amount=100, invoiced_amount=1100),
        RecoverabilityRowFactory(staff="B", date=date(2023, 8, 1), write_on_amount=-50, invoiced_amount=950),
    ],
}
