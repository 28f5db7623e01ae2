"""
Tests for the /api/reports endpoints: authentication, organisation scoping,
query-parameter handling and the error payload.
"""

import json

import pytest_asyncio
from httpx import AsyncClient

from conftest import OTHER_ORG_ID, SCENARIO, auth_header, insert_rows
from practicepulse.main import REPORT_FAILED_MESSAGE, app
from practicepulse.records.source import RecordSourceError
from practicepulse.reports.router import get_record_source

AS_OF = {"asOfDate": "2025-06-01"}


@pytest_asyncio.fixture
async def scenario_rows():
    for table, rows in SCENARIO.items():
        await insert_rows(table, *rows)


# ---------------------------------------------------------------------------
# Auth and scoping
# ---------------------------------------------------------------------------


class TestReportAuth:
    async def test_requires_bearer_token(self, client: AsyncClient):
        resp = await client.get("/api/reports/dashboard/kpis")
        assert resp.status_code in (401, 403)

    async def test_rejects_invalid_token(self, client: AsyncClient):
        resp = await client.get("/api/reports/dashboard/kpis", headers={"Authorization": "Bearer not-a-token"})
        assert resp.status_code == 401

    async def test_rejects_other_organization(self, org_client: AsyncClient):
        resp = await org_client.get("/api/reports/dashboard/kpis", params={"organizationId": OTHER_ORG_ID})
        assert resp.status_code == 403

    async def test_only_reads_token_organization(self, client: AsyncClient, scenario_rows):
        resp = await client.get("/api/reports/billable/client-groups", params=AS_OF, headers=auth_header(OTHER_ORG_ID))
        assert resp.status_code == 200
        assert resp.json() == []


# ---------------------------------------------------------------------------
# Report payloads
# ---------------------------------------------------------------------------


class TestReportEndpoints:
    async def test_client_groups_use_camel_case(self, org_client: AsyncClient, scenario_rows):
        resp = await org_client.get("/api/reports/billable/client-groups", params=AS_OF)
        assert resp.status_code == 200
        body = resp.json()
        assert body[0] == {
            "clientGroup": "Acme Group",
            "currentYear": 400.0,
            "lastYear": 0.0,
            "partner": "Pat Partner",
            "clientManager": "Morgan Manager",
        }

    async def test_dashboard_kpis(self, org_client: AsyncClient, scenario_rows):
        resp = await org_client.get("/api/reports/dashboard/kpis", params=AS_OF)
        assert resp.status_code == 200
        body = resp.json()
        assert body["billableAmount"] == {"currentYear": 400.0, "lastYear": 500.0, "percentageChange": -20.0}
        assert body["wipAmount"] == 156.0

    async def test_pipe_filters(self, org_client: AsyncClient, scenario_rows):
        params = {**AS_OF, "filters": "job_name:not_contains:PG", "dimension": "staff"}
        resp = await org_client.get("/api/reports/billable/by-dimension", params=params)
        assert resp.status_code == 200
        by_staff = {row["name"]: row["currentYear"] for row in resp.json()}
        assert by_staff == {"A": 100.0, "B": 0.0}

    async def test_json_filters(self, org_client: AsyncClient, scenario_rows):
        filters = json.dumps([{"type": "client_group", "value": "Beta Ltd"}])
        resp = await org_client.get("/api/reports/billable/client-groups", params={**AS_OF, "filters": filters})
        assert [row["clientGroup"] for row in resp.json()] == ["Beta Ltd"]

    async def test_malformed_input_is_tolerated(self, org_client: AsyncClient, scenario_rows):
        params = {"asOfDate": "yesterday", "month": "Smarch", "filters": "nonsense|:::"}
        resp = await org_client.get("/api/reports/billable/monthly", params=params)
        assert resp.status_code == 200
        assert len(resp.json()) == 12

    async def test_monthly_series_shape(self, org_client: AsyncClient, scenario_rows):
        resp = await org_client.get("/api/reports/revenue/monthly", params=AS_OF)
        body = resp.json()
        assert [point["month"] for point in body][:3] == ["July", "August", "September"]
        assert body[2] == {"month": "September", "currentYear": 1000.0, "lastYear": 800.0}

    async def test_staff_roster(self, org_client: AsyncClient, scenario_rows):
        resp = await org_client.get("/api/reports/productivity/staff", params=AS_OF)
        assert resp.json() == ["A", "B"]

    async def test_staff_performance(self, org_client: AsyncClient, scenario_rows):
        resp = await org_client.get("/api/reports/productivity/staff-performance", params=AS_OF)
        body = resp.json()
        assert [row["staff"] for row in body["data"]] == ["A"]
        assert body["data"][0]["currentYear"]["averageHourlyRate"] == 235.29
        assert body["totals"]["currentYear"]["billableAmount"] == 400.0

    async def test_recoverability_kpis(self, org_client: AsyncClient, scenario_rows):
        resp = await org_client.get("/api/reports/recoverability/kpis", params=AS_OF)
        body = resp.json()
        assert body["currentYearPercentage"] == 110.0
        assert body["targetPercentage"] == 95.0

    async def test_wip_aging_partner(self, org_client: AsyncClient, scenario_rows):
        resp = await org_client.get("/api/reports/wip/aging", params={**AS_OF, "partner": "Sam Senior"})
        body = resp.json()
        assert body["total"] == 40.0
        assert body["days90To120"] == 40.0

    async def test_wip_client_groups(self, org_client: AsyncClient, scenario_rows):
        resp = await org_client.get("/api/reports/wip/client-groups", params=AS_OF)
        assert resp.status_code == 200
        [group] = resp.json()
        assert group["clientGroup"] == "Acme Group"
        assert group["amount"] == 156.0
        assert group["partner"] == "Pat Partner"
        assert group["clientManager"] == "Morgan Manager"
        assert group["aging"]["lessThan30"] == 16.0
        assert group["aging"]["days120Plus"] == 80.0

    async def test_wip_by_client_manager_with_partner(self, org_client: AsyncClient, scenario_rows):
        resp = await org_client.get(
            "/api/reports/wip/by-client-manager", params={**AS_OF, "partner": "Sam Senior"}
        )
        assert resp.json() == [{"clientManager": "Morgan Manager", "amount": 40.0}]

    async def test_filter_options(self, org_client: AsyncClient, scenario_rows):
        resp = await org_client.get("/api/reports/filter-options")
        assert resp.json()["clientGroups"] == ["Acme Group", "Beta Ltd"]


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class FailingSource:
    async def fetch_page(self, query, page):
        raise RecordSourceError(f"Failed to fetch {query.table.value}: connection reset")


class TestReportErrors:
    async def test_fetch_failure_returns_error_payload(self, org_client: AsyncClient):
        app.dependency_overrides[get_record_source] = lambda: FailingSource()
        try:
            resp = await org_client.get("/api/reports/dashboard/kpis", params=AS_OF)
        finally:
            del app.dependency_overrides[get_record_source]
        assert resp.status_code == 500
        assert set(resp.json()) == {"error"}
        assert resp.json() == {"error": REPORT_FAILED_MESSAGE}
        assert "connection reset" not in resp.text

    async def test_request_id_is_echoed(self, org_client: AsyncClient):
        resp = await org_client.get("/api/reports/filter-options", headers={"X-Request-ID": "abc-123"})
        assert resp.headers["X-Request-ID"] == "abc-123"
