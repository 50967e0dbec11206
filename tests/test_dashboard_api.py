"""Tests for the dashboard summary."""
from datetime import date, timedelta
from decimal import Decimal

import pytest

from conftest import API


class TestDashboardSummary:
    """Test dashboard aggregation."""

    def test_empty_database(self, client, manager_headers):
        response = client.get(f"{API}/dashboard/summary", headers=manager_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["total_clients"] == 0
        assert body["active_clients"] == 0
        assert body["projects_by_status"]["Planning"] == 0
        assert set(body["deployments_by_status"]) == {"Pending", "Active", "Inactive", "Failed"}
        assert body["monthly_financials"] == []
        assert body["resource_utilization"] == []

    def test_requires_session(self, client):
        assert client.get(f"{API}/dashboard/summary").status_code == 401

    def test_counts(self, client, acme, website, manager_headers):
        client.post(f"{API}/clients/", json={"name": "Dormant", "status": "Inactive"}, headers=manager_headers)
        client.post(
            f"{API}/projects/",
            json={"client_id": acme["id"], "name": "SEO", "status": "Active"},
            headers=manager_headers,
        )

        body = client.get(f"{API}/dashboard/summary", headers=manager_headers).json()
        assert body["total_clients"] == 2
        assert body["active_clients"] == 1
        assert body["projects_by_status"]["Planning"] == 1
        assert body["projects_by_status"]["Active"] == 1
        assert body["projects_by_status"]["Completed"] == 0

    def test_monthly_financials(self, client, manager_headers):
        for record_type, amount, day in (
            ("Revenue", "1000.00", "2024-01-05"),
            ("Expense", "300.00", "2024-01-20"),
            ("Revenue", "500.00", "2024-02-01"),
            ("Expense", "700.00", "2024-02-15"),
        ):
            client.post(
                f"{API}/financials/",
                json={"type": record_type, "amount": amount, "date": day},
                headers=manager_headers,
            )

        months = client.get(f"{API}/dashboard/summary", headers=manager_headers).json()["monthly_financials"]

        assert [m["month"] for m in months] == ["2024-01", "2024-02"]
        assert Decimal(months[0]["revenue"]) == Decimal("1000")
        assert Decimal(months[0]["expenses"]) == Decimal("300")
        assert Decimal(months[0]["profit"]) == Decimal("700")
        assert Decimal(months[1]["profit"]) == Decimal("-200")

    def test_resource_utilization(self, client, website, manager, manager_headers):
        resource = client.post(
            f"{API}/resources/", json={"user_id": manager[0].id}, headers=manager_headers
        ).json()
        start = (date.today() - timedelta(days=1)).isoformat()
        client.post(
            f"{API}/resource-allocations/",
            json={
                "resource_id": resource["id"],
                "project_id": website["id"],
                "allocation_percentage": 75,
                "start_date": start,
            },
            headers=manager_headers,
        )

        utilization = client.get(f"{API}/dashboard/summary", headers=manager_headers).json()["resource_utilization"]

        assert utilization == [
            {
                "resource_id": resource["id"],
                "name": "Max Manager",
                "allocated_percentage": 75,
                "available_percentage": 25,
            }
        ]

    def test_deployments_by_status(self, client, manager_headers):
        model = client.post(f"{API}/ai-models/", json={"name": "Bot"}, headers=manager_headers).json()
        for status in ("Active", "Active", "Pending"):
            client.post(
                f"{API}/ai-deployments/",
                json={"model_id": model["id"], "status": status},
                headers=manager_headers,
            )

        by_status = client.get(f"{API}/dashboard/summary", headers=manager_headers).json()["deployments_by_status"]
        assert by_status == {"Pending": 1, "Active": 2, "Inactive": 0, "Failed": 0}


class TestDashboardFinancialVisibility:
    """Monthly figures follow the financial record policy."""

    @pytest.fixture
    def revenue(self, client, manager_headers):
        response = client.post(
            f"{API}/financials/",
            json={"type": "Revenue", "amount": "5000.00", "date": "2024-03-10"},
            headers=manager_headers,
        )
        assert response.status_code == 201

    def test_manager_sees_figures(self, client, revenue, manager_headers):
        months = client.get(f"{API}/dashboard/summary", headers=manager_headers).json()["monthly_financials"]

        assert [m["month"] for m in months] == ["2024-03"]
        assert Decimal(months[0]["revenue"]) == Decimal("5000")

    @pytest.mark.parametrize("headers_fixture", ["user_headers", "client_headers"])
    def test_lower_roles_get_no_figures(self, client, revenue, request, headers_fixture):
        headers = request.getfixturevalue(headers_fixture)

        assert client.get(f"{API}/financials/", headers=headers).status_code == 403
        response = client.get(f"{API}/dashboard/summary", headers=headers)
        assert response.status_code == 200
        assert response.json()["monthly_financials"] == []
        assert response.json()["total_clients"] == 0
