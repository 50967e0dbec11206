"""Tests for the financial records API."""
from decimal import Decimal

from conftest import API


def _record(client, headers, **fields):
    payload = {"type": "Revenue", "amount": "100.00", "date": "2024-01-15"}
    payload.update(fields)
    response = client.post(f"{API}/financials/", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


class TestFinancialAccess:
    """Financial data is restricted to Manager and above."""

    def test_client_role_cannot_list(self, client, client_headers):
        assert client.get(f"{API}/financials/", headers=client_headers).status_code == 403

    def test_user_cannot_read(self, client, manager_headers, user_headers):
        record = _record(client, manager_headers)
        response = client.get(f"{API}/financials/{record['id']}", headers=user_headers)
        assert response.status_code == 403

    def test_manager_can_list(self, client, manager_headers):
        assert client.get(f"{API}/financials/", headers=manager_headers).status_code == 200

    def test_only_admin_deletes(self, client, manager_headers, admin_headers):
        record = _record(client, manager_headers)

        assert client.delete(f"{API}/financials/{record['id']}", headers=manager_headers).status_code == 403
        assert client.delete(f"{API}/financials/{record['id']}", headers=admin_headers).status_code == 204
        assert client.get(f"{API}/financials/{record['id']}", headers=admin_headers).status_code == 404


class TestFinancialCrud:
    """Test financial record validation and filters."""

    def test_create_with_references(self, client, acme, website, manager_headers):
        record = _record(
            client,
            manager_headers,
            project_id=website["id"],
            client_id=acme["id"],
            amount="2500.50",
            description="Milestone 1",
        )

        assert record["id"].startswith("financial_")
        assert Decimal(record["amount"]) == Decimal("2500.50")
        assert record["project_name"] == "Website Relaunch"
        assert record["client_name"] == "Acme Corp"

    def test_unattached_record_allowed(self, client, manager_headers):
        record = _record(client, manager_headers, type="Expense", amount="42")
        assert record["project_id"] is None
        assert record["client_id"] is None

    def test_amount_must_be_positive(self, client, manager_headers):
        for amount in ("0", "-10.00"):
            response = client.post(
                f"{API}/financials/",
                json={"type": "Expense", "amount": amount, "date": "2024-01-01"},
                headers=manager_headers,
            )
            assert response.status_code == 400

    def test_too_many_decimals_rejected(self, client, manager_headers):
        response = client.post(
            f"{API}/financials/",
            json={"type": "Expense", "amount": "1.234", "date": "2024-01-01"},
            headers=manager_headers,
        )
        assert response.status_code == 400

    def test_date_required(self, client, manager_headers):
        response = client.post(
            f"{API}/financials/", json={"type": "Expense", "amount": "5"}, headers=manager_headers
        )
        assert response.status_code == 400

    def test_missing_project_reference(self, client, manager_headers):
        response = client.post(
            f"{API}/financials/",
            json={"type": "Revenue", "amount": "5", "date": "2024-01-01", "project_id": "project_missing"},
            headers=manager_headers,
        )
        assert response.status_code == 404

    def test_update_amount(self, client, manager_headers):
        record = _record(client, manager_headers)

        response = client.patch(
            f"{API}/financials/{record['id']}", json={"amount": "250.75"}, headers=manager_headers
        )
        assert response.status_code == 200
        assert Decimal(response.json()["amount"]) == Decimal("250.75")
        assert response.json()["type"] == "Revenue"

    def test_update_to_zero_rejected(self, client, manager_headers):
        record = _record(client, manager_headers)
        response = client.put(f"{API}/financials/{record['id']}", json={"amount": "0"}, headers=manager_headers)
        assert response.status_code == 400

    def test_filters(self, client, website, manager_headers):
        _record(client, manager_headers, date="2024-01-10", project_id=website["id"])
        _record(client, manager_headers, type="Expense", date="2024-02-10")
        _record(client, manager_headers, date="2024-03-10")

        revenue = client.get(f"{API}/financials/", params={"type": "Revenue"}, headers=manager_headers)
        assert revenue.json()["total"] == 2

        by_project = client.get(f"{API}/financials/", params={"project_id": website["id"]}, headers=manager_headers)
        assert by_project.json()["total"] == 1

        in_range = client.get(
            f"{API}/financials/",
            params={"date_from": "2024-02-01", "date_to": "2024-03-31"},
            headers=manager_headers,
        )
        assert [r["date"] for r in in_range.json()["items"]] == ["2024-03-10", "2024-02-10"]

    def test_inverted_date_range_rejected(self, client, manager_headers):
        response = client.get(
            f"{API}/financials/",
            params={"date_from": "2024-03-01", "date_to": "2024-02-01"},
            headers=manager_headers,
        )
        assert response.status_code == 400
