"""Tests for the clients API and role enforcement on entity routes."""
from conftest import API


class TestClientAccess:
    """Test the policy on client routes for each role."""

    def test_all_roles_can_list(self, client, acme, user_headers, client_headers):
        for headers in (user_headers, client_headers):
            response = client.get(f"{API}/clients/", headers=headers)
            assert response.status_code == 200
            assert response.json()["total"] == 1

    def test_unauthenticated_rejected(self, client):
        response = client.get(f"{API}/clients/")
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_user_cannot_create(self, client, user_headers):
        response = client.post(f"{API}/clients/", json={"name": "Nope"}, headers=user_headers)
        assert response.status_code == 403

    def test_client_role_cannot_update(self, client, acme, client_headers):
        response = client.patch(
            f"{API}/clients/{acme['id']}", json={"name": "Renamed"}, headers=client_headers
        )
        assert response.status_code == 403

    def test_manager_cannot_delete(self, client, acme, manager_headers):
        response = client.delete(f"{API}/clients/{acme['id']}", headers=manager_headers)
        assert response.status_code == 403

        assert client.get(f"{API}/clients/{acme['id']}", headers=manager_headers).status_code == 200

    def test_permission_checked_before_validation(self, client, user_headers):
        response = client.post(f"{API}/clients/", json={}, headers=user_headers)
        assert response.status_code == 403


class TestClientCrud:
    """Test client create, read, update and delete."""

    def test_create(self, client, manager_headers):
        response = client.post(
            f"{API}/clients/",
            json={
                "name": "Globex",
                "contact_email": "hello@globex.test",
                "contact_phone": "+1 555 0100",
                "address": "1 Main St",
            },
            headers=manager_headers,
        )

        assert response.status_code == 201
        body = response.json()
        assert body["id"].startswith("client_")
        assert body["name"] == "Globex"
        assert body["status"] == "Active"

    def test_create_requires_name(self, client, manager_headers):
        response = client.post(
            f"{API}/clients/", json={"contact_email": "a@b.test"}, headers=manager_headers
        )
        assert response.status_code == 400

    def test_create_rejects_bad_status(self, client, manager_headers):
        response = client.post(
            f"{API}/clients/", json={"name": "X", "status": "Dormant"}, headers=manager_headers
        )
        assert response.status_code == 400

    def test_get(self, client, acme, user_headers):
        response = client.get(f"{API}/clients/{acme['id']}", headers=user_headers)
        assert response.status_code == 200
        assert response.json()["contact_email"] == "ops@acme.test"

    def test_get_missing(self, client, user_headers):
        response = client.get(f"{API}/clients/client_missing", headers=user_headers)
        assert response.status_code == 404

    def test_patch_is_partial(self, client, acme, manager_headers):
        response = client.patch(
            f"{API}/clients/{acme['id']}", json={"status": "Inactive"}, headers=manager_headers
        )

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "Inactive"
        assert body["name"] == "Acme Corp"
        assert body["contact_email"] == "ops@acme.test"

    def test_put_updates(self, client, acme, manager_headers):
        response = client.put(
            f"{API}/clients/{acme['id']}", json={"name": "Acme Inc"}, headers=manager_headers
        )
        assert response.status_code == 200
        assert response.json()["name"] == "Acme Inc"

    def test_null_for_required_field_rejected(self, client, acme, manager_headers):
        response = client.patch(
            f"{API}/clients/{acme['id']}", json={"name": None}, headers=manager_headers
        )
        assert response.status_code == 400

    def test_update_missing(self, client, manager_headers):
        response = client.patch(
            f"{API}/clients/client_missing", json={"name": "X"}, headers=manager_headers
        )
        assert response.status_code == 404

    def test_filter_and_search(self, client, acme, manager_headers):
        client.post(
            f"{API}/clients/", json={"name": "Initech", "status": "Inactive"}, headers=manager_headers
        )

        active = client.get(f"{API}/clients/", params={"status": "Active"}, headers=manager_headers)
        assert [c["name"] for c in active.json()["items"]] == ["Acme Corp"]

        found = client.get(f"{API}/clients/", params={"search": "init"}, headers=manager_headers)
        assert [c["name"] for c in found.json()["items"]] == ["Initech"]

    def test_pagination(self, client, manager_headers):
        for i in range(5):
            client.post(f"{API}/clients/", json={"name": f"Client {i}"}, headers=manager_headers)

        response = client.get(
            f"{API}/clients/", params={"page": 2, "page_size": 2}, headers=manager_headers
        )
        body = response.json()
        assert body["total"] == 5
        assert body["page"] == 2
        assert body["total_pages"] == 3
        assert len(body["items"]) == 2

    def test_invalid_page_rejected(self, client, manager_headers):
        response = client.get(f"{API}/clients/", params={"page": 0}, headers=manager_headers)
        assert response.status_code == 400

    def test_admin_delete_persists(self, client, acme, admin_headers):
        response = client.delete(f"{API}/clients/{acme['id']}", headers=admin_headers)
        assert response.status_code == 204

        assert client.get(f"{API}/clients/{acme['id']}", headers=admin_headers).status_code == 404
        assert client.get(f"{API}/clients/", headers=admin_headers).json()["total"] == 0

    def test_delete_missing(self, client, admin_headers):
        assert client.delete(f"{API}/clients/client_missing", headers=admin_headers).status_code == 404

    def test_delete_cascades_to_projects(self, client, acme, website, admin_headers):
        client.delete(f"{API}/clients/{acme['id']}", headers=admin_headers)

        assert client.get(f"{API}/projects/{website['id']}", headers=admin_headers).status_code == 404
