# tests/test_auth.py - Login, registration, profile and the offline demo login
from app.core.system_mode import system_mode, OFFLINE

from tests.conftest import auth_headers


class TestLogin:
    def test_login_returns_token_and_session_user(self, client, seeded):
        response = client.post("/api/auth/login", json={"email": "owner@example.com", "password": "owner123"})
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["token"]
        user = body["data"]["user"]
        assert user["email"] == "owner@example.com"
        assert user["roles"] == ["Owner"]
        assert user["company_id"] == str(seeded["company"].id)

    def test_login_is_case_insensitive_on_email(self, client, seeded):
        response = client.post("/api/auth/login", json={"email": "Owner@Example.com", "password": "owner123"})
        assert response.status_code == 200

    def test_wrong_password_is_401_envelope(self, client, seeded):
        response = client.post("/api/auth/login", json={"email": "owner@example.com", "password": "nope123"})
        assert response.status_code == 401
        assert response.json() == {
            "success": False,
            "error": {"message": "Invalid credentials", "status_code": 401},
        }

    def test_admin_session_has_no_company(self, client, seeded):
        response = client.post("/api/auth/login", json={"email": "admin@accounting.com", "password": "admin123"})
        user = response.json()["data"]["user"]
        assert user["is_admin"] is True
        assert user["company_id"] is None


class TestRegister:
    def test_register_creates_user(self, client, seeded):
        response = client.post("/api/auth/register", json={
            "email": "new@example.com",
            "password": "secret1",
            "first_name": "New",
        })
        assert response.status_code == 201
        assert response.json()["data"]["user"]["roles"] == ["User"]

    def test_duplicate_email_is_409(self, client, seeded):
        response = client.post("/api/auth/register", json={
            "email": "owner@example.com",
            "password": "secret1",
            "first_name": "Dup",
        })
        assert response.status_code == 409
        assert response.json()["error"]["message"] == "User with this email already exists"

    def test_short_password_is_422(self, client, seeded):
        response = client.post("/api/auth/register", json={
            "email": "short@example.com",
            "password": "123",
            "first_name": "Short",
        })
        assert response.status_code == 422
        assert response.json()["success"] is False


class TestProfile:
    def test_me_lists_memberships(self, client, seeded):
        response = client.get("/api/auth/me", headers=auth_headers(seeded["accountant"]))
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["email"] == "accountant@example.com"
        assert [c["company_code"] for c in data["companies"]] == ["ACME"]

    def test_update_me(self, client, seeded):
        response = client.put(
            "/api/auth/me",
            json={"phone": "+8801700000000"},
            headers=auth_headers(seeded["owner"]),
        )
        assert response.status_code == 200
        assert response.json()["data"]["phone"] == "+8801700000000"

    def test_me_without_token_is_401(self, client, seeded):
        response = client.get("/api/auth/me")
        assert response.status_code == 401
        assert response.json()["error"]["status_code"] == 401

    def test_roles_sorted_by_name(self, client, seeded):
        response = client.get("/api/auth/roles", headers=auth_headers(seeded["owner"]))
        names = [r["name"] for r in response.json()["data"]]
        assert names == sorted(names)
        assert "Accountant" in names


class TestOfflineDemo:
    def test_demo_credentials_work_offline(self, client):
        system_mode.force(OFFLINE)
        response = client.post("/api/auth/login", json={"email": "demo@example.com", "password": "demo123"})
        assert response.status_code == 200
        assert response.headers["X-System-Mode"] == "OFFLINE"
        assert response.json()["data"]["user"]["email"] == "demo@example.com"

    def test_other_credentials_rejected_offline(self, client):
        system_mode.force(OFFLINE)
        response = client.post("/api/auth/login", json={"email": "owner@example.com", "password": "owner123"})
        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Offline mode: Only demo credentials work."

    def test_demo_token_reads_demo_accounts(self, client):
        system_mode.force(OFFLINE)
        token = client.post(
            "/api/auth/login", json={"email": "demo@example.com", "password": "demo123"}
        ).json()["data"]["token"]

        response = client.get(
            "/api/company/00000000-0000-4000-8000-00000000de01/accounts",
            headers={"Authorization": f"Bearer {token}"},
        )
        assert response.status_code == 200
        assert len(response.json()["data"]) > 0
