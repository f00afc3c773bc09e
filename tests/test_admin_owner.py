# tests/test_admin_owner.py - Platform admin and owner management
import uuid

from sqlalchemy import select, func

from app.models import User, UserCompany, Company
from app.services import company_service

from tests.conftest import auth_headers


class TestAdminOwners:
    def test_owner_password_under_six_is_rejected_before_any_write(self, client, seeded, db):
        before = db.execute(select(func.count(User.id))).scalar_one()
        response = client.post(
            "/api/admin/owners",
            json={"email": "shorty@example.com", "password": "12345", "first_name": "Shorty"},
            headers=auth_headers(seeded["admin"]),
        )
        assert response.status_code == 422
        assert response.json()["success"] is False

        db.expire_all()
        assert db.execute(select(func.count(User.id))).scalar_one() == before
        assert db.execute(select(User).where(User.email == "shorty@example.com")).scalar_one_or_none() is None

    def test_create_owner(self, client, seeded):
        response = client.post(
            "/api/admin/owners",
            json={"email": "second@example.com", "password": "secret1", "first_name": "Second", "max_companies": 3},
            headers=auth_headers(seeded["admin"]),
        )
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["roles"] == ["Owner"]
        assert data["max_companies"] == 3

    def test_list_owners(self, client, seeded):
        response = client.get("/api/admin/owners", headers=auth_headers(seeded["admin"]))
        emails = [o["email"] for o in response.json()["data"]]
        assert emails == ["owner@example.com"]

    def test_non_admin_is_403(self, client, seeded):
        response = client.get("/api/admin/owners", headers=auth_headers(seeded["owner"]))
        assert response.status_code == 403
        assert response.json()["error"] == {"message": "Admin access required", "status_code": 403}


class TestAdminCompanies:
    def test_create_company_links_owner(self, client, seeded, db):
        response = client.post(
            "/api/admin/companies",
            json={"name": "Beta Knit", "owner_id": str(seeded["owner"].id)},
            headers=auth_headers(seeded["admin"]),
        )
        assert response.status_code == 201
        company_id = uuid.UUID(response.json()["data"]["id"])

        db.expire_all()
        link = db.execute(
            select(UserCompany).where(UserCompany.company_id == company_id)
        ).scalar_one()
        assert link.is_main_owner is True
        assert link.ownership_percentage == 100

    def test_unknown_owner_is_404(self, client, seeded):
        response = client.post(
            "/api/admin/companies",
            json={"name": "Ghost Co", "owner_id": "11111111-1111-4111-8111-111111111111"},
            headers=auth_headers(seeded["admin"]),
        )
        assert response.status_code == 404

    def test_list_includes_owners(self, client, seeded):
        response = client.get("/api/admin/companies", headers=auth_headers(seeded["admin"]))
        [company] = response.json()["data"]
        assert company["code"] == "ACME"
        assert [o["email"] for o in company["owners"]] == ["owner@example.com"]

    def test_delete_company_cascades(self, client, seeded, db):
        company_id = seeded["company"].id
        response = client.delete(f"/api/admin/companies/{company_id}", headers=auth_headers(seeded["admin"]))
        assert response.status_code == 200

        db.expire_all()
        assert db.get(Company, company_id) is None
        assert db.execute(
            select(func.count(UserCompany.id)).where(UserCompany.company_id == company_id)
        ).scalar_one() == 0

    def test_toggle_status(self, client, seeded):
        response = client.put(
            f"/api/admin/companies/{seeded['company'].id}/status",
            json={"is_active": False},
            headers=auth_headers(seeded["admin"]),
        )
        assert response.json()["data"]["is_active"] is False


class TestCoOwners:
    def test_share_cap_is_enforced(self, client, seeded):
        response = client.post(
            f"/api/owner/companies/{seeded['company'].id}/owners",
            json={
                "email": "partner@example.com",
                "first_name": "Pat",
                "password": "secret1",
                "ownership_percentage": 10,
            },
            headers=auth_headers(seeded["owner"]),
        )
        assert response.status_code == 409
        assert "Total ownership cannot exceed 100%" in response.json()["error"]["message"]

    def test_add_partner_without_share(self, client, seeded):
        response = client.post(
            f"/api/owner/companies/{seeded['company'].id}/owners",
            json={"email": "partner@example.com", "first_name": "Pat", "password": "secret1"},
            headers=auth_headers(seeded["owner"]),
        )
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["capital_account_code"].startswith("CAP-O-")
        assert data["drawing_account_code"].startswith("DRW-O-")

    def test_unknown_user_without_password_is_409(self, client, seeded):
        response = client.post(
            f"/api/owner/companies/{seeded['company'].id}/owners",
            json={"email": "nobody@example.com"},
            headers=auth_headers(seeded["owner"]),
        )
        assert response.status_code == 409

    def test_owner_lists_own_companies(self, client, seeded):
        response = client.get("/api/owner/companies", headers=auth_headers(seeded["owner"]))
        [company] = response.json()["data"]
        assert company["is_main_owner"] is True
        assert company["ownership_percentage"] == 100

    def test_main_owner_link_cannot_be_edited(self, client, seeded, db):
        company_id = seeded["company"].id
        owner = seeded["owner"]
        response = client.put(
            f"/api/owner/companies/{company_id}/owners/{owner.id}",
            json={"ownership_percentage": 40},
            headers=auth_headers(owner),
        )
        assert response.status_code == 403
        assert response.json()["error"]["message"] == "You cannot edit the main owner"

        db.expire_all()
        link = db.execute(
            select(UserCompany).where(UserCompany.company_id == company_id, UserCompany.user_id == owner.id)
        ).scalar_one()
        assert link.ownership_percentage == 100


class TestEmployees:
    def test_create_employee_in_owned_company(self, client, seeded):
        response = client.post(
            "/api/owner/employees",
            json={
                "email": "clerk@example.com",
                "password": "secret1",
                "first_name": "Clara",
                "company_ids": [str(seeded["company"].id)],
            },
            headers=auth_headers(seeded["owner"]),
        )
        assert response.status_code == 201
        listing = client.get("/api/owner/employees", headers=auth_headers(seeded["owner"])).json()["data"]
        assert "clerk@example.com" in [e["email"] for e in listing]

    def test_accountant_cannot_manage_employees(self, client, seeded):
        response = client.get("/api/owner/employees", headers=auth_headers(seeded["accountant"]))
        assert response.status_code == 403

    def test_relinking_keeps_other_owners_companies(self, client, seeded, db):
        accountant = seeded["accountant"]
        bea = company_service.create_company(db, "Bea Co", owner_id=seeded["admin"].id, code="BEA")
        db.add(UserCompany(user_id=accountant.id, company_id=bea.id))
        db.commit()

        response = client.put(
            f"/api/owner/employees/{accountant.id}",
            json={"company_ids": [str(seeded["company"].id)]},
            headers=auth_headers(seeded["owner"]),
        )
        assert response.status_code == 200

        db.expire_all()
        linked = set(db.execute(
            select(UserCompany.company_id).where(UserCompany.user_id == accountant.id)
        ).scalars().all())
        assert linked == {seeded["company"].id, bea.id}
