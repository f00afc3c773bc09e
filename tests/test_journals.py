# tests/test_journals.py - Journal creation, approval workflow and balance posting
from datetime import date, timedelta

import pytest

from app.core.errors import ValidationError
from app.models import Account, JournalLine
from app.services import journal_service

from tests.conftest import auth_headers


def _entry(debit_account, credit_account, amount=1000.0, **extra):
    payload = {
        "entry_date": date.today().isoformat(),
        "description": "Cash sale",
        "lines": [
            {"account_id": str(debit_account.id), "debit": amount},
            {"account_id": str(credit_account.id), "credit": amount},
        ],
    }
    payload.update(extra)
    return payload


class TestCreate:
    def test_unbalanced_entry_is_422(self, client, seeded, company_url):
        accounts = seeded["accounts"]
        payload = _entry(accounts["cash"], accounts["revenue"])
        payload["lines"][1]["credit"] = 900
        response = client.post(f"{company_url}/journals", json=payload, headers=auth_headers(seeded["accountant"]))
        assert response.status_code == 422
        assert response.json()["error"]["message"] == "Journal entry is not balanced"

    def test_accountant_entry_awaits_verification(self, client, seeded, company_url):
        accounts = seeded["accounts"]
        response = client.post(
            f"{company_url}/journals",
            json=_entry(accounts["cash"], accounts["revenue"]),
            headers=auth_headers(seeded["accountant"]),
        )
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["status"] == "PENDING_VERIFICATION"
        assert data["entry_number"] == f"JE-{date.today().year}-0001"
        assert data["total_debit"] == data["total_credit"] == 1000

    def test_numbers_increment(self, client, seeded, company_url):
        accounts = seeded["accounts"]
        headers = auth_headers(seeded["accountant"])
        client.post(f"{company_url}/journals", json=_entry(accounts["cash"], accounts["revenue"]), headers=headers)
        second = client.post(f"{company_url}/journals", json=_entry(accounts["cash"], accounts["revenue"]), headers=headers)
        assert second.json()["data"]["entry_number"] == f"JE-{date.today().year}-0002"

    def test_manager_entry_is_draft(self, client, seeded, company_url):
        accounts = seeded["accounts"]
        response = client.post(
            f"{company_url}/journals",
            json=_entry(accounts["cash"], accounts["revenue"]),
            headers=auth_headers(seeded["manager"]),
        )
        assert response.json()["data"]["status"] == "DRAFT"

    def test_exchange_rate_converts_to_base(self, client, seeded, company_url):
        accounts = seeded["accounts"]
        response = client.post(
            f"{company_url}/journals",
            json=_entry(accounts["bank"], accounts["revenue"], amount=100, exchange_rate=110),
            headers=auth_headers(seeded["owner"]),
        )
        data = response.json()["data"]
        assert data["total_debit"] == 11000
        line = data["lines"][0]
        assert line["debit_foreign"] == 100
        assert line["debit_base"] == 11000

    def test_future_date_only_for_owner(self, client, seeded, company_url):
        accounts = seeded["accounts"]
        tomorrow = (date.today() + timedelta(days=1)).isoformat()
        payload = _entry(accounts["cash"], accounts["revenue"], entry_date=tomorrow)

        as_accountant = client.post(f"{company_url}/journals", json=payload, headers=auth_headers(seeded["accountant"]))
        assert as_accountant.status_code == 403

        as_owner = client.post(f"{company_url}/journals", json=payload, headers=auth_headers(seeded["owner"]))
        assert as_owner.status_code == 201

    def test_line_needs_exactly_one_side(self, client, seeded, company_url):
        accounts = seeded["accounts"]
        payload = _entry(accounts["cash"], accounts["revenue"])
        payload["lines"][0]["credit"] = 1000
        response = client.post(f"{company_url}/journals", json=payload, headers=auth_headers(seeded["owner"]))
        assert response.status_code == 422

    def test_creation_raises_pending_notification(self, client, seeded, company_url):
        accounts = seeded["accounts"]
        client.post(
            f"{company_url}/journals",
            json=_entry(accounts["cash"], accounts["revenue"]),
            headers=auth_headers(seeded["accountant"]),
        )
        listing = client.get(f"{company_url}/notifications", headers=auth_headers(seeded["owner"])).json()["data"]
        assert listing["unread_count"] == 1
        assert listing["notifications"][0]["type"] == "PENDING_JOURNAL"


class TestWorkflow:
    def _create(self, client, seeded, company_url, user="accountant", **kw):
        accounts = seeded["accounts"]
        response = client.post(
            f"{company_url}/journals",
            json=_entry(accounts["cash"], accounts["revenue"], **kw),
            headers=auth_headers(seeded[user]),
        )
        return response.json()["data"]["id"]

    def test_verify_then_approve_posts_balances(self, client, seeded, company_url, db):
        journal_id = self._create(client, seeded, company_url)

        verified = client.post(f"{company_url}/journals/{journal_id}/verify", headers=auth_headers(seeded["manager"]))
        assert verified.json()["data"]["status"] == "VERIFIED"

        approved = client.post(f"{company_url}/journals/{journal_id}/approve", headers=auth_headers(seeded["owner"]))
        assert approved.status_code == 200
        assert approved.json()["data"]["status"] == "APPROVED"

        db.expire_all()
        assert db.get(Account, seeded["accounts"]["cash"].id).current_balance == 1000
        assert db.get(Account, seeded["accounts"]["revenue"].id).current_balance == 1000

    def test_manager_cannot_approve(self, client, seeded, company_url):
        journal_id = self._create(client, seeded, company_url)
        client.post(f"{company_url}/journals/{journal_id}/verify", headers=auth_headers(seeded["manager"]))
        response = client.post(f"{company_url}/journals/{journal_id}/approve", headers=auth_headers(seeded["manager"]))
        assert response.status_code == 403

    def test_accountant_cannot_verify(self, client, seeded, company_url):
        journal_id = self._create(client, seeded, company_url)
        response = client.post(f"{company_url}/journals/{journal_id}/verify", headers=auth_headers(seeded["accountant"]))
        assert response.status_code == 403

    def test_reject_and_retrieve(self, client, seeded, company_url):
        journal_id = self._create(client, seeded, company_url)

        rejected = client.post(
            f"{company_url}/journals/{journal_id}/reject",
            json={"reason": "Wrong account"},
            headers=auth_headers(seeded["manager"]),
        )
        assert rejected.json()["data"]["status"] == "REJECTED"
        assert rejected.json()["data"]["rejection_reason"] == "Wrong account"

        retrieved = client.post(f"{company_url}/journals/{journal_id}/retrieve", headers=auth_headers(seeded["accountant"]))
        data = retrieved.json()["data"]
        assert data["status"] == "DRAFT"
        assert data["rejection_reason"] is None

        submitted = client.post(f"{company_url}/journals/{journal_id}/submit", headers=auth_headers(seeded["accountant"]))
        assert submitted.json()["data"]["status"] == "PENDING_VERIFICATION"

    def test_reject_requires_reason(self, client, seeded, company_url):
        journal_id = self._create(client, seeded, company_url)
        response = client.post(
            f"{company_url}/journals/{journal_id}/reject", json={}, headers=auth_headers(seeded["manager"])
        )
        assert response.status_code == 422

    def test_cash_overdraft_needs_override(self, seeded, db):
        cash = seeded["accounts"]["cash"]
        rent = seeded["accounts"]["expense"]
        lines = [
            JournalLine(account_id=rent.id, debit=500, credit=0, debit_base=500, credit_base=0),
            JournalLine(account_id=cash.id, debit=0, credit=500, debit_base=0, credit_base=500),
        ]
        with pytest.raises(ValidationError, match="would be negative"):
            journal_service.post_lines(db, lines, allow_overdraft=False)
        db.rollback()

        cash = db.get(Account, cash.id)
        cash.allow_negative = True
        journal_service.post_lines(db, lines, allow_overdraft=False)
        assert cash.current_balance == -500

    def test_approved_journal_cannot_be_deleted(self, client, seeded, company_url):
        journal_id = self._create(client, seeded, company_url)
        client.post(f"{company_url}/journals/{journal_id}/verify", headers=auth_headers(seeded["manager"]))
        client.post(f"{company_url}/journals/{journal_id}/approve", headers=auth_headers(seeded["owner"]))

        response = client.delete(f"{company_url}/journals/{journal_id}", headers=auth_headers(seeded["owner"]))
        assert response.status_code == 403

    def test_delete_draft(self, client, seeded, company_url):
        journal_id = self._create(client, seeded, company_url, user="manager")
        client.post(f"{company_url}/journals/{journal_id}/submit", headers=auth_headers(seeded["accountant"]))
        client.post(f"{company_url}/journals/{journal_id}/retrieve", headers=auth_headers(seeded["accountant"]))

        response = client.delete(f"{company_url}/journals/{journal_id}", headers=auth_headers(seeded["accountant"]))
        assert response.status_code == 200
        missing = client.get(f"{company_url}/journals/{journal_id}", headers=auth_headers(seeded["owner"]))
        assert missing.status_code == 404

    def test_update_description(self, client, seeded, company_url):
        journal_id = self._create(client, seeded, company_url, user="owner")
        response = client.put(
            f"{company_url}/journals/{journal_id}",
            json={"description": "Corrected", "reference": "INV-9"},
            headers=auth_headers(seeded["owner"]),
        )
        assert response.json()["data"]["description"] == "Corrected"

    def test_list_filters_by_status(self, client, seeded, company_url):
        self._create(client, seeded, company_url)
        self._create(client, seeded, company_url, user="manager")
        response = client.get(f"{company_url}/journals?status=draft", headers=auth_headers(seeded["owner"]))
        assert [j["status"] for j in response.json()["data"]] == ["DRAFT"]


class TestTenancy:
    def test_outsider_is_403(self, client, seeded, company_url, db):
        from app.services.auth_service import AuthService
        outsider = AuthService(db).create_user("out@example.com", "secret1", "Out")
        db.commit()
        response = client.get(f"{company_url}/journals", headers=auth_headers(outsider))
        assert response.status_code == 403

    def test_unknown_company_is_404(self, client, seeded):
        response = client.get(
            "/api/company/11111111-1111-4111-8111-111111111111/journals",
            headers=auth_headers(seeded["owner"]),
        )
        assert response.status_code == 404
        assert response.json()["error"]["message"] == "Company not found"

    def test_admin_passes_without_link(self, client, seeded, company_url):
        response = client.get(f"{company_url}/journals", headers=auth_headers(seeded["admin"]))
        assert response.status_code == 200
