# tests/test_reports.py - Statements, balance healing, dashboard and bank reconciliation
from datetime import date

import pytest

from app.models import Account
from app.services import journal_service

from tests.conftest import auth_headers


@pytest.fixture
def posted(seeded, db):
    """Capital injection, one sale and one rent payment, all approved"""
    a = seeded["accounts"]
    company_id = seeded["company"].id
    today = date.today()
    owner_id = seeded["owner"].id
    for description, debit_account, credit_account, amount in (
        ("Capital injection", a["cash"], a["capital"], 10000),
        ("Cash sale", a["cash"], a["revenue"], 3000),
        ("Office rent", a["expense"], a["cash"], 1200),
    ):
        journal_service.create_posted_entry(
            db, company_id, owner_id, today, description, None,
            [(debit_account, amount, 0, description), (credit_account, 0, amount, description)],
        )
    db.commit()
    return a


def _by_code(rows, key="account_code"):
    return {r[key]: r for r in rows}


class TestStatements:
    def test_trial_balance(self, client, seeded, company_url, posted):
        data = client.get(f"{company_url}/reports/trial-balance", headers=auth_headers(seeded["accountant"])).json()["data"]
        rows = _by_code(data["accounts"])
        assert rows["1000"]["debit"] == 11800
        assert rows["3000"]["credit"] == 10000
        assert rows["4000"]["credit"] == 3000
        assert rows["5000"]["debit"] == 1200
        assert data["total_debit"] == data["total_credit"] == 13000

    def test_trial_balance_ignores_unapproved(self, client, seeded, company_url, posted):
        client.post(
            f"{company_url}/journals",
            json={
                "entry_date": date.today().isoformat(),
                "lines": [
                    {"account_id": str(posted["cash"].id), "debit": 500},
                    {"account_id": str(posted["revenue"].id), "credit": 500},
                ],
            },
            headers=auth_headers(seeded["accountant"]),
        )
        data = client.get(f"{company_url}/reports/trial-balance", headers=auth_headers(seeded["owner"])).json()["data"]
        assert data["total_debit"] == 13000

    def test_ledger_running_balance(self, client, seeded, company_url, posted):
        data = client.get(
            f"{company_url}/reports/ledger/{posted['cash'].id}", headers=auth_headers(seeded["owner"])
        ).json()["data"]
        assert [e["balance"] for e in data["entries"]] == [10000, 13000, 11800]
        assert data["closing_balance"] == 11800

    def test_ledger_unknown_account_is_404(self, client, seeded, company_url):
        response = client.get(
            f"{company_url}/reports/ledger/33333333-3333-4333-8333-333333333333",
            headers=auth_headers(seeded["owner"]),
        )
        assert response.status_code == 404

    def test_profit_and_loss(self, client, seeded, company_url, posted):
        data = client.get(f"{company_url}/reports/profit-loss", headers=auth_headers(seeded["owner"])).json()["data"]
        assert data["total_income"] == 3000
        assert data["total_expense"] == 1200
        assert data["net_profit"] == 1800

    def test_profit_and_loss_respects_dates(self, client, seeded, company_url, posted):
        data = client.get(
            f"{company_url}/reports/profit-loss?end_date=2000-01-01", headers=auth_headers(seeded["owner"])
        ).json()["data"]
        assert data["net_profit"] == 0

    def test_balance_sheet_balances(self, client, seeded, company_url, posted):
        data = client.get(f"{company_url}/reports/balance-sheet", headers=auth_headers(seeded["owner"])).json()["data"]
        assert data["total_assets"] == 11800
        assert data["total_liabilities"] == 0
        assert data["retained_earnings"] == 1800
        assert data["total_equity"] == 11800

    def test_aging_rejects_unknown_type(self, client, seeded, company_url):
        response = client.get(f"{company_url}/reports/aging?type=EMPLOYEE", headers=auth_headers(seeded["owner"]))
        assert response.status_code == 422


class TestBalances:
    def test_heal_restores_ledger_balances(self, client, seeded, company_url, posted, db):
        cash = db.get(Account, posted["cash"].id)
        cash.current_balance = 1
        db.commit()

        response = client.post(f"{company_url}/heal-balances", headers=auth_headers(seeded["owner"]))
        assert response.json()["data"] == {"accounts": 8}
        assert response.json()["message"] == "All account balances have been synchronized with the ledger."

        db.expire_all()
        assert db.get(Account, posted["cash"].id).current_balance == 11800
        assert db.get(Account, posted["capital"].id).current_balance == 10000

    def test_dashboard_stats(self, client, seeded, company_url, posted):
        data = client.get(f"{company_url}/dashboard-stats", headers=auth_headers(seeded["owner"])).json()["data"]
        assert data["revenue_this_month"] == 3000
        assert data["cash_balance"] == 11800
        assert data["total_loan_outstanding"] == 0
        assert data["last_backup"] is None


class TestReconciliation:
    def test_account_is_required(self, client, seeded, company_url):
        response = client.get(f"{company_url}/bank/reconcile-lines", headers=auth_headers(seeded["owner"]))
        assert response.status_code == 422
        assert response.json()["error"]["message"] == "account_id is required"

    def test_empty_line_ids_is_422(self, client, seeded, company_url):
        response = client.post(
            f"{company_url}/bank/mark-reconciled", json={"line_ids": []}, headers=auth_headers(seeded["owner"])
        )
        assert response.status_code == 422

    def test_reconciled_lines_drop_out(self, client, seeded, company_url, posted):
        headers = auth_headers(seeded["accountant"])
        url = f"{company_url}/bank/reconcile-lines?account_id={posted['cash'].id}"
        lines = client.get(url, headers=headers).json()["data"]
        assert len(lines) == 3

        marked = client.post(
            f"{company_url}/bank/mark-reconciled",
            json={"line_ids": [lines[0]["line_id"]]},
            headers=headers,
        )
        assert marked.json()["data"] == {"count": 1}
        assert len(client.get(url, headers=headers).json()["data"]) == 2
