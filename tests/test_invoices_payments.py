# tests/test_invoices_payments.py - Invoice totals, approval posting and payment settlement
from datetime import date
import uuid

import pytest

from app.models import Account, Customer, Invoice, JournalEntry
from app.services import numbering

from tests.conftest import auth_headers


@pytest.fixture
def customer(seeded, db):
    customer = Customer(company_id=seeded["company"].id, code="CUS-000001", name="Nordic Apparel AB")
    db.add(customer)
    db.commit()
    return customer


def _invoice_payload(customer, **extra):
    payload = {
        "customer_id": str(customer.id),
        "invoice_date": date.today().isoformat(),
        "items": [
            {"description": "Knitted polo", "quantity": 10, "unit_price": 50, "tax_rate": 10},
            {"description": "Freight", "quantity": 1, "unit_price": 100},
        ],
    }
    payload.update(extra)
    return payload


def _approved_invoice(client, seeded, company_url, customer):
    created = client.post(
        f"{company_url}/invoices", json=_invoice_payload(customer), headers=auth_headers(seeded["accountant"])
    ).json()["data"]
    invoice_id = created["id"]
    client.post(f"{company_url}/invoices/{invoice_id}/submit", headers=auth_headers(seeded["accountant"]))
    client.post(f"{company_url}/invoices/{invoice_id}/verify", headers=auth_headers(seeded["manager"]))
    client.post(f"{company_url}/invoices/{invoice_id}/approve", headers=auth_headers(seeded["owner"]))
    return invoice_id


class TestInvoices:
    def test_totals_are_computed(self, client, seeded, company_url, customer):
        response = client.post(
            f"{company_url}/invoices", json=_invoice_payload(customer), headers=auth_headers(seeded["accountant"])
        )
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["status"] == "DRAFT"
        assert data["invoice_number"] == f"INV-{date.today().year}-0001"
        assert data["subtotal"] == 600
        assert data["tax_amount"] == 50
        assert data["total"] == 650
        assert data["total_base"] == 650
        assert [i["amount"] for i in data["items"]] == [550, 100]

    def test_foreign_currency_total_base(self, client, seeded, company_url, customer):
        payload = _invoice_payload(customer, currency_code="USD", exchange_rate=110)
        data = client.post(f"{company_url}/invoices", json=payload, headers=auth_headers(seeded["owner"])).json()["data"]
        assert data["total"] == 650
        assert data["total_base"] == 71500

    def test_unknown_customer_is_422(self, client, seeded, company_url):
        payload = {
            "customer_id": "22222222-2222-4222-8222-222222222222",
            "invoice_date": date.today().isoformat(),
            "items": [{"description": "Polo", "unit_price": 5}],
        }
        response = client.post(f"{company_url}/invoices", json=payload, headers=auth_headers(seeded["owner"]))
        assert response.status_code == 422

    def test_update_items_recomputes(self, client, seeded, company_url, customer):
        invoice_id = client.post(
            f"{company_url}/invoices", json=_invoice_payload(customer), headers=auth_headers(seeded["accountant"])
        ).json()["data"]["id"]
        response = client.put(
            f"{company_url}/invoices/{invoice_id}",
            json={"items": [{"description": "Sample", "quantity": 2, "unit_price": 25}]},
            headers=auth_headers(seeded["accountant"]),
        )
        data = response.json()["data"]
        assert data["total"] == 50
        assert len(data["items"]) == 1

    def test_approve_posts_receivable_and_revenue(self, client, seeded, company_url, customer, db):
        invoice_id = _approved_invoice(client, seeded, company_url, customer)

        db.expire_all()
        invoice = db.get(Invoice, uuid.UUID(invoice_id))
        assert invoice.status == "APPROVED"
        entry = db.get(JournalEntry, invoice.journal_entry_id)
        assert entry.status == "APPROVED"
        assert entry.description == f"Auto-generated from Invoice {invoice.invoice_number}"
        assert db.get(Account, seeded["accounts"]["ar"].id).current_balance == 650
        assert db.get(Account, seeded["accounts"]["revenue"].id).current_balance == 650

    def test_manager_cannot_approve(self, client, seeded, company_url, customer):
        invoice_id = client.post(
            f"{company_url}/invoices", json=_invoice_payload(customer), headers=auth_headers(seeded["accountant"])
        ).json()["data"]["id"]
        client.post(f"{company_url}/invoices/{invoice_id}/submit", headers=auth_headers(seeded["accountant"]))
        client.post(f"{company_url}/invoices/{invoice_id}/verify", headers=auth_headers(seeded["manager"]))
        response = client.post(f"{company_url}/invoices/{invoice_id}/approve", headers=auth_headers(seeded["manager"]))
        assert response.status_code == 403

    def test_reject_and_retrieve(self, client, seeded, company_url, customer):
        invoice_id = client.post(
            f"{company_url}/invoices", json=_invoice_payload(customer), headers=auth_headers(seeded["accountant"])
        ).json()["data"]["id"]
        client.post(f"{company_url}/invoices/{invoice_id}/submit", headers=auth_headers(seeded["accountant"]))
        rejected = client.post(
            f"{company_url}/invoices/{invoice_id}/reject",
            json={"reason": "Wrong price"},
            headers=auth_headers(seeded["manager"]),
        )
        assert rejected.json()["data"]["status"] == "REJECTED"

        as_manager = client.post(f"{company_url}/invoices/{invoice_id}/retrieve", headers=auth_headers(seeded["manager"]))
        assert as_manager.status_code == 403

        retrieved = client.post(f"{company_url}/invoices/{invoice_id}/retrieve", headers=auth_headers(seeded["accountant"]))
        assert retrieved.json()["data"]["status"] == "DRAFT"

    def test_list_filters_by_status(self, client, seeded, company_url, customer):
        headers = auth_headers(seeded["accountant"])
        client.post(f"{company_url}/invoices", json=_invoice_payload(customer), headers=headers)
        second = client.post(f"{company_url}/invoices", json=_invoice_payload(customer), headers=headers).json()["data"]
        client.post(f"{company_url}/invoices/{second['id']}/submit", headers=headers)

        drafts = client.get(f"{company_url}/invoices?status=DRAFT", headers=headers).json()["data"]
        assert len(drafts) == 1


class TestPayments:
    def test_amount_must_be_positive(self, client, seeded, company_url):
        response = client.post(
            f"{company_url}/payments", json={"amount": 0}, headers=auth_headers(seeded["accountant"])
        )
        assert response.status_code == 422
        assert response.json()["error"]["message"] == "Valid payment amount is required"

    def test_full_payment_marks_invoice_paid(self, client, seeded, company_url, customer, db):
        invoice_id = _approved_invoice(client, seeded, company_url, customer)
        bank = seeded["accounts"]["bank"]

        response = client.post(
            f"{company_url}/payments",
            json={"amount": 650, "invoice_id": invoice_id, "account_id": str(bank.id)},
            headers=auth_headers(seeded["accountant"]),
        )
        assert response.status_code == 201
        payment = response.json()["data"]
        assert payment["payment_number"].startswith("PAY-")
        assert payment["customer_id"] == str(customer.id)

        invoice = client.get(f"{company_url}/invoices/{invoice_id}", headers=auth_headers(seeded["owner"])).json()["data"]
        assert invoice["status"] == "PAID"
        assert invoice["amount_paid"] == 650

        db.expire_all()
        entry = db.get(JournalEntry, uuid.UUID(payment["journal_entry_id"]))
        assert entry.entry_number == f"JV-PMT-{payment['id'][:8]}"
        assert db.get(Account, bank.id).current_balance == 650
        assert db.get(Account, seeded["accounts"]["ar"].id).current_balance == 0

    def test_partial_payment_keeps_invoice_open(self, client, seeded, company_url, customer):
        invoice_id = _approved_invoice(client, seeded, company_url, customer)
        client.post(
            f"{company_url}/payments",
            json={"amount": 200, "invoice_id": invoice_id, "account_id": str(seeded["accounts"]["cash"].id)},
            headers=auth_headers(seeded["accountant"]),
        )
        invoice = client.get(f"{company_url}/invoices/{invoice_id}", headers=auth_headers(seeded["owner"])).json()["data"]
        assert invoice["status"] == "APPROVED"
        assert invoice["amount_paid"] == 200

    def test_invoice_payment_needs_settlement_account(self, client, seeded, company_url, customer):
        invoice_id = _approved_invoice(client, seeded, company_url, customer)
        response = client.post(
            f"{company_url}/payments",
            json={"amount": 100, "invoice_id": invoice_id},
            headers=auth_headers(seeded["accountant"]),
        )
        assert response.status_code == 422

    def test_standalone_payment_is_listed(self, client, seeded, company_url):
        client.post(
            f"{company_url}/payments",
            json={"amount": 75.5, "method": "CASH", "reference": "Petty cash"},
            headers=auth_headers(seeded["accountant"]),
        )
        listing = client.get(f"{company_url}/payments", headers=auth_headers(seeded["owner"])).json()["data"]
        assert [p["amount"] for p in listing] == [75.5]
        assert listing[0]["journal_entry_id"] is None

    def test_payments_in_the_same_millisecond_get_distinct_numbers(self, client, seeded, company_url, monkeypatch):
        monkeypatch.setattr(numbering, "_epoch_ms", lambda: 1_767_225_600_000)
        headers = auth_headers(seeded["accountant"])

        numbers = []
        for amount in (10, 20):
            response = client.post(f"{company_url}/payments", json={"amount": amount}, headers=headers)
            assert response.status_code == 201
            numbers.append(response.json()["data"]["payment_number"])

        assert len(set(numbers)) == 2
        assert all(n.startswith("PAY-") for n in numbers)
