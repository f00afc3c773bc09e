# tests/test_notifications.py - Alert generation and read/delete handling
from datetime import date, timedelta

import pytest

from app.models import Customer, Invoice, JournalEntry, LetterOfCredit, Loan, Notification
from app.services import notification_service

from tests.conftest import auth_headers

TODAY = date(2026, 10, 17)


@pytest.fixture
def events(seeded, db):
    """One of each alert source: overdue invoice, expiring LC, pending journal, maturing loan"""
    company_id = seeded["company"].id
    customer = Customer(company_id=company_id, code="CUS-000001", name="Nordic Apparel AB")
    db.add(customer)
    db.flush()
    db.add(Invoice(
        company_id=company_id, customer_id=customer.id, invoice_number="INV-2026-0001",
        invoice_date=TODAY - timedelta(days=40), due_date=TODAY - timedelta(days=10),
        total=500, total_base=500, status="APPROVED",
    ))
    db.add(LetterOfCredit(
        company_id=company_id, lc_number="LC-77", bank_name="City Bank",
        issue_date=TODAY - timedelta(days=60), expiry_date=TODAY + timedelta(days=2), amount=20000,
    ))
    db.add(JournalEntry(
        company_id=company_id, entry_number="JE-2026-0001", entry_date=TODAY,
        total_debit=10, total_credit=10, status="PENDING_VERIFICATION",
    ))
    db.add(Loan(
        company_id=company_id, loan_number="TL-1", bank_name="City Bank", principal_amount=50000,
        outstanding_balance=42000, start_date=TODAY - timedelta(days=300), end_date=TODAY + timedelta(days=20),
    ))
    db.commit()
    return company_id


class TestGenerate:
    def test_one_alert_per_event(self, db, events):
        created = notification_service.generate(db, events, TODAY)
        db.commit()
        assert created == 4

        by_type = {n.type: n for n in db.query(Notification).filter_by(company_id=events)}
        assert set(by_type) == {"OVERDUE_INVOICE", "LC_EXPIRY", "PENDING_JOURNAL", "LOAN_DUE"}
        assert by_type["OVERDUE_INVOICE"].message.startswith("Invoice INV-2026-0001 is 10 day(s) overdue")
        assert by_type["LC_EXPIRY"].severity == "DANGER"
        assert by_type["LOAN_DUE"].severity == "WARNING"
        assert by_type["PENDING_JOURNAL"].message == "1 journal entry is awaiting review and approval."

    def test_unread_alerts_are_not_repeated(self, db, events):
        notification_service.generate(db, events, TODAY)
        db.commit()
        assert notification_service.generate(db, events, TODAY) == 0

    def test_read_alert_can_fire_again(self, db, events):
        notification_service.generate(db, events, TODAY)
        db.commit()
        notification_service.mark_all_read(db, events)
        db.commit()
        assert notification_service.generate(db, events, TODAY) == 4

    def test_quiet_company_gets_nothing(self, db, seeded):
        assert notification_service.generate(db, seeded["company"].id, TODAY) == 0


class TestRoutes:
    def test_generate_list_and_read(self, client, seeded, company_url, events):
        headers = auth_headers(seeded["owner"])
        generated = client.post(f"{company_url}/notifications/generate", headers=headers).json()["data"]
        assert generated["created"] >= 1

        listing = client.get(f"{company_url}/notifications", headers=headers).json()["data"]
        assert listing["unread_count"] == generated["created"]

        first = listing["notifications"][0]
        read = client.put(f"{company_url}/notifications/{first['id']}/read", headers=headers).json()["data"]
        assert read["is_read"] is True

        listing = client.get(f"{company_url}/notifications", headers=headers).json()["data"]
        assert listing["unread_count"] == generated["created"] - 1
        assert listing["notifications"][-1]["id"] == first["id"]

    def test_read_all_and_delete(self, client, seeded, company_url, events):
        headers = auth_headers(seeded["owner"])
        client.post(f"{company_url}/notifications/generate", headers=headers)

        client.put(f"{company_url}/notifications/read-all", headers=headers)
        listing = client.get(f"{company_url}/notifications", headers=headers).json()["data"]
        assert listing["unread_count"] == 0

        target = listing["notifications"][0]["id"]
        assert client.delete(f"{company_url}/notifications/{target}", headers=headers).status_code == 200
        assert client.delete(f"{company_url}/notifications/{target}", headers=headers).status_code == 404
