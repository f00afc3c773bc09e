# tests/test_categorize.py - Cash-flow keyword rules
import pytest
from sqlalchemy import select

from app.models import Account
from app.services.categorization import categorize_accounts, classify


@pytest.mark.parametrize("name,expected", [
    ("Export Sales", "OPERATING"),
    ("Factory Electricity", "OPERATING"),
    ("Knitting Machine", "INVESTING"),
    ("Fixed Asset - Vehicles", "INVESTING"),
    ("Bank Loan", "FINANCING"),
    ("Owner Capital", "FINANCING"),
    ("Cash in Hand", "NONE"),
    ("Current Asset Bank", "NONE"),
])
def test_classify(name, expected):
    assert classify(name).value == expected


@pytest.mark.parametrize("name", ["Loan Interest Income", "Loan Against Machinery", "Sales Loan Account"])
def test_loan_is_always_financing(name):
    assert classify(name).value == "FINANCING"


def test_operating_keywords_win_over_other_financing():
    assert classify("Capital Machinery Income").value == "OPERATING"


def test_categorize_writes_non_none(seeded, db):
    counts = categorize_accounts(db, company_id=seeded["company"].id)
    db.commit()

    assert counts["OPERATING"] == 1
    assert counts["FINANCING"] == 2
    assert counts["NONE"] == 5
    assert counts["updated"] == 3
    assert db.get(Account, seeded["accounts"]["loan"].id).cash_flow_type == "FINANCING"
    assert db.get(Account, seeded["accounts"]["cash"].id).cash_flow_type == "NONE"


def test_dry_run_writes_nothing(seeded, db):
    counts = categorize_accounts(db, company_id=seeded["company"].id, dry_run=True)
    db.rollback()

    assert counts["FINANCING"] == 2
    assert counts["updated"] == 0
    assert db.get(Account, seeded["accounts"]["revenue"].id).cash_flow_type == "NONE"


def test_every_loan_account_ends_up_financing(seeded, db):
    company = seeded["company"]
    income = seeded["types"]["INCOME"]
    db.add(Account(
        company_id=company.id, account_type_id=income.id, code="4100",
        name="Loan Interest Income", opening_balance=0, current_balance=0,
    ))
    db.commit()

    categorize_accounts(db, company_id=company.id)
    db.commit()

    loans = db.execute(
        select(Account).where(Account.company_id == company.id, Account.name.ilike("%loan%"))
    ).scalars().all()
    assert len(loans) == 2
    assert {a.cash_flow_type for a in loans} == {"FINANCING"}
