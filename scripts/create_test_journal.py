#!/usr/bin/env python3
# scripts/create_test_journal.py - Create a balanced 100/100 journal awaiting verification
import sys
import os
import argparse
import time
import uuid
from datetime import date

# Add the project root to Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import select

from app.core.db import db_manager
from app.models import Account, JournalEntry, JournalLine, JournalStatus


def _line(account: Account, position: int, debit: float, credit: float) -> JournalLine:
    return JournalLine(
        account_id=account.id,
        position=position,
        debit=debit,
        credit=credit,
        debit_base=debit,
        credit_base=credit,
        debit_foreign=debit,
        credit_foreign=credit,
        exchange_rate=1,
    )


def main():
    parser = argparse.ArgumentParser(description="Create a test journal entry")
    parser.add_argument("company_id", type=uuid.UUID)
    parser.add_argument("--user", type=uuid.UUID, help="created_by user id")
    args = parser.parse_args()

    try:
        with db_manager.transaction() as db:
            accounts = db.execute(
                select(Account).where(Account.company_id == args.company_id).order_by(Account.code).limit(2)
            ).scalars().all()
            if not accounts:
                print("No account found for company")
                sys.exit(1)
            debit_account = accounts[0]
            credit_account = accounts[-1]
            print(f"Using accounts: {debit_account.code} / {credit_account.code}")

            entry = JournalEntry(
                company_id=args.company_id,
                entry_number=f"T-JE-{int(time.time() * 1000)}",
                entry_date=date.today(),
                description="Test creation",
                total_debit=100,
                total_credit=100,
                status=JournalStatus.PENDING_VERIFICATION.value,
                created_by_id=args.user,
                lines=[_line(debit_account, 0, 100, 0), _line(credit_account, 1, 0, 100)],
            )
            db.add(entry)
    except Exception as e:
        print("---FAILURE---")
        print(e)
        sys.exit(1)

    print("---SUCCESS---")
    print(f"Created journal ID: {entry.id}")


if __name__ == "__main__":
    main()
