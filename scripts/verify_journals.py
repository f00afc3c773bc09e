#!/usr/bin/env python3
# scripts/verify_journals.py - List a company's journals, newest first
import sys
import os
import argparse
import uuid

# Add the project root to Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import select

from app.core.db import get_session_maker
from app.models import JournalEntry


def main():
    parser = argparse.ArgumentParser(description="List journals of one company")
    parser.add_argument("company_id", type=uuid.UUID)
    args = parser.parse_args()

    db = get_session_maker()()
    try:
        journals = db.execute(
            select(JournalEntry)
            .where(JournalEntry.company_id == args.company_id)
            .order_by(JournalEntry.created_at.desc())
        ).scalars().all()
        print("---START---")
        for j in journals:
            print(f"{j.entry_number} | {j.status} | {j.created_at}")
        print("---END---")
    finally:
        db.close()


if __name__ == "__main__":
    main()
