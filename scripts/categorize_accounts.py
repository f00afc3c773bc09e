#!/usr/bin/env python3
# scripts/categorize_accounts.py - Assign cash-flow types to accounts from their names
import sys
import os
import argparse
import uuid

# Add the project root to Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.core.db import get_session_maker
from app.services.categorization import categorize_accounts


def main():
    parser = argparse.ArgumentParser(description="Categorize accounts as OPERATING, INVESTING or FINANCING")
    parser.add_argument("--company", type=uuid.UUID, help="Only this company's accounts")
    parser.add_argument("--dry-run", action="store_true", help="Report without writing")
    args = parser.parse_args()

    db = get_session_maker()()
    try:
        counts = categorize_accounts(db, company_id=args.company, dry_run=args.dry_run)
        if args.dry_run:
            db.rollback()
        else:
            db.commit()
    except Exception as e:
        db.rollback()
        print(f"❌ Categorization failed: {e}")
        sys.exit(1)
    finally:
        db.close()

    for key in ("OPERATING", "INVESTING", "FINANCING", "NONE"):
        print(f"{key:<10} {counts[key]}")
    print(f"{'updated':<10} {counts['updated']}{' (dry run)' if args.dry_run else ''}")


if __name__ == "__main__":
    main()
