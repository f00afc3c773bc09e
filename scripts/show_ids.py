#!/usr/bin/env python3
# scripts/show_ids.py - Print the first company's id as JSON
import sys
import os
import json

# Add the project root to Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import select

from app.core.db import get_session_maker
from app.models import Company


def main():
    db = get_session_maker()()
    try:
        company = db.execute(select(Company).order_by(Company.created_at)).scalars().first()
        print(json.dumps({"company_id": str(company.id) if company else None}))
    finally:
        db.close()


if __name__ == "__main__":
    main()
