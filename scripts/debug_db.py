#!/usr/bin/env python3
# scripts/debug_db.py - Print every user with their roles
import sys
import os

# Add the project root to Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import select

from app.core.db import get_session_maker
from app.models import User


def main():
    db = get_session_maker()()
    try:
        users = db.execute(select(User).order_by(User.email)).scalars().all()
        print("--- USERS IN DATABASE ---")
        for user in users:
            print(f"Email: {user.email}")
            print(f"Roles: {', '.join(user.roles)}")
            print("------------------------")
    finally:
        db.close()


if __name__ == "__main__":
    main()
