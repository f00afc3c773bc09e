#!/usr/bin/env python3
# scripts/seed.py - Seed roles, currencies, account types and the platform admin
import sys
import os
import argparse

# Add the project root to Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import select

from app.core.db import get_engine, get_session_maker
from app.core.security import hash_password
from app.models import Base, Role, Currency, User, RoleName
from app.services.auth_service import AuthService
from app.services.company_service import ensure_account_types

ROLES = [
    (RoleName.ADMIN.value, "System Administrator"),
    (RoleName.OWNER.value, "Company Owner"),
    (RoleName.MANAGER.value, "Manager - can verify"),
    (RoleName.ACCOUNTANT.value, "Accountant - can create entries"),
    (RoleName.USER.value, "Basic user"),
]

CURRENCIES = [
    ("BDT", "Bangladeshi Taka", "৳"),
    ("USD", "US Dollar", "$"),
    ("EUR", "Euro", "€"),
    ("GBP", "British Pound", "£"),
    ("INR", "Indian Rupee", "₹"),
]


def seed(db, admin_email: str, admin_password: str):
    """Idempotent: existing rows are left as they are"""
    for name, description in ROLES:
        if not db.execute(select(Role).where(Role.name == name)).scalar_one_or_none():
            db.add(Role(name=name, description=description, is_system=True))
    db.flush()
    print("✅ Roles created")

    for code, name, symbol in CURRENCIES:
        if not db.execute(select(Currency).where(Currency.code == code)).scalar_one_or_none():
            db.add(Currency(code=code, name=name, symbol=symbol))
    db.flush()
    print("✅ Currencies created")

    service = AuthService(db)
    admin = service.get_by_email(admin_email)
    if admin is None:
        admin = User(
            email=admin_email.lower(),
            password_hash=hash_password(admin_password),
            first_name="Admin",
            last_name="User",
            is_active=True,
            max_companies=100,
        )
        db.add(admin)
        db.flush()
    service.assign_role(admin, RoleName.ADMIN.value)
    print(f"✅ Admin user ready: {admin.email}")

    ensure_account_types(db)
    print("✅ Account types created")


def main():
    parser = argparse.ArgumentParser(description="Seed reference data and the admin account")
    parser.add_argument("--admin-email", default="admin@accounting.com")
    parser.add_argument("--admin-password", default="admin123")
    parser.add_argument("--create-tables", action="store_true", help="Create missing tables first")
    args = parser.parse_args()

    print("🌱 Starting database seed...")
    if args.create_tables:
        Base.metadata.create_all(bind=get_engine())

    db = get_session_maker()()
    try:
        seed(db, args.admin_email, args.admin_password)
        db.commit()
        print("🎉 Seed completed successfully!")
    except Exception as e:
        db.rollback()
        print(f"❌ Seed error: {e}")
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
