# tests/conftest.py - Test configuration: temporary SQLite database, seeded company and client
import sys
import os
import tempfile
from pathlib import Path

# Add the project root to Python path
BASE_DIR = Path(__file__).parent.parent
sys.path.insert(0, str(BASE_DIR))

# Settings are read on import, so the environment must be ready first
TMP_DIR = Path(tempfile.mkdtemp(prefix="accounting-tests-"))
os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = f"sqlite:///{TMP_DIR / 'test.db'}"
os.environ["JWT_SECRET"] = "test-secret-key-that-is-long-enough-1234567890"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["UPLOAD_DIR"] = str(TMP_DIR / "uploads")
os.environ["BACKUP_DIR"] = str(TMP_DIR / "backups")
os.environ["ENABLE_BACKUP_SCHEDULER"] = "false"

import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.core.db import get_db, get_engine, get_session_maker
from app.core.security import create_access_token
from app.core.system_mode import system_mode
from app.models import Base, Account, UserCompany, RoleName
from app.services.auth_service import AuthService
from app.services import company_service


@pytest.fixture(scope="function")
def db():
    """Fresh schema for every test"""
    engine = get_engine()
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = get_session_maker()()
    yield session
    session.close()


@pytest.fixture
def client(db):
    """Client whose requests each get their own session, like production"""
    def override_get_db():
        session = get_session_maker()()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    system_mode.reset()
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
    system_mode.reset()


def auth_headers(user) -> dict:
    return {"Authorization": f"Bearer {create_access_token(str(user.id))}"}


CHART = [
    # key, code, name, type, category
    ("cash", "1000", "Cash in Hand", "ASSET", "CASH"),
    ("bank", "1010", "Bank Account", "ASSET", "BANK"),
    ("ar", "1100", "Accounts Receivable", "ASSET", "AR"),
    ("ap", "2000", "Accounts Payable", "LIABILITY", "AP"),
    ("loan", "2100", "Bank Loan", "LIABILITY", None),
    ("capital", "3000", "Owner Capital", "EQUITY", None),
    ("revenue", "4000", "Export Sales", "INCOME", "REVENUE"),
    ("expense", "5000", "Office Rent", "EXPENSE", None),
]


@pytest.fixture
def seeded(db):
    """
    Admin, an owner with company ACME and its chart of accounts,
    plus an accountant and a manager who belong to the company.
    """
    service = AuthService(db)
    admin = service.create_user(
        "admin@accounting.com", "admin123", "Admin", "User",
        roles=[RoleName.ADMIN.value], max_companies=100,
    )
    owner = service.create_user("owner@example.com", "owner123", "Olivia", "Owner", roles=[RoleName.OWNER.value])
    accountant = service.create_user("accountant@example.com", "acct123", "Adam", "Books", roles=[RoleName.ACCOUNTANT.value])
    manager = service.create_user("manager@example.com", "mgr123", "Mona", "Lead", roles=[RoleName.MANAGER.value])
    service.ensure_role(RoleName.USER.value)

    company = company_service.create_company(db, "Acme Textiles", owner_id=owner.id, code="ACME")
    for user in (accountant, manager):
        db.add(UserCompany(user_id=user.id, company_id=company.id, is_default=True))

    types = company_service.ensure_account_types(db)
    accounts = {}
    for key, code, name, type_name, category in CHART:
        account = Account(
            company_id=company.id,
            account_type_id=types[type_name].id,
            code=code,
            name=name,
            category=category,
            opening_balance=0,
            current_balance=0,
        )
        db.add(account)
        accounts[key] = account
    db.commit()

    return {
        "admin": admin,
        "owner": owner,
        "accountant": accountant,
        "manager": manager,
        "company": company,
        "accounts": accounts,
        "types": types,
    }


@pytest.fixture
def company_url(seeded):
    return f"/api/company/{seeded['company'].id}"
