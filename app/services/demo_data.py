# app/services/demo_data.py - Fixed data served while the database is unreachable
import uuid

DEMO_USER_ID = uuid.UUID("00000000-0000-4000-8000-00000000de00")
DEMO_COMPANY_ID = uuid.UUID("00000000-0000-4000-8000-00000000de01")

DEMO_COMPANY = {
    "id": DEMO_COMPANY_ID,
    "code": "DEMO01",
    "name": "BrainyFlavors Demo Corp (OFFLINE)",
    "base_currency": "BDT",
    "is_active": True,
    "address": "Demo Street, Dhaka",
    "city": "Dhaka",
    "country": "Bangladesh",
}

DEMO_USER = {
    "id": DEMO_USER_ID,
    "email": "demo@example.com",
    "first_name": "Demo",
    "last_name": "User",
    "roles": ["Admin"],
    "is_admin": True,
    "company_id": DEMO_COMPANY_ID,
}

_ASSET = {"name": "ASSET", "type": "DEBIT"}
_LIABILITY = {"name": "LIABILITY", "type": "CREDIT"}
_EQUITY = {"name": "EQUITY", "type": "CREDIT"}
_INCOME = {"name": "INCOME", "type": "CREDIT"}
_EXPENSE = {"name": "EXPENSE", "type": "DEBIT"}

# (code, name, type, opening, current)
_ACCOUNTS = [
    ("1001", "Cash in Hand", _ASSET, 500000, 500000),
    ("1002", "Dutch Bangla Bank Ltd", _ASSET, 2500000, 2500000),
    ("1201", "Accounts Receivable", _ASSET, 1000000, 1200000),
    ("2001", "Accounts Payable", _LIABILITY, 800000, 800000),
    ("2101", "Bank Loan PV - DBBL", _LIABILITY, 5000000, 5000000),
    ("3001", "Capital - Owner A", _EQUITY, 10000000, 10000000),
    ("4001", "Export Sales (RMG)", _INCOME, 0, 4500000),
    ("5001", "Fabric Purchase", _EXPENSE, 0, 1500000),
    ("5101", "Utility Bill - Gas", _EXPENSE, 0, 85000),
    ("5201", "Salary & Allowances", _EXPENSE, 0, 450000),
]


def demo_accounts() -> list[dict]:
    return [
        {
            "id": f"demo-acc-{i}",
            "company_id": DEMO_COMPANY_ID,
            "code": code,
            "name": name,
            "account_type": account_type,
            "opening_balance": opening,
            "current_balance": current,
            "cash_flow_type": "NONE",
            "is_active": True,
            "allow_negative": False,
        }
        for i, (code, name, account_type, opening, current) in enumerate(_ACCOUNTS, start=1)
    ]


def demo_trial_balance() -> dict:
    rows = []
    for code, name, account_type, _opening, current in _ACCOUNTS:
        debit_side = account_type["type"] == "DEBIT"
        rows.append({
            "account_code": code,
            "account_name": name,
            "account_type": account_type["name"],
            "debit": current if debit_side else 0,
            "credit": 0 if debit_side else current,
            "balance": current if debit_side else -current,
        })
    return {
        "accounts": rows,
        "total_debit": sum(r["debit"] for r in rows),
        "total_credit": sum(r["credit"] for r in rows),
    }
