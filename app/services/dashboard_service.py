# app/services/dashboard_service.py - Headline figures for the company dashboard
from datetime import date, timedelta
from typing import Optional, Dict, Any, List
import uuid

from sqlalchemy import select, func, or_
from sqlalchemy.orm import Session

from app.models.accounting import Account, AccountType, JournalEntry, JournalLine, JournalStatus
from app.models.backup import BackupLog
from app.models.notification import Notification
from app.services import notification_service


def _movement(
    db: Session,
    company_id: uuid.UUID,
    type_name: str,
    name_patterns: List[str] = (),
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> tuple:
    """(Σ debit_base, Σ credit_base) over approved lines of matching accounts"""
    query = (
        select(
            func.coalesce(func.sum(JournalLine.debit_base), 0),
            func.coalesce(func.sum(JournalLine.credit_base), 0),
        )
        .join(JournalEntry, JournalEntry.id == JournalLine.journal_entry_id)
        .join(Account, Account.id == JournalLine.account_id)
        .join(AccountType, AccountType.id == Account.account_type_id)
        .where(
            JournalEntry.company_id == company_id,
            JournalEntry.status == JournalStatus.APPROVED.value,
            AccountType.name == type_name,
        )
    )
    if name_patterns:
        query = query.where(or_(*[func.lower(Account.name).contains(p) for p in name_patterns]))
    if start:
        query = query.where(JournalEntry.entry_date >= start)
    if end:
        query = query.where(JournalEntry.entry_date <= end)
    debit, credit = db.execute(query).one()
    return float(debit), float(credit)


def _alert_kind(severity: str) -> str:
    return {"DANGER": "danger", "WARNING": "warning"}.get(severity, "info")


def stats(db: Session, company_id: uuid.UUID, today: Optional[date] = None) -> Dict[str, Any]:
    today = today or date.today()
    notification_service.generate(db, company_id, today)
    db.flush()

    month_start = today.replace(day=1)
    last_month_end = month_start - timedelta(days=1)
    last_month_start = last_month_end.replace(day=1)

    d, c = _movement(db, company_id, "INCOME", start=month_start)
    revenue_this_month = c - d
    d, c = _movement(db, company_id, "INCOME", start=last_month_start, end=last_month_end)
    revenue_last_month = c - d

    if revenue_last_month > 0:
        growth = (revenue_this_month - revenue_last_month) / revenue_last_month * 100
    elif revenue_this_month > 0:
        growth = 100.0
    else:
        growth = 0.0

    d, c = _movement(db, company_id, "ASSET", ["cash", "bank"])
    cash_balance = d - c
    d, c = _movement(db, company_id, "ASSET", ["receivable"])
    receivables = d - c
    d, c = _movement(db, company_id, "LIABILITY", ["payable"])
    payables = c - d
    d, c = _movement(db, company_id, "LIABILITY", ["loan"])
    loans = c - d

    obligations = payables + loans
    current_ratio = (cash_balance + receivables) / obligations if obligations > 0 else 0

    unread = db.execute(
        select(Notification)
        .where(Notification.company_id == company_id, Notification.is_read.is_(False))
        .order_by(Notification.created_at.desc())
        .limit(10)
    ).scalars().all()
    unread_count = db.execute(
        select(func.count(Notification.id)).where(
            Notification.company_id == company_id, Notification.is_read.is_(False)
        )
    ).scalar_one()

    last_backup = db.execute(
        select(BackupLog)
        .where(BackupLog.status == "SUCCESS")
        .order_by(BackupLog.created_at.desc())
        .limit(1)
    ).scalar_one_or_none()

    return {
        "revenue_this_month": round(revenue_this_month, 2),
        "revenue_last_month": round(revenue_last_month, 2),
        "growth_percent": round(growth, 2),
        "cash_balance": round(cash_balance, 2),
        "total_receivables": round(receivables, 2),
        "total_payables": round(payables, 2),
        "total_loan_outstanding": round(loans, 2),
        "net_cash_position": round(cash_balance + receivables - payables - loans, 2),
        "current_ratio": round(current_ratio, 2),
        "alerts": [
            {
                "id": n.id,
                "type": _alert_kind(n.severity),
                "title": n.title,
                "message": n.message,
                "created_at": n.created_at,
            }
            for n in unread
        ],
        "unread_count": unread_count,
        "last_backup": (
            {"file_name": last_backup.file_name, "created_at": last_backup.created_at, "file_size": last_backup.file_size}
            if last_backup else None
        ),
    }
