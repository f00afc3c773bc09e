# app/services/notification_service.py - Company alerts derived from ledger state
from datetime import date, timedelta
from typing import Optional, Dict, Any
import logging
import uuid

from sqlalchemy import select, func, update
from sqlalchemy.orm import Session

from app.models.accounting import JournalEntry, JournalStatus
from app.models.finance import Loan, LetterOfCredit
from app.models.invoice import Invoice, InvoiceStatus
from app.models.notification import Notification, NotificationType, Severity

logger = logging.getLogger(__name__)


def notify(
    db: Session,
    company_id: uuid.UUID,
    type_: NotificationType,
    severity: Severity,
    title: str,
    message: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[Any] = None,
) -> Notification:
    notification = Notification(
        company_id=company_id,
        type=type_.value,
        severity=severity.value,
        title=title,
        message=message,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
    )
    db.add(notification)
    return notification


def _has_unread(db: Session, company_id, type_: NotificationType, entity_id: Optional[Any]) -> bool:
    query = select(Notification.id).where(
        Notification.company_id == company_id,
        Notification.type == type_.value,
        Notification.is_read.is_(False),
    )
    if entity_id is None:
        query = query.where(Notification.entity_id.is_(None))
    else:
        query = query.where(Notification.entity_id == str(entity_id))
    return db.execute(query.limit(1)).first() is not None


def generate(db: Session, company_id: uuid.UUID, today: Optional[date] = None) -> int:
    """
    Scan for overdue invoices, expiring LCs, pending journals and maturing loans.
    An event that already has an unread alert is skipped. Returns the number created.
    """
    today = today or date.today()
    created = 0

    overdue = db.execute(
        select(Invoice)
        .where(
            Invoice.company_id == company_id,
            Invoice.status == InvoiceStatus.APPROVED.value,
            Invoice.due_date < today,
        )
        .limit(10)
    ).scalars().all()
    for inv in overdue:
        if _has_unread(db, company_id, NotificationType.OVERDUE_INVOICE, inv.id):
            continue
        days = (today - inv.due_date).days
        notify(
            db, company_id, NotificationType.OVERDUE_INVOICE, Severity.DANGER,
            f"Overdue Invoice: {inv.invoice_number}",
            f"Invoice {inv.invoice_number} is {days} day(s) overdue. Amount: {inv.total_base:,.2f} BDT.",
            "Invoice", inv.id,
        )
        created += 1

    expiring = db.execute(
        select(LetterOfCredit)
        .where(
            LetterOfCredit.company_id == company_id,
            LetterOfCredit.status == "OPEN",
            LetterOfCredit.expiry_date >= today,
            LetterOfCredit.expiry_date <= today + timedelta(days=7),
        )
        .limit(10)
    ).scalars().all()
    for lc in expiring:
        if _has_unread(db, company_id, NotificationType.LC_EXPIRY, lc.id):
            continue
        days_left = (lc.expiry_date - today).days
        notify(
            db, company_id, NotificationType.LC_EXPIRY,
            Severity.DANGER if days_left <= 3 else Severity.WARNING,
            f"LC Expiry: {lc.lc_number}",
            f"LC {lc.lc_number} expires in {days_left} day(s). Value: {lc.amount:,.2f} {lc.currency}.",
            "LC", lc.id,
        )
        created += 1

    pending = db.execute(
        select(func.count(JournalEntry.id)).where(
            JournalEntry.company_id == company_id,
            JournalEntry.status == JournalStatus.PENDING_VERIFICATION.value,
        )
    ).scalar_one()
    if pending and not _has_unread(db, company_id, NotificationType.PENDING_JOURNAL, None):
        noun = "entries are" if pending > 1 else "entry is"
        notify(
            db, company_id, NotificationType.PENDING_JOURNAL, Severity.WARNING,
            "Journals Pending Approval",
            f"{pending} journal {noun} awaiting review and approval.",
            "JournalEntry",
        )
        created += 1

    maturing = db.execute(
        select(Loan)
        .where(
            Loan.company_id == company_id,
            Loan.status == "ACTIVE",
            Loan.end_date >= today,
            Loan.end_date <= today + timedelta(days=30),
        )
        .limit(5)
    ).scalars().all()
    for loan in maturing:
        if _has_unread(db, company_id, NotificationType.LOAN_DUE, loan.id):
            continue
        days_left = (loan.end_date - today).days
        notify(
            db, company_id, NotificationType.LOAN_DUE, Severity.WARNING,
            f"Loan Maturity: {loan.loan_number}",
            f"Loan {loan.loan_number} matures in {days_left} day(s). Outstanding: {loan.outstanding_balance:,.2f} BDT.",
            "Loan", loan.id,
        )
        created += 1

    if created:
        logger.info(f"Generated {created} notification(s) for company {company_id}")
    return created


def list_for_company(db: Session, company_id: uuid.UUID) -> Dict[str, Any]:
    """Unread first, then newest; at most 50"""
    rows = db.execute(
        select(Notification)
        .where(Notification.company_id == company_id)
        .order_by(Notification.is_read.asc(), Notification.created_at.desc())
        .limit(50)
    ).scalars().all()
    unread = db.execute(
        select(func.count(Notification.id)).where(
            Notification.company_id == company_id, Notification.is_read.is_(False)
        )
    ).scalar_one()
    return {"notifications": [as_dict(n) for n in rows], "unread_count": unread}


def mark_all_read(db: Session, company_id: uuid.UUID) -> None:
    db.execute(
        update(Notification)
        .where(Notification.company_id == company_id, Notification.is_read.is_(False))
        .values(is_read=True)
    )


def as_dict(n: Notification) -> Dict[str, Any]:
    return {
        "id": n.id,
        "type": n.type,
        "severity": n.severity,
        "title": n.title,
        "message": n.message,
        "entity_type": n.entity_type,
        "entity_id": n.entity_id,
        "is_read": n.is_read,
        "created_at": n.created_at,
    }