# app/services/journal_service.py - Double-entry journal lifecycle and balance posting
from datetime import date, datetime
from typing import Optional, List, Iterable, Tuple
import logging
import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.errors import ForbiddenError, NotFoundError, ValidationError
from app.models.accounting import Account, JournalEntry, JournalLine, JournalStatus
from app.models.notification import NotificationType, Severity
from app.models.user import RoleName, User
from app.schemas.ledger import JournalCreate
from app.services import notification_service
from app.services.numbering import next_journal_number

logger = logging.getLogger(__name__)

OWNER = RoleName.OWNER.value
ADMIN = RoleName.ADMIN.value
MANAGER = RoleName.MANAGER.value
ACCOUNTANT = RoleName.ACCOUNTANT.value

BALANCE_TOLERANCE = 0.01
LIQUID_CATEGORIES = ("CASH", "BANK")


def is_owner_or_admin(role: str) -> bool:
    return role in (OWNER, ADMIN)


# Status/role matrix shared by journals and invoices

def can_edit(status: str, role: str) -> bool:
    if is_owner_or_admin(role):
        return True
    if role == ACCOUNTANT:
        return status in (JournalStatus.DRAFT.value, JournalStatus.REJECTED.value)
    return False


def can_delete(status: str, role: str) -> bool:
    if is_owner_or_admin(role) or role == ACCOUNTANT:
        return status == JournalStatus.DRAFT.value
    return False


def can_verify(status: str, role: str) -> bool:
    if is_owner_or_admin(role) or role == MANAGER:
        return status == JournalStatus.PENDING_VERIFICATION.value
    return False


def can_reject(status: str, role: str) -> bool:
    if is_owner_or_admin(role) or role == MANAGER:
        return status in (
            JournalStatus.PENDING_VERIFICATION.value,
            JournalStatus.PENDING_APPROVAL.value,
            JournalStatus.VERIFIED.value,
        )
    return False


def can_approve(status: str, role: str) -> bool:
    if is_owner_or_admin(role):
        return status in (JournalStatus.PENDING_APPROVAL.value, JournalStatus.VERIFIED.value)
    return False


def end_of_today() -> datetime:
    return datetime.combine(date.today(), datetime.max.time())


def check_entry_date(entry_date: Optional[date], role: str, what: str = "Transaction") -> date:
    if entry_date is None:
        raise ValidationError(f"{what} date is required")
    if datetime.combine(entry_date, datetime.min.time()) > end_of_today() and not is_owner_or_admin(role):
        raise ForbiddenError(f"Future {what.lower()} dates are only allowed for owners")
    return entry_date


def get_entry(db: Session, company_id: uuid.UUID, journal_id: uuid.UUID) -> JournalEntry:
    entry = db.execute(
        select(JournalEntry).where(JournalEntry.id == journal_id, JournalEntry.company_id == company_id)
    ).scalar_one_or_none()
    if not entry:
        raise NotFoundError("Journal not found")
    return entry


def list_entries(db: Session, company_id: uuid.UUID, status: Optional[str] = None) -> List[JournalEntry]:
    query = select(JournalEntry).where(JournalEntry.company_id == company_id)
    if status:
        query = query.where(JournalEntry.status == status.upper())
    return list(db.execute(query.order_by(JournalEntry.entry_date.desc(), JournalEntry.created_at.desc())).scalars().all())


def _company_accounts(db: Session, company_id: uuid.UUID, account_ids: Iterable[uuid.UUID]) -> dict:
    ids = set(account_ids)
    accounts = db.execute(
        select(Account).where(Account.company_id == company_id, Account.id.in_(ids))
    ).scalars().all()
    found = {a.id: a for a in accounts}
    missing = ids - set(found)
    if missing:
        raise ValidationError("One or more accounts do not belong to this company")
    return found


def create_entry(db: Session, company_id: uuid.UUID, user: User, role: str, data: JournalCreate) -> JournalEntry:
    """
    Validate and store a new journal entry with its lines. The caller commits.

    Base amounts are raw × exchange rate, foreign amounts keep the raw value,
    and the entry totals are the sums of the base amounts.
    """
    if not data.lines:
        raise ValidationError("Journal lines are required")
    entry_date = check_entry_date(data.entry_date, role)
    _company_accounts(db, company_id, (line.account_id for line in data.lines))

    lines = []
    for position, line in enumerate(data.lines):
        rate = line.exchange_rate or data.exchange_rate or 1
        lines.append(JournalLine(
            account_id=line.account_id,
            position=position,
            description=line.description,
            debit=line.debit,
            credit=line.credit,
            debit_base=round(line.debit * rate, 2),
            credit_base=round(line.credit * rate, 2),
            debit_foreign=line.debit,
            credit_foreign=line.credit,
            exchange_rate=rate,
            currency_code=line.currency_code or data.currency_code,
            branch_id=line.branch_id,
            project_id=line.project_id,
            cost_center_id=line.cost_center_id,
            customer_id=line.customer_id,
            vendor_id=line.vendor_id,
        ))

    total_debit = round(sum(l.debit_base for l in lines), 2)
    total_credit = round(sum(l.credit_base for l in lines), 2)
    if abs(total_debit - total_credit) > BALANCE_TOLERANCE:
        raise ValidationError("Journal entry is not balanced")

    status = (
        JournalStatus.PENDING_VERIFICATION.value
        if role == ACCOUNTANT or is_owner_or_admin(role)
        else JournalStatus.DRAFT.value
    )
    entry = JournalEntry(
        company_id=company_id,
        entry_number=next_journal_number(db, company_id, entry_date),
        entry_date=entry_date,
        description=data.description,
        reference=data.reference,
        total_debit=total_debit,
        total_credit=total_credit,
        status=status,
        created_by_id=user.id,
        lines=lines,
    )
    db.add(entry)
    db.flush()

    if status == JournalStatus.PENDING_VERIFICATION.value:
        notification_service.notify(
            db, company_id, NotificationType.PENDING_JOURNAL, Severity.WARNING,
            "New Voucher Awaiting Verification",
            f"Journal {entry.entry_number} has been created and is awaiting verification.",
            "JournalEntry", entry.id,
        )

    logger.info(f"Journal {entry.entry_number} created as {status} by {user.email}")
    return entry


def post_lines(db: Session, lines: List[JournalLine], allow_overdraft: bool) -> None:
    """
    Move each line's account balance by its signed base amount.
    A CASH or BANK account may not go below zero unless it allows negatives
    or the caller may override.
    """
    for line in lines:
        account = line.account if line.account is not None else db.get(Account, line.account_id)
        change = account.signed(line.debit_base, line.credit_base)
        projected = round((account.current_balance or 0) + change, 2)

        if (
            account.category in LIQUID_CATEGORIES
            and projected < 0
            and not account.allow_negative
            and not allow_overdraft
        ):
            raise ValidationError(
                f"Transaction rejected: {account.name} balance ({projected:.2f}) would be negative. "
                f"Overdraft not allowed for this account."
            )
        account.current_balance = projected
    db.flush()


def approve(db: Session, entry: JournalEntry, user: User, role: str) -> JournalEntry:
    if not can_approve(entry.status, role):
        raise ForbiddenError("Cannot approve this journal")

    entry.status = JournalStatus.APPROVED.value
    entry.approved_by_id = user.id
    entry.approved_at = datetime.utcnow()
    post_lines(db, entry.lines, allow_overdraft=is_owner_or_admin(role))

    logger.info(f"Journal {entry.entry_number} approved by {user.email}")
    return entry


def verify(entry: JournalEntry, user: User, role: str) -> JournalEntry:
    if not can_verify(entry.status, role):
        raise ForbiddenError("Cannot verify this journal")
    entry.status = JournalStatus.VERIFIED.value
    entry.verified_by_id = user.id
    entry.verified_at = datetime.utcnow()
    return entry


def submit(db: Session, entry: JournalEntry, role: str) -> JournalEntry:
    if role not in (ACCOUNTANT, OWNER):
        raise ForbiddenError("Only Accountants or Owners can submit journals")
    if entry.status not in (JournalStatus.DRAFT.value, JournalStatus.REJECTED.value):
        raise ValidationError("Only DRAFT or REJECTED journals can be submitted")

    entry.status = JournalStatus.PENDING_VERIFICATION.value
    notification_service.notify(
        db, entry.company_id, NotificationType.PENDING_JOURNAL, Severity.WARNING,
        "Voucher Submitted for Verification",
        f"Journal {entry.entry_number} has been submitted and is awaiting verification.",
        "JournalEntry", entry.id,
    )
    return entry


def reject(entry: JournalEntry, role: str, reason: str) -> JournalEntry:
    if not can_reject(entry.status, role):
        raise ForbiddenError("Cannot reject this journal")
    entry.status = JournalStatus.REJECTED.value
    entry.rejection_reason = reason
    return entry


def retrieve(entry: JournalEntry, role: str) -> JournalEntry:
    if role not in (ACCOUNTANT, OWNER):
        raise ForbiddenError("Only Accountants or Owners can retrieve journals")
    if entry.status == JournalStatus.APPROVED.value:
        raise ForbiddenError("Approved journals cannot be retrieved")
    entry.status = JournalStatus.DRAFT.value
    entry.rejection_reason = None
    return entry


def create_posted_entry(
    db: Session,
    company_id: uuid.UUID,
    user_id: Optional[uuid.UUID],
    entry_date: date,
    description: str,
    reference: Optional[str],
    lines: List[Tuple[Account, float, float, str]],
    entry_number: Optional[str] = None,
) -> JournalEntry:
    """
    Record an already-approved entry generated by the system (invoice approval,
    payments) and post it. lines are (account, debit, credit, description).
    """
    journal_lines = [
        JournalLine(
            account_id=account.id,
            account=account,
            position=position,
            description=text,
            debit=debit,
            credit=credit,
            debit_base=debit,
            credit_base=credit,
            debit_foreign=debit,
            credit_foreign=credit,
            exchange_rate=1,
        )
        for position, (account, debit, credit, text) in enumerate(lines)
    ]
    total = round(sum(l.debit_base for l in journal_lines), 2)
    now = datetime.utcnow()

    entry = JournalEntry(
        company_id=company_id,
        entry_number=entry_number or next_journal_number(db, company_id, entry_date),
        entry_date=entry_date,
        description=description,
        reference=reference,
        total_debit=total,
        total_credit=round(sum(l.credit_base for l in journal_lines), 2),
        status=JournalStatus.APPROVED.value,
        created_by_id=user_id,
        approved_by_id=user_id,
        approved_at=now,
        lines=journal_lines,
    )
    db.add(entry)
    db.flush()
    post_lines(db, journal_lines, allow_overdraft=True)
    return entry


def heal_balances(db: Session, company_id: uuid.UUID) -> int:
    """Recompute every account's current balance from its opening balance and approved lines"""
    accounts = db.execute(select(Account).where(Account.company_id == company_id)).scalars().all()
    rows = db.execute(
        select(JournalLine.account_id, JournalLine.debit_base, JournalLine.credit_base)
        .join(JournalEntry, JournalEntry.id == JournalLine.journal_entry_id)
        .where(
            JournalEntry.company_id == company_id,
            JournalEntry.status == JournalStatus.APPROVED.value,
        )
    ).all()

    movements: dict = {}
    for account_id, debit, credit in rows:
        d, c = movements.get(account_id, (0.0, 0.0))
        movements[account_id] = (d + (debit or 0), c + (credit or 0))

    for account in accounts:
        debit, credit = movements.get(account.id, (0.0, 0.0))
        account.current_balance = round((account.opening_balance or 0) + account.signed(debit, credit), 2)

    db.flush()
    logger.info(f"Healed balances for {len(accounts)} account(s) in company {company_id}")
    return len(accounts)
