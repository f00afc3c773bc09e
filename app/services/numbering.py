# app/services/numbering.py - Document and master-data code generation
from datetime import date
import re
import threading
import time

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.accounting import JournalEntry
from app.models.company import Company
from app.models.invoice import Invoice, Payment

_payment_lock = threading.Lock()
_last_payment_ms = 0


def _epoch_ms() -> int:
    return int(time.time() * 1000)


def _next_sequence(last_number: str | None) -> int:
    if not last_number:
        return 1
    match = re.search(r"(\d+)$", last_number)
    return int(match.group(1)) + 1 if match else 1


def next_journal_number(db: Session, company_id, on: date | None = None) -> str:
    """JE-YYYY-0001, continuing from the company's latest entry of that year"""
    year = (on or date.today()).year
    prefix = f"JE-{year}-"
    last = db.execute(
        select(JournalEntry.entry_number)
        .where(JournalEntry.company_id == company_id, JournalEntry.entry_number.like(f"{prefix}%"))
        .order_by(JournalEntry.entry_number.desc())
        .limit(1)
    ).scalar_one_or_none()
    return f"{prefix}{_next_sequence(last):04d}"


def next_invoice_number(db: Session, company_id, on: date | None = None) -> str:
    year = (on or date.today()).year
    prefix = f"INV-{year}-"
    last = db.execute(
        select(Invoice.invoice_number)
        .where(Invoice.company_id == company_id, Invoice.invoice_number.like(f"{prefix}%"))
        .order_by(Invoice.invoice_number.desc())
        .limit(1)
    ).scalar_one_or_none()
    return f"{prefix}{_next_sequence(last):04d}"


def company_code(db: Session, name: str) -> str:
    """Initials of up to two name words plus the last 4 digits of the clock, unique"""
    words = [w for w in name.split() if w][:2]
    initials = "".join(w[0] for w in words).upper() or "CO"
    while True:
        code = f"{initials}-{str(_epoch_ms())[-4:]}"
        exists = db.execute(select(Company.id).where(Company.code == code)).first()
        if not exists:
            return code
        time.sleep(0.001)


def partner_code(prefix: str) -> str:
    """CUS-123456 / VEN-123456"""
    return f"{prefix}-{str(_epoch_ms())[-6:]}"


def payment_number(db: Session, company_id) -> str:
    """PAY-<epoch ms>, moved past the last number issued here and any stored one"""
    global _last_payment_ms
    with _payment_lock:
        stamp = max(_epoch_ms(), _last_payment_ms + 1)
        while db.execute(
            select(Payment.id).where(Payment.company_id == company_id, Payment.payment_number == f"PAY-{stamp}")
        ).first():
            stamp += 1
        _last_payment_ms = stamp
    return f"PAY-{stamp}"
