# app/services/invoice_service.py - Sales invoices, their workflow and payments
from datetime import date
from typing import Optional, List, Dict
import logging
import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.errors import ForbiddenError, NotFoundError, ValidationError
from app.models.accounting import Account
from app.models.invoice import Invoice, InvoiceItem, InvoiceStatus, Payment
from app.models.partner import Customer
from app.models.user import User
from app.schemas.invoice import InvoiceCreate, InvoiceUpdate, InvoiceItemIn, PaymentCreate
from app.services import journal_service
from app.services.numbering import next_invoice_number, payment_number

logger = logging.getLogger(__name__)


def compute_totals(items: List[InvoiceItemIn], exchange_rate: float) -> Dict[str, float]:
    """
    subtotal = Σ qty × price, tax = Σ qty × price × rate / 100,
    total = subtotal + tax, total_base = total × exchange rate
    """
    subtotal = sum(i.quantity * i.unit_price for i in items)
    tax = sum(i.quantity * i.unit_price * i.tax_rate / 100 for i in items)
    total = subtotal + tax
    return {
        "subtotal": round(subtotal, 2),
        "tax_amount": round(tax, 2),
        "total": round(total, 2),
        "total_base": round(total * (exchange_rate or 1), 2),
    }


def build_items(items: List[InvoiceItemIn]) -> List[InvoiceItem]:
    return [
        InvoiceItem(
            description=i.description,
            quantity=i.quantity,
            unit_price=i.unit_price,
            tax_rate=i.tax_rate,
            amount=round(i.quantity * i.unit_price * (1 + i.tax_rate / 100), 2),
            account_id=i.account_id,
        )
        for i in items
    ]


def get_invoice(db: Session, company_id: uuid.UUID, invoice_id: uuid.UUID) -> Invoice:
    invoice = db.execute(
        select(Invoice).where(Invoice.id == invoice_id, Invoice.company_id == company_id)
    ).scalar_one_or_none()
    if not invoice:
        raise NotFoundError("Invoice not found")
    return invoice


def _check_customer(db: Session, company_id: uuid.UUID, customer_id: uuid.UUID) -> None:
    found = db.execute(
        select(Customer.id).where(Customer.id == customer_id, Customer.company_id == company_id)
    ).first()
    if not found:
        raise ValidationError("Customer not found in this company")


def create_invoice(db: Session, company_id: uuid.UUID, user: User, role: str, data: InvoiceCreate) -> Invoice:
    invoice_date = journal_service.check_entry_date(data.invoice_date, role, what="Invoice")
    _check_customer(db, company_id, data.customer_id)

    invoice = Invoice(
        company_id=company_id,
        customer_id=data.customer_id,
        branch_id=data.branch_id,
        invoice_number=next_invoice_number(db, company_id, invoice_date),
        invoice_date=invoice_date,
        due_date=data.due_date,
        reference=data.reference,
        currency_code=data.currency_code,
        exchange_rate=data.exchange_rate,
        notes=data.notes,
        status=InvoiceStatus.DRAFT.value,
        created_by_id=user.id,
        items=build_items(data.items),
        **compute_totals(data.items, data.exchange_rate),
    )
    db.add(invoice)
    db.flush()
    logger.info(f"Invoice {invoice.invoice_number} created by {user.email}")
    return invoice


def update_invoice(db: Session, invoice: Invoice, role: str, data: InvoiceUpdate) -> Invoice:
    if not journal_service.can_edit(invoice.status, role):
        raise ForbiddenError("Cannot edit this invoice in current status")

    fields = data.model_dump(exclude_unset=True, exclude={"items"})
    if "customer_id" in fields and fields["customer_id"]:
        _check_customer(db, invoice.company_id, fields["customer_id"])
    for key, value in fields.items():
        setattr(invoice, key, value)

    if data.items is not None:
        invoice.items.clear()
        db.flush()
        invoice.items.extend(build_items(data.items))
        for key, value in compute_totals(data.items, invoice.exchange_rate).items():
            setattr(invoice, key, value)
    elif "exchange_rate" in fields:
        invoice.total_base = round(invoice.total * invoice.exchange_rate, 2)

    db.flush()
    return invoice


def delete_invoice(db: Session, invoice: Invoice, role: str) -> None:
    if not journal_service.can_delete(invoice.status, role):
        raise ForbiddenError("Cannot delete this invoice")
    db.delete(invoice)


def submit(invoice: Invoice, role: str) -> Invoice:
    if role not in (journal_service.ACCOUNTANT, journal_service.OWNER, journal_service.ADMIN):
        raise ForbiddenError("Only Accountants or Owners can submit invoices")
    if invoice.status not in (InvoiceStatus.DRAFT.value, InvoiceStatus.REJECTED.value):
        raise ValidationError("Only DRAFT or REJECTED invoices can be submitted")
    invoice.status = InvoiceStatus.PENDING_VERIFICATION.value
    return invoice


def verify(invoice: Invoice, role: str) -> Invoice:
    if not journal_service.can_verify(invoice.status, role):
        raise ForbiddenError("Cannot verify this invoice")
    invoice.status = InvoiceStatus.VERIFIED.value
    return invoice


def reject(invoice: Invoice, role: str, reason: str) -> Invoice:
    if not journal_service.can_reject(invoice.status, role):
        raise ForbiddenError("Cannot reject this invoice")
    invoice.status = InvoiceStatus.REJECTED.value
    invoice.rejection_reason = reason
    return invoice


def retrieve(invoice: Invoice, role: str) -> Invoice:
    if invoice.status != InvoiceStatus.REJECTED.value:
        raise ForbiddenError("Can only retrieve rejected invoices")
    if role == journal_service.MANAGER:
        raise ForbiddenError("Managers cannot retrieve invoices")
    invoice.status = InvoiceStatus.DRAFT.value
    invoice.rejection_reason = None
    return invoice


def find_account_by_category(db: Session, company_id: uuid.UUID, category: str) -> Optional[Account]:
    return db.execute(
        select(Account)
        .where(Account.company_id == company_id, Account.category == category, Account.is_active.is_(True))
        .order_by(Account.code)
        .limit(1)
    ).scalar_one_or_none()


def approve(db: Session, invoice: Invoice, user: User, role: str) -> Invoice:
    """Approve and post: debit receivables, credit revenue, both by total_base"""
    if not journal_service.can_approve(invoice.status, role):
        raise ForbiddenError("Cannot approve this invoice")

    ar = find_account_by_category(db, invoice.company_id, "AR")
    revenue = find_account_by_category(db, invoice.company_id, "REVENUE")
    if not ar or not revenue:
        raise ValidationError("AR or Revenue accounts not found")

    amount = invoice.total_base
    entry = journal_service.create_posted_entry(
        db,
        invoice.company_id,
        user.id,
        invoice.invoice_date,
        f"Auto-generated from Invoice {invoice.invoice_number}",
        invoice.invoice_number,
        [
            (ar, amount, 0, f"Receivable from Invoice {invoice.invoice_number}"),
            (revenue, 0, amount, f"Revenue from Invoice {invoice.invoice_number}"),
        ],
    )
    invoice.status = InvoiceStatus.APPROVED.value
    invoice.journal_entry_id = entry.id
    db.flush()

    logger.info(f"Invoice {invoice.invoice_number} approved and posted as {entry.entry_number}")
    return invoice


def record_payment(db: Session, company_id: uuid.UUID, user: User, data: PaymentCreate) -> Payment:
    """
    Store a received payment. Against an invoice it also posts
    JV-PMT-<id8> (debit cash/bank, credit receivables) and settles the invoice.
    """
    if data.amount is None or data.amount <= 0:
        raise ValidationError("Valid payment amount is required")

    payment = Payment(
        id=uuid.uuid4(),
        company_id=company_id,
        payment_number=payment_number(db, company_id),
        payment_date=data.payment_date or date.today(),
        amount=round(data.amount, 2),
        method=data.method,
        reference=data.reference,
        invoice_id=data.invoice_id,
        customer_id=data.customer_id,
        vendor_id=data.vendor_id,
        account_id=data.account_id,
        status="APPROVED",
        created_by_id=user.id,
    )

    if data.invoice_id:
        invoice = get_invoice(db, company_id, data.invoice_id)
        ar = find_account_by_category(db, company_id, "AR")
        settlement = (
            db.execute(
                select(Account).where(Account.id == data.account_id, Account.company_id == company_id)
            ).scalar_one_or_none()
            if data.account_id else None
        )
        if not settlement or not ar:
            raise ValidationError("Settlement accounts (AR/Cash) not found")

        payment.customer_id = payment.customer_id or invoice.customer_id
        entry = journal_service.create_posted_entry(
            db,
            company_id,
            user.id,
            payment.payment_date,
            f"Payment received for Invoice {invoice.invoice_number}",
            payment.payment_number,
            [
                (settlement, payment.amount, 0, f"Receipt {payment.payment_number}"),
                (ar, 0, payment.amount, f"Settlement of {invoice.invoice_number}"),
            ],
            entry_number=f"JV-PMT-{str(payment.id)[:8]}",
        )
        payment.journal_entry_id = entry.id

        invoice.amount_paid = round((invoice.amount_paid or 0) + payment.amount, 2)
        if invoice.amount_paid + 0.005 >= invoice.total_base:
            invoice.status = InvoiceStatus.PAID.value
            logger.info(f"Invoice {invoice.invoice_number} fully paid")

    db.add(payment)
    db.flush()
    return payment


def list_payments(db: Session, company_id: uuid.UUID) -> List[Payment]:
    return list(db.execute(
        select(Payment)
        .where(Payment.company_id == company_id)
        .order_by(Payment.payment_date.desc(), Payment.created_at.desc())
    ).scalars().all())