# app/api/routers/invoices.py - Sales invoices and their approval workflow
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from sqlalchemy import select
from typing import Dict, Any, Optional
import logging
from uuid import UUID

from app.core.db import get_db
from app.api.deps.tenancy import require_company
from app.api.responses import ok
from app.models.invoice import Invoice
from app.schemas.invoice import InvoiceCreate, InvoiceUpdate, InvoiceOut
from app.schemas.ledger import RejectIn
from app.services import invoice_service

logger = logging.getLogger(__name__)
router = APIRouter()


def _commit(db: Session, invoice: Invoice, action: str) -> InvoiceOut:
    try:
        db.commit()
        db.refresh(invoice)
    except Exception as e:
        db.rollback()
        logger.error(f"Error during invoice {action} for {invoice.id}: {e}")
        raise
    return InvoiceOut.model_validate(invoice)


@router.get("/{company_id}/invoices")
async def list_invoices(
    company_id: UUID,
    status_filter: Optional[str] = Query(None, alias="status"),
    customer_id: Optional[UUID] = None,
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    query = select(Invoice).where(Invoice.company_id == company_id)
    if status_filter:
        query = query.where(Invoice.status == status_filter.upper())
    if customer_id:
        query = query.where(Invoice.customer_id == customer_id)

    invoices = db.execute(
        query.order_by(Invoice.invoice_date.desc(), Invoice.created_at.desc())
    ).scalars().all()
    return ok([InvoiceOut.model_validate(i) for i in invoices])


@router.get("/{company_id}/invoices/{invoice_id}")
async def get_invoice(
    company_id: UUID,
    invoice_id: UUID,
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    invoice = invoice_service.get_invoice(db, company_id, invoice_id)
    return ok(InvoiceOut.model_validate(invoice))


@router.post("/{company_id}/invoices", status_code=status.HTTP_201_CREATED)
async def create_invoice(
    company_id: UUID,
    data: InvoiceCreate,
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    try:
        invoice = invoice_service.create_invoice(db, company_id, ctx["user"], ctx["role"], data)
        db.commit()
        db.refresh(invoice)
    except Exception as e:
        db.rollback()
        logger.error(f"Error creating invoice in {company_id}: {e}")
        raise
    return ok(InvoiceOut.model_validate(invoice), "Invoice created")


@router.put("/{company_id}/invoices/{invoice_id}")
async def update_invoice(
    company_id: UUID,
    invoice_id: UUID,
    data: InvoiceUpdate,
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    invoice = invoice_service.get_invoice(db, company_id, invoice_id)
    try:
        invoice_service.update_invoice(db, invoice, ctx["role"], data)
    except Exception:
        db.rollback()
        raise
    return ok(_commit(db, invoice, "update"), "Invoice updated")


@router.delete("/{company_id}/invoices/{invoice_id}")
async def delete_invoice(
    company_id: UUID,
    invoice_id: UUID,
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    invoice = invoice_service.get_invoice(db, company_id, invoice_id)
    try:
        invoice_service.delete_invoice(db, invoice, ctx["role"])
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error deleting invoice {invoice_id}: {e}")
        raise
    return ok(None, "Invoice deleted")


@router.post("/{company_id}/invoices/{invoice_id}/submit")
async def submit_invoice(
    company_id: UUID,
    invoice_id: UUID,
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    invoice = invoice_service.get_invoice(db, company_id, invoice_id)
    invoice_service.submit(invoice, ctx["role"])
    return ok(_commit(db, invoice, "submit"), "Invoice submitted for verification")


@router.post("/{company_id}/invoices/{invoice_id}/verify")
async def verify_invoice(
    company_id: UUID,
    invoice_id: UUID,
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    invoice = invoice_service.get_invoice(db, company_id, invoice_id)
    invoice_service.verify(invoice, ctx["role"])
    return ok(_commit(db, invoice, "verify"), "Invoice verified")


@router.post("/{company_id}/invoices/{invoice_id}/reject")
async def reject_invoice(
    company_id: UUID,
    invoice_id: UUID,
    data: RejectIn,
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    invoice = invoice_service.get_invoice(db, company_id, invoice_id)
    invoice_service.reject(invoice, ctx["role"], data.reason)
    return ok(_commit(db, invoice, "reject"), "Invoice rejected")


@router.post("/{company_id}/invoices/{invoice_id}/retrieve")
async def retrieve_invoice(
    company_id: UUID,
    invoice_id: UUID,
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    invoice = invoice_service.get_invoice(db, company_id, invoice_id)
    invoice_service.retrieve(invoice, ctx["role"])
    return ok(_commit(db, invoice, "retrieve"), "Invoice retrieved to draft")


@router.post("/{company_id}/invoices/{invoice_id}/approve")
async def approve_invoice(
    company_id: UUID,
    invoice_id: UUID,
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    """Approve, then post the receivable against revenue"""
    invoice = invoice_service.get_invoice(db, company_id, invoice_id)
    try:
        invoice_service.approve(db, invoice, ctx["user"], ctx["role"])
        db.commit()
        db.refresh(invoice)
    except Exception as e:
        db.rollback()
        logger.error(f"Error approving invoice {invoice_id}: {e}")
        raise

    logger.info(f"Invoice {invoice.invoice_number} approved by {ctx['user'].email}")
    return ok(InvoiceOut.model_validate(invoice), "Invoice approved and posted")
