# app/api/routers/payments.py - Payments received and made
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import Dict, Any
import logging
from uuid import UUID

from app.core.db import get_db
from app.api.deps.tenancy import require_company
from app.api.responses import ok
from app.schemas.invoice import PaymentCreate, PaymentOut
from app.services import invoice_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/{company_id}/payments")
async def list_payments(
    company_id: UUID,
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    """Payments newest first"""
    payments = invoice_service.list_payments(db, company_id)
    return ok([PaymentOut.model_validate(p) for p in payments])


@router.post("/{company_id}/payments", status_code=status.HTTP_201_CREATED)
async def create_payment(
    company_id: UUID,
    data: PaymentCreate,
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    """
    Record a payment. Against an invoice it posts cash/bank against the
    receivable and marks the invoice PAID once fully settled.
    """
    try:
        payment = invoice_service.record_payment(db, company_id, ctx["user"], data)
        db.commit()
        db.refresh(payment)
    except Exception as e:
        db.rollback()
        logger.error(f"Error recording payment in {company_id}: {e}")
        raise

    logger.info(f"Payment {payment.payment_number} of {payment.amount} recorded by {ctx['user'].email}")
    return ok(PaymentOut.model_validate(payment), "Payment recorded")
