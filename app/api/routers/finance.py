# app/api/routers/finance.py - Bank loans and letters of credit
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from sqlalchemy import select
from typing import Dict, Any
import logging
from uuid import UUID

from app.core.db import get_db
from app.core.errors import BadRequestError, NotFoundError
from app.api.deps.tenancy import require_company
from app.api.responses import ok
from app.models.finance import Loan, LetterOfCredit
from app.schemas.finance import LoanCreate, LoanUpdate, LoanOut, LCCreate, LCUpdate, LCOut
from app.services import attachment_service

logger = logging.getLogger(__name__)
router = APIRouter()


def _scoped(db: Session, model, company_id: UUID, row_id: UUID, label: str):
    row = db.execute(
        select(model).where(model.id == row_id, model.company_id == company_id)
    ).scalar_one_or_none()
    if not row:
        raise NotFoundError(f"{label} not found")
    return row


def _save(db: Session, row, action: str):
    try:
        db.commit()
        db.refresh(row)
    except Exception as e:
        db.rollback()
        logger.error(f"Error during {action}: {e}")
        raise


# Loans

@router.get("/{company_id}/loans")
async def list_loans(
    company_id: UUID,
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    loans = db.execute(
        select(Loan).where(Loan.company_id == company_id).order_by(Loan.start_date.desc())
    ).scalars().all()
    return ok([LoanOut.model_validate(l) for l in loans])


@router.post("/{company_id}/loans", status_code=status.HTTP_201_CREATED)
async def create_loan(
    company_id: UUID,
    data: LoanCreate,
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    fields = data.model_dump()
    if fields["outstanding_balance"] is None:
        fields["outstanding_balance"] = data.principal_amount

    loan = Loan(company_id=company_id, **fields)
    db.add(loan)
    _save(db, loan, f"loan create in {company_id}")
    return ok(LoanOut.model_validate(loan), "Loan created")


@router.get("/{company_id}/loans/{loan_id}")
async def get_loan(
    company_id: UUID,
    loan_id: UUID,
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    return ok(LoanOut.model_validate(_scoped(db, Loan, company_id, loan_id, "Loan")))


@router.put("/{company_id}/loans/{loan_id}")
async def update_loan(
    company_id: UUID,
    loan_id: UUID,
    data: LoanUpdate,
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    loan = _scoped(db, Loan, company_id, loan_id, "Loan")
    for key, value in data.model_dump(exclude_unset=True).items():
        setattr(loan, key, value)
    _save(db, loan, f"loan update {loan_id}")
    return ok(LoanOut.model_validate(loan), "Loan updated")


@router.delete("/{company_id}/loans/{loan_id}")
async def delete_loan(
    company_id: UUID,
    loan_id: UUID,
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    loan = _scoped(db, Loan, company_id, loan_id, "Loan")
    try:
        db.delete(loan)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error deleting loan {loan_id}: {e}")
        raise
    return ok(None, "Loan deleted")


# Letters of credit

@router.get("/{company_id}/lcs")
async def list_lcs(
    company_id: UUID,
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    lcs = db.execute(
        select(LetterOfCredit)
        .where(LetterOfCredit.company_id == company_id)
        .order_by(LetterOfCredit.expiry_date)
    ).scalars().all()
    return ok([LCOut.model_validate(lc) for lc in lcs])


@router.post("/{company_id}/lcs", status_code=status.HTTP_201_CREATED)
async def create_lc(
    company_id: UUID,
    data: LCCreate,
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    lc = LetterOfCredit(company_id=company_id, status="OPEN", **data.model_dump())
    db.add(lc)
    _save(db, lc, f"LC create in {company_id}")
    return ok(LCOut.model_validate(lc), "LC created")


@router.get("/{company_id}/lcs/{lc_id}")
async def get_lc(
    company_id: UUID,
    lc_id: UUID,
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    return ok(LCOut.model_validate(_scoped(db, LetterOfCredit, company_id, lc_id, "LC")))


@router.put("/{company_id}/lcs/{lc_id}")
async def update_lc(
    company_id: UUID,
    lc_id: UUID,
    data: LCUpdate,
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    lc = _scoped(db, LetterOfCredit, company_id, lc_id, "LC")
    for key, value in data.model_dump(exclude_unset=True).items():
        setattr(lc, key, value)
    _save(db, lc, f"LC update {lc_id}")
    return ok(LCOut.model_validate(lc), "LC updated")


@router.post("/{company_id}/lcs/{lc_id}/approve")
async def approve_lc(
    company_id: UUID,
    lc_id: UUID,
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    """An LC needs at least one supporting document before approval"""
    lc = _scoped(db, LetterOfCredit, company_id, lc_id, "LC")
    if not attachment_service.has_active(db, company_id, "LC", lc.id):
        raise BadRequestError("Cannot approve LC without at least one attachment")

    lc.status = "APPROVED"
    _save(db, lc, f"LC approve {lc_id}")
    logger.info(f"LC {lc.lc_number} approved by {ctx['user'].email}")
    return ok(LCOut.model_validate(lc), "LC approved")


@router.delete("/{company_id}/lcs/{lc_id}")
async def delete_lc(
    company_id: UUID,
    lc_id: UUID,
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    lc = _scoped(db, LetterOfCredit, company_id, lc_id, "LC")
    try:
        db.delete(lc)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error deleting LC {lc_id}: {e}")
        raise
    return ok(None, "LC deleted")
