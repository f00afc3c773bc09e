# app/api/routers/reports.py - Financial reports and bank reconciliation
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Dict, Any, Optional
from datetime import date
import logging
from uuid import UUID

from app.core.db import get_db
from app.api.deps.tenancy import require_company, require_company_or_demo
from app.api.responses import ok
from app.schemas.ledger import ReconcileMarkIn
from app.services import report_service
from app.services.demo_data import demo_trial_balance
from app.services.report_service import LineFilters

logger = logging.getLogger(__name__)
router = APIRouter()


def line_filters(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    branch_id: Optional[UUID] = None,
    project_id: Optional[UUID] = None,
    cost_center_id: Optional[UUID] = None,
    customer_id: Optional[UUID] = None,
    vendor_id: Optional[UUID] = None,
) -> LineFilters:
    """Report filters shared by every statement endpoint"""
    return LineFilters(
        start_date=start_date,
        end_date=end_date,
        branch_id=branch_id,
        project_id=project_id,
        cost_center_id=cost_center_id,
        customer_id=customer_id,
        vendor_id=vendor_id,
    )


@router.get("/{company_id}/reports/trial-balance")
async def trial_balance(
    company_id: UUID,
    filters: LineFilters = Depends(line_filters),
    ctx: Optional[Dict[str, Any]] = Depends(require_company_or_demo),
    db: Session = Depends(get_db)
):
    if ctx is None:
        return ok(demo_trial_balance())
    return ok(report_service.trial_balance(db, company_id, filters))


@router.get("/{company_id}/reports/ledger/{account_id}")
async def ledger(
    company_id: UUID,
    account_id: UUID,
    filters: LineFilters = Depends(line_filters),
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    return ok(report_service.ledger(db, company_id, account_id, filters))


@router.get("/{company_id}/reports/profit-loss")
async def profit_loss(
    company_id: UUID,
    filters: LineFilters = Depends(line_filters),
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    return ok(report_service.profit_and_loss(db, company_id, filters))


@router.get("/{company_id}/reports/balance-sheet")
async def balance_sheet(
    company_id: UUID,
    filters: LineFilters = Depends(line_filters),
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    return ok(report_service.balance_sheet(db, company_id, filters))


@router.get("/{company_id}/reports/aging")
async def aging(
    company_id: UUID,
    party_type: str = Query("CUSTOMER", alias="type"),
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    return ok(report_service.aging(db, company_id, party_type))


@router.get("/{company_id}/reports/receivables-search")
async def receivables_search(
    company_id: UUID,
    customer_name: Optional[str] = None,
    reference: Optional[str] = None,
    min_amount: Optional[float] = None,
    max_amount: Optional[float] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    branch_id: Optional[UUID] = None,
    status: Optional[str] = None,
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    return ok(report_service.search_receivables(
        db, company_id,
        customer_name=customer_name,
        reference=reference,
        min_amount=min_amount,
        max_amount=max_amount,
        start_date=start_date,
        end_date=end_date,
        branch_id=branch_id,
        status=status,
    ))


@router.get("/{company_id}/reports/lc-liability")
async def lc_liability(
    company_id: UUID,
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    return ok(report_service.lc_liability(db, company_id))


# Bank reconciliation

@router.get("/{company_id}/bank/reconcile-lines")
async def reconcile_lines(
    company_id: UUID,
    account_id: Optional[UUID] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    return ok(report_service.reconcile_lines(db, company_id, account_id, start_date, end_date))


@router.post("/{company_id}/bank/mark-reconciled")
async def mark_reconciled(
    company_id: UUID,
    data: ReconcileMarkIn,
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    try:
        count = report_service.mark_reconciled(db, company_id, data.line_ids)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error reconciling lines in {company_id}: {e}")
        raise
    return ok({"count": count}, f"{count} line(s) marked as reconciled")
