# app/api/routers/journals.py - Journal entries and their approval workflow
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Dict, Any, Optional
import logging
from uuid import UUID

from app.core.db import get_db
from app.core.errors import ForbiddenError
from app.api.deps.tenancy import require_company
from app.api.responses import ok
from app.models.accounting import JournalStatus
from app.schemas.ledger import JournalCreate, JournalUpdate, JournalOut, RejectIn
from app.services import journal_service

logger = logging.getLogger(__name__)
router = APIRouter()


def _commit(db: Session, entry, action: str):
    try:
        db.commit()
        db.refresh(entry)
    except Exception as e:
        db.rollback()
        logger.error(f"Error during journal {action} for {entry.id}: {e}")
        raise
    return JournalOut.model_validate(entry)


@router.get("/{company_id}/journals")
async def list_journals(
    company_id: UUID,
    status_filter: Optional[str] = Query(None, alias="status"),
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    entries = journal_service.list_entries(db, company_id, status_filter)
    return ok([JournalOut.model_validate(e) for e in entries])


@router.get("/{company_id}/journals/{journal_id}")
async def get_journal(
    company_id: UUID,
    journal_id: UUID,
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    entry = journal_service.get_entry(db, company_id, journal_id)
    return ok(JournalOut.model_validate(entry))


@router.post("/{company_id}/journals", status_code=status.HTTP_201_CREATED)
async def create_journal(
    company_id: UUID,
    data: JournalCreate,
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    """Create a balanced journal entry; accountants and owners send it straight to verification"""
    try:
        entry = journal_service.create_entry(db, company_id, ctx["user"], ctx["role"], data)
        db.commit()
        db.refresh(entry)
    except Exception as e:
        db.rollback()
        logger.error(f"Error creating journal in {company_id}: {e}")
        raise
    return ok(JournalOut.model_validate(entry), "Journal entry created")


@router.put("/{company_id}/journals/{journal_id}")
async def update_journal(
    company_id: UUID,
    journal_id: UUID,
    data: JournalUpdate,
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    entry = journal_service.get_entry(db, company_id, journal_id)
    if not journal_service.can_edit(entry.status, ctx["role"]):
        raise ForbiddenError("You do not have permission to edit this journal")

    for key, value in data.model_dump(exclude_unset=True).items():
        setattr(entry, key, value)
    return ok(_commit(db, entry, "update"), "Journal updated")


@router.delete("/{company_id}/journals/{journal_id}")
async def delete_journal(
    company_id: UUID,
    journal_id: UUID,
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    entry = journal_service.get_entry(db, company_id, journal_id)
    if entry.status == JournalStatus.APPROVED.value:
        raise ForbiddenError("Approved journals cannot be deleted")
    if not journal_service.can_delete(entry.status, ctx["role"]):
        raise ForbiddenError("You do not have permission to delete this journal")

    number = entry.entry_number
    try:
        db.delete(entry)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error deleting journal {journal_id}: {e}")
        raise

    logger.info(f"Journal {number} deleted by {ctx['user'].email}")
    return ok(None, "Journal deleted")


@router.post("/{company_id}/journals/{journal_id}/verify")
async def verify_journal(
    company_id: UUID,
    journal_id: UUID,
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    entry = journal_service.get_entry(db, company_id, journal_id)
    journal_service.verify(entry, ctx["user"], ctx["role"])
    return ok(_commit(db, entry, "verify"), "Journal verified")


@router.post("/{company_id}/journals/{journal_id}/submit")
async def submit_journal(
    company_id: UUID,
    journal_id: UUID,
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    entry = journal_service.get_entry(db, company_id, journal_id)
    journal_service.submit(db, entry, ctx["role"])
    return ok(_commit(db, entry, "submit"), "Journal submitted for verification")


@router.post("/{company_id}/journals/{journal_id}/reject")
async def reject_journal(
    company_id: UUID,
    journal_id: UUID,
    data: RejectIn,
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    entry = journal_service.get_entry(db, company_id, journal_id)
    journal_service.reject(entry, ctx["role"], data.reason)
    return ok(_commit(db, entry, "reject"), "Journal rejected")


@router.post("/{company_id}/journals/{journal_id}/retrieve")
async def retrieve_journal(
    company_id: UUID,
    journal_id: UUID,
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    entry = journal_service.get_entry(db, company_id, journal_id)
    journal_service.retrieve(entry, ctx["role"])
    return ok(_commit(db, entry, "retrieve"), "Journal retrieved to draft")


@router.post("/{company_id}/journals/{journal_id}/approve")
async def approve_journal(
    company_id: UUID,
    journal_id: UUID,
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    """Approve and post balances in a single transaction"""
    entry = journal_service.get_entry(db, company_id, journal_id)
    try:
        journal_service.approve(db, entry, ctx["user"], ctx["role"])
        db.commit()
        db.refresh(entry)
    except Exception as e:
        db.rollback()
        logger.error(f"Error approving journal {journal_id}: {e}")
        raise
    return ok(JournalOut.model_validate(entry), "Journal approved and balances updated")
