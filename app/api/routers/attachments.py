# app/api/routers/attachments.py - Document uploads attached to journals, invoices and LCs
from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session
from typing import Dict, Any, Optional
import logging
from uuid import UUID

from app.core.db import get_db
from app.api.deps.tenancy import require_company
from app.api.responses import ok
from app.schemas.finance import AttachmentOut
from app.services import attachment_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/{company_id}/attachments/upload", status_code=status.HTTP_201_CREATED)
async def upload_attachment(
    company_id: UUID,
    file: UploadFile = File(...),
    entity_type: Optional[str] = Form(None),
    entity_id: Optional[str] = Form(None),
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    try:
        attachment = await attachment_service.save_upload(
            db, company_id, entity_type, entity_id, file, ctx["user"].id
        )
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error uploading attachment in {company_id}: {e}")
        raise
    return ok(AttachmentOut.model_validate(attachment), "File uploaded")


@router.get("/{company_id}/attachments/{attachment_id}/download")
async def download_attachment(
    company_id: UUID,
    attachment_id: UUID,
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    """Stream the stored file; the token may come from ?token= for links"""
    attachment = attachment_service.get_active(db, company_id, attachment_id)
    path = attachment_service.resolve_path(attachment)
    return FileResponse(
        path,
        media_type=attachment.file_type or "application/octet-stream",
        filename=attachment.file_name,
    )


@router.get("/{company_id}/attachments/related/{entity_type}/{entity_id}")
async def list_related(
    company_id: UUID,
    entity_type: str,
    entity_id: str,
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    rows = attachment_service.list_for_entity(db, company_id, entity_type, entity_id)
    return ok([AttachmentOut.model_validate(a) for a in rows])


@router.delete("/{company_id}/attachments/{attachment_id}")
async def delete_attachment(
    company_id: UUID,
    attachment_id: UUID,
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    """Soft delete; the file stays on disk"""
    attachment = attachment_service.get_active(db, company_id, attachment_id)
    attachment.is_active = False
    try:
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error deleting attachment {attachment_id}: {e}")
        raise
    return ok(None, "Attachment deleted")
