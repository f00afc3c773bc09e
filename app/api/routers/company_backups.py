# app/api/routers/company_backups.py - Per-company snapshot backups
from fastapi import APIRouter, Depends, File, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session
from typing import Dict, Any
import logging
from uuid import UUID

from app.core.db import get_db
from app.core.errors import ForbiddenError
from app.api.deps.tenancy import require_company
from app.api.responses import ok
from app.schemas.finance import BackupLogOut
from app.services import backup_service, journal_service

logger = logging.getLogger(__name__)
router = APIRouter()


def _require_restore_rights(ctx: Dict[str, Any]) -> None:
    if not journal_service.is_owner_or_admin(ctx["role"]):
        raise ForbiddenError("Only owners can restore company backups")


@router.post("/{company_id}/backup/generate", status_code=status.HTTP_201_CREATED)
async def generate_backup(
    company_id: UUID,
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    log = backup_service.create_company_backup(db, company_id, str(ctx["user"].id))
    return ok(BackupLogOut.model_validate(log), "Backup created successfully")


@router.get("/{company_id}/backups")
async def list_backups(
    company_id: UUID,
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    logs = backup_service.list_company_backups(db, company_id)
    return ok([BackupLogOut.model_validate(b) for b in logs])


@router.get("/{company_id}/backups/download/{file_name}")
async def download_backup(
    company_id: UUID,
    file_name: str,
    ctx: Dict[str, Any] = Depends(require_company),
):
    path = backup_service.company_backup_path(company_id, file_name)
    return FileResponse(path, media_type="application/zip", filename=path.name)


# Declared before the {file_name} route so "upload" is not taken as a file name
@router.post("/{company_id}/backup/restore/upload")
async def restore_uploaded_backup(
    company_id: UUID,
    file: UploadFile = File(...),
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    _require_restore_rights(ctx)
    counts = backup_service.restore_company_upload(db, company_id, file.file)
    logger.warning(f"Company {company_id} restored from upload {file.filename} by {ctx['user'].email}")
    return ok(counts, "Backup restored successfully")


@router.post("/{company_id}/backup/restore/{file_name}")
async def restore_backup(
    company_id: UUID,
    file_name: str,
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    _require_restore_rights(ctx)
    counts = backup_service.restore_company_backup(db, company_id, file_name)
    logger.warning(f"Company {company_id} restored from {file_name} by {ctx['user'].email}")
    return ok(counts, "Backup restored successfully")
