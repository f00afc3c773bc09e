# app/api/routers/system.py - Whole-database backups for administrators
from fastapi import APIRouter, Depends, status
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session
from typing import Dict, Any
import logging

from app.core.db import get_db
from app.api.deps.auth import require_admin
from app.api.responses import ok
from app.schemas.finance import BackupLogOut
from app.services import backup_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/backup", status_code=status.HTTP_201_CREATED)
async def trigger_backup(
    ctx: Dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Dump the database, zip it with the uploads directory and log the result"""
    log = backup_service.create_system_backup(db, triggered_by=str(ctx["user"].id))
    logger.info(f"Manual system backup {log.file_name} by {ctx['user'].email}")
    return ok(BackupLogOut.model_validate(log), "Backup created successfully")


@router.get("/backups")
async def list_backups(
    ctx: Dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return ok([BackupLogOut.model_validate(b) for b in backup_service.list_system_backups(db)])


@router.get("/backups/download/{file_name}")
async def download_backup(
    file_name: str,
    ctx: Dict[str, Any] = Depends(require_admin),
):
    path = backup_service.system_backup_path(file_name)
    return FileResponse(path, media_type="application/zip", filename=path.name)
