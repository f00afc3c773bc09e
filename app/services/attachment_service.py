# app/services/attachment_service.py - File storage for document attachments
from pathlib import Path
from typing import Optional
import logging
import os
import re
import time
import uuid

from fastapi import UploadFile
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import NotFoundError, ValidationError
from app.models.attachment import Attachment

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024
SEGMENT_RE = re.compile(r"[A-Za-z0-9_-][A-Za-z0-9_.-]*")


def _safe_name(file_name: str) -> str:
    name = os.path.basename((file_name or "").replace("\\", "/")).strip()
    if name in (".", ".."):
        name = ""
    return name or "file"


def _path_segment(value: str, label: str) -> str:
    """A single directory name: letters, digits, dash, underscore and inner dots"""
    value = str(value).strip()
    if not SEGMENT_RE.fullmatch(value):
        raise ValidationError(f"Invalid {label}")
    return value


async def save_upload(
    db: Session,
    company_id: uuid.UUID,
    entity_type: Optional[str],
    entity_id: Optional[str],
    upload: UploadFile,
    user_id: Optional[uuid.UUID],
) -> Attachment:
    """
    Stream the upload to UPLOAD_DIR/transactions/<type>/<entity_id>/ and record it.
    Files over MAX_FILE_SIZE_MB are rejected and removed.
    """
    if not entity_type or not entity_id:
        raise ValidationError("entity_type and entity_id are required")

    entity_type = _path_segment(entity_type, "entity_type")
    entity_id = _path_segment(entity_id, "entity_id")
    original = _safe_name(upload.filename)
    relative_dir = Path("transactions") / entity_type.lower() / entity_id
    root = settings.upload_path.resolve()
    target_dir = (root / relative_dir).resolve()
    if root not in target_dir.parents:
        raise ValidationError("Invalid attachment path")
    target_dir.mkdir(parents=True, exist_ok=True)

    stored_name = f"{int(time.time() * 1000)}-{original}"
    target = target_dir / stored_name

    size = 0
    with open(target, "wb") as out:
        while True:
            chunk = await upload.read(CHUNK_SIZE)
            if not chunk:
                break
            size += len(chunk)
            if size > settings.max_file_size_bytes:
                out.close()
                target.unlink(missing_ok=True)
                raise ValidationError(f"File exceeds the {settings.MAX_FILE_SIZE_MB} MB limit")
            out.write(chunk)

    attachment = Attachment(
        company_id=company_id,
        entity_type=entity_type.upper(),
        entity_id=str(entity_id),
        file_name=original,
        file_path=(relative_dir / stored_name).as_posix(),
        file_type=upload.content_type,
        file_size=size,
        uploaded_by_id=user_id,
    )
    db.add(attachment)
    db.flush()
    logger.info(f"Stored attachment {attachment.file_path} ({size} bytes)")
    return attachment


def get_active(db: Session, company_id: uuid.UUID, attachment_id: uuid.UUID) -> Attachment:
    attachment = db.execute(
        select(Attachment).where(
            Attachment.id == attachment_id,
            Attachment.company_id == company_id,
            Attachment.is_active.is_(True),
        )
    ).scalar_one_or_none()
    if not attachment:
        raise NotFoundError("Attachment not found")
    return attachment


def resolve_path(attachment: Attachment) -> Path:
    root = settings.upload_path.resolve()
    path = (root / attachment.file_path).resolve()
    if root not in path.parents or not path.is_file():
        raise NotFoundError("File not found on disk")
    return path


def list_for_entity(db: Session, company_id: uuid.UUID, entity_type: str, entity_id: str):
    return db.execute(
        select(Attachment)
        .where(
            Attachment.company_id == company_id,
            Attachment.entity_type == entity_type.upper(),
            Attachment.entity_id == str(entity_id),
            Attachment.is_active.is_(True),
        )
        .order_by(Attachment.created_at.desc())
    ).scalars().all()


def has_active(db: Session, company_id: uuid.UUID, entity_type: str, entity_id) -> bool:
    return db.execute(
        select(Attachment.id)
        .where(
            Attachment.company_id == company_id,
            Attachment.entity_type == entity_type.upper(),
            Attachment.entity_id == str(entity_id),
            Attachment.is_active.is_(True),
        )
        .limit(1)
    ).first() is not None


async def save_logo(upload: UploadFile) -> Optional[str]:
    """Store a company logo under UPLOAD_DIR/logos and return its public URL path"""
    if upload is None or not upload.filename:
        return None

    ext = os.path.splitext(_safe_name(upload.filename))[1].lower()
    stored_name = f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}{ext}"
    target_dir = settings.upload_path / "logos"
    target_dir.mkdir(parents=True, exist_ok=True)

    content = await upload.read()
    if len(content) > settings.max_file_size_bytes:
        raise ValidationError(f"File exceeds the {settings.MAX_FILE_SIZE_MB} MB limit")
    (target_dir / stored_name).write_bytes(content)
    return f"/uploads/logos/{stored_name}"
