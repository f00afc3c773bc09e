# app/api/routers/notifications.py - Company alerts
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy import select
from typing import Dict, Any
import logging
from uuid import UUID

from app.core.db import get_db
from app.core.errors import NotFoundError
from app.api.deps.tenancy import require_company
from app.api.responses import ok
from app.models.notification import Notification
from app.services import notification_service

logger = logging.getLogger(__name__)
router = APIRouter()


def _get(db: Session, company_id: UUID, notification_id: UUID) -> Notification:
    notification = db.execute(
        select(Notification).where(
            Notification.id == notification_id, Notification.company_id == company_id
        )
    ).scalar_one_or_none()
    if not notification:
        raise NotFoundError("Notification not found")
    return notification


@router.post("/{company_id}/notifications/generate")
async def generate_notifications(
    company_id: UUID,
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    """Scan invoices, LCs, journals and loans for new alerts"""
    try:
        created = notification_service.generate(db, company_id)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error generating notifications for {company_id}: {e}")
        raise
    return ok({"created": created}, "Notifications generated")


@router.get("/{company_id}/notifications")
async def list_notifications(
    company_id: UUID,
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    return ok(notification_service.list_for_company(db, company_id))


@router.put("/{company_id}/notifications/read-all")
async def mark_all_read(
    company_id: UUID,
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    try:
        notification_service.mark_all_read(db, company_id)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error marking notifications read for {company_id}: {e}")
        raise
    return ok(None, "All notifications marked as read")


@router.put("/{company_id}/notifications/{notification_id}/read")
async def mark_read(
    company_id: UUID,
    notification_id: UUID,
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    notification = _get(db, company_id, notification_id)
    notification.is_read = True
    try:
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error marking notification {notification_id} read: {e}")
        raise
    return ok(notification_service.as_dict(notification))


@router.delete("/{company_id}/notifications/{notification_id}")
async def delete_notification(
    company_id: UUID,
    notification_id: UUID,
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    notification = _get(db, company_id, notification_id)
    try:
        db.delete(notification)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error deleting notification {notification_id}: {e}")
        raise
    return ok(None, "Notification deleted")
