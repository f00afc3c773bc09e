# app/services/scheduler.py - Daily automated system backup
import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from app.core.config import settings
from app.services.backup_service import run_scheduled_backup

logger = logging.getLogger(__name__)

BACKUP_JOB_ID = "daily_system_backup"

scheduler = BackgroundScheduler()


def start_scheduler() -> None:
    if scheduler.running:
        return
    scheduler.add_job(
        run_scheduled_backup,
        CronTrigger(hour=settings.BACKUP_CRON_HOUR, minute=0, timezone=settings.BACKUP_TIMEZONE),
        id=BACKUP_JOB_ID,
        replace_existing=True,
    )
    scheduler.start()
    logger.info(f"Backup scheduler started (daily at {settings.BACKUP_CRON_HOUR:02d}:00 {settings.BACKUP_TIMEZONE})")


def shutdown_scheduler() -> None:
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Backup scheduler stopped")
