# app/services/backup_service.py - Whole-database dumps and per-company snapshot archives
import json
import logging
import os
import shutil
import subprocess
import tempfile
import uuid
import zipfile
from datetime import date, datetime
from pathlib import Path
from typing import List, Optional, Dict, Any

from sqlalchemy import select, delete, insert, DateTime, Date
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.db import db_manager, get_session_maker
from app.core.errors import AppError, NotFoundError, ValidationError
from app.models.accounting import Account, JournalEntry, JournalLine
from app.models.attachment import Attachment
from app.models.backup import BackupLog
from app.models.company import Company, Branch, Project, CostCenter
from app.models.finance import Loan, LetterOfCredit
from app.models.invoice import Invoice, InvoiceItem, Payment
from app.models.notification import Notification
from app.models.partner import Customer, Vendor

logger = logging.getLogger(__name__)

SYSTEM_TRIGGER = "SYSTEM"
SNAPSHOT_MEMBER = "snapshot.json"
DUMP_MEMBER_POSTGRES = "database.dump"
DUMP_MEMBER_SQLITE = "database.sqlite3"
UPLOADS_PREFIX = "uploads/"


def _timestamp() -> str:
    return datetime.utcnow().strftime("%Y-%m-%dT%H-%M-%S-%f")[:-3]


def _system_dir() -> Path:
    path = settings.backup_path
    path.mkdir(parents=True, exist_ok=True)
    return path


def _company_dir(company_id: uuid.UUID) -> Path:
    path = settings.backup_path / "companies" / str(company_id)
    path.mkdir(parents=True, exist_ok=True)
    return path


def _safe_file(directory: Path, file_name: str) -> Path:
    """Resolve file_name inside directory; anything else is treated as missing"""
    if not file_name or os.path.basename(file_name) != file_name:
        raise NotFoundError("Backup file not found")
    path = (directory / file_name).resolve()
    if path.parent != directory.resolve() or not path.is_file():
        raise NotFoundError("Backup file not found")
    return path


def _log(db: Session, file_name: str, status: str, triggered_by: str,
         company_id: Optional[uuid.UUID] = None, file_size: int = 0, error: Optional[str] = None) -> BackupLog:
    entry = BackupLog(
        company_id=company_id,
        file_name=file_name,
        file_size=file_size,
        status=status,
        triggered_by=triggered_by,
        error=(error or "")[:1000] or None,
    )
    db.add(entry)
    db.commit()
    return entry


# Whole database

def _pg_url() -> str:
    """Connection string usable by the libpq command line tools"""
    url = make_url(settings.DATABASE_URL).set(drivername="postgresql")
    return url.render_as_string(hide_password=False)


def _run(command: List[str]) -> None:
    process = subprocess.Popen(command, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
    _, stderr = process.communicate()
    if process.returncode != 0:
        raise subprocess.CalledProcessError(process.returncode, command[0], stderr=stderr)


def _sqlite_file() -> Path:
    return Path(make_url(settings.DATABASE_URL).database).resolve()


def _dump_database(workdir: Path) -> Path:
    if settings.is_sqlite:
        target = workdir / DUMP_MEMBER_SQLITE
        shutil.copy2(_sqlite_file(), target)
        return target

    target = workdir / DUMP_MEMBER_POSTGRES
    _run(["pg_dump", "--format=custom", "--no-owner", f"--file={target}", _pg_url()])
    return target


def _add_uploads(archive: zipfile.ZipFile) -> None:
    root = settings.upload_path
    if not root.is_dir():
        return
    for path in root.rglob("*"):
        if path.is_file():
            archive.write(path, UPLOADS_PREFIX + path.relative_to(root).as_posix())


def create_system_backup(db: Session, triggered_by: str = SYSTEM_TRIGGER) -> BackupLog:
    """
    Dump the database and zip it together with the uploads directory
    as backup-unified-<timestamp>.zip. Every run is written to BackupLog.
    """
    file_name = f"backup-unified-{_timestamp()}.zip"
    target = _system_dir() / file_name
    logger.info(f"Starting system backup {file_name} (triggered by {triggered_by})")

    try:
        with tempfile.TemporaryDirectory() as workdir:
            dump = _dump_database(Path(workdir))
            with zipfile.ZipFile(target, "w", zipfile.ZIP_DEFLATED) as archive:
                archive.write(dump, dump.name)
                _add_uploads(archive)
    except (OSError, subprocess.CalledProcessError) as e:
        detail = e.stderr.decode("utf-8", "replace") if isinstance(e, subprocess.CalledProcessError) and e.stderr else str(e)
        logger.error(f"System backup failed: {detail}")
        if target.exists():
            target.unlink()
        _log(db, file_name, "FAILED", triggered_by, error=detail)
        raise AppError(f"Backup failed: {detail}")

    log = _log(db, file_name, "SUCCESS", triggered_by, file_size=target.stat().st_size)
    logger.info(f"System backup written to {target}")
    return log


def list_system_backups(db: Session, limit: int = 10) -> List[BackupLog]:
    return list(db.execute(
        select(BackupLog)
        .where(BackupLog.company_id.is_(None))
        .order_by(BackupLog.created_at.desc())
        .limit(limit)
    ).scalars().all())


def system_backup_path(file_name: str) -> Path:
    return _safe_file(_system_dir(), file_name)


def restore_system_backup(file_name: str) -> None:
    """Replace the database (and uploads) with the contents of a unified archive"""
    archive_path = system_backup_path(file_name)
    logger.warning(f"Restoring system backup {file_name}")

    with tempfile.TemporaryDirectory() as workdir:
        with zipfile.ZipFile(archive_path) as archive:
            archive.extractall(workdir)
        work = Path(workdir)

        if settings.is_sqlite:
            dump = work / DUMP_MEMBER_SQLITE
            if not dump.is_file():
                raise ValidationError("Archive does not contain a SQLite database")
            db_manager.close()
            shutil.copy2(dump, _sqlite_file())
        else:
            dump = work / DUMP_MEMBER_POSTGRES
            if not dump.is_file():
                raise ValidationError("Archive does not contain a PostgreSQL dump")
            try:
                _run(["pg_restore", "--clean", "--if-exists", "--no-owner", f"--dbname={_pg_url()}", str(dump)])
            except subprocess.CalledProcessError as e:
                detail = e.stderr.decode("utf-8", "replace") if e.stderr else str(e)
                logger.error(f"System restore failed: {detail}")
                raise AppError(f"Restore failed: {detail}")

        uploads = work / UPLOADS_PREFIX.rstrip("/")
        if uploads.is_dir():
            shutil.copytree(uploads, settings.upload_path, dirs_exist_ok=True)

    logger.info(f"System backup {file_name} restored")


def run_scheduled_backup() -> None:
    """Entry point for the daily job; opens its own session"""
    session = get_session_maker()()
    try:
        create_system_backup(session, SYSTEM_TRIGGER)
    except AppError as e:
        logger.error(f"Scheduled backup failed: {e.message}")
    finally:
        session.close()


# Company snapshots

# Insert order; deletion runs in reverse
_COMPANY_TABLES = [
    ("branches", Branch),
    ("projects", Project),
    ("cost_centers", CostCenter),
    ("customers", Customer),
    ("vendors", Vendor),
    ("accounts", Account),
    ("journal_entries", JournalEntry),
    ("journal_lines", JournalLine),
    ("invoices", Invoice),
    ("invoice_items", InvoiceItem),
    ("payments", Payment),
    ("loans", Loan),
    ("letters_of_credit", LetterOfCredit),
    ("notifications", Notification),
    ("attachments", Attachment),
]


def _scope(model, company_id: uuid.UUID):
    """WHERE clause selecting one company's rows of a table"""
    if model is JournalLine:
        return JournalLine.journal_entry_id.in_(
            select(JournalEntry.id).where(JournalEntry.company_id == company_id)
        )
    if model is InvoiceItem:
        return InvoiceItem.invoice_id.in_(
            select(Invoice.id).where(Invoice.company_id == company_id)
        )
    return model.company_id == company_id


def _row_to_json(obj) -> Dict[str, Any]:
    row = {}
    for column in obj.__table__.columns:
        value = getattr(obj, column.key)
        if isinstance(value, (uuid.UUID, date, datetime)):
            value = value.isoformat() if not isinstance(value, uuid.UUID) else str(value)
        row[column.key] = value
    return row


def _row_from_json(model, data: Dict[str, Any]) -> Dict[str, Any]:
    row = {}
    for column in model.__table__.columns:
        if column.key not in data:
            continue
        value = data[column.key]
        if value is not None:
            if isinstance(column.type, UUID):
                value = uuid.UUID(value)
            elif isinstance(column.type, DateTime):
                value = datetime.fromisoformat(value)
            elif isinstance(column.type, Date):
                value = date.fromisoformat(value)
        row[column.key] = value
    return row


def company_snapshot(db: Session, company_id: uuid.UUID) -> Dict[str, Any]:
    company = db.get(Company, company_id)
    if not company:
        raise NotFoundError("Company not found")
    snapshot = {
        "version": 1,
        "created_at": datetime.utcnow().isoformat(),
        "company": _row_to_json(company),
        "tables": {},
    }
    for name, model in _COMPANY_TABLES:
        rows = db.execute(select(model).where(_scope(model, company_id))).scalars().all()
        snapshot["tables"][name] = [_row_to_json(r) for r in rows]
    return snapshot


def create_company_backup(db: Session, company_id: uuid.UUID, triggered_by: str) -> BackupLog:
    """Write backup_<timestamp>.zip holding a JSON snapshot of the company's rows"""
    snapshot = company_snapshot(db, company_id)
    file_name = f"backup_{_timestamp()}.zip"
    target = _company_dir(company_id) / file_name

    try:
        with zipfile.ZipFile(target, "w", zipfile.ZIP_DEFLATED) as archive:
            archive.writestr(SNAPSHOT_MEMBER, json.dumps(snapshot, default=str))
    except OSError as e:
        logger.error(f"Company backup failed for {company_id}: {e}")
        _log(db, file_name, "FAILED", triggered_by, company_id=company_id, error=str(e))
        raise AppError(f"Backup failed: {e}")

    counts = {name: len(rows) for name, rows in snapshot["tables"].items()}
    logger.info(f"Company backup {file_name} written for {company_id}: {counts}")
    return _log(db, file_name, "SUCCESS", triggered_by, company_id=company_id, file_size=target.stat().st_size)


def list_company_backups(db: Session, company_id: uuid.UUID) -> List[BackupLog]:
    return list(db.execute(
        select(BackupLog)
        .where(BackupLog.company_id == company_id)
        .order_by(BackupLog.created_at.desc())
    ).scalars().all())


def company_backup_path(company_id: uuid.UUID, file_name: str) -> Path:
    return _safe_file(_company_dir(company_id), file_name)


def _read_snapshot(source) -> Dict[str, Any]:
    try:
        with zipfile.ZipFile(source) as archive:
            return json.loads(archive.read(SNAPSHOT_MEMBER))
    except (zipfile.BadZipFile, KeyError, ValueError):
        raise ValidationError("Invalid backup archive")


def _snapshot_rows(company_id: uuid.UUID, tables: Dict[str, Any]) -> Dict[str, List[Dict[str, Any]]]:
    """
    Decode the archive's rows for insertion. company_id is pinned to the target
    company and every reference into a company table must point at a row of the
    same snapshot.
    """
    decoded = {}
    known_ids = {}
    for name, model in _COMPANY_TABLES:
        rows = []
        for data in tables.get(name) or []:
            if not isinstance(data, dict):
                raise ValidationError("Invalid backup archive")
            try:
                row = _row_from_json(model, data)
            except (ValueError, TypeError, AttributeError):
                raise ValidationError("Invalid backup archive")
            if "company_id" in model.__table__.columns:
                row["company_id"] = company_id
            rows.append(row)
        decoded[name] = rows
        known_ids[model.__tablename__] = {row.get("id") for row in rows}

    for name, model in _COMPANY_TABLES:
        for column in model.__table__.columns:
            for fk in column.foreign_keys:
                target = fk.target_fullname.split(".")[0]
                if target not in known_ids:
                    continue
                for row in decoded[name]:
                    value = row.get(column.key)
                    if value is not None and value not in known_ids[target]:
                        raise ValidationError(f"Backup {name}.{column.key} references a row outside the company")
    return decoded


def restore_company_snapshot(db: Session, company_id: uuid.UUID, snapshot: Dict[str, Any]) -> Dict[str, int]:
    """
    Replace every company-scoped row with the snapshot's rows in one transaction.
    Rows are pinned to this company; references to rows outside the snapshot are refused.
    """
    tables = snapshot.get("tables")
    if not isinstance(tables, dict):
        raise ValidationError("Invalid backup archive")
    if str((snapshot.get("company") or {}).get("id")) != str(company_id):
        raise ValidationError("Backup belongs to a different company")

    company = db.get(Company, company_id)
    if not company:
        raise NotFoundError("Company not found")
    decoded = _snapshot_rows(company_id, tables)

    restored = {}
    try:
        for _, model in reversed(_COMPANY_TABLES):
            db.execute(delete(model).where(_scope(model, company_id)).execution_options(synchronize_session=False))

        for key, value in _row_from_json(Company, snapshot["company"]).items():
            if key not in ("id", "created_at"):
                setattr(company, key, value)

        for name, model in _COMPANY_TABLES:
            rows = decoded[name]
            if rows:
                db.execute(insert(model), rows)
            restored[name] = len(rows)

        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Company restore failed for {company_id}: {e}")
        raise

    db.expire_all()
    logger.info(f"Company {company_id} restored: {restored}")
    return restored


def restore_company_backup(db: Session, company_id: uuid.UUID, file_name: str) -> Dict[str, int]:
    return restore_company_snapshot(db, company_id, _read_snapshot(company_backup_path(company_id, file_name)))


def restore_company_upload(db: Session, company_id: uuid.UUID, fileobj) -> Dict[str, int]:
    return restore_company_snapshot(db, company_id, _read_snapshot(fileobj))
