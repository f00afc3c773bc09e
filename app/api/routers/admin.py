# app/api/routers/admin.py - Platform administration: companies, owners and database backups
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from sqlalchemy import select, delete
from typing import Dict, Any
import logging
from uuid import UUID

from app.core.db import get_db
from app.core.errors import NotFoundError
from app.core.security import hash_password
from app.api.deps.auth import require_admin
from app.api.responses import ok
from app.models.company import Company
from app.models.user import User, Role, UserRole, UserCompany, RoleName
from app.schemas.company import CompanyCreate, CompanyUpdate, CompanyStatusUpdate, CompanyOut, OwnerCreate, PasswordReset
from app.schemas.finance import BackupLogOut, RestoreIn
from app.services import backup_service, company_service
from app.services.auth_service import AuthService

logger = logging.getLogger(__name__)
router = APIRouter()


def _get_company(db: Session, company_id: UUID) -> Company:
    company = db.get(Company, company_id)
    if not company:
        raise NotFoundError("Company not found")
    return company


# Companies

@router.get("/companies")
async def list_companies(
    ctx: Dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """All companies with their owners and member counts, newest first"""
    companies = db.execute(select(Company).order_by(Company.created_at.desc())).scalars().all()
    return ok([company_service.company_summary(db, c) for c in companies])


@router.post("/companies", status_code=status.HTTP_201_CREATED)
async def create_company(
    data: CompanyCreate,
    ctx: Dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db)
):
    fields = data.model_dump(exclude={"name", "owner_id"})
    try:
        if data.owner_id and not db.get(User, data.owner_id):
            raise NotFoundError("Owner not found")
        company = company_service.create_company(db, data.name, owner_id=data.owner_id, **fields)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error creating company {data.name}: {e}")
        raise

    logger.info(f"Company {company.code} created by admin {ctx['user'].email}")
    return ok(CompanyOut.model_validate(company), "Company created")


@router.put("/companies/{company_id}")
async def update_company(
    company_id: UUID,
    data: CompanyUpdate,
    ctx: Dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db)
):
    company = _get_company(db, company_id)
    fields = data.model_dump(exclude_unset=True, exclude={"owner_id"})

    try:
        for key, value in fields.items():
            if value is not None:
                setattr(company, key, value)

        if "owner_id" in data.model_fields_set:
            if data.owner_id:
                if not db.get(User, data.owner_id):
                    raise NotFoundError("Owner not found")
                company_service.replace_main_owner(db, company_id, data.owner_id)
            else:
                db.execute(
                    delete(UserCompany).where(
                        UserCompany.company_id == company_id, UserCompany.is_main_owner.is_(True)
                    )
                )
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error updating company {company_id}: {e}")
        raise

    return ok(CompanyOut.model_validate(company), "Company updated")


@router.delete("/companies/{company_id}")
async def delete_company(
    company_id: UUID,
    ctx: Dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db)
):
    company = _get_company(db, company_id)
    code = company.code
    try:
        db.expunge(company)
        db.execute(delete(Company).where(Company.id == company_id))
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error deleting company {company_id}: {e}")
        raise

    logger.warning(f"Company {code} deleted by admin {ctx['user'].email}")
    return ok(None, "Company deleted successfully")


@router.put("/companies/{company_id}/status")
async def set_company_status(
    company_id: UUID,
    data: CompanyStatusUpdate,
    ctx: Dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db)
):
    company = _get_company(db, company_id)
    company.is_active = data.is_active
    try:
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error changing status of company {company_id}: {e}")
        raise
    return ok(CompanyOut.model_validate(company))


# Owners

def _owner_dict(db: Session, user: User) -> Dict[str, Any]:
    rows = db.execute(
        select(Company)
        .join(UserCompany, UserCompany.company_id == Company.id)
        .where(UserCompany.user_id == user.id)
        .order_by(Company.name)
    ).scalars().all()
    return {
        "id": user.id,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "phone": user.phone,
        "is_active": user.is_active,
        "max_companies": user.max_companies,
        "roles": user.roles,
        "companies": [{"id": c.id, "name": c.name, "code": c.code} for c in rows],
        "created_at": user.created_at,
    }


@router.get("/owners")
async def list_owners(
    ctx: Dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db)
):
    owners = db.execute(
        select(User)
        .join(UserRole, UserRole.user_id == User.id)
        .join(Role, Role.id == UserRole.role_id)
        .where(Role.name == RoleName.OWNER.value)
        .order_by(User.created_at.desc())
    ).scalars().unique().all()
    return ok([_owner_dict(db, o) for o in owners])


@router.post("/owners", status_code=status.HTTP_201_CREATED)
async def create_owner(
    data: OwnerCreate,
    ctx: Dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Create an Owner account. Validation (password length included) runs before any write."""
    service = AuthService(db)
    try:
        user = service.create_user(
            email=data.email,
            password=data.password,
            first_name=data.first_name,
            last_name=data.last_name,
            roles=[RoleName.OWNER.value],
            phone=data.phone,
            max_companies=data.max_companies,
        )
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error creating owner {data.email}: {e}")
        raise

    logger.info(f"Owner {user.email} created by admin {ctx['user'].email}")
    return ok(_owner_dict(db, user), "Owner created")


@router.delete("/owners/{owner_id}")
async def delete_owner(
    owner_id: UUID,
    ctx: Dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db)
):
    user = db.get(User, owner_id)
    if not user:
        raise NotFoundError("Owner not found")
    try:
        db.delete(user)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error deleting owner {owner_id}: {e}")
        raise
    return ok(None, "Owner deleted successfully")


@router.post("/owners/{owner_id}/reset-password")
async def reset_owner_password(
    owner_id: UUID,
    data: PasswordReset,
    ctx: Dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db)
):
    user = db.get(User, owner_id)
    if not user:
        raise NotFoundError("User not found")
    user.password_hash = hash_password(data.password)
    try:
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error resetting password for {owner_id}: {e}")
        raise
    return ok(None, "Password reset successfully")


# Backups

@router.get("/backups")
async def list_backups(
    ctx: Dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return ok([BackupLogOut.model_validate(b) for b in backup_service.list_system_backups(db)])


@router.post("/backups", status_code=status.HTTP_201_CREATED)
async def create_backup(
    ctx: Dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db)
):
    log = backup_service.create_system_backup(db, triggered_by=str(ctx["user"].id))
    return ok(BackupLogOut.model_validate(log), "Backup created successfully")


@router.post("/backups/restore")
async def restore_backup(
    data: RestoreIn,
    ctx: Dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db)
):
    db.close()
    backup_service.restore_system_backup(data.file_name)
    logger.warning(f"Database restored from {data.file_name} by admin {ctx['user'].email}")
    return ok(None, "Backup restored successfully")
