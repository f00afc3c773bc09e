# app/services/company_service.py - Company provisioning and ownership links
from sqlalchemy.orm import Session
from sqlalchemy import select, func
from typing import Optional, Dict, Any
import logging
import uuid

from app.models.accounting import AccountType, DEFAULT_ACCOUNT_TYPES
from app.models.company import Company, Branch
from app.models.user import User, UserCompany, RoleName
from app.services.numbering import company_code

logger = logging.getLogger(__name__)

MAIN_OWNER_FLAGS = {
    "is_default": True,
    "is_main_owner": True,
    "ownership_percentage": 100,
    "can_edit_company": True,
    "can_delete_company": True,
    "can_manage_owners": True,
}


def ensure_account_types(db: Session) -> Dict[str, AccountType]:
    """Upsert the five account types; existing rows are left untouched"""
    existing = {t.name: t for t in db.execute(select(AccountType)).scalars().all()}
    for name, normal in DEFAULT_ACCOUNT_TYPES:
        if name not in existing:
            account_type = AccountType(name=name, type=normal)
            db.add(account_type)
            existing[name] = account_type
    db.flush()
    return existing


def link_main_owner(db: Session, company_id: uuid.UUID, user_id: uuid.UUID) -> UserCompany:
    """Create or update the membership so the user owns 100% with every permission"""
    link = db.execute(
        select(UserCompany).where(UserCompany.user_id == user_id, UserCompany.company_id == company_id)
    ).scalar_one_or_none()
    if link is None:
        link = UserCompany(user_id=user_id, company_id=company_id)
        db.add(link)
    for key, value in MAIN_OWNER_FLAGS.items():
        setattr(link, key, value)
    db.flush()
    return link


def create_company(
    db: Session,
    name: str,
    owner_id: Optional[uuid.UUID] = None,
    code: Optional[str] = None,
    **fields: Any,
) -> Company:
    """
    Create a company with its MAIN branch and make sure the account types exist.
    With owner_id the user becomes main owner. The caller commits.
    """
    company = Company(
        code=code or company_code(db, name),
        name=name,
        is_active=True,
        **{k: v for k, v in fields.items() if v is not None},
    )
    db.add(company)
    db.flush()

    db.add(Branch(company_id=company.id, code="MAIN", name="Main Branch", is_active=True))
    ensure_account_types(db)

    if owner_id:
        link_main_owner(db, company.id, owner_id)

    logger.info(f"Company created: {company.code} {company.name}")
    return company


def replace_main_owner(db: Session, company_id: uuid.UUID, owner_id: uuid.UUID) -> None:
    current = db.execute(
        select(UserCompany).where(UserCompany.company_id == company_id, UserCompany.is_main_owner.is_(True))
    ).scalars().all()
    for link in current:
        if link.user_id != owner_id:
            db.delete(link)
    db.flush()
    link_main_owner(db, company_id, owner_id)


def company_summary(db: Session, company: Company) -> Dict[str, Any]:
    """Company row plus its owners, for the admin list"""
    links = db.execute(
        select(UserCompany, User)
        .join(User, User.id == UserCompany.user_id)
        .where(UserCompany.company_id == company.id)
    ).all()
    owners = [
        {"id": user.id, "name": user.full_name, "email": user.email}
        for link, user in links
        if user.has_role(RoleName.OWNER.value)
    ]
    return {
        "id": company.id,
        "code": company.code,
        "name": company.name,
        "logo_url": company.logo_url,
        "address": company.address,
        "city": company.city,
        "country": company.country,
        "phone": company.phone,
        "email": company.email,
        "base_currency": company.base_currency,
        "is_active": company.is_active,
        "owners": owners,
        "members_count": len(links),
        "created_at": company.created_at,
    }


def member_counts(db: Session, company_id: uuid.UUID) -> Dict[str, int]:
    """Owners vs employees linked to a company"""
    links = db.execute(
        select(User)
        .join(UserCompany, UserCompany.user_id == User.id)
        .where(UserCompany.company_id == company_id)
    ).scalars().all()
    owners = sum(1 for u in links if u.has_role(RoleName.OWNER.value))
    return {"owners_count": owners, "employees_count": len(links) - owners}


def ownership_total(db: Session, company_id: uuid.UUID, exclude_user_id: Optional[uuid.UUID] = None) -> float:
    query = select(func.coalesce(func.sum(UserCompany.ownership_percentage), 0)).where(
        UserCompany.company_id == company_id
    )
    if exclude_user_id is not None:
        query = query.where(UserCompany.user_id != exclude_user_id)
    return float(db.execute(query).scalar_one())
