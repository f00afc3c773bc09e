# app/api/routers/owner.py - Owner workspace: companies, co-owners and employees
from fastapi import APIRouter, Depends, Form, File, UploadFile, status
from sqlalchemy.orm import Session
from sqlalchemy import select, func, delete
from typing import Dict, Any, Optional, List
import logging
from uuid import UUID

from app.core.db import get_db
from app.core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.core.security import hash_password
from app.api.deps.auth import require_owner
from app.api.responses import ok
from app.models.company import Company
from app.models.user import User, Role, UserRole, UserCompany, UserPermission, RoleName
from app.schemas.company import (
    CompanyOut,
    CoOwnerCreate,
    CoOwnerUpdate,
    EmployeeCreate,
    EmployeeUpdate,
    PermissionUpdate,
    ManagerUpdate,
    StatusToggle,
    PasswordReset,
)
from app.services import company_service
from app.services.attachment_service import save_logo
from app.services.auth_service import AuthService

logger = logging.getLogger(__name__)
router = APIRouter()


def _link(db: Session, user_id: UUID, company_id: UUID) -> Optional[UserCompany]:
    return db.execute(
        select(UserCompany).where(UserCompany.user_id == user_id, UserCompany.company_id == company_id)
    ).scalar_one_or_none()


def _owned_company_ids(db: Session, user: User) -> List[UUID]:
    return list(db.execute(
        select(UserCompany.company_id).where(UserCompany.user_id == user.id)
    ).scalars().all())


def _require_owner_manager(db: Session, user: User, company_id: UUID) -> UserCompany:
    """The caller's link, which must be main owner or carry can_manage_owners"""
    access = _link(db, user.id, company_id)
    if access is None or not (access.is_main_owner or access.can_manage_owners):
        raise ForbiddenError("You do not have permission to manage owners")
    return access


# Companies

@router.get("/companies")
async def my_companies(
    ctx: Dict[str, Any] = Depends(require_owner),
    db: Session = Depends(get_db)
):
    """Companies linked to the caller with owner and employee counts"""
    rows = db.execute(
        select(UserCompany, Company)
        .join(Company, Company.id == UserCompany.company_id)
        .where(UserCompany.user_id == ctx["user"].id)
        .order_by(Company.name)
    ).all()

    companies = []
    for link, company in rows:
        item = CompanyOut.model_validate(company).model_dump()
        item["is_default"] = link.is_default
        item["is_main_owner"] = link.is_main_owner
        item["ownership_percentage"] = link.ownership_percentage
        item.update(company_service.member_counts(db, company.id))
        companies.append(item)
    return ok(companies)


@router.post("/companies", status_code=status.HTTP_201_CREATED)
async def create_company(
    name: str = Form(...),
    code: Optional[str] = Form(None),
    address: Optional[str] = Form(None),
    city: Optional[str] = Form(None),
    country: Optional[str] = Form(None),
    phone: Optional[str] = Form(None),
    email: Optional[str] = Form(None),
    website: Optional[str] = Form(None),
    base_currency: Optional[str] = Form(None),
    logo: Optional[UploadFile] = File(None),
    ctx: Dict[str, Any] = Depends(require_owner),
    db: Session = Depends(get_db)
):
    """Create a company from a multipart form; the caller becomes main owner"""
    user = ctx["user"]
    if not name.strip():
        raise ValidationError("Company name is required")

    if code:
        code = code.strip().upper()
        if db.execute(select(Company.id).where(Company.code == code)).first():
            raise ConflictError("Company code already exists")

    if not user.is_admin:
        owned = db.execute(
            select(func.count(UserCompany.id)).where(
                UserCompany.user_id == user.id, UserCompany.is_main_owner.is_(True)
            )
        ).scalar_one()
        if owned >= user.max_companies:
            raise ForbiddenError(f"Company limit reached ({user.max_companies})")

    logo_url = await save_logo(logo)
    try:
        company = company_service.create_company(
            db,
            name.strip(),
            owner_id=user.id,
            code=code,
            address=address, city=city, country=country, phone=phone,
            email=email, website=website, base_currency=base_currency,
            logo_url=logo_url,
        )
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error creating company {name}: {e}")
        raise

    logger.info(f"Company {company.code} created by owner {user.email}")
    return ok(CompanyOut.model_validate(company), "Company created")


@router.put("/companies/{company_id}")
async def update_company(
    company_id: UUID,
    name: Optional[str] = Form(None),
    address: Optional[str] = Form(None),
    city: Optional[str] = Form(None),
    country: Optional[str] = Form(None),
    phone: Optional[str] = Form(None),
    email: Optional[str] = Form(None),
    website: Optional[str] = Form(None),
    base_currency: Optional[str] = Form(None),
    logo_url: Optional[str] = Form(None),
    logo: Optional[UploadFile] = File(None),
    ctx: Dict[str, Any] = Depends(require_owner),
    db: Session = Depends(get_db)
):
    if _link(db, ctx["user"].id, company_id) is None:
        raise ForbiddenError("You do not have access to this company")
    company = db.get(Company, company_id)
    if not company:
        raise NotFoundError("Company not found")

    values = {
        "name": name, "address": address, "city": city, "country": country, "phone": phone,
        "email": email, "website": website, "base_currency": base_currency,
    }
    for key, value in values.items():
        if value is not None:
            setattr(company, key, value)

    stored = await save_logo(logo)
    if stored or logo_url:
        company.logo_url = stored or logo_url

    try:
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error updating company {company_id}: {e}")
        raise

    return ok(CompanyOut.model_validate(company), "Company updated")


# Co-owners

def _co_owner_dict(link: UserCompany, user: User) -> Dict[str, Any]:
    return {
        "user_id": user.id,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "is_main_owner": link.is_main_owner,
        "ownership_percentage": link.ownership_percentage,
        "can_edit_company": link.can_edit_company,
        "can_delete_company": link.can_delete_company,
        "can_manage_owners": link.can_manage_owners,
        "father_mother_name": link.father_mother_name,
        "nid_passport": link.nid_passport,
        "mobile": link.mobile,
        "permanent_address": link.permanent_address,
        "ownership_type": link.ownership_type,
        "joining_date": link.joining_date,
        "opening_capital": link.opening_capital,
        "current_capital_balance": link.current_capital_balance,
        "capital_account_code": link.capital_account_code,
        "drawing_account_code": link.drawing_account_code,
        "tin": link.tin,
        "din": link.din,
    }


@router.get("/companies/{company_id}/owners")
async def list_co_owners(
    company_id: UUID,
    ctx: Dict[str, Any] = Depends(require_owner),
    db: Session = Depends(get_db)
):
    if _link(db, ctx["user"].id, company_id) is None and not ctx["user"].is_admin:
        raise ForbiddenError("No access to this company")

    rows = db.execute(
        select(UserCompany, User)
        .join(User, User.id == UserCompany.user_id)
        .where(UserCompany.company_id == company_id)
        .order_by(UserCompany.is_main_owner.desc(), UserCompany.created_at)
    ).all()
    return ok([_co_owner_dict(link, user) for link, user in rows if user.is_owner])


@router.post("/companies/{company_id}/owners", status_code=status.HTTP_201_CREATED)
async def add_co_owner(
    company_id: UUID,
    data: CoOwnerCreate,
    ctx: Dict[str, Any] = Depends(require_owner),
    db: Session = Depends(get_db)
):
    """Find or create the owner, then link them with a share under the 100% cap"""
    _require_owner_manager(db, ctx["user"], company_id)
    if not db.get(Company, company_id):
        raise NotFoundError("Company not found")

    service = AuthService(db)
    percentage = data.ownership_percentage or 0
    try:
        owner = service.get_by_email(data.email)
        if owner is None:
            if not data.first_name or not data.password:
                raise ConflictError("User not found. Please provide name and password to register a new user.")
            owner = service.create_user(
                email=data.email,
                password=data.password,
                first_name=data.first_name,
                last_name=data.last_name or "",
                roles=[RoleName.OWNER.value],
            )
        else:
            service.assign_role(owner, RoleName.OWNER.value)

        if _link(db, owner.id, company_id) is not None:
            raise ConflictError("This user is already linked to the company")

        current = company_service.ownership_total(db, company_id)
        if current + percentage > 100:
            raise ConflictError(
                f"Total ownership cannot exceed 100%. Current total shares: {current:g}%. "
                f"Adding {percentage:g}% would total {current + percentage:g}%."
            )

        short_id = str(owner.id).split("-")[0].upper()
        opening = data.opening_capital or 0
        link = UserCompany(
            user_id=owner.id,
            company_id=company_id,
            is_default=False,
            is_main_owner=False,
            ownership_percentage=percentage,
            father_mother_name=data.father_mother_name,
            nid_passport=data.nid_passport,
            mobile=data.mobile,
            permanent_address=data.permanent_address,
            ownership_type=data.ownership_type,
            joining_date=data.joining_date,
            opening_capital=opening,
            current_capital_balance=opening,
            capital_account_code=f"CAP-O-{short_id}",
            drawing_account_code=f"DRW-O-{short_id}",
            tin=data.tin,
            din=data.din,
        )
        db.add(link)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error adding co-owner {data.email} to {company_id}: {e}")
        raise

    logger.info(f"Co-owner {owner.email} added to company {company_id} with {percentage:g}%")
    return ok(_co_owner_dict(link, owner), "Owner added to company")


@router.put("/companies/{company_id}/owners/{owner_id}")
async def update_co_owner(
    company_id: UUID,
    owner_id: UUID,
    data: CoOwnerUpdate,
    ctx: Dict[str, Any] = Depends(require_owner),
    db: Session = Depends(get_db)
):
    requester = ctx["user"]
    _require_owner_manager(db, requester, company_id)

    target = _link(db, owner_id, company_id)
    if target is None:
        raise NotFoundError("Owner not found in this company")
    if target.is_main_owner:
        raise ForbiddenError("You cannot edit the main owner")

    fields = data.model_dump(exclude_unset=True)
    if fields.get("ownership_percentage") is not None:
        others = company_service.ownership_total(db, company_id, exclude_user_id=owner_id)
        new_total = others + fields["ownership_percentage"]
        if new_total > 100:
            raise ConflictError(
                f"Total ownership cannot exceed 100%. The other owners currently hold {others:g}%. "
                f"This update would bring the total to {new_total:g}%."
            )

    try:
        for key, value in fields.items():
            if value is not None:
                setattr(target, key, value)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error updating co-owner {owner_id} in {company_id}: {e}")
        raise

    return ok(_co_owner_dict(target, db.get(User, owner_id)), "Owner updated")


@router.delete("/companies/{company_id}/owners/{owner_id}")
async def remove_co_owner(
    company_id: UUID,
    owner_id: UUID,
    ctx: Dict[str, Any] = Depends(require_owner),
    db: Session = Depends(get_db)
):
    _require_owner_manager(db, ctx["user"], company_id)
    target = _link(db, owner_id, company_id)
    if target is None:
        raise NotFoundError("Owner not found in this company")

    try:
        db.delete(target)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error removing co-owner {owner_id} from {company_id}: {e}")
        raise
    return ok(None, "Owner removed from company")


# Employees

def _employee_dict(db: Session, user: User) -> Dict[str, Any]:
    companies = db.execute(
        select(Company)
        .join(UserCompany, UserCompany.company_id == Company.id)
        .where(UserCompany.user_id == user.id)
        .order_by(Company.name)
    ).scalars().all()
    permissions = db.execute(
        select(UserPermission).where(UserPermission.user_id == user.id).order_by(UserPermission.module)
    ).scalars().all()
    return {
        "id": user.id,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "is_active": user.is_active,
        "role": user.roles[0] if user.roles else RoleName.USER.value,
        "companies": [{"id": c.id, "name": c.name, "code": c.code} for c in companies],
        "manager": (
            {"id": user.manager.id, "name": user.manager.full_name} if user.manager else None
        ),
        "permissions": [
            {
                "module": p.module,
                "can_create": p.can_create,
                "can_view": p.can_view,
                "can_verify": p.can_verify,
                "can_approve": p.can_approve,
            }
            for p in permissions
        ],
    }


def _managed_user(db: Session, requester: User, user_id: UUID) -> User:
    """A user sharing at least one company with the caller; admins reach everyone"""
    employee = db.get(User, user_id)
    if not employee:
        raise NotFoundError("Employee not found")
    if requester.is_admin:
        return employee
    shared = db.execute(
        select(UserCompany.id).where(
            UserCompany.user_id == employee.id,
            UserCompany.company_id.in_(_owned_company_ids(db, requester)),
        ).limit(1)
    ).first()
    if not shared:
        raise ForbiddenError("This employee does not belong to your companies")
    return employee


def _set_role(db: Session, user: User, role_id: Optional[UUID]) -> None:
    if not role_id:
        return
    role = db.get(Role, role_id)
    if not role:
        raise NotFoundError("Role not found")
    db.flush()
    db.execute(delete(UserRole).where(UserRole.user_id == user.id))
    db.expire(user, ["user_roles"])
    user.user_roles.append(UserRole(role_id=role.id, role=role))


def _link_companies(db: Session, user: User, company_ids: List[UUID]) -> None:
    for company_id in company_ids:
        db.add(UserCompany(user_id=user.id, company_id=company_id, is_default=len(company_ids) == 1))


@router.get("/employees")
async def list_employees(
    ctx: Dict[str, Any] = Depends(require_owner),
    db: Session = Depends(get_db)
):
    """Everyone linked to the caller's companies, owners included"""
    company_ids = _owned_company_ids(db, ctx["user"])
    users = db.execute(
        select(User)
        .join(UserCompany, UserCompany.user_id == User.id)
        .where(UserCompany.company_id.in_(company_ids))
        .order_by(User.first_name, User.last_name)
    ).scalars().unique().all()
    return ok([_employee_dict(db, u) for u in users])


@router.post("/employees", status_code=status.HTTP_201_CREATED)
async def create_employee(
    data: EmployeeCreate,
    ctx: Dict[str, Any] = Depends(require_owner),
    db: Session = Depends(get_db)
):
    owned = set(_owned_company_ids(db, ctx["user"]))
    valid = [cid for cid in data.company_ids if cid in owned]

    service = AuthService(db)
    try:
        user = service.create_user(
            email=data.email,
            password=data.password,
            first_name=data.first_name,
            last_name=data.last_name,
        )
        _set_role(db, user, data.role_id)
        _link_companies(db, user, valid)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error creating employee {data.email}: {e}")
        raise

    logger.info(f"Employee {user.email} created by {ctx['user'].email} in {len(valid)} company(ies)")
    return ok(_employee_dict(db, user), "Employee created")


@router.put("/employees/{employee_id}")
async def update_employee(
    employee_id: UUID,
    data: EmployeeUpdate,
    ctx: Dict[str, Any] = Depends(require_owner),
    db: Session = Depends(get_db)
):
    employee = _managed_user(db, ctx["user"], employee_id)
    service = AuthService(db)

    try:
        if data.email and data.email.lower() != employee.email:
            if service.get_by_email(data.email):
                raise ConflictError("User with this email already exists")
            employee.email = data.email.lower()
        if data.first_name is not None:
            employee.first_name = data.first_name
        if data.last_name is not None:
            employee.last_name = data.last_name
        if data.password:
            employee.password_hash = hash_password(data.password)

        _set_role(db, employee, data.role_id)

        if data.company_ids is not None:
            owned = set(_owned_company_ids(db, ctx["user"]))
            valid = [cid for cid in data.company_ids if cid in owned]
            db.execute(delete(UserCompany).where(
                UserCompany.user_id == employee.id,
                UserCompany.company_id.in_(list(owned)),
            ))
            _link_companies(db, employee, valid)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error updating employee {employee_id}: {e}")
        raise

    return ok(_employee_dict(db, employee), "Employee updated")


@router.put("/employees/{employee_id}/permissions")
async def update_employee_permissions(
    employee_id: UUID,
    data: PermissionUpdate,
    ctx: Dict[str, Any] = Depends(require_owner),
    db: Session = Depends(get_db)
):
    """Upsert the permission row for one module"""
    employee = _managed_user(db, ctx["user"], employee_id)
    permission = db.execute(
        select(UserPermission).where(UserPermission.user_id == employee.id, UserPermission.module == data.module)
    ).scalar_one_or_none()
    if permission is None:
        permission = UserPermission(user_id=employee.id, module=data.module)
        db.add(permission)

    permission.can_create = data.can_create
    permission.can_view = data.can_view
    permission.can_verify = data.can_verify
    permission.can_approve = data.can_approve
    try:
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error updating permissions of {employee_id}: {e}")
        raise

    return ok(data.model_dump(), "Permissions updated")


@router.put("/employees/{employee_id}/manager")
async def set_employee_manager(
    employee_id: UUID,
    data: ManagerUpdate,
    ctx: Dict[str, Any] = Depends(require_owner),
    db: Session = Depends(get_db)
):
    employee = _managed_user(db, ctx["user"], employee_id)
    if data.manager_id:
        if data.manager_id == employee.id:
            raise ValidationError("An employee cannot report to themselves")
        if not db.get(User, data.manager_id):
            raise NotFoundError("Manager not found")
    employee.manager_id = data.manager_id
    try:
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error setting manager of {employee_id}: {e}")
        raise
    return ok(None, "Manager updated successfully")


@router.put("/employees/{employee_id}/status")
async def set_employee_status(
    employee_id: UUID,
    data: StatusToggle,
    ctx: Dict[str, Any] = Depends(require_owner),
    db: Session = Depends(get_db)
):
    employee = _managed_user(db, ctx["user"], employee_id)
    employee.is_active = data.is_active
    try:
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error changing status of {employee_id}: {e}")
        raise
    state = "activated" if data.is_active else "deactivated"
    return ok(None, f"Employee {state} successfully")


@router.post("/employees/{employee_id}/reset-password")
async def reset_employee_password(
    employee_id: UUID,
    data: PasswordReset,
    ctx: Dict[str, Any] = Depends(require_owner),
    db: Session = Depends(get_db)
):
    employee = _managed_user(db, ctx["user"], employee_id)
    employee.password_hash = hash_password(data.password)
    try:
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error resetting password of {employee_id}: {e}")
        raise
    return ok(None, "Password reset successfully")


@router.delete("/employees/{employee_id}")
async def delete_employee(
    employee_id: UUID,
    ctx: Dict[str, Any] = Depends(require_owner),
    db: Session = Depends(get_db)
):
    """Only a main owner of a company the employee belongs to may delete them"""
    requester = ctx["user"]
    employee = db.get(User, employee_id)
    if not employee:
        raise NotFoundError("Employee not found")

    shared_ids = db.execute(
        select(UserCompany.company_id).where(UserCompany.user_id == employee.id)
    ).scalars().all()
    main_owner_link = db.execute(
        select(UserCompany.id).where(
            UserCompany.user_id == requester.id,
            UserCompany.company_id.in_(shared_ids),
            UserCompany.is_main_owner.is_(True),
        ).limit(1)
    ).first()
    if not main_owner_link:
        raise ForbiddenError(
            "You do not have permission to delete this employee. Only Main Owners can perform this action."
        )

    try:
        db.delete(employee)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error deleting employee {employee_id}: {e}")
        raise
    return ok(None, "Employee deleted successfully")
