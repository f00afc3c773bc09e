# app/api/routers/company.py - Company data: info, dashboard, master data and chart of accounts
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from sqlalchemy import select
from typing import Dict, Any, Optional
import logging
from uuid import UUID

from app.core.db import get_db
from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.api.deps.tenancy import require_company, require_company_or_demo
from app.api.responses import ok
from app.models.accounting import Account, AccountType
from app.models.company import Project, CostCenter
from app.models.partner import Customer, Vendor
from app.schemas.company import CompanyOut
from app.schemas.ledger import (
    AccountCreate,
    AccountUpdate,
    AccountOut,
    AccountTypeOut,
    CustomerIn,
    CustomerOut,
    PartnerIn,
    PartnerOut,
    PartnerUpdate,
    DimensionIn,
    DimensionOut,
)
from app.services import dashboard_service, journal_service
from app.services.demo_data import DEMO_COMPANY, demo_accounts
from app.services.numbering import partner_code

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/{company_id}")
async def get_company(
    company_id: UUID,
    ctx: Optional[Dict[str, Any]] = Depends(require_company_or_demo),
):
    """Company info; the demo company while offline"""
    if ctx is None:
        return ok(DEMO_COMPANY)
    data = CompanyOut.model_validate(ctx["company"]).model_dump()
    data["role"] = ctx["role"]
    return ok(data)


@router.get("/{company_id}/dashboard-stats")
async def dashboard_stats(
    company_id: UUID,
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    """Refresh notifications, then compute the headline figures"""
    try:
        stats = dashboard_service.stats(db, company_id)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error computing dashboard for {company_id}: {e}")
        raise
    return ok(stats)


# Customers and vendors

def _partner_routes(model, prefix: str, label: str, create_schema, out_schema):
    """Register list/create/update/delete for a partner table"""

    def _get(db: Session, company_id: UUID, partner_id: UUID):
        partner = db.execute(
            select(model).where(model.id == partner_id, model.company_id == company_id)
        ).scalar_one_or_none()
        if not partner:
            raise NotFoundError(f"{label} not found")
        return partner

    @router.get(f"/{{company_id}}/{label.lower()}s", name=f"list_{label.lower()}s")
    async def list_partners(
        company_id: UUID,
        ctx: Dict[str, Any] = Depends(require_company),
        db: Session = Depends(get_db)
    ):
        rows = db.execute(
            select(model).where(model.company_id == company_id).order_by(model.name)
        ).scalars().all()
        return ok([out_schema.model_validate(r) for r in rows])

    @router.post(
        f"/{{company_id}}/{label.lower()}s",
        status_code=status.HTTP_201_CREATED,
        name=f"create_{label.lower()}",
    )
    async def create_partner(
        company_id: UUID,
        data: create_schema,
        ctx: Dict[str, Any] = Depends(require_company),
        db: Session = Depends(get_db)
    ):
        fields = data.model_dump()
        fields["code"] = fields.get("code") or partner_code(prefix)
        exists = db.execute(
            select(model.id).where(model.company_id == company_id, model.code == fields["code"])
        ).first()
        if exists:
            raise ConflictError(f"{label} code already exists")

        partner = model(company_id=company_id, **fields)
        db.add(partner)
        try:
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error(f"Error creating {label.lower()} in {company_id}: {e}")
            raise
        return ok(out_schema.model_validate(partner), f"{label} created")

    @router.put(f"/{{company_id}}/{label.lower()}s/{{partner_id}}", name=f"update_{label.lower()}")
    async def update_partner(
        company_id: UUID,
        partner_id: UUID,
        data: PartnerUpdate,
        ctx: Dict[str, Any] = Depends(require_company),
        db: Session = Depends(get_db)
    ):
        partner = _get(db, company_id, partner_id)
        for key, value in data.model_dump(exclude_unset=True).items():
            if hasattr(partner, key) and value is not None:
                setattr(partner, key, value)
        try:
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error(f"Error updating {label.lower()} {partner_id}: {e}")
            raise
        return ok(out_schema.model_validate(partner), f"{label} updated")

    @router.delete(f"/{{company_id}}/{label.lower()}s/{{partner_id}}", name=f"delete_{label.lower()}")
    async def delete_partner(
        company_id: UUID,
        partner_id: UUID,
        ctx: Dict[str, Any] = Depends(require_company),
        db: Session = Depends(get_db)
    ):
        partner = _get(db, company_id, partner_id)
        try:
            db.delete(partner)
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error(f"Error deleting {label.lower()} {partner_id}: {e}")
            raise
        return ok(None, f"{label} deleted")


_partner_routes(Customer, "CUS", "Customer", CustomerIn, CustomerOut)
_partner_routes(Vendor, "VEN", "Vendor", PartnerIn, PartnerOut)


# Chart of accounts

@router.get("/{company_id}/accounts")
async def list_accounts(
    company_id: UUID,
    page: int = Query(1, ge=1),
    limit: int = Query(100, ge=1, le=1000),
    ctx: Optional[Dict[str, Any]] = Depends(require_company_or_demo),
    db: Session = Depends(get_db)
):
    """Accounts ordered by code with their type; demo accounts while offline"""
    if ctx is None:
        return ok(demo_accounts())

    accounts = db.execute(
        select(Account)
        .where(Account.company_id == company_id)
        .order_by(Account.code)
        .offset((page - 1) * limit)
        .limit(limit)
    ).scalars().all()
    return ok([AccountOut.model_validate(a) for a in accounts])


@router.post("/{company_id}/accounts", status_code=status.HTTP_201_CREATED)
async def create_account(
    company_id: UUID,
    data: AccountCreate,
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    if not db.get(AccountType, data.account_type_id):
        raise ValidationError("Account type not found")
    exists = db.execute(
        select(Account.id).where(Account.company_id == company_id, Account.code == data.code)
    ).first()
    if exists:
        raise ConflictError("Account code already exists")

    account = Account(
        company_id=company_id,
        account_type_id=data.account_type_id,
        code=data.code,
        name=data.name,
        category=data.category,
        opening_balance=data.opening_balance,
        current_balance=data.opening_balance,
        cash_flow_type=data.cash_flow_type,
        allow_negative=data.allow_negative,
        is_active=True,
    )
    db.add(account)
    try:
        db.commit()
        db.refresh(account)
    except Exception as e:
        db.rollback()
        logger.error(f"Error creating account {data.code} in {company_id}: {e}")
        raise

    logger.info(f"Account {account.code} {account.name} created in {company_id}")
    return ok(AccountOut.model_validate(account), "Account created")


@router.put("/{company_id}/accounts/{account_id}")
async def update_account(
    company_id: UUID,
    account_id: UUID,
    data: AccountUpdate,
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    account = db.execute(
        select(Account).where(Account.id == account_id, Account.company_id == company_id)
    ).scalar_one_or_none()
    if not account:
        raise NotFoundError("Account not found")

    for key, value in data.model_dump(exclude_unset=True).items():
        if value is not None or key == "category":
            setattr(account, key, value.upper() if key == "category" and value else value)
    try:
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error updating account {account_id}: {e}")
        raise
    return ok(AccountOut.model_validate(account), "Account updated")


@router.get("/{company_id}/account-types")
async def list_account_types(
    company_id: UUID,
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    types = db.execute(select(AccountType).order_by(AccountType.name)).scalars().all()
    return ok([AccountTypeOut.model_validate(t) for t in types])


@router.post("/{company_id}/heal-balances")
async def heal_balances(
    company_id: UUID,
    ctx: Dict[str, Any] = Depends(require_company),
    db: Session = Depends(get_db)
):
    """Recompute current balances from opening balances and approved lines"""
    try:
        count = journal_service.heal_balances(db, company_id)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error healing balances for {company_id}: {e}")
        raise
    return ok({"accounts": count}, "All account balances have been synchronized with the ledger.")


# Projects and cost centers

def _dimension_routes(model, path: str, label: str):

    @router.get(f"/{{company_id}}/{path}", name=f"list_{path}")
    async def list_dimensions(
        company_id: UUID,
        ctx: Dict[str, Any] = Depends(require_company),
        db: Session = Depends(get_db)
    ):
        rows = db.execute(
            select(model).where(model.company_id == company_id).order_by(model.code)
        ).scalars().all()
        return ok([DimensionOut.model_validate(r) for r in rows])

    @router.post(f"/{{company_id}}/{path}", status_code=status.HTTP_201_CREATED, name=f"create_{path}")
    async def create_dimension(
        company_id: UUID,
        data: DimensionIn,
        ctx: Dict[str, Any] = Depends(require_company),
        db: Session = Depends(get_db)
    ):
        exists = db.execute(
            select(model.id).where(model.company_id == company_id, model.code == data.code)
        ).first()
        if exists:
            raise ConflictError(f"{label} code already exists")

        row = model(company_id=company_id, **data.model_dump())
        db.add(row)
        try:
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error(f"Error creating {label.lower()} in {company_id}: {e}")
            raise
        return ok(DimensionOut.model_validate(row), f"{label} created")


_dimension_routes(Project, "projects", "Project")
_dimension_routes(CostCenter, "cost-centers", "Cost center")
