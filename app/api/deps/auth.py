# app/api/deps/auth.py - Token resolution and role-based authorization
from fastapi import Depends, Query
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from sqlalchemy import select
from app.core.db import get_db
from app.core.errors import UnauthorizedError, ForbiddenError
from app.core.security import decode_token
from app.models.user import User, UserCompany, RoleName
from uuid import UUID
from typing import Dict, Any, Optional

security = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    token: Optional[str] = Query(default=None, description="Token for download links"),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Decode JWT and return user + claims.
    The token comes from the Authorization header, or from ?token= for file downloads.
    Returns: {"user": User, "claims": dict, "company_id": UUID | None}
    """
    raw = credentials.credentials if credentials else token
    if not raw:
        raise UnauthorizedError("Authentication required")

    claims = decode_token(raw)

    user_id_str = claims.get("sub")
    if not user_id_str:
        raise UnauthorizedError("Token missing user ID")

    try:
        user_uuid = UUID(user_id_str)
    except ValueError:
        raise UnauthorizedError("Invalid token")

    user = db.execute(
        select(User).where(User.id == user_uuid)
    ).scalar_one_or_none()

    if not user:
        raise UnauthorizedError("User not found")

    if not user.is_active:
        raise UnauthorizedError("Account is inactive")

    return {
        "user": user,
        "claims": claims,
        "company_id": default_company_id(db, user),
    }


def default_company_id(db: Session, user: User) -> Optional[UUID]:
    """The user's default company, falling back to the first membership"""
    links = db.execute(
        select(UserCompany)
        .where(UserCompany.user_id == user.id)
        .order_by(UserCompany.is_default.desc(), UserCompany.created_at)
    ).scalars().first()
    return links.company_id if links else None


def require_admin(ctx=Depends(get_current_user)):
    """Require the Admin role"""
    if not ctx["user"].is_admin:
        raise ForbiddenError("Admin access required")
    return ctx


def require_owner(ctx=Depends(get_current_user)):
    """Require the Owner role; admins pass"""
    if not ctx["user"].has_any_role([RoleName.OWNER.value, RoleName.ADMIN.value]):
        raise ForbiddenError("Owner access required")
    return ctx
