# app/services/auth_service.py - Authentication and user account business logic
from sqlalchemy.orm import Session
from sqlalchemy import select
from datetime import datetime
from typing import Optional, Dict, Any, List
import logging

from app.core.errors import ConflictError, UnauthorizedError
from app.core.security import hash_password, verify_password, create_access_token
from app.models.company import Company
from app.models.user import User, Role, UserRole, UserCompany, RoleName

logger = logging.getLogger(__name__)


class AuthService:
    """Service class for authentication operations"""

    def __init__(self, db: Session):
        self.db = db

    def get_by_email(self, email: str) -> Optional[User]:
        return self.db.execute(
            select(User).where(User.email == email.lower().strip())
        ).scalar_one_or_none()

    def ensure_role(self, name: str) -> Role:
        """Fetch a role by name, creating it as a system role if missing"""
        role = self.db.execute(select(Role).where(Role.name == name)).scalar_one_or_none()
        if role is None:
            role = Role(name=name, description=f"{name} role", is_system=True)
            self.db.add(role)
            self.db.flush()
        return role

    def assign_role(self, user: User, role_name: str) -> None:
        if user.has_role(role_name):
            return
        role = self.ensure_role(role_name)
        user.user_roles.append(UserRole(role_id=role.id, role=role))

    def create_user(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str = "",
        roles: List[str] = None,
        **extra: Any,
    ) -> User:
        """
        Create a new user account. The caller commits.

        Args:
            email: User email (will be lowercased)
            password: Plain text password (will be hashed)
            roles: Role names to assign (defaults to ['User'])

        Raises:
            ConflictError: If the email is already registered
        """
        email = email.lower().strip()
        if self.get_by_email(email):
            raise ConflictError("User with this email already exists")

        user = User(
            email=email,
            password_hash=hash_password(password),
            first_name=first_name.strip(),
            last_name=(last_name or "").strip(),
            is_active=True,
            **extra,
        )
        self.db.add(user)
        self.db.flush()

        for role_name in roles or [RoleName.USER.value]:
            self.assign_role(user, role_name)

        logger.info(f"User created: {email}")
        return user

    def authenticate_user(self, email: str, password: str) -> User:
        """
        Check credentials and stamp last_login.

        Raises:
            UnauthorizedError: On bad credentials or an inactive account
        """
        user = self.get_by_email(email)
        if not user or not verify_password(password, user.password_hash):
            raise UnauthorizedError("Invalid credentials")
        if not user.is_active:
            raise UnauthorizedError("Account is inactive")

        user.last_login = datetime.utcnow()
        self.db.commit()

        logger.info(f"User authenticated: {user.email}")
        return user

    def default_company_id(self, user: User):
        link = self.db.execute(
            select(UserCompany)
            .where(UserCompany.user_id == user.id)
            .order_by(UserCompany.is_default.desc(), UserCompany.created_at)
        ).scalars().first()
        return link.company_id if link else None

    def memberships(self, user: User) -> List[Dict[str, Any]]:
        rows = self.db.execute(
            select(UserCompany, Company)
            .join(Company, Company.id == UserCompany.company_id)
            .where(UserCompany.user_id == user.id)
            .order_by(Company.name)
        ).all()
        return [
            {
                "company_id": company.id,
                "company_name": company.name,
                "company_code": company.code,
                "is_default": link.is_default,
                "is_main_owner": link.is_main_owner,
            }
            for link, company in rows
        ]

    def session_user(self, user: User) -> Dict[str, Any]:
        return {
            "id": user.id,
            "email": user.email,
            "first_name": user.first_name,
            "last_name": user.last_name,
            "roles": user.roles,
            "is_admin": user.is_admin,
            "company_id": None if user.is_admin else self.default_company_id(user),
        }

    def issue_token(self, user: User) -> str:
        return create_access_token(
            str(user.id),
            additional_claims={"email": user.email, "is_admin": user.is_admin},
        )

    def login_payload(self, user: User) -> Dict[str, Any]:
        return {"token": self.issue_token(user), "token_type": "bearer", "user": self.session_user(user)}
