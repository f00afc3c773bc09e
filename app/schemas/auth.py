# app/schemas/auth.py - Login, registration and profile schemas
from pydantic import BaseModel, EmailStr, Field
from typing import Optional
import uuid


class LoginIn(BaseModel):
    email: str
    password: str

    class Config:
        json_schema_extra = {
            "example": {
                "email": "admin@accounting.com",
                "password": "admin123"
            }
        }


class RegisterIn(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6, description="At least 6 characters")
    first_name: str = Field(..., min_length=1, max_length=128)
    last_name: str = Field("", max_length=128)


class ProfileUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=128)
    last_name: Optional[str] = Field(None, max_length=128)
    phone: Optional[str] = Field(None, max_length=32)
    address: Optional[str] = Field(None, max_length=500)


class SessionUser(BaseModel):
    id: uuid.UUID | str
    email: str
    first_name: str
    last_name: str
    roles: list[str]
    is_admin: bool
    company_id: Optional[uuid.UUID] = None


class LoginOut(BaseModel):
    token: str
    token_type: str = "bearer"
    user: SessionUser


class RoleOut(BaseModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None

    class Config:
        from_attributes = True


class MembershipOut(BaseModel):
    company_id: uuid.UUID
    company_name: str
    company_code: str
    is_default: bool
    is_main_owner: bool


class MeOut(BaseModel):
    id: uuid.UUID
    email: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    address: Optional[str] = None
    is_active: bool
    roles: list[str]
    is_admin: bool
    companies: list[MembershipOut] = []
