# app/schemas/company.py - Companies, owners and employees
from datetime import date, datetime
from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional
import uuid


class CompanyBase(BaseModel):
    address: Optional[str] = Field(None, max_length=500)
    city: Optional[str] = Field(None, max_length=128)
    country: Optional[str] = Field(None, max_length=128)
    phone: Optional[str] = Field(None, max_length=32)
    email: Optional[str] = Field(None, max_length=255)
    website: Optional[str] = Field(None, max_length=255)
    base_currency: Optional[str] = Field(None, max_length=8)


class CompanyCreate(CompanyBase):
    name: str = Field(..., min_length=1, max_length=255, description="Company name (required)")
    owner_id: Optional[uuid.UUID] = Field(None, description="Owner to link as main owner")


class CompanyUpdate(CompanyBase):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    owner_id: Optional[uuid.UUID] = None
    is_active: Optional[bool] = None


class CompanyStatusUpdate(BaseModel):
    is_active: bool


class CompanyOut(BaseModel):
    id: uuid.UUID
    code: str
    name: str
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    logo_url: Optional[str] = None
    base_currency: str
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class OwnerCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6, description="At least 6 characters")
    first_name: str = Field(..., min_length=1, max_length=128)
    last_name: str = Field("", max_length=128)
    phone: Optional[str] = Field(None, max_length=32)
    max_companies: int = Field(5, ge=1, le=1000)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()


class PasswordReset(BaseModel):
    password: str = Field(..., min_length=6, description="At least 6 characters")


class CoOwnerProfile(BaseModel):
    ownership_percentage: Optional[float] = Field(None, ge=0, le=100)
    father_mother_name: Optional[str] = None
    nid_passport: Optional[str] = None
    mobile: Optional[str] = None
    permanent_address: Optional[str] = None
    ownership_type: Optional[str] = None
    joining_date: Optional[date] = None
    opening_capital: Optional[float] = Field(None, ge=0)
    tin: Optional[str] = None
    din: Optional[str] = None


class CoOwnerCreate(CoOwnerProfile):
    email: EmailStr
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    password: Optional[str] = Field(None, min_length=6)


class CoOwnerUpdate(CoOwnerProfile):
    can_edit_company: Optional[bool] = None
    can_delete_company: Optional[bool] = None
    can_manage_owners: Optional[bool] = None


class EmployeeCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    first_name: str = Field(..., min_length=1, max_length=128)
    last_name: str = Field("", max_length=128)
    role_id: Optional[uuid.UUID] = None
    company_ids: list[uuid.UUID] = []


class EmployeeUpdate(BaseModel):
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=6)
    first_name: Optional[str] = Field(None, min_length=1, max_length=128)
    last_name: Optional[str] = Field(None, max_length=128)
    role_id: Optional[uuid.UUID] = None
    company_ids: Optional[list[uuid.UUID]] = None


class PermissionUpdate(BaseModel):
    module: str = Field(..., min_length=1, max_length=64)
    can_create: bool = False
    can_view: bool = True
    can_verify: bool = False
    can_approve: bool = False


class ManagerUpdate(BaseModel):
    manager_id: Optional[uuid.UUID] = None


class StatusToggle(BaseModel):
    is_active: bool
