# app/schemas/finance.py - Loans, letters of credit, attachments, notifications and backups
from datetime import date, datetime
from pydantic import BaseModel, Field, field_validator
from typing import Optional
import uuid


class LoanCreate(BaseModel):
    loan_number: str = Field(..., min_length=1, max_length=64)
    bank_name: str = Field(..., min_length=1, max_length=255)
    loan_type: Optional[str] = Field(None, max_length=64, description="TERM, LTR, PAD, CC ...")
    principal_amount: float = Field(..., gt=0)
    outstanding_balance: Optional[float] = Field(None, ge=0, description="Defaults to the principal")
    interest_rate: float = Field(0, ge=0)
    start_date: date
    end_date: Optional[date] = None
    notes: Optional[str] = None


class LoanUpdate(BaseModel):
    bank_name: Optional[str] = Field(None, min_length=1, max_length=255)
    loan_type: Optional[str] = Field(None, max_length=64)
    outstanding_balance: Optional[float] = Field(None, ge=0)
    interest_rate: Optional[float] = Field(None, ge=0)
    end_date: Optional[date] = None
    status: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.upper()
        if v not in ("ACTIVE", "CLOSED"):
            raise ValueError("status must be ACTIVE or CLOSED")
        return v


class LoanOut(BaseModel):
    id: uuid.UUID
    company_id: uuid.UUID
    loan_number: str
    bank_name: str
    loan_type: Optional[str] = None
    principal_amount: float
    outstanding_balance: float
    interest_rate: float
    start_date: date
    end_date: Optional[date] = None
    status: str
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class LCCreate(BaseModel):
    lc_number: str = Field(..., min_length=1, max_length=64)
    bank_name: str = Field(..., min_length=1, max_length=255)
    beneficiary: Optional[str] = Field(None, max_length=255)
    issue_date: date
    expiry_date: date
    amount: float = Field(..., gt=0)
    currency: str = Field("USD", max_length=8)
    conversion_rate: float = Field(1, gt=0)
    notes: Optional[str] = None


class LCUpdate(BaseModel):
    bank_name: Optional[str] = Field(None, min_length=1, max_length=255)
    beneficiary: Optional[str] = Field(None, max_length=255)
    expiry_date: Optional[date] = None
    amount: Optional[float] = Field(None, gt=0)
    currency: Optional[str] = Field(None, max_length=8)
    conversion_rate: Optional[float] = Field(None, gt=0)
    status: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.upper()
        if v not in ("OPEN", "APPROVED", "CLOSED"):
            raise ValueError("status must be OPEN, APPROVED or CLOSED")
        return v


class LCOut(BaseModel):
    id: uuid.UUID
    company_id: uuid.UUID
    lc_number: str
    bank_name: str
    beneficiary: Optional[str] = None
    issue_date: date
    expiry_date: date
    amount: float
    currency: str
    conversion_rate: float
    amount_base: float
    status: str
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class AttachmentOut(BaseModel):
    id: uuid.UUID
    entity_type: str
    entity_id: str
    file_name: str
    file_type: Optional[str] = None
    file_size: int
    uploaded_by_id: Optional[uuid.UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True


class BackupLogOut(BaseModel):
    id: uuid.UUID
    company_id: Optional[uuid.UUID] = None
    file_name: str
    file_size: int
    status: str
    triggered_by: str
    error: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class RestoreIn(BaseModel):
    file_name: str = Field(..., min_length=1, max_length=255)
