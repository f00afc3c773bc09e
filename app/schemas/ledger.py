# app/schemas/ledger.py - Chart of accounts, journals and master data
from datetime import date, datetime
from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional
import uuid

CASH_FLOW_TYPES = ("OPERATING", "INVESTING", "FINANCING", "NONE")


class AccountTypeOut(BaseModel):
    id: uuid.UUID
    name: str
    type: str

    class Config:
        from_attributes = True


class AccountCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=32)
    name: str = Field(..., min_length=1, max_length=255)
    account_type_id: uuid.UUID
    category: Optional[str] = Field(None, max_length=32, description="CASH, BANK, AR, AP, REVENUE ...")
    opening_balance: float = 0
    cash_flow_type: str = "NONE"
    allow_negative: bool = False

    @field_validator("cash_flow_type")
    @classmethod
    def validate_cash_flow_type(cls, v: str) -> str:
        v = v.upper()
        if v not in CASH_FLOW_TYPES:
            raise ValueError(f"cash_flow_type must be one of: {', '.join(CASH_FLOW_TYPES)}")
        return v

    @field_validator("category")
    @classmethod
    def upper_category(cls, v: Optional[str]) -> Optional[str]:
        return v.upper() if v else v


class AccountUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    is_active: Optional[bool] = None
    cash_flow_type: Optional[str] = None
    category: Optional[str] = Field(None, max_length=32)
    allow_negative: Optional[bool] = None

    @field_validator("cash_flow_type")
    @classmethod
    def validate_cash_flow_type(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.upper()
        if v not in CASH_FLOW_TYPES:
            raise ValueError(f"cash_flow_type must be one of: {', '.join(CASH_FLOW_TYPES)}")
        return v


class AccountOut(BaseModel):
    id: uuid.UUID
    company_id: uuid.UUID
    code: str
    name: str
    category: Optional[str] = None
    opening_balance: float
    current_balance: float
    cash_flow_type: str
    is_active: bool
    allow_negative: bool
    account_type: AccountTypeOut

    class Config:
        from_attributes = True


class JournalLineIn(BaseModel):
    account_id: uuid.UUID
    description: Optional[str] = Field(None, max_length=500)
    debit: float = Field(0, ge=0)
    credit: float = Field(0, ge=0)
    exchange_rate: Optional[float] = Field(None, gt=0)
    currency_code: Optional[str] = Field(None, max_length=8)
    branch_id: Optional[uuid.UUID] = None
    project_id: Optional[uuid.UUID] = None
    cost_center_id: Optional[uuid.UUID] = None
    customer_id: Optional[uuid.UUID] = None
    vendor_id: Optional[uuid.UUID] = None

    @model_validator(mode="after")
    def one_sided(self):
        if (self.debit > 0) == (self.credit > 0):
            raise ValueError("Each line must have either a debit or a credit amount")
        return self


class JournalCreate(BaseModel):
    entry_date: Optional[date] = None
    description: Optional[str] = None
    reference: Optional[str] = Field(None, max_length=128)
    exchange_rate: float = Field(1, gt=0, description="Default rate for lines without their own")
    currency_code: Optional[str] = Field(None, max_length=8)
    lines: list[JournalLineIn] = []


class JournalUpdate(BaseModel):
    description: Optional[str] = None
    reference: Optional[str] = Field(None, max_length=128)


class RejectIn(BaseModel):
    reason: str = Field(..., min_length=1, max_length=2000)


class JournalLineOut(BaseModel):
    id: uuid.UUID
    account_id: uuid.UUID
    description: Optional[str] = None
    debit: float
    credit: float
    debit_base: float
    credit_base: float
    debit_foreign: float
    credit_foreign: float
    exchange_rate: float
    currency_code: Optional[str] = None
    branch_id: Optional[uuid.UUID] = None
    project_id: Optional[uuid.UUID] = None
    cost_center_id: Optional[uuid.UUID] = None
    customer_id: Optional[uuid.UUID] = None
    vendor_id: Optional[uuid.UUID] = None
    reconciled: bool

    class Config:
        from_attributes = True


class JournalOut(BaseModel):
    id: uuid.UUID
    company_id: uuid.UUID
    entry_number: str
    entry_date: date
    description: Optional[str] = None
    reference: Optional[str] = None
    total_debit: float
    total_credit: float
    status: str
    rejection_reason: Optional[str] = None
    created_by_id: Optional[uuid.UUID] = None
    verified_by_id: Optional[uuid.UUID] = None
    approved_by_id: Optional[uuid.UUID] = None
    created_at: datetime
    lines: list[JournalLineOut] = []

    class Config:
        from_attributes = True


class PartnerIn(BaseModel):
    code: Optional[str] = Field(None, max_length=32)
    name: str = Field(..., min_length=1, max_length=255)
    email: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=32)
    address: Optional[str] = Field(None, max_length=500)
    tax_id: Optional[str] = Field(None, max_length=64)
    is_active: bool = True


class CustomerIn(PartnerIn):
    credit_limit: float = Field(0, ge=0)


class PartnerUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=32)
    address: Optional[str] = Field(None, max_length=500)
    tax_id: Optional[str] = Field(None, max_length=64)
    credit_limit: Optional[float] = Field(None, ge=0)
    is_active: Optional[bool] = None


class PartnerOut(BaseModel):
    id: uuid.UUID
    company_id: uuid.UUID
    code: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    tax_id: Optional[str] = None
    is_active: bool

    class Config:
        from_attributes = True


class CustomerOut(PartnerOut):
    credit_limit: float


class DimensionIn(BaseModel):
    code: str = Field(..., min_length=1, max_length=32)
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=500)


class DimensionOut(BaseModel):
    id: uuid.UUID
    code: str
    name: str
    description: Optional[str] = None
    is_active: bool

    class Config:
        from_attributes = True


class ReconcileMarkIn(BaseModel):
    line_ids: list[uuid.UUID] = []
