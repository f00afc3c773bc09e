# app/schemas/invoice.py - Invoices and payments
from datetime import date, datetime
from pydantic import BaseModel, Field
from typing import Optional
import uuid


class InvoiceItemIn(BaseModel):
    description: str = Field(..., min_length=1, max_length=500)
    quantity: float = Field(1, gt=0)
    unit_price: float = Field(..., ge=0)
    tax_rate: float = Field(0, ge=0, le=100)
    account_id: Optional[uuid.UUID] = None


class InvoiceCreate(BaseModel):
    customer_id: uuid.UUID
    invoice_date: date
    due_date: Optional[date] = None
    reference: Optional[str] = Field(None, max_length=128)
    branch_id: Optional[uuid.UUID] = None
    currency_code: str = Field("BDT", max_length=8)
    exchange_rate: float = Field(1, gt=0)
    notes: Optional[str] = None
    items: list[InvoiceItemIn] = Field(..., min_length=1)


class InvoiceUpdate(BaseModel):
    customer_id: Optional[uuid.UUID] = None
    invoice_date: Optional[date] = None
    due_date: Optional[date] = None
    reference: Optional[str] = Field(None, max_length=128)
    exchange_rate: Optional[float] = Field(None, gt=0)
    notes: Optional[str] = None
    items: Optional[list[InvoiceItemIn]] = None


class InvoiceItemOut(BaseModel):
    id: uuid.UUID
    description: str
    quantity: float
    unit_price: float
    tax_rate: float
    amount: float
    account_id: Optional[uuid.UUID] = None

    class Config:
        from_attributes = True


class InvoiceOut(BaseModel):
    id: uuid.UUID
    company_id: uuid.UUID
    customer_id: uuid.UUID
    invoice_number: str
    invoice_date: date
    due_date: Optional[date] = None
    reference: Optional[str] = None
    currency_code: str
    exchange_rate: float
    subtotal: float
    tax_amount: float
    total: float
    total_base: float
    amount_paid: float
    status: str
    rejection_reason: Optional[str] = None
    notes: Optional[str] = None
    journal_entry_id: Optional[uuid.UUID] = None
    created_at: datetime
    items: list[InvoiceItemOut] = []

    class Config:
        from_attributes = True


class PaymentCreate(BaseModel):
    amount: float
    payment_date: Optional[date] = None
    invoice_id: Optional[uuid.UUID] = None
    customer_id: Optional[uuid.UUID] = None
    vendor_id: Optional[uuid.UUID] = None
    account_id: Optional[uuid.UUID] = Field(None, description="Cash or bank account receiving the money")
    method: str = Field("BANK", max_length=16)
    reference: Optional[str] = Field(None, max_length=128)


class PaymentOut(BaseModel):
    id: uuid.UUID
    payment_number: str
    amount: float
    payment_date: date
    invoice_id: Optional[uuid.UUID] = None
    customer_id: Optional[uuid.UUID] = None
    vendor_id: Optional[uuid.UUID] = None
    account_id: Optional[uuid.UUID] = None
    method: str
    reference: Optional[str] = None
    status: str
    journal_entry_id: Optional[uuid.UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True
