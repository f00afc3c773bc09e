# app/models/finance.py - Bank loans and letters of credit
from __future__ import annotations
import uuid
from datetime import date, datetime
from sqlalchemy import String, Date, DateTime, Numeric, Text, ForeignKey, CheckConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column
from app.models.base import Base


class Loan(Base):
    __tablename__ = "loans"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    loan_number: Mapped[str] = mapped_column(String(64), nullable=False)
    bank_name: Mapped[str] = mapped_column(String(255), nullable=False)
    loan_type: Mapped[str | None] = mapped_column(String(64))  # TERM|LTR|PAD|CC|...
    principal_amount: Mapped[float] = mapped_column(Numeric(18, 2, asdecimal=False), nullable=False)
    outstanding_balance: Mapped[float] = mapped_column(Numeric(18, 2, asdecimal=False), default=0, nullable=False)
    interest_rate: Mapped[float] = mapped_column(Numeric(7, 4, asdecimal=False), default=0, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date)
    status: Mapped[str] = mapped_column(String(16), default="ACTIVE", nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("status IN ('ACTIVE','CLOSED')", name="status"),
    )


class LetterOfCredit(Base):
    __tablename__ = "letters_of_credit"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    lc_number: Mapped[str] = mapped_column(String(64), nullable=False)
    bank_name: Mapped[str] = mapped_column(String(255), nullable=False)
    beneficiary: Mapped[str | None] = mapped_column(String(255))
    issue_date: Mapped[date] = mapped_column(Date, nullable=False)
    expiry_date: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[float] = mapped_column(Numeric(18, 2, asdecimal=False), nullable=False)
    currency: Mapped[str] = mapped_column(String(8), default="USD", nullable=False)
    conversion_rate: Mapped[float] = mapped_column(Numeric(18, 6, asdecimal=False), default=1, nullable=False)
    status: Mapped[str] = mapped_column(String(16), default="OPEN", nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("status IN ('OPEN','APPROVED','CLOSED')", name="status"),
    )

    @property
    def amount_base(self) -> float:
        return round((self.amount or 0) * (self.conversion_rate or 1), 2)
