# app/models/accounting.py - Chart of accounts and double-entry journals
from __future__ import annotations
import uuid
import enum
from datetime import date, datetime
from sqlalchemy import String, Date, DateTime, Boolean, Numeric, Text, ForeignKey, UniqueConstraint, CheckConstraint, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.models.base import Base


class AccountTypeName(str, enum.Enum):
    ASSET = "ASSET"
    LIABILITY = "LIABILITY"
    EQUITY = "EQUITY"
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class NormalBalance(str, enum.Enum):
    DEBIT = "DEBIT"
    CREDIT = "CREDIT"


# Account types every company needs, with their normal balance side
DEFAULT_ACCOUNT_TYPES = [
    ("ASSET", "DEBIT"),
    ("LIABILITY", "CREDIT"),
    ("EQUITY", "CREDIT"),
    ("INCOME", "CREDIT"),
    ("EXPENSE", "DEBIT"),
]


class CashFlowType(str, enum.Enum):
    OPERATING = "OPERATING"
    INVESTING = "INVESTING"
    FINANCING = "FINANCING"
    NONE = "NONE"


class JournalStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PENDING_VERIFICATION = "PENDING_VERIFICATION"
    VERIFIED = "VERIFIED"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class AccountType(Base):
    __tablename__ = "account_types"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    type: Mapped[str] = mapped_column(String(8), nullable=False)
    description: Mapped[str | None] = mapped_column(String(255))

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("type IN ('DEBIT','CREDIT')", name="normal_balance"),
    )

    @property
    def is_debit(self) -> bool:
        return self.type == NormalBalance.DEBIT.value


class Currency(Base):
    __tablename__ = "currencies"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    code: Mapped[str] = mapped_column(String(8), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    symbol: Mapped[str] = mapped_column(String(8), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


class Account(Base):
    __tablename__ = "accounts"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    account_type_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("account_types.id"), nullable=False)
    code: Mapped[str] = mapped_column(String(32), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str | None] = mapped_column(String(32))  # CASH|BANK|AR|AP|REVENUE|...
    opening_balance: Mapped[float] = mapped_column(Numeric(18, 2, asdecimal=False), default=0, nullable=False)
    current_balance: Mapped[float] = mapped_column(Numeric(18, 2, asdecimal=False), default=0, nullable=False)
    cash_flow_type: Mapped[str] = mapped_column(String(16), default=CashFlowType.NONE.value, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    allow_negative: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    company: Mapped["Company"] = relationship("Company", back_populates="accounts")
    account_type: Mapped["AccountType"] = relationship("AccountType", lazy="joined")

    __table_args__ = (
        UniqueConstraint("company_id", "code", name="uq_account_code"),
        CheckConstraint(
            "cash_flow_type IN ('OPERATING','INVESTING','FINANCING','NONE')", name="cash_flow_type"
        ),
    )

    @property
    def is_debit_normal(self) -> bool:
        return self.account_type is not None and self.account_type.is_debit

    def signed(self, debit: float, credit: float) -> float:
        """Balance movement of a debit/credit pair on this account"""
        return (debit - credit) if self.is_debit_normal else (credit - debit)

    def __repr__(self):
        return f"<Account(code='{self.code}', name='{self.name}')>"


class JournalEntry(Base):
    __tablename__ = "journal_entries"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    entry_number: Mapped[str] = mapped_column(String(32), nullable=False)
    entry_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text)
    reference: Mapped[str | None] = mapped_column(String(128))
    total_debit: Mapped[float] = mapped_column(Numeric(18, 2, asdecimal=False), default=0, nullable=False)
    total_credit: Mapped[float] = mapped_column(Numeric(18, 2, asdecimal=False), default=0, nullable=False)
    status: Mapped[str] = mapped_column(String(32), default=JournalStatus.DRAFT.value, nullable=False)
    rejection_reason: Mapped[str | None] = mapped_column(Text)

    created_by_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))
    verified_by_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))
    verified_at: Mapped[datetime | None] = mapped_column(DateTime)
    approved_by_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))
    approved_at: Mapped[datetime | None] = mapped_column(DateTime)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    lines: Mapped[list["JournalLine"]] = relationship(
        "JournalLine", back_populates="journal_entry", cascade="all, delete-orphan",
        order_by="JournalLine.position", lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint("company_id", "entry_number", name="uq_journal_entry_number"),
        CheckConstraint(
            "status IN ('DRAFT','PENDING_VERIFICATION','VERIFIED','PENDING_APPROVAL','APPROVED','REJECTED')",
            name="status",
        ),
        Index("ix_journal_entries_company_status", "company_id", "status"),
    )


class JournalLine(Base):
    __tablename__ = "journal_lines"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    journal_entry_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("journal_entries.id", ondelete="CASCADE"), nullable=False, index=True)
    account_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("accounts.id"), nullable=False, index=True)
    position: Mapped[int] = mapped_column(default=0, nullable=False)
    description: Mapped[str | None] = mapped_column(String(500))

    debit: Mapped[float] = mapped_column(Numeric(18, 2, asdecimal=False), default=0, nullable=False)
    credit: Mapped[float] = mapped_column(Numeric(18, 2, asdecimal=False), default=0, nullable=False)
    debit_base: Mapped[float] = mapped_column(Numeric(18, 2, asdecimal=False), default=0, nullable=False)
    credit_base: Mapped[float] = mapped_column(Numeric(18, 2, asdecimal=False), default=0, nullable=False)
    debit_foreign: Mapped[float] = mapped_column(Numeric(18, 2, asdecimal=False), default=0, nullable=False)
    credit_foreign: Mapped[float] = mapped_column(Numeric(18, 2, asdecimal=False), default=0, nullable=False)
    exchange_rate: Mapped[float] = mapped_column(Numeric(18, 6, asdecimal=False), default=1, nullable=False)
    currency_code: Mapped[str | None] = mapped_column(String(8))

    # Reporting dimensions
    branch_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("branches.id", ondelete="SET NULL"))
    project_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("projects.id", ondelete="SET NULL"))
    cost_center_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("cost_centers.id", ondelete="SET NULL"))
    customer_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("customers.id", ondelete="SET NULL"))
    vendor_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("vendors.id", ondelete="SET NULL"))

    reconciled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    reconciled_at: Mapped[datetime | None] = mapped_column(DateTime)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    journal_entry: Mapped["JournalEntry"] = relationship("JournalEntry", back_populates="lines")
    account: Mapped["Account"] = relationship("Account", lazy="joined")

    __table_args__ = (
        CheckConstraint("debit >= 0 AND credit >= 0", name="non_negative_amounts"),
    )
