# app/models/__init__.py - Import all models so SQLAlchemy can discover them

from app.models.base import Base

from app.models.user import User, Role, RoleName, UserRole, UserCompany, UserPermission
from app.models.company import Company, Branch, Project, CostCenter
from app.models.accounting import (
    AccountType,
    Currency,
    Account,
    JournalEntry,
    JournalLine,
    JournalStatus,
    CashFlowType,
    DEFAULT_ACCOUNT_TYPES,
)
from app.models.partner import Customer, Vendor
from app.models.invoice import Invoice, InvoiceItem, InvoiceStatus, Payment
from app.models.finance import Loan, LetterOfCredit
from app.models.notification import Notification, NotificationType, Severity
from app.models.attachment import Attachment
from app.models.backup import BackupLog

__all__ = [
    "Base",
    "User",
    "Role",
    "RoleName",
    "UserRole",
    "UserCompany",
    "UserPermission",
    "Company",
    "Branch",
    "Project",
    "CostCenter",
    "AccountType",
    "Currency",
    "Account",
    "JournalEntry",
    "JournalLine",
    "JournalStatus",
    "CashFlowType",
    "DEFAULT_ACCOUNT_TYPES",
    "Customer",
    "Vendor",
    "Invoice",
    "InvoiceItem",
    "InvoiceStatus",
    "Payment",
    "Loan",
    "LetterOfCredit",
    "Notification",
    "NotificationType",
    "Severity",
    "Attachment",
    "BackupLog",
]
