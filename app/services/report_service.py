# app/services/report_service.py - Financial statements built from approved journal lines
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Optional, List, Dict, Any
import uuid

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from app.core.errors import NotFoundError, ValidationError
from app.models.accounting import Account, AccountType, JournalEntry, JournalLine, JournalStatus
from app.models.finance import LetterOfCredit
from app.models.invoice import Invoice
from app.models.partner import Customer, Vendor


@dataclass
class LineFilters:
    """Optional restrictions applied to the approved lines a report reads"""
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    branch_id: Optional[uuid.UUID] = None
    project_id: Optional[uuid.UUID] = None
    cost_center_id: Optional[uuid.UUID] = None
    customer_id: Optional[uuid.UUID] = None
    vendor_id: Optional[uuid.UUID] = None

    def conditions(self) -> list:
        conds = [JournalEntry.status == JournalStatus.APPROVED.value]
        if self.start_date:
            conds.append(JournalEntry.entry_date >= self.start_date)
        if self.end_date:
            conds.append(JournalEntry.entry_date <= self.end_date)
        for column, value in (
            (JournalLine.branch_id, self.branch_id),
            (JournalLine.project_id, self.project_id),
            (JournalLine.cost_center_id, self.cost_center_id),
            (JournalLine.customer_id, self.customer_id),
            (JournalLine.vendor_id, self.vendor_id),
        ):
            if value:
                conds.append(column == value)
        return conds


def _totals_by_account(db: Session, company_id: uuid.UUID, filters: LineFilters) -> Dict[uuid.UUID, tuple]:
    rows = db.execute(
        select(
            JournalLine.account_id,
            func.coalesce(func.sum(JournalLine.debit_base), 0),
            func.coalesce(func.sum(JournalLine.credit_base), 0),
        )
        .join(JournalEntry, JournalEntry.id == JournalLine.journal_entry_id)
        .where(JournalEntry.company_id == company_id, *filters.conditions())
        .group_by(JournalLine.account_id)
    ).all()
    return {account_id: (float(debit), float(credit)) for account_id, debit, credit in rows}


def _accounts(db: Session, company_id: uuid.UUID, type_names: Optional[List[str]] = None, active_only: bool = False):
    query = (
        select(Account)
        .join(AccountType, AccountType.id == Account.account_type_id)
        .where(Account.company_id == company_id)
    )
    if type_names:
        query = query.where(AccountType.name.in_(type_names))
    if active_only:
        query = query.where(Account.is_active.is_(True))
    return db.execute(query.order_by(Account.code)).scalars().all()


def trial_balance(db: Session, company_id: uuid.UUID, filters: LineFilters) -> Dict[str, Any]:
    """Per account: opening on its normal side plus debits minus credits, shown in one column"""
    totals = _totals_by_account(db, company_id, filters)
    rows = []
    for account in _accounts(db, company_id):
        debit, credit = totals.get(account.id, (0.0, 0.0))
        opening = account.opening_balance or 0
        net = (opening if account.is_debit_normal else -opening) + debit - credit
        rows.append({
            "account_id": account.id,
            "account_code": account.code,
            "account_name": account.name,
            "account_type": account.account_type.name,
            "type": account.account_type.type,
            "debit": round(net, 2) if net > 0 else 0,
            "credit": round(-net, 2) if net < 0 else 0,
            "balance": round(net, 2),
        })
    return {
        "accounts": rows,
        "total_debit": round(sum(r["debit"] for r in rows), 2),
        "total_credit": round(sum(r["credit"] for r in rows), 2),
    }


def ledger(db: Session, company_id: uuid.UUID, account_id: uuid.UUID, filters: LineFilters) -> Dict[str, Any]:
    account = db.execute(
        select(Account).where(Account.id == account_id, Account.company_id == company_id)
    ).scalar_one_or_none()
    if not account:
        raise NotFoundError("Account not found")

    rows = db.execute(
        select(JournalLine, JournalEntry)
        .join(JournalEntry, JournalEntry.id == JournalLine.journal_entry_id)
        .where(
            JournalEntry.company_id == company_id,
            JournalLine.account_id == account_id,
            *filters.conditions(),
        )
        .order_by(JournalEntry.entry_date, JournalEntry.created_at, JournalLine.position)
    ).all()

    running = account.opening_balance or 0
    entries = []
    for line, entry in rows:
        running += account.signed(line.debit_base, line.credit_base)
        entries.append({
            "line_id": line.id,
            "journal_id": entry.id,
            "entry_number": entry.entry_number,
            "entry_date": entry.entry_date,
            "description": line.description or entry.description,
            "reference": entry.reference,
            "debit": line.debit_base,
            "credit": line.credit_base,
            "balance": round(running, 2),
        })
    return {
        "account": {"id": account.id, "code": account.code, "name": account.name},
        "opening_balance": account.opening_balance,
        "closing_balance": round(running, 2),
        "entries": entries,
    }


def profit_and_loss(db: Session, company_id: uuid.UUID, filters: LineFilters) -> Dict[str, Any]:
    totals = _totals_by_account(db, company_id, filters)
    income, expenses = [], []
    for account in _accounts(db, company_id, ["INCOME", "EXPENSE"], active_only=True):
        debit, credit = totals.get(account.id, (0.0, 0.0))
        item = {"account_id": account.id, "code": account.code, "name": account.name, "amount": round(abs(credit - debit), 2)}
        (income if account.account_type.name == "INCOME" else expenses).append(item)

    total_income = round(sum(i["amount"] for i in income), 2)
    total_expense = round(sum(i["amount"] for i in expenses), 2)
    return {
        "income": income,
        "expenses": expenses,
        "total_income": total_income,
        "total_expense": total_expense,
        "net_profit": round(total_income - total_expense, 2),
    }


def balance_sheet(db: Session, company_id: uuid.UUID, filters: LineFilters) -> Dict[str, Any]:
    """Cumulative up to end_date; the start date is ignored"""
    cumulative = replace(filters, start_date=None)
    totals = _totals_by_account(db, company_id, cumulative)

    net_income = 0.0
    for account in _accounts(db, company_id, ["INCOME", "EXPENSE"], active_only=True):
        debit, credit = totals.get(account.id, (0.0, 0.0))
        if account.account_type.name == "INCOME":
            net_income += credit - debit
        else:
            net_income -= debit - credit

    sections: Dict[str, list] = {"ASSET": [], "LIABILITY": [], "EQUITY": []}
    for account in _accounts(db, company_id, list(sections), active_only=True):
        debit, credit = totals.get(account.id, (0.0, 0.0))
        balance = (account.opening_balance or 0) + account.signed(debit, credit)
        sections[account.account_type.name].append(
            {"account_id": account.id, "code": account.code, "name": account.name, "balance": round(balance, 2)}
        )

    sections["EQUITY"].append({"account_id": None, "code": None, "name": "Retained Earnings (Net Profit)", "balance": round(net_income, 2)})
    total = {k: round(sum(i["balance"] for i in v), 2) for k, v in sections.items()}
    return {
        "assets": sections["ASSET"],
        "liabilities": sections["LIABILITY"],
        "equity": sections["EQUITY"],
        "total_assets": total["ASSET"],
        "total_liabilities": total["LIABILITY"],
        "total_equity": total["EQUITY"],
        "retained_earnings": round(net_income, 2),
    }


def aging(db: Session, company_id: uuid.UUID, party_type: str) -> List[Dict[str, Any]]:
    party_type = (party_type or "").upper()
    if party_type not in ("CUSTOMER", "VENDOR"):
        raise ValidationError("type must be CUSTOMER or VENDOR")

    model, column = (Customer, JournalLine.customer_id) if party_type == "CUSTOMER" else (Vendor, JournalLine.vendor_id)
    parties = db.execute(select(model).where(model.company_id == company_id).order_by(model.name)).scalars().all()

    lines = db.execute(
        select(JournalLine)
        .join(JournalEntry, JournalEntry.id == JournalLine.journal_entry_id)
        .where(
            JournalEntry.company_id == company_id,
            JournalEntry.status == JournalStatus.APPROVED.value,
            column.is_not(None),
        )
    ).scalars().all()

    balances: Dict[uuid.UUID, float] = {}
    for line in lines:
        party_id = line.customer_id if party_type == "CUSTOMER" else line.vendor_id
        balances[party_id] = balances.get(party_id, 0) + line.account.signed(line.debit_base, line.credit_base)

    result = []
    for party in parties:
        balance = round(balances.get(party.id, 0), 2)
        if balance == 0:
            continue
        result.append({
            "id": party.id,
            "code": party.code,
            "name": party.name,
            "balance": balance,
            "due_current": balance if balance > 0 else 0,
            "due_30": 0,
            "due_60": 0,
            "due_90_plus": 0,
        })
    return result


def search_receivables(
    db: Session,
    company_id: uuid.UUID,
    customer_name: Optional[str] = None,
    reference: Optional[str] = None,
    min_amount: Optional[float] = None,
    max_amount: Optional[float] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    branch_id: Optional[uuid.UUID] = None,
    status: Optional[str] = None,
) -> List[Dict[str, Any]]:
    query = (
        select(Invoice, Customer)
        .join(Customer, Customer.id == Invoice.customer_id)
        .where(Invoice.company_id == company_id)
    )
    if customer_name:
        query = query.where(func.lower(Customer.name).contains(customer_name.lower()))
    if reference:
        query = query.where(func.lower(Invoice.reference).contains(reference.lower()))
    if min_amount is not None:
        query = query.where(Invoice.total_base >= min_amount)
    if max_amount is not None:
        query = query.where(Invoice.total_base <= max_amount)
    if start_date:
        query = query.where(Invoice.invoice_date >= start_date)
    if end_date:
        query = query.where(Invoice.invoice_date <= end_date)
    if branch_id:
        query = query.where(Invoice.branch_id == branch_id)
    if status:
        query = query.where(Invoice.status == status.upper())

    rows = db.execute(query.order_by(Invoice.invoice_date.desc())).all()
    return [
        {
            "id": invoice.id,
            "invoice_number": invoice.invoice_number,
            "invoice_date": invoice.invoice_date,
            "due_date": invoice.due_date,
            "reference": invoice.reference,
            "customer_id": customer.id,
            "customer_name": customer.name,
            "branch_id": invoice.branch_id,
            "total_base": invoice.total_base,
            "amount_paid": invoice.amount_paid,
            "balance_due": invoice.balance_due,
            "status": invoice.status,
        }
        for invoice, customer in rows
    ]


def lc_liability(db: Session, company_id: uuid.UUID) -> Dict[str, Any]:
    lcs = db.execute(
        select(LetterOfCredit)
        .where(LetterOfCredit.company_id == company_id, LetterOfCredit.status == "OPEN")
        .order_by(LetterOfCredit.expiry_date)
    ).scalars().all()
    items = [
        {
            "id": lc.id,
            "lc_number": lc.lc_number,
            "bank_name": lc.bank_name,
            "beneficiary": lc.beneficiary,
            "expiry_date": lc.expiry_date,
            "amount": lc.amount,
            "currency": lc.currency,
            "conversion_rate": lc.conversion_rate,
            "amount_base": lc.amount_base,
        }
        for lc in lcs
    ]
    return {"lcs": items, "total_base": round(sum(i["amount_base"] for i in items), 2)}


def reconcile_lines(
    db: Session,
    company_id: uuid.UUID,
    account_id: Optional[uuid.UUID],
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> List[Dict[str, Any]]:
    """Unreconciled approved lines of one bank account, oldest first"""
    if not account_id:
        raise ValidationError("account_id is required")

    query = (
        select(JournalLine, JournalEntry)
        .join(JournalEntry, JournalEntry.id == JournalLine.journal_entry_id)
        .where(
            JournalEntry.company_id == company_id,
            JournalEntry.status == JournalStatus.APPROVED.value,
            JournalLine.account_id == account_id,
            JournalLine.reconciled.is_(False),
        )
    )
    if start_date:
        query = query.where(JournalEntry.entry_date >= start_date)
    if end_date:
        query = query.where(JournalEntry.entry_date <= end_date)

    rows = db.execute(query.order_by(JournalEntry.entry_date, JournalLine.position)).all()
    return [
        {
            "line_id": line.id,
            "journal_id": entry.id,
            "entry_number": entry.entry_number,
            "entry_date": entry.entry_date,
            "description": line.description or entry.description,
            "reference": entry.reference,
            "debit": line.debit_base,
            "credit": line.credit_base,
        }
        for line, entry in rows
    ]


def mark_reconciled(db: Session, company_id: uuid.UUID, line_ids: List[uuid.UUID]) -> int:
    if not line_ids:
        raise ValidationError("line_ids must be a non-empty list")

    lines = db.execute(
        select(JournalLine)
        .join(JournalEntry, JournalEntry.id == JournalLine.journal_entry_id)
        .where(JournalEntry.company_id == company_id, JournalLine.id.in_(line_ids))
    ).scalars().all()
    now = datetime.utcnow()
    for line in lines:
        line.reconciled = True
        line.reconciled_at = now
    db.flush()
    return len(lines)
