# app/services/categorization.py - Keyword rules assigning cash-flow types to accounts
from typing import Optional, Dict
import logging
import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.accounting import Account, CashFlowType

logger = logging.getLogger(__name__)

OPERATING_KEYWORDS = (
    "export", "sales", "income", "revenue",
    "fabric", "accessories", "salary", "wage", "utility", "electricity",
    "gas", "water", "factory", "bank charge", "commission",
)
INVESTING_KEYWORDS = ("machine", "building", "equipment")
FINANCING_KEYWORDS = ("loan", "capital", "equity", "dividend", "ltr", "pad")


def classify(name: str) -> CashFlowType:
    """
    Any name containing "loan" is financing. Otherwise the first matching
    rule wins, checked in order operating, investing, financing.
    """
    name = (name or "").lower()
    if "loan" in name:
        return CashFlowType.FINANCING
    if any(k in name for k in OPERATING_KEYWORDS):
        return CashFlowType.OPERATING
    if any(k in name for k in INVESTING_KEYWORDS) or (
        "asset" in name and "cash" not in name and "bank" not in name
    ):
        return CashFlowType.INVESTING
    if any(k in name for k in FINANCING_KEYWORDS):
        return CashFlowType.FINANCING
    return CashFlowType.NONE


def categorize_accounts(db: Session, company_id: Optional[uuid.UUID] = None, dry_run: bool = False) -> Dict[str, int]:
    """
    Classify every account (or one company's) and write the non-NONE results.
    Returns counts per cash-flow type plus "updated".
    """
    query = select(Account).order_by(Account.code)
    if company_id:
        query = query.where(Account.company_id == company_id)

    counts = {t.value: 0 for t in CashFlowType}
    counts["updated"] = 0
    for account in db.execute(query).scalars().all():
        flow = classify(account.name)
        counts[flow.value] += 1
        if flow is CashFlowType.NONE:
            continue
        logger.info(f"Categorized {account.name} as {flow.value}")
        if not dry_run and account.cash_flow_type != flow.value:
            account.cash_flow_type = flow.value
            counts["updated"] += 1

    if not dry_run:
        db.flush()
    return counts
