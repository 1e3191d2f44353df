import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from crud.lookups import get_account
from exceptions import BusinessRuleError
from models.accounts import Account
from utils import to_decimal

logger = logging.getLogger("accounts")


def adjust_balance(db: Session, tenant_id: str, account_id: Optional[int], delta, reason: str = "") -> Optional[Account]:
    """Add a signed amount to an account's balance under a row lock. No account, no effect."""
    if account_id is None:
        return None
    get_account(db, tenant_id, account_id)
    account = db.query(Account).filter(
        Account.id == account_id,
        Account.tenant_id == tenant_id,
    ).with_for_update().one()
    if not account.is_active:
        raise BusinessRuleError(f"Account '{account.name}' is inactive")

    delta = to_decimal(delta)
    old_balance = to_decimal(account.current_balance)
    account.current_balance = old_balance + delta
    db.flush()
    logger.info(f"Account {account.id} balance {old_balance} -> {account.current_balance} ({reason}) for tenant {tenant_id}")
    return account


def get_total_balance(db: Session, tenant_id: str) -> Decimal:
    accounts = db.query(Account).filter(Account.tenant_id == tenant_id, Account.is_active.is_(True)).all()
    return sum((to_decimal(account.current_balance) for account in accounts), Decimal("0"))
