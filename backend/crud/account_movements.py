"""
Money documents that move account balances directly.

* transfers take ``sent_amount`` out of one account and put
  ``received_amount`` into another (the two differ when the accounts hold
  different currencies);
* adjusts credit or debit a single account;
* income transactions credit an account under an income category.

Every update reverses the document's old effect before applying the new
one, and a delete reverses it for good. Balances move through
``accounts.adjust_balance`` so each account row is locked while it changes.
"""

import logging
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from crud import accounts as accounts_crud
from crud import code_counters
from crud.audit_log import log_change
from crud.lookups import get_account
from exceptions import BusinessRuleError, ConflictError, NotFoundError, service_errors
from models.account_movements import (
    AccountAdjust, AccountAdjustType, AccountTransfer, IncomeCategory, IncomeTransaction,
)
from utils import sqlalchemy_to_dict, to_decimal

logger = logging.getLogger("account_movements")

TRANSFER_PREFIX = "ATR"
ADJUST_PREFIX = "AAD"
INCOME_PREFIX = "INC"

TRANSFER_FIELDS = ("date", "from_account_id", "to_account_id", "sent_amount", "received_amount",
                   "currency_rate", "note")
ADJUST_FIELDS = ("date", "account_id", "type", "amount", "note")
INCOME_FIELDS = ("date", "income_category_id", "account_id", "amount", "note")


def _require_positive(value, label: str):
    if to_decimal(value) <= 0:
        raise BusinessRuleError(f"{label} must be greater than 0")


def _move(db: Session, tenant_id: str, moves: List[Tuple[int, object]], reason: str):
    # lowest account id first so two transfers between the same pair lock in the same order
    for account_id, delta in sorted(moves, key=lambda move: move[0]):
        accounts_crud.adjust_balance(db, tenant_id, account_id, delta, reason)


# --- Transfers ---

def _transfer_moves(transfer: AccountTransfer, sign: int):
    return [
        (transfer.from_account_id, -sign * to_decimal(transfer.sent_amount)),
        (transfer.to_account_id, sign * to_decimal(transfer.received_amount)),
    ]


def _validate_transfer(db: Session, transfer: AccountTransfer):
    if transfer.from_account_id == transfer.to_account_id:
        raise BusinessRuleError("Cannot transfer to the same account")
    get_account(db, transfer.tenant_id, transfer.from_account_id)
    get_account(db, transfer.tenant_id, transfer.to_account_id)
    _require_positive(transfer.sent_amount, "Sent amount")
    _require_positive(transfer.received_amount, "Received amount")


def get_transfer(db: Session, tenant_id: str, transfer_id: int) -> AccountTransfer:
    transfer = db.query(AccountTransfer).filter(
        AccountTransfer.id == transfer_id,
        AccountTransfer.tenant_id == tenant_id,
    ).first()
    if transfer is None:
        raise NotFoundError("Account transfer", transfer_id)
    return transfer


def create_transfer(db: Session, tenant_id: str, data: dict, user: Optional[str] = None) -> AccountTransfer:
    """Record a transfer; without a received amount the sent amount is converted at ``currency_rate``."""
    with service_errors(logger, "create account transfer"):
        rate = to_decimal(data.get("currency_rate") or 1)
        received = data.get("received_amount")
        if received is None:
            received = to_decimal(data["sent_amount"]) * rate
        transfer = AccountTransfer(
            tenant_id=tenant_id,
            code=code_counters.next_code(db, tenant_id, "account_transfer", TRANSFER_PREFIX),
            date=data["date"],
            from_account_id=data["from_account_id"],
            to_account_id=data["to_account_id"],
            sent_amount=to_decimal(data["sent_amount"]),
            received_amount=to_decimal(received),
            currency_rate=rate,
            note=data.get("note"),
            created_by=user,
        )
        _validate_transfer(db, transfer)
        db.add(transfer)
        db.flush()
        _move(db, tenant_id, _transfer_moves(transfer, 1), f"account transfer {transfer.code}")
        log_change(db, tenant_id, transfer, "CREATE", user)
        logger.info(f"Account transfer {transfer.code}: {transfer.sent_amount} from account "
                    f"{transfer.from_account_id} to {transfer.to_account_id} for tenant {tenant_id}")
        return transfer


def update_transfer(db: Session, transfer: AccountTransfer, data: dict, user: Optional[str] = None) -> AccountTransfer:
    with service_errors(logger, f"update account transfer #{transfer.id}"):
        old_values = sqlalchemy_to_dict(transfer)
        _move(db, transfer.tenant_id, _transfer_moves(transfer, -1), f"account transfer {transfer.code} reversed")
        for field in TRANSFER_FIELDS:
            if data.get(field) is not None:
                setattr(transfer, field, data[field])
        _validate_transfer(db, transfer)
        transfer.updated_by = user
        db.flush()
        _move(db, transfer.tenant_id, _transfer_moves(transfer, 1), f"account transfer {transfer.code}")
        log_change(db, transfer.tenant_id, transfer, "UPDATE", user, old_values=old_values)
        return transfer


def delete_transfer(db: Session, transfer: AccountTransfer, user: Optional[str] = None) -> AccountTransfer:
    with service_errors(logger, f"delete account transfer #{transfer.id}"):
        _move(db, transfer.tenant_id, _transfer_moves(transfer, -1), f"account transfer {transfer.code} deleted")
        transfer.soft_delete(user)
        log_change(db, transfer.tenant_id, transfer, "DELETE", user)
        logger.info(f"Account transfer {transfer.code} deleted for tenant {transfer.tenant_id}")
        return transfer


# --- Adjusts ---

def signed_adjust_amount(adjust: AccountAdjust):
    amount = to_decimal(adjust.amount)
    return amount if adjust.type == AccountAdjustType.CREDIT else -amount


def get_adjust(db: Session, tenant_id: str, adjust_id: int) -> AccountAdjust:
    adjust = db.query(AccountAdjust).filter(AccountAdjust.id == adjust_id, AccountAdjust.tenant_id == tenant_id).first()
    if adjust is None:
        raise NotFoundError("Account adjust", adjust_id)
    return adjust


def create_adjust(db: Session, tenant_id: str, data: dict, user: Optional[str] = None) -> AccountAdjust:
    with service_errors(logger, "create account adjust"):
        get_account(db, tenant_id, data["account_id"])
        _require_positive(data["amount"], "Adjust amount")
        adjust = AccountAdjust(
            tenant_id=tenant_id,
            code=code_counters.next_code(db, tenant_id, "account_adjust", ADJUST_PREFIX),
            date=data["date"],
            account_id=data["account_id"],
            type=AccountAdjustType(data["type"]),
            amount=to_decimal(data["amount"]),
            note=data.get("note"),
            created_by=user,
        )
        db.add(adjust)
        db.flush()
        accounts_crud.adjust_balance(db, tenant_id, adjust.account_id, signed_adjust_amount(adjust),
                                     f"account adjust {adjust.code}")
        log_change(db, tenant_id, adjust, "CREATE", user)
        return adjust


def update_adjust(db: Session, adjust: AccountAdjust, data: dict, user: Optional[str] = None) -> AccountAdjust:
    with service_errors(logger, f"update account adjust #{adjust.id}"):
        old_values = sqlalchemy_to_dict(adjust)
        accounts_crud.adjust_balance(db, adjust.tenant_id, adjust.account_id, -signed_adjust_amount(adjust),
                                     f"account adjust {adjust.code} reversed")
        for field in ADJUST_FIELDS:
            if data.get(field) is not None:
                setattr(adjust, field, data[field])
        adjust.type = AccountAdjustType(adjust.type)
        get_account(db, adjust.tenant_id, adjust.account_id)
        _require_positive(adjust.amount, "Adjust amount")
        adjust.updated_by = user
        db.flush()
        accounts_crud.adjust_balance(db, adjust.tenant_id, adjust.account_id, signed_adjust_amount(adjust),
                                     f"account adjust {adjust.code}")
        log_change(db, adjust.tenant_id, adjust, "UPDATE", user, old_values=old_values)
        return adjust


def delete_adjust(db: Session, adjust: AccountAdjust, user: Optional[str] = None) -> AccountAdjust:
    with service_errors(logger, f"delete account adjust #{adjust.id}"):
        accounts_crud.adjust_balance(db, adjust.tenant_id, adjust.account_id, -signed_adjust_amount(adjust),
                                     f"account adjust {adjust.code} deleted")
        adjust.soft_delete(user)
        log_change(db, adjust.tenant_id, adjust, "DELETE", user)
        return adjust


# --- Income ---

def get_income_category(db: Session, tenant_id: str, category_id: int) -> IncomeCategory:
    category = db.query(IncomeCategory).filter(
        IncomeCategory.id == category_id,
        IncomeCategory.tenant_id == tenant_id,
    ).first()
    if category is None:
        raise NotFoundError("Income category", category_id)
    return category


def _check_category_name(db: Session, tenant_id: str, name: str, exclude_id: Optional[int] = None):
    query = db.query(IncomeCategory).execution_options(include_deleted=True).filter(
        IncomeCategory.tenant_id == tenant_id,
        IncomeCategory.name == name,
    )
    if exclude_id is not None:
        query = query.filter(IncomeCategory.id != exclude_id)
    if query.first():
        raise ConflictError(f"Income category '{name}' already exists")


def create_income_category(db: Session, tenant_id: str, data: dict, user: Optional[str] = None) -> IncomeCategory:
    _check_category_name(db, tenant_id, data["name"])
    category = IncomeCategory(tenant_id=tenant_id, created_by=user, **data)
    db.add(category)
    log_change(db, tenant_id, category, "CREATE", user)
    return category


def update_income_category(db: Session, category: IncomeCategory, data: dict,
                           user: Optional[str] = None) -> IncomeCategory:
    old_values = sqlalchemy_to_dict(category)
    if data.get("name") and data["name"] != category.name:
        _check_category_name(db, category.tenant_id, data["name"], exclude_id=category.id)
    for field in ("name", "description"):
        if field in data:
            setattr(category, field, data[field])
    category.updated_by = user
    log_change(db, category.tenant_id, category, "UPDATE", user, old_values=old_values)
    return category


def delete_income_category(db: Session, category: IncomeCategory, user: Optional[str] = None) -> IncomeCategory:
    category.soft_delete(user)
    log_change(db, category.tenant_id, category, "DELETE", user)
    return category


def get_income(db: Session, tenant_id: str, income_id: int) -> IncomeTransaction:
    income = db.query(IncomeTransaction).filter(
        IncomeTransaction.id == income_id,
        IncomeTransaction.tenant_id == tenant_id,
    ).first()
    if income is None:
        raise NotFoundError("Income transaction", income_id)
    return income


def create_income(db: Session, tenant_id: str, data: dict, user: Optional[str] = None) -> IncomeTransaction:
    with service_errors(logger, "create income transaction"):
        get_income_category(db, tenant_id, data["income_category_id"])
        get_account(db, tenant_id, data["account_id"])
        _require_positive(data["amount"], "Income amount")
        income = IncomeTransaction(
            tenant_id=tenant_id,
            code=code_counters.next_code(db, tenant_id, "income_transaction", INCOME_PREFIX),
            date=data["date"],
            income_category_id=data["income_category_id"],
            account_id=data["account_id"],
            amount=to_decimal(data["amount"]),
            note=data.get("note"),
            created_by=user,
        )
        db.add(income)
        db.flush()
        accounts_crud.adjust_balance(db, tenant_id, income.account_id, income.amount, f"income {income.code}")
        log_change(db, tenant_id, income, "CREATE", user)
        logger.info(f"Income {income.code} of {income.amount} recorded for tenant {tenant_id}")
        return income


def update_income(db: Session, income: IncomeTransaction, data: dict, user: Optional[str] = None) -> IncomeTransaction:
    with service_errors(logger, f"update income transaction #{income.id}"):
        old_values = sqlalchemy_to_dict(income)
        accounts_crud.adjust_balance(db, income.tenant_id, income.account_id, -to_decimal(income.amount),
                                     f"income {income.code} reversed")
        if data.get("income_category_id") is not None:
            get_income_category(db, income.tenant_id, data["income_category_id"])
        for field in INCOME_FIELDS:
            if data.get(field) is not None:
                setattr(income, field, data[field])
        get_account(db, income.tenant_id, income.account_id)
        _require_positive(income.amount, "Income amount")
        income.updated_by = user
        db.flush()
        accounts_crud.adjust_balance(db, income.tenant_id, income.account_id, income.amount, f"income {income.code}")
        log_change(db, income.tenant_id, income, "UPDATE", user, old_values=old_values)
        return income


def delete_income(db: Session, income: IncomeTransaction, user: Optional[str] = None) -> IncomeTransaction:
    with service_errors(logger, f"delete income transaction #{income.id}"):
        accounts_crud.adjust_balance(db, income.tenant_id, income.account_id, -to_decimal(income.amount),
                                     f"income {income.code} deleted")
        income.soft_delete(user)
        log_change(db, income.tenant_id, income, "DELETE", user)
        return income
