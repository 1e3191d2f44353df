"""
Customer and supplier payments.

Money received from a customer raises the linked account's balance, money
paid to a supplier lowers it. Updates and deletes reverse the old effect
before applying the new one.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from crud import accounts as accounts_crud
from crud.lookups import get_partner
from exceptions import BusinessRuleError, service_errors
from models.customer_payments import CustomerPayment
from models.supplier_payments import SupplierPayment
from utils import to_decimal

logger = logging.getLogger("payments")

PAYMENT_FIELDS = ("account_id", "payment_date", "amount_usd", "reference_number", "notes")


def _validate_amount(amount):
    if to_decimal(amount) <= 0:
        raise BusinessRuleError("Payment amount must be greater than 0")


def create_customer_payment(db: Session, tenant_id: str, data: dict, user: Optional[str] = None) -> CustomerPayment:
    with service_errors(logger, "create customer payment"):
        get_partner(db, tenant_id, data["customer_id"], role="customer")
        _validate_amount(data["amount_usd"])
        payment = CustomerPayment(tenant_id=tenant_id, created_by=user, **data)
        db.add(payment)
        db.flush()
        accounts_crud.adjust_balance(db, tenant_id, payment.account_id, payment.amount_usd,
                                     f"customer payment #{payment.id}")
        logger.info(f"Customer payment #{payment.id} of {payment.amount_usd} recorded for tenant {tenant_id}")
        return payment


def update_customer_payment(db: Session, payment: CustomerPayment, data: dict, user: Optional[str] = None) -> CustomerPayment:
    with service_errors(logger, f"update customer payment #{payment.id}"):
        accounts_crud.adjust_balance(db, payment.tenant_id, payment.account_id, -to_decimal(payment.amount_usd),
                                     f"customer payment #{payment.id} reversed")
        for field in PAYMENT_FIELDS:
            if field in data:
                setattr(payment, field, data[field])
        _validate_amount(payment.amount_usd)
        payment.updated_by = user
        db.flush()
        accounts_crud.adjust_balance(db, payment.tenant_id, payment.account_id, payment.amount_usd,
                                     f"customer payment #{payment.id}")
        return payment


def delete_customer_payment(db: Session, payment: CustomerPayment, user: Optional[str] = None) -> CustomerPayment:
    with service_errors(logger, f"delete customer payment #{payment.id}"):
        accounts_crud.adjust_balance(db, payment.tenant_id, payment.account_id, -to_decimal(payment.amount_usd),
                                     f"customer payment #{payment.id} deleted")
        payment.soft_delete(user)
        db.flush()
        return payment


def create_supplier_payment(db: Session, tenant_id: str, data: dict, user: Optional[str] = None) -> SupplierPayment:
    with service_errors(logger, "create supplier payment"):
        get_partner(db, tenant_id, data["supplier_id"], role="supplier")
        _validate_amount(data["amount_usd"])
        payment = SupplierPayment(tenant_id=tenant_id, created_by=user, **data)
        db.add(payment)
        db.flush()
        accounts_crud.adjust_balance(db, tenant_id, payment.account_id, -to_decimal(payment.amount_usd),
                                     f"supplier payment #{payment.id}")
        logger.info(f"Supplier payment #{payment.id} of {payment.amount_usd} recorded for tenant {tenant_id}")
        return payment


def update_supplier_payment(db: Session, payment: SupplierPayment, data: dict, user: Optional[str] = None) -> SupplierPayment:
    with service_errors(logger, f"update supplier payment #{payment.id}"):
        accounts_crud.adjust_balance(db, payment.tenant_id, payment.account_id, payment.amount_usd,
                                     f"supplier payment #{payment.id} reversed")
        for field in PAYMENT_FIELDS:
            if field in data:
                setattr(payment, field, data[field])
        _validate_amount(payment.amount_usd)
        payment.updated_by = user
        db.flush()
        accounts_crud.adjust_balance(db, payment.tenant_id, payment.account_id, -to_decimal(payment.amount_usd),
                                     f"supplier payment #{payment.id}")
        return payment


def delete_supplier_payment(db: Session, payment: SupplierPayment, user: Optional[str] = None) -> SupplierPayment:
    with service_errors(logger, f"delete supplier payment #{payment.id}"):
        accounts_crud.adjust_balance(db, payment.tenant_id, payment.account_id, payment.amount_usd,
                                     f"supplier payment #{payment.id} deleted")
        payment.soft_delete(user)
        db.flush()
        return payment
