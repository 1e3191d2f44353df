"""
Running balances of business partners.

customer balance = opening + sales - customer returns - payments received
                   - credit notes + debit notes
supplier balance = opening + purchases - purchase returns - payments made
                   - credit notes + debit notes

A positive customer balance is money the customer owes us; a positive
supplier balance is money we owe the supplier.
"""

import logging
from decimal import Decimal
from typing import Dict, List

from sqlalchemy import func
from sqlalchemy.orm import Session

from crud.lookups import get_partner
from models.business_partners import BusinessPartner
from models.credit_debit_notes import CreditDebitNote, NoteType, PartnerRole
from models.customer_payments import CustomerPayment
from models.customer_returns import CustomerReturn
from models.purchase_returns import PurchaseReturn
from models.purchases import Purchase
from models.sales import Sale
from models.supplier_payments import SupplierPayment
from utils import to_decimal

logger = logging.getLogger("partner_balances")


def _sum(db: Session, column, *criteria) -> Decimal:
    return to_decimal(db.query(func.coalesce(func.sum(column), 0)).filter(*criteria).scalar())


def _notes_total(db: Session, tenant_id: str, partner_id: int, role: PartnerRole, note_type: NoteType) -> Decimal:
    return _sum(
        db, CreditDebitNote.amount_usd,
        CreditDebitNote.tenant_id == tenant_id,
        CreditDebitNote.partner_id == partner_id,
        CreditDebitNote.partner_role == role,
        CreditDebitNote.type == note_type,
        CreditDebitNote.deleted_at.is_(None),
    )


def customer_balance_breakdown(db: Session, tenant_id: str, partner: BusinessPartner) -> Dict[str, Decimal]:
    sales = _sum(db, Sale.total_usd, Sale.tenant_id == tenant_id, Sale.customer_id == partner.id,
                 Sale.deleted_at.is_(None))
    returns = _sum(db, CustomerReturn.total_usd, CustomerReturn.tenant_id == tenant_id,
                   CustomerReturn.customer_id == partner.id, CustomerReturn.deleted_at.is_(None))
    payments = _sum(db, CustomerPayment.amount_usd, CustomerPayment.tenant_id == tenant_id,
                    CustomerPayment.customer_id == partner.id, CustomerPayment.deleted_at.is_(None))
    credit = _notes_total(db, tenant_id, partner.id, PartnerRole.CUSTOMER, NoteType.CREDIT)
    debit = _notes_total(db, tenant_id, partner.id, PartnerRole.CUSTOMER, NoteType.DEBIT)
    opening = to_decimal(partner.opening_balance)
    return {
        "opening_balance": opening,
        "sales": sales,
        "returns": returns,
        "payments": payments,
        "credit_notes": credit,
        "debit_notes": debit,
        "balance": opening + sales - returns - payments - credit + debit,
    }


def supplier_balance_breakdown(db: Session, tenant_id: str, partner: BusinessPartner) -> Dict[str, Decimal]:
    purchases = _sum(db, Purchase.total_usd, Purchase.tenant_id == tenant_id, Purchase.supplier_id == partner.id,
                     Purchase.deleted_at.is_(None))
    returns = _sum(db, PurchaseReturn.total_usd, PurchaseReturn.tenant_id == tenant_id,
                   PurchaseReturn.supplier_id == partner.id, PurchaseReturn.deleted_at.is_(None))
    payments = _sum(db, SupplierPayment.amount_usd, SupplierPayment.tenant_id == tenant_id,
                    SupplierPayment.supplier_id == partner.id, SupplierPayment.deleted_at.is_(None))
    credit = _notes_total(db, tenant_id, partner.id, PartnerRole.SUPPLIER, NoteType.CREDIT)
    debit = _notes_total(db, tenant_id, partner.id, PartnerRole.SUPPLIER, NoteType.DEBIT)
    opening = to_decimal(partner.opening_balance)
    return {
        "opening_balance": opening,
        "purchases": purchases,
        "returns": returns,
        "payments": payments,
        "credit_notes": credit,
        "debit_notes": debit,
        "balance": opening + purchases - returns - payments - credit + debit,
    }


def get_customer_balance(db: Session, tenant_id: str, partner_id: int) -> Decimal:
    partner = get_partner(db, tenant_id, partner_id)
    return customer_balance_breakdown(db, tenant_id, partner)["balance"]


def get_supplier_balance(db: Session, tenant_id: str, partner_id: int) -> Decimal:
    partner = get_partner(db, tenant_id, partner_id)
    return supplier_balance_breakdown(db, tenant_id, partner)["balance"]


def get_partner_balances(db: Session, tenant_id: str, partner_id: int) -> dict:
    """Balance in every role the partner plays."""
    partner = get_partner(db, tenant_id, partner_id)
    result = {"partner_id": partner.id, "name": partner.name}
    if partner.is_customer:
        result["customer"] = customer_balance_breakdown(db, tenant_id, partner)
    if partner.is_supplier:
        result["supplier"] = supplier_balance_breakdown(db, tenant_id, partner)
    return result


def get_unpaid_customers(db: Session, tenant_id: str) -> List[dict]:
    customers = db.query(BusinessPartner).filter(
        BusinessPartner.tenant_id == tenant_id,
        BusinessPartner.is_customer.is_(True),
    ).order_by(BusinessPartner.name).all()

    unpaid = []
    for customer in customers:
        balance = customer_balance_breakdown(db, tenant_id, customer)["balance"]
        if balance > 0:
            unpaid.append({"customer_id": customer.id, "name": customer.name, "balance": balance})
    return unpaid


def get_total_unpaid_customer_balance(db: Session, tenant_id: str) -> Decimal:
    return sum((row["balance"] for row in get_unpaid_customers(db, tenant_id)), Decimal("0"))
