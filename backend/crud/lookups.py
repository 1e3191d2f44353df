from typing import Optional

from sqlalchemy.orm import Session

from exceptions import BusinessRuleError, NotFoundError
from models.accounts import Account
from models.business_partners import BusinessPartner, PartnerStatus
from models.items import Item
from models.warehouses import Warehouse


def get_item(db: Session, tenant_id: str, item_id: int) -> Item:
    item = db.query(Item).filter(Item.id == item_id, Item.tenant_id == tenant_id).first()
    if item is None:
        raise NotFoundError("Item", item_id)
    return item


def get_warehouse(db: Session, tenant_id: str, warehouse_id: int) -> Warehouse:
    warehouse = db.query(Warehouse).filter(Warehouse.id == warehouse_id, Warehouse.tenant_id == tenant_id).first()
    if warehouse is None:
        raise NotFoundError("Warehouse", warehouse_id)
    return warehouse


def get_partner(db: Session, tenant_id: str, partner_id: int, role: Optional[str] = None) -> BusinessPartner:
    """Business partner, optionally required to be an active supplier or customer."""
    label = role.capitalize() if role else "Business partner"
    partner = db.query(BusinessPartner).filter(
        BusinessPartner.id == partner_id,
        BusinessPartner.tenant_id == tenant_id,
    ).first()
    if partner is None:
        raise NotFoundError(label, partner_id)
    if role == "supplier" and not partner.is_supplier:
        raise BusinessRuleError(f"Business partner '{partner.name}' is not a supplier")
    if role == "customer" and not partner.is_customer:
        raise BusinessRuleError(f"Business partner '{partner.name}' is not a customer")
    if role and partner.status != PartnerStatus.ACTIVE:
        raise BusinessRuleError(f"{label} '{partner.name}' is {partner.status.value.lower()}")
    return partner


def get_account(db: Session, tenant_id: str, account_id: int) -> Account:
    account = db.query(Account).filter(Account.id == account_id, Account.tenant_id == tenant_id).first()
    if account is None:
        raise NotFoundError("Account", account_id)
    return account
