import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from models.supplier_item_prices import SupplierItemPrice
from utils import to_decimal

logger = logging.getLogger("supplier_item_prices")


def get_current_price(db: Session, tenant_id: str, supplier_id: int, item_id: int) -> Optional[SupplierItemPrice]:
    return db.query(SupplierItemPrice).filter(
        SupplierItemPrice.tenant_id == tenant_id,
        SupplierItemPrice.supplier_id == supplier_id,
        SupplierItemPrice.item_id == item_id,
        SupplierItemPrice.is_current.is_(True),
    ).first()


def update_or_create_from_purchase(db: Session, purchase, purchase_item) -> SupplierItemPrice:
    """Record the last unit price paid to the purchase's supplier for the line's item."""
    rate = to_decimal(purchase.currency_rate) or to_decimal(1)
    price = to_decimal(purchase_item.price)

    supplier_price = get_current_price(db, purchase.tenant_id, purchase.supplier_id, purchase_item.item_id)
    if supplier_price is None:
        supplier_price = SupplierItemPrice(
            tenant_id=purchase.tenant_id,
            supplier_id=purchase.supplier_id,
            item_id=purchase_item.item_id,
            is_current=True,
        )
        db.add(supplier_price)

    supplier_price.price = price
    supplier_price.currency_rate = rate
    supplier_price.price_usd = price / rate
    supplier_price.last_purchase_id = purchase.id
    supplier_price.last_purchase_date = purchase.date
    db.flush()
    return supplier_price


def get_best_prices_for_item(db: Session, tenant_id: str, item_id: int, limit: int = 5) -> List[SupplierItemPrice]:
    """Cheapest current supplier prices for an item."""
    return db.query(SupplierItemPrice).filter(
        SupplierItemPrice.tenant_id == tenant_id,
        SupplierItemPrice.item_id == item_id,
        SupplierItemPrice.is_current.is_(True),
    ).order_by(SupplierItemPrice.price_usd.asc()).limit(limit).all()


def get_supplier_prices(db: Session, tenant_id: str, supplier_id: int) -> List[SupplierItemPrice]:
    return db.query(SupplierItemPrice).filter(
        SupplierItemPrice.tenant_id == tenant_id,
        SupplierItemPrice.supplier_id == supplier_id,
        SupplierItemPrice.is_current.is_(True),
    ).order_by(SupplierItemPrice.item_id).all()
