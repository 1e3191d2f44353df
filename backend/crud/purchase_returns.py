import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from crud import code_counters
from crud import inventory as inventory_crud
from crud import pricing
from crud.lookups import get_item, get_partner, get_warehouse
from exceptions import BusinessRuleError, InsufficientInventoryError, InvalidQuantityError, service_errors
from models.purchase_returns import PurchaseReturn, PurchaseReturnItem
from models.purchases import Purchase
from utils import to_decimal

logger = logging.getLogger("purchase_returns")

RETURN_COUNTER = "purchase_return"
RETURN_PREFIX = "PRT"


def create_purchase_return(db: Session, tenant_id: str, data: dict, items: List[dict],
                           user: Optional[str] = None) -> PurchaseReturn:
    """Send stock back to a supplier: every line leaves the warehouse and reprices its item."""
    with service_errors(logger, "create purchase return"):
        if not items:
            raise BusinessRuleError("A purchase return must contain at least one item")
        get_partner(db, tenant_id, data["supplier_id"], role="supplier")
        get_warehouse(db, tenant_id, data["warehouse_id"])
        if data.get("purchase_id"):
            purchase = db.query(Purchase).filter(Purchase.id == data["purchase_id"],
                                                 Purchase.tenant_id == tenant_id).first()
            if purchase is None:
                raise BusinessRuleError(f"Purchase {data['purchase_id']} not found")
            if purchase.supplier_id != data["supplier_id"]:
                raise BusinessRuleError(f"Purchase {purchase.code} belongs to another supplier")

        purchase_return = PurchaseReturn(
            tenant_id=tenant_id,
            code=code_counters.next_code(db, tenant_id, RETURN_COUNTER, RETURN_PREFIX),
            supplier_id=data["supplier_id"],
            warehouse_id=data["warehouse_id"],
            purchase_id=data.get("purchase_id"),
            date=data["date"],
            note=data.get("note"),
            created_by=user,
        )
        db.add(purchase_return)
        db.flush()

        # Check every line against stock before anything leaves the warehouse
        needed = {}
        for line_data in items:
            quantity = to_decimal(line_data["quantity"])
            if quantity <= 0:
                raise InvalidQuantityError("Returned quantity must be greater than 0")
            needed[line_data["item_id"]] = needed.get(line_data["item_id"], Decimal("0")) + quantity
        for item_id, quantity in needed.items():
            get_item(db, tenant_id, item_id)
            available = inventory_crud.get_quantity(db, tenant_id, item_id, purchase_return.warehouse_id)
            if available < quantity:
                raise InsufficientInventoryError(available, quantity, item_id=item_id,
                                                 warehouse_id=purchase_return.warehouse_id)

        total_usd = Decimal("0")
        for line_data in items:
            quantity = to_decimal(line_data["quantity"])
            price_usd = to_decimal(line_data["price_usd"])
            line = PurchaseReturnItem(
                tenant_id=tenant_id,
                purchase_return_id=purchase_return.id,
                item_id=line_data["item_id"],
                quantity=quantity,
                price_usd=price_usd,
                total_price_usd=quantity * price_usd,
            )
            db.add(line)
            db.flush()
            inventory_crud.subtract(db, tenant_id, line.item_id, purchase_return.warehouse_id, quantity,
                                    reason=f"Purchase return {purchase_return.code}",
                                    reference_type="purchase_return", reference_id=purchase_return.id, user=user)
            pricing.update_from_purchase_return(db, purchase_return, line)
            total_usd += quantity * price_usd

        purchase_return.total_usd = total_usd
        db.flush()
        logger.info(f"Purchase return {purchase_return.code} created for tenant {tenant_id}")
        return purchase_return


def delete_purchase_return(db: Session, purchase_return: PurchaseReturn, user: Optional[str] = None) -> PurchaseReturn:
    """Put the returned stock back and soft-delete the return."""
    with service_errors(logger, f"delete purchase return #{purchase_return.id}"):
        for line in purchase_return.items:
            inventory_crud.add(db, purchase_return.tenant_id, line.item_id, purchase_return.warehouse_id,
                               line.quantity, reason=f"Purchase return {purchase_return.code} deleted",
                               reference_type="purchase_return", reference_id=purchase_return.id, user=user)
        purchase_return.soft_delete(user)
        db.flush()
        logger.info(f"Purchase return {purchase_return.code} deleted for tenant {purchase_return.tenant_id}")
        return purchase_return
