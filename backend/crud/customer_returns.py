import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from crud import code_counters
from crud import inventory as inventory_crud
from crud import pricing
from crud.lookups import get_item, get_partner, get_warehouse
from exceptions import BusinessRuleError, InvalidQuantityError, service_errors
from models.customer_returns import CustomerReturn, CustomerReturnItem
from models.sale_items import SaleItem
from models.sales import Sale
from utils import now_local, to_decimal

logger = logging.getLogger("customer_returns")

RETURN_COUNTER = "customer_return"
RETURN_PREFIX = "CRT"


def _cost_price(db: Session, tenant_id: str, sale: Optional[Sale], line_data: dict) -> Decimal:
    """Cost the goods were sold at: the linked sale line when there is one, else today's item price."""
    sale_line = None
    if line_data.get("sale_item_id"):
        sale_line = db.query(SaleItem).filter(
            SaleItem.id == line_data["sale_item_id"],
            SaleItem.tenant_id == tenant_id,
        ).first()
        if sale_line is None or (sale is not None and sale_line.sale_id != sale.id):
            raise BusinessRuleError(f"Sale item {line_data['sale_item_id']} not found on the linked sale")
    elif sale is not None:
        sale_line = next((line for line in sale.items if line.item_id == line_data["item_id"]), None)
    if sale_line is not None:
        return to_decimal(sale_line.cost_price)
    return pricing.get_current_price_value(db, tenant_id, line_data["item_id"])


def create_customer_return(db: Session, tenant_id: str, data: dict, items: List[dict],
                           user: Optional[str] = None) -> CustomerReturn:
    """Register goods coming back from a customer. Stock only moves once the return is received."""
    with service_errors(logger, "create customer return"):
        if not items:
            raise BusinessRuleError("A customer return must contain at least one item")
        get_partner(db, tenant_id, data["customer_id"], role="customer")
        get_warehouse(db, tenant_id, data["warehouse_id"])

        sale = None
        if data.get("sale_id"):
            sale = db.query(Sale).filter(Sale.id == data["sale_id"], Sale.tenant_id == tenant_id).first()
            if sale is None:
                raise BusinessRuleError(f"Sale {data['sale_id']} not found")
            if sale.customer_id != data["customer_id"]:
                raise BusinessRuleError(f"Sale {sale.code} belongs to another customer")

        customer_return = CustomerReturn(
            tenant_id=tenant_id,
            code=code_counters.next_code(db, tenant_id, RETURN_COUNTER, RETURN_PREFIX),
            customer_id=data["customer_id"],
            warehouse_id=data["warehouse_id"],
            sale_id=data.get("sale_id"),
            date=data["date"],
            note=data.get("note"),
            created_by=user,
        )
        db.add(customer_return)
        db.flush()

        total_usd = Decimal("0")
        total_profit = Decimal("0")
        for line_data in items:
            get_item(db, tenant_id, line_data["item_id"])
            quantity = to_decimal(line_data["quantity"])
            if quantity <= 0:
                raise InvalidQuantityError("Returned quantity must be greater than 0")
            price_usd = to_decimal(line_data["price_usd"])
            cost_price = _cost_price(db, tenant_id, sale, line_data)
            line = CustomerReturnItem(
                tenant_id=tenant_id,
                customer_return_id=customer_return.id,
                sale_item_id=line_data.get("sale_item_id"),
                item_id=line_data["item_id"],
                quantity=quantity,
                price_usd=price_usd,
                cost_price=cost_price,
                total_price_usd=quantity * price_usd,
                total_profit=(price_usd - cost_price) * quantity,
            )
            db.add(line)
            total_usd += quantity * price_usd
            total_profit += (price_usd - cost_price) * quantity

        customer_return.total_usd = total_usd
        customer_return.total_profit = total_profit
        db.flush()
        logger.info(f"Customer return {customer_return.code} created for tenant {tenant_id}")
        return customer_return


def mark_received(db: Session, customer_return: CustomerReturn, user: Optional[str] = None) -> CustomerReturn:
    """Put the returned goods back in stock; a return can only be received once."""
    with service_errors(logger, f"receive customer return #{customer_return.id}"):
        if customer_return.is_received:
            raise BusinessRuleError(f"Customer return {customer_return.code} has already been received")
        for line in customer_return.items:
            inventory_crud.add(db, customer_return.tenant_id, line.item_id, customer_return.warehouse_id,
                               line.quantity, reason=f"Customer return {customer_return.code} received",
                               reference_type="customer_return", reference_id=customer_return.id, user=user)
        customer_return.is_received = True
        customer_return.received_at = now_local()
        customer_return.received_by = user
        db.flush()
        logger.info(f"Customer return {customer_return.code} received for tenant {customer_return.tenant_id}")
        return customer_return


def delete_customer_return(db: Session, customer_return: CustomerReturn, user: Optional[str] = None) -> CustomerReturn:
    with service_errors(logger, f"delete customer return #{customer_return.id}"):
        if customer_return.is_received:
            inventory_crud.subtract_batch(
                db, customer_return.tenant_id,
                [{"item_id": line.item_id, "warehouse_id": customer_return.warehouse_id, "quantity": line.quantity}
                 for line in customer_return.items],
                reason=f"Customer return {customer_return.code} deleted",
                reference_type="customer_return", reference_id=customer_return.id, user=user,
            )
        customer_return.soft_delete(user)
        db.flush()
        logger.info(f"Customer return {customer_return.code} deleted for tenant {customer_return.tenant_id}")
        return customer_return
