import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from crud import app_config as crud_app_config
from crud import code_counters
from crud import inventory as inventory_crud
from crud import pricing
from crud.lookups import get_item, get_partner, get_warehouse
from exceptions import BusinessRuleError, InvalidQuantityError, service_errors
from models.price_lists import PriceList, PriceListItem
from models.sale_items import SaleItem
from models.sales import Sale, SaleStatus, TAX_FREE_PREFIX, TAXED_PREFIX
from utils import to_decimal

logger = logging.getLogger("sales")


def resolve_prefix(db: Session, tenant_id: str, tax_free: bool) -> str:
    if tax_free:
        return crud_app_config.get_config_value(db, tenant_id, "tax_free_sale_prefix", TAX_FREE_PREFIX)
    return crud_app_config.get_config_value(db, tenant_id, "sale_prefix", TAXED_PREFIX)


def calculate_sale_line(price, quantity, currency_rate, cost_price, discount_percent=0, tax_percent=0) -> dict:
    """Per-unit and line amounts of a sale line, all in USD except ``price``/``total_price``."""
    price = to_decimal(price)
    quantity = to_decimal(quantity)
    rate = to_decimal(currency_rate) or Decimal("1")
    cost_price = to_decimal(cost_price)
    discount_percent = to_decimal(discount_percent)
    tax_percent = to_decimal(tax_percent)
    if quantity <= 0:
        raise InvalidQuantityError("Sale quantity must be greater than 0")

    price_usd = price / rate
    unit_discount = price_usd * discount_percent / 100
    net_sell_price = price_usd - unit_discount
    unit_tax = net_sell_price * tax_percent / 100
    ttc = net_sell_price + unit_tax
    unit_profit = net_sell_price - cost_price
    return {
        "quantity": quantity,
        "cost_price": cost_price,
        "price": price,
        "price_usd": price_usd,
        "discount_percent": discount_percent,
        "unit_discount_amount_usd": unit_discount,
        "discount_amount_usd": unit_discount * quantity,
        "net_sell_price_usd": net_sell_price,
        "tax_percent": tax_percent,
        "tax_amount_usd": unit_tax,
        "ttc_price_usd": ttc,
        "total_net_sell_price_usd": net_sell_price * quantity,
        "total_tax_amount_usd": unit_tax * quantity,
        "total_price_usd": ttc * quantity,
        "total_price": ttc * quantity * rate,
        "unit_profit": unit_profit,
        "total_profit": unit_profit * quantity,
    }


def recalculate_totals(sale: Sale, lines: List[SaleItem]) -> Sale:
    rate = to_decimal(sale.currency_rate) or Decimal("1")
    sub_total_usd = sum((to_decimal(line.total_net_sell_price_usd) for line in lines), Decimal("0"))
    tax_usd = sum((to_decimal(line.total_tax_amount_usd) for line in lines), Decimal("0"))
    line_profit = sum((to_decimal(line.total_profit) for line in lines), Decimal("0"))
    discount_usd = to_decimal(sale.discount_amount_usd)

    sale.sub_total_usd = sub_total_usd
    sale.sub_total = sub_total_usd * rate
    sale.total_tax_amount_usd = tax_usd
    sale.total_tax_amount = tax_usd * rate
    sale.total_usd = sub_total_usd + tax_usd - discount_usd
    sale.total = to_decimal(sale.total_usd) * rate
    sale.total_profit = line_profit - discount_usd
    return sale


def suggest_sell_price(db: Session, tenant_id: str, item_id: int, price_list_id: Optional[int] = None) -> dict:
    """Sell price from the given (or default) price list, else the item's base sell price."""
    item = get_item(db, tenant_id, item_id)
    price_list_query = db.query(PriceList).filter(PriceList.tenant_id == tenant_id)
    if price_list_id:
        price_list = price_list_query.filter(PriceList.id == price_list_id).first()
    else:
        price_list = price_list_query.filter(PriceList.is_default.is_(True)).first()

    if price_list is not None:
        line = db.query(PriceListItem).filter(
            PriceListItem.price_list_id == price_list.id,
            PriceListItem.item_id == item_id,
        ).first()
        if line is not None:
            return {"item_id": item_id, "price_usd": to_decimal(line.sell_price_usd), "source": "price_list",
                    "price_list_id": price_list.id}
    return {"item_id": item_id, "price_usd": to_decimal(item.base_sell_price), "source": "item",
            "price_list_id": None}


def create_sale(db: Session, tenant_id: str, data: dict, items: List[dict], user: Optional[str] = None) -> Sale:
    """Create a sale, price its lines at the current item cost and take the stock out of the warehouse."""
    with service_errors(logger, "create sale"):
        if not items:
            raise BusinessRuleError("A sale must contain at least one item")
        get_partner(db, tenant_id, data["customer_id"], role="customer")
        get_warehouse(db, tenant_id, data["warehouse_id"])

        tax_free = bool(data.get("tax_free"))
        prefix = resolve_prefix(db, tenant_id, tax_free)
        rate = to_decimal(data.get("currency_rate") or 1)
        discount_amount = to_decimal(data.get("discount_amount") or 0)
        discount_amount_usd = data.get("discount_amount_usd")
        discount_amount_usd = to_decimal(discount_amount_usd) if discount_amount_usd is not None else discount_amount / rate

        sale = Sale(
            tenant_id=tenant_id,
            code=code_counters.next_code(db, tenant_id, f"sale_{prefix}", prefix),
            prefix=prefix,
            customer_id=data["customer_id"],
            warehouse_id=data["warehouse_id"],
            price_list_id=data.get("price_list_id"),
            date=data["date"],
            status=data.get("status") or SaleStatus.WAITING,
            currency_rate=rate,
            discount_amount=discount_amount,
            discount_amount_usd=discount_amount_usd,
            note=data.get("note"),
            created_by=user,
        )
        db.add(sale)
        db.flush()

        inventory_crud.subtract_batch(
            db, tenant_id,
            [{"item_id": line["item_id"], "warehouse_id": sale.warehouse_id, "quantity": line["quantity"]}
             for line in items],
            reason=f"Sale {sale.code}", reference_type="sale", reference_id=sale.id, user=user,
        )

        lines = []
        for line_data in items:
            item = get_item(db, tenant_id, line_data["item_id"])
            if tax_free:
                tax_percent = Decimal("0")
            elif line_data.get("tax_percent") is not None:
                tax_percent = line_data["tax_percent"]
            else:
                tax_percent = item.tax_percent
            amounts = calculate_sale_line(
                line_data["price"], line_data["quantity"], rate,
                pricing.get_current_price_value(db, tenant_id, item.id),
                line_data.get("discount_percent") or 0, tax_percent,
            )
            line = SaleItem(tenant_id=tenant_id, sale_id=sale.id, item_id=item.id, item_code=item.code, **amounts)
            db.add(line)
            lines.append(line)

        recalculate_totals(sale, lines)
        db.flush()
        logger.info(f"Sale {sale.code} created with {len(lines)} line(s) for tenant {tenant_id}")
        return sale


def change_status(db: Session, sale: Sale, status: SaleStatus, user: Optional[str] = None) -> Sale:
    sale.status = status
    sale.updated_by = user
    db.flush()
    return sale


def delete_sale(db: Session, sale: Sale, user: Optional[str] = None) -> Sale:
    """Return the sold stock to the warehouse and soft-delete the sale."""
    with service_errors(logger, f"delete sale #{sale.id}"):
        for line in sale.items:
            inventory_crud.add(db, sale.tenant_id, line.item_id, sale.warehouse_id, line.quantity,
                               reason=f"Sale {sale.code} deleted", reference_type="sale",
                               reference_id=sale.id, user=user)
        sale.soft_delete(user)
        db.flush()
        logger.info(f"Sale {sale.code} deleted for tenant {sale.tenant_id}")
        return sale
