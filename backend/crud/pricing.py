"""
Item price engine.

Keeps one current USD cost per item (``ItemPrice``) and an append-only
``ItemPriceHistory`` trail. Prices are global across warehouses, so every
quantity used here is the item's total over all warehouses.

Callers move inventory first and price second: a purchase adds its stock,
then ``update_from_purchase`` reconstructs the quantity held before the
purchase by subtracting the new line from the post-movement total.

Items use one of two cost methods:

* ``last_cost``: the latest landed unit cost replaces the price outright.
* ``weighted_average``: the old stock value and the incoming value are
  blended by quantity. When a delivered purchase line is edited after the
  fact, the price is rebuilt from the other purchase lines of the item
  instead. That rebuild does not track lots; when part of the stock has been
  consumed it values the remainder at the average cost of the other
  purchases.
"""

import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from crud import inventory as inventory_crud
from exceptions import BusinessRuleError, NotFoundError
from models.business_partners import BusinessPartner
from models.item_prices import ItemPrice, ItemPriceHistory, PriceSourceType
from models.items import CostCalculation, Item
from models.purchase_items import PurchaseItem
from models.purchases import Purchase, PurchaseStatus
from utils import to_decimal

logger = logging.getLogger("pricing")

# A recalculated price is only written when it moves by more than this
PURCHASE_CHANGE_THRESHOLD = Decimal("0")
MANUAL_CHANGE_THRESHOLD = Decimal("0.01")

TREND_THRESHOLD_PERCENT = Decimal("5")


def get_current_price(db: Session, tenant_id: str, item_id: int) -> Optional[ItemPrice]:
    return db.query(ItemPrice).filter(ItemPrice.tenant_id == tenant_id, ItemPrice.item_id == item_id).first()


def get_current_price_value(db: Session, tenant_id: str, item_id: int) -> Decimal:
    current = get_current_price(db, tenant_id, item_id)
    return to_decimal(current.price_usd) if current else Decimal("0")


def create_price(db: Session, tenant_id: str, item_id: int, price_usd, effective_date: date,
                 note: Optional[str] = None, source_type: PriceSourceType = PriceSourceType.INITIAL,
                 source_id: Optional[int] = None) -> ItemPrice:
    """First price of an item plus its history row."""
    price_usd = to_decimal(price_usd)
    item_price = ItemPrice(
        tenant_id=tenant_id,
        item_id=item_id,
        price_usd=price_usd,
        effective_date=effective_date,
        last_source_type=source_type,
        last_source_id=source_id,
    )
    db.add(item_price)
    db.add(ItemPriceHistory(
        tenant_id=tenant_id,
        item_id=item_id,
        latest_price=Decimal("0"),
        price_usd=price_usd,
        average_weighted_price=price_usd,
        effective_date=effective_date,
        source_type=source_type,
        source_id=source_id,
        note=note or "Initial price",
    ))
    db.flush()
    logger.info(f"Price of item {item_id} created at {price_usd} ({source_type.value}) for tenant {tenant_id}")
    return item_price


def update_price(db: Session, tenant_id: str, item_id: int, new_price_usd, effective_date: date,
                 old_price_usd=None, note: Optional[str] = None,
                 source_type: PriceSourceType = PriceSourceType.MANUAL,
                 source_id: Optional[int] = None) -> ItemPrice:
    """Overwrite the current price and append the matching history row."""
    item_price = db.query(ItemPrice).filter(
        ItemPrice.tenant_id == tenant_id,
        ItemPrice.item_id == item_id,
    ).with_for_update().first()
    if item_price is None:
        raise NotFoundError("Item price", item_id)

    new_price_usd = to_decimal(new_price_usd)
    old_price = to_decimal(old_price_usd if old_price_usd is not None else item_price.price_usd)

    item_price.price_usd = new_price_usd
    item_price.effective_date = effective_date
    item_price.last_source_type = source_type
    item_price.last_source_id = source_id

    db.add(ItemPriceHistory(
        tenant_id=tenant_id,
        item_id=item_id,
        latest_price=old_price,
        price_usd=new_price_usd,
        average_weighted_price=new_price_usd,
        effective_date=effective_date,
        source_type=source_type,
        source_id=source_id,
        note=note or "Price update",
    ))
    db.flush()
    logger.info(f"Price of item {item_id} changed {old_price} -> {new_price_usd} ({source_type.value}) for tenant {tenant_id}")
    return item_price


def _update_if_changed(db: Session, tenant_id: str, item_id: int, old_price: Decimal, new_price: Decimal,
                       effective_date: date, note: str, source_type: PriceSourceType, source_id: Optional[int],
                       threshold: Decimal = PURCHASE_CHANGE_THRESHOLD) -> bool:
    if abs(new_price - old_price) > threshold:
        update_price(db, tenant_id, item_id, new_price, effective_date, old_price, note, source_type, source_id)
        return True
    logger.debug(f"Price of item {item_id} unchanged ({old_price} vs {new_price})")
    return False


def _other_purchase_totals(db: Session, tenant_id: str, item_id: int,
                           exclude_purchase_item_ids: Iterable[int] = (),
                           exclude_purchase_id: Optional[int] = None):
    """Quantity and landed value of the item's delivered purchase lines, minus the excluded ones."""
    query = (
        db.query(
            func.sum(PurchaseItem.quantity),
            func.sum(PurchaseItem.quantity * PurchaseItem.cost_per_item_usd),
        )
        .join(Purchase, PurchaseItem.purchase_id == Purchase.id)
        .filter(
            PurchaseItem.tenant_id == tenant_id,
            PurchaseItem.item_id == item_id,
            Purchase.status == PurchaseStatus.DELIVERED,
            Purchase.deleted_at.is_(None),
        )
    )
    excluded = list(exclude_purchase_item_ids)
    if excluded:
        query = query.filter(PurchaseItem.id.notin_(excluded))
    if exclude_purchase_id is not None:
        query = query.filter(PurchaseItem.purchase_id != exclude_purchase_id)
    quantity, value = query.one()
    return to_decimal(quantity), to_decimal(value)


def recalculate_from_purchase_history(db: Session, tenant_id: str, item_id: int, exclude_purchase_item_id: int,
                                      old_quantity, new_quantity, new_unit_cost, current_inventory) -> Decimal:
    """
    Rebuild the weighted average after a delivered purchase line was edited.

    ``current_inventory`` is the post-movement total, so it already holds the
    edited line's new quantity. The other purchase lines are summed from
    scratch; if less stock remains than they brought in, the remainder is
    valued at their average cost.
    """
    new_quantity = to_decimal(new_quantity)
    new_unit_cost = to_decimal(new_unit_cost)
    other_quantity, other_value = _other_purchase_totals(db, tenant_id, item_id, [exclude_purchase_item_id])

    inventory_without_line = to_decimal(current_inventory) - new_quantity
    logger.debug(
        f"Recalculating item {item_id} from history: line {exclude_purchase_item_id} {old_quantity} -> {new_quantity} "
        f"@ {new_unit_cost}, other qty {other_quantity}, stock without line {inventory_without_line}"
    )
    if inventory_without_line <= 0:
        return new_unit_cost

    if inventory_without_line < other_quantity:
        average_cost_of_others = other_value / other_quantity if other_quantity > 0 else Decimal("0")
        base_value = inventory_without_line * average_cost_of_others
    else:
        base_value = other_value

    total_quantity = inventory_without_line + new_quantity
    if total_quantity <= 0:
        return new_unit_cost
    return (base_value + new_quantity * new_unit_cost) / total_quantity


def calculate_weighted_average_price(db: Session, tenant_id: str, purchase_item: PurchaseItem, current_price,
                                     is_update: bool = False, old_cost=None, old_quantity=None) -> Decimal:
    new_quantity = to_decimal(purchase_item.quantity)
    new_unit_cost = to_decimal(purchase_item.cost_per_item_usd)
    current_inventory = inventory_crud.get_total_quantity(db, tenant_id, purchase_item.item_id)

    if is_update and old_cost is not None and old_quantity is not None:
        return recalculate_from_purchase_history(
            db, tenant_id, purchase_item.item_id, purchase_item.id,
            old_quantity, new_quantity, new_unit_cost, current_inventory,
        )

    quantity_before = current_inventory - new_quantity
    if quantity_before <= 0:
        return new_unit_cost

    total_quantity = quantity_before + new_quantity
    return (quantity_before * to_decimal(current_price) + new_quantity * new_unit_cost) / total_quantity


def update_from_purchase(db: Session, purchase: Purchase, purchase_item: PurchaseItem, is_update: bool = False,
                         old_cost=None, old_quantity=None) -> Optional[ItemPrice]:
    """Reprice the item after a delivered purchase line moved its stock."""
    tenant_id = purchase.tenant_id
    item = purchase_item.item or db.get(Item, purchase_item.item_id)
    unit_cost = to_decimal(purchase_item.cost_per_item_usd)
    note = f"Purchase #{purchase.id}"

    current = get_current_price(db, tenant_id, purchase_item.item_id)
    if current is None:
        return create_price(db, tenant_id, purchase_item.item_id, unit_cost, purchase.date, note,
                            PriceSourceType.PURCHASE, purchase.id)

    old_price = to_decimal(current.price_usd)
    new_price = unit_cost
    if item.cost_calculation == CostCalculation.WEIGHTED_AVERAGE:
        new_price = calculate_weighted_average_price(db, tenant_id, purchase_item, old_price,
                                                     is_update, old_cost, old_quantity)

    _update_if_changed(db, tenant_id, purchase_item.item_id, old_price, new_price, purchase.date, note,
                       PriceSourceType.PURCHASE, purchase.id)
    return current


def update_from_purchase_return(db: Session, purchase_return, return_item) -> Optional[ItemPrice]:
    """Take the returned units out of a weighted-average price; stock has already been removed."""
    tenant_id = purchase_return.tenant_id
    item = return_item.item or db.get(Item, return_item.item_id)
    current = get_current_price(db, tenant_id, return_item.item_id)
    if current is None or item.cost_calculation != CostCalculation.WEIGHTED_AVERAGE:
        return current

    old_price = to_decimal(current.price_usd)
    returned_quantity = to_decimal(return_item.quantity)
    remaining = inventory_crud.get_total_quantity(db, tenant_id, return_item.item_id)
    quantity_before = remaining + returned_quantity
    if remaining <= 0:
        return current

    value = quantity_before * old_price - returned_quantity * to_decimal(return_item.price_usd)
    new_price = max(value, Decimal("0")) / remaining
    _update_if_changed(db, tenant_id, return_item.item_id, old_price, new_price, purchase_return.date,
                       f"Purchase Return #{purchase_return.id}", PriceSourceType.PURCHASE_RETURN, purchase_return.id)
    return current


def update_from_purchase_deletion(db: Session, purchase: Purchase, purchase_item: PurchaseItem,
                                  whole_purchase: bool = False) -> Optional[ItemPrice]:
    """
    Rebuild a weighted-average price once a delivered line (or its whole purchase) is gone.

    Called after the line's stock was subtracted. Stock beyond what the other
    purchases brought in (starting stock, adjustments) keeps the current price.
    """
    tenant_id = purchase.tenant_id
    item = purchase_item.item or db.get(Item, purchase_item.item_id)
    current = get_current_price(db, tenant_id, purchase_item.item_id)
    if current is None or item.cost_calculation != CostCalculation.WEIGHTED_AVERAGE:
        return current

    remaining = inventory_crud.get_total_quantity(db, tenant_id, purchase_item.item_id)
    if whole_purchase:
        other_quantity, other_value = _other_purchase_totals(db, tenant_id, purchase_item.item_id,
                                                             exclude_purchase_id=purchase.id)
    else:
        other_quantity, other_value = _other_purchase_totals(db, tenant_id, purchase_item.item_id,
                                                             [purchase_item.id])
    if remaining <= 0 or other_quantity <= 0:
        return current

    old_price = to_decimal(current.price_usd)
    if remaining <= other_quantity:
        new_price = other_value / other_quantity
    else:
        new_price = (other_value + (remaining - other_quantity) * old_price) / remaining

    _update_if_changed(db, tenant_id, purchase_item.item_id, old_price, new_price, purchase.date,
                       f"Purchase #{purchase.id} line removed", PriceSourceType.PURCHASE, purchase.id)
    return current


def update_from_adjustment(db: Session, item_adjust, adjust_item) -> Optional[ItemPrice]:
    """Blend stock added by an adjustment at a stated unit cost; stock has already been added."""
    if adjust_item.unit_cost_usd is None:
        return None
    tenant_id = item_adjust.tenant_id
    item = adjust_item.item or db.get(Item, adjust_item.item_id)
    unit_cost = to_decimal(adjust_item.unit_cost_usd)
    note = f"Item Adjust #{item_adjust.id}"

    current = get_current_price(db, tenant_id, adjust_item.item_id)
    if current is None:
        return create_price(db, tenant_id, adjust_item.item_id, unit_cost, item_adjust.date, note,
                            PriceSourceType.ADJUSTMENT, item_adjust.id)

    old_price = to_decimal(current.price_usd)
    new_price = unit_cost
    if item.cost_calculation == CostCalculation.WEIGHTED_AVERAGE:
        added = to_decimal(adjust_item.quantity)
        total = inventory_crud.get_total_quantity(db, tenant_id, adjust_item.item_id)
        quantity_before = total - added
        if quantity_before > 0:
            new_price = (quantity_before * old_price + added * unit_cost) / total

    _update_if_changed(db, tenant_id, adjust_item.item_id, old_price, new_price, item_adjust.date, note,
                       PriceSourceType.ADJUSTMENT, item_adjust.id, threshold=MANUAL_CHANGE_THRESHOLD)
    return current


def reverse_adjustment(db: Session, item_adjust, adjust_item) -> Optional[ItemPrice]:
    """
    Take an added line's value back out of a weighted-average price.

    Mirror of ``update_from_adjustment`` for an adjust that is edited or
    deleted; the line's stock has already been removed. With no stock left
    the current price is kept.
    """
    if adjust_item.unit_cost_usd is None:
        return None
    tenant_id = item_adjust.tenant_id
    item = adjust_item.item or db.get(Item, adjust_item.item_id)
    current = get_current_price(db, tenant_id, adjust_item.item_id)
    if current is None or item.cost_calculation != CostCalculation.WEIGHTED_AVERAGE:
        return current

    removed = to_decimal(adjust_item.quantity)
    remaining = inventory_crud.get_total_quantity(db, tenant_id, adjust_item.item_id)
    if remaining <= 0:
        return current

    old_price = to_decimal(current.price_usd)
    value = (remaining + removed) * old_price - removed * to_decimal(adjust_item.unit_cost_usd)
    new_price = max(value, Decimal("0")) / remaining
    _update_if_changed(db, tenant_id, adjust_item.item_id, old_price, new_price, item_adjust.date,
                       f"Item Adjust #{item_adjust.id} reversed", PriceSourceType.ADJUSTMENT, item_adjust.id,
                       threshold=MANUAL_CHANGE_THRESHOLD)
    return current


def adjust_price(db: Session, tenant_id: str, item_id: int, new_price, note: Optional[str] = None,
                 effective_date: Optional[date] = None) -> ItemPrice:
    """Manual correction of the current price."""
    if db.query(Item).filter(Item.id == item_id, Item.tenant_id == tenant_id).first() is None:
        raise NotFoundError("Item", item_id)
    new_price = to_decimal(new_price)
    if new_price < 0:
        raise BusinessRuleError("Price cannot be negative")

    effective_date = effective_date or date.today()
    current = get_current_price(db, tenant_id, item_id)
    if current is None:
        return create_price(db, tenant_id, item_id, new_price, effective_date, note or "Manual price",
                            PriceSourceType.MANUAL)

    _update_if_changed(db, tenant_id, item_id, to_decimal(current.price_usd), new_price, effective_date,
                       note or "Manual price correction", PriceSourceType.MANUAL, None,
                       threshold=MANUAL_CHANGE_THRESHOLD)
    return current


def initialize_from_item(db: Session, item: Item) -> Optional[ItemPrice]:
    if to_decimal(item.starting_price) > 0:
        effective_date = item.created_at.date() if item.created_at else date.today()
        return create_price(db, item.tenant_id, item.id, item.starting_price, effective_date,
                            "Initial price from item creation", PriceSourceType.INITIAL, item.id)
    return None


def get_price_history(db: Session, tenant_id: str, item_id: int, limit: Optional[int] = 50):
    query = db.query(ItemPriceHistory).filter(
        ItemPriceHistory.tenant_id == tenant_id,
        ItemPriceHistory.item_id == item_id,
    ).order_by(ItemPriceHistory.id.desc())
    if limit:
        query = query.limit(limit)
    return query.all()


def get_price_trend(db: Session, tenant_id: str, item_id: int, days: int = 30) -> dict:
    """Compare the first and last recorded price inside the window against a +/-5% band."""
    since = date.today() - timedelta(days=days)
    history = db.query(ItemPriceHistory).filter(
        ItemPriceHistory.tenant_id == tenant_id,
        ItemPriceHistory.item_id == item_id,
        ItemPriceHistory.effective_date >= since,
    ).order_by(ItemPriceHistory.effective_date, ItemPriceHistory.id).all()

    result = {
        "item_id": item_id,
        "days": days,
        "trend": "stable",
        "change_percent": Decimal("0"),
        "first_price": None,
        "last_price": None,
        "data_points": len(history),
    }
    if len(history) < 2:
        return result

    first_price = to_decimal(history[0].price_usd)
    last_price = to_decimal(history[-1].price_usd)
    result.update(first_price=first_price, last_price=last_price)
    if first_price == 0:
        return result

    change_percent = (last_price - first_price) / first_price * 100
    result["change_percent"] = round(change_percent, 2)
    if change_percent > TREND_THRESHOLD_PERCENT:
        result["trend"] = "increasing"
    elif change_percent < -TREND_THRESHOLD_PERCENT:
        result["trend"] = "decreasing"
    return result


def get_starting_price_change_impact(db: Session, tenant_id: str, item_id: int) -> dict:
    purchase_count = db.query(func.count(PurchaseItem.id)).filter(
        PurchaseItem.tenant_id == tenant_id,
        PurchaseItem.item_id == item_id,
    ).scalar() or 0
    price_history_count = db.query(func.count(ItemPriceHistory.id)).filter(
        ItemPriceHistory.tenant_id == tenant_id,
        ItemPriceHistory.item_id == item_id,
    ).scalar() or 0

    total_transactions = purchase_count + price_history_count
    return {
        "can_change": total_transactions == 0,
        "purchase_count": purchase_count,
        "price_history_count": price_history_count,
        "total_transactions": total_transactions,
        "warning_message": (
            f"Cannot change starting price. This item has {total_transactions} transaction(s) that would be affected."
            if total_transactions > 0 else None
        ),
    }


def can_update_starting_price(db: Session, tenant_id: str, item_id: int) -> bool:
    return get_starting_price_change_impact(db, tenant_id, item_id)["can_change"]


def update_starting_price(db: Session, item: Item, starting_price) -> Item:
    """Change the starting price of an item that has never been priced or purchased."""
    impact = get_starting_price_change_impact(db, item.tenant_id, item.id)
    if not impact["can_change"]:
        logger.warning(f"Starting price change rejected for item {item.id}: {impact['warning_message']}")
        raise BusinessRuleError(impact["warning_message"], code="STARTING_PRICE_LOCKED", details=impact)

    item.starting_price = to_decimal(starting_price)
    db.flush()
    initialize_from_item(db, item)
    return item


def get_item_cost_history(db: Session, tenant_id: str, item_id: int, limit: int = 50):
    """Delivered purchase lines of the item, newest first, with their landed unit cost."""
    rows = (
        db.query(PurchaseItem, Purchase, BusinessPartner.name)
        .join(Purchase, PurchaseItem.purchase_id == Purchase.id)
        .join(BusinessPartner, Purchase.supplier_id == BusinessPartner.id)
        .filter(
            PurchaseItem.tenant_id == tenant_id,
            PurchaseItem.item_id == item_id,
            Purchase.status == PurchaseStatus.DELIVERED,
            Purchase.deleted_at.is_(None),
        )
        .order_by(Purchase.date.desc(), PurchaseItem.id.desc())
        .limit(limit)
        .all()
    )
    return [
        {
            "purchase_id": purchase.id,
            "purchase_code": purchase.code,
            "date": purchase.date,
            "supplier_id": purchase.supplier_id,
            "supplier_name": supplier_name,
            "quantity": to_decimal(line.quantity),
            "cost_per_item_usd": to_decimal(line.cost_per_item_usd),
        }
        for line, purchase, supplier_name in rows
    ]
