"""
Purchase service.

Builds purchase documents (line math, landed-cost apportionment, totals)
and, for delivered purchases, applies their effects per line in a fixed
order: inventory first, then the item price, then the supplier's last price.
Nothing here commits; the router owns the transaction.
"""

import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from crud import code_counters
from crud import inventory as inventory_crud
from crud import pricing
from crud import supplier_item_prices
from crud.lookups import get_item, get_partner, get_warehouse
from exceptions import BusinessRuleError, InvalidQuantityError, service_errors
from models.purchase_items import PurchaseItem
from models.purchases import Purchase, PurchaseStatus
from utils import to_decimal

logger = logging.getLogger("purchases")

PURCHASE_COUNTER = "purchase"
PURCHASE_PREFIX = "PUR"

HEADER_FIELDS = (
    "supplier_id", "warehouse_id", "date", "supplier_invoice_number", "currency_rate",
    "discount_amount", "discount_amount_usd", "tax_usd",
    "shipping_fee_usd", "shipping_fee_usd_percent",
    "customs_fee_usd", "customs_fee_usd_percent",
    "other_fee_usd", "other_fee_usd_percent",
    "note",
)
FEES = (
    ("total_shipping_usd", "shipping_fee_usd", "shipping_fee_usd_percent"),
    ("total_customs_usd", "customs_fee_usd", "customs_fee_usd_percent"),
    ("total_other_usd", "other_fee_usd", "other_fee_usd_percent"),
)


def calculate_line_amounts(price, quantity, discount_percent=0, discount_amount=0, currency_rate=1) -> dict:
    """Line totals before fees. A discount percent wins over a fixed line discount."""
    price = to_decimal(price)
    quantity = to_decimal(quantity)
    discount_percent = to_decimal(discount_percent)
    discount_amount = to_decimal(discount_amount)
    rate = to_decimal(currency_rate) or Decimal("1")

    if quantity <= 0:
        raise InvalidQuantityError("Purchase quantity must be greater than 0")
    if discount_percent > 0:
        discount_amount = price * quantity * discount_percent / 100

    total_price = price * quantity - discount_amount
    return {
        "price": price,
        "quantity": quantity,
        "discount_percent": discount_percent,
        "discount_amount": discount_amount,
        "total_price": total_price,
        "total_price_usd": total_price / rate,
    }


def apportion_fee(item_total_usd, sub_total_usd, fee_usd, fee_percent) -> Decimal:
    """Share of a purchase-level fee carried by one line."""
    item_total_usd = to_decimal(item_total_usd)
    if to_decimal(fee_percent) > 0:
        return item_total_usd * to_decimal(fee_percent) / 100
    if to_decimal(fee_usd) > 0:
        base = to_decimal(sub_total_usd)
        if base <= 0:
            base = Decimal("1")
        return to_decimal(fee_usd) * item_total_usd / base
    return Decimal("0")


def apply_landed_cost(purchase: Purchase, line: PurchaseItem, sub_total_usd) -> PurchaseItem:
    final_total = to_decimal(line.total_price_usd)
    for line_field, fee_field, percent_field in FEES:
        share = apportion_fee(line.total_price_usd, sub_total_usd, getattr(purchase, fee_field),
                              getattr(purchase, percent_field))
        setattr(line, line_field, share)
        final_total += share
    line.final_total_cost_usd = final_total
    quantity = to_decimal(line.quantity)
    line.cost_per_item_usd = final_total / quantity if quantity > 0 else Decimal("0")
    return line


def recalculate_totals(purchase: Purchase, lines: List[PurchaseItem]) -> Purchase:
    sub_total = sum((to_decimal(line.total_price) for line in lines), Decimal("0"))
    sub_total_usd = sum((to_decimal(line.total_price_usd) for line in lines), Decimal("0"))
    rate = to_decimal(purchase.currency_rate) or Decimal("1")
    tax_usd = to_decimal(purchase.tax_usd)
    fees_usd = sum((to_decimal(line.final_total_cost_usd) - to_decimal(line.total_price_usd) for line in lines),
                   Decimal("0"))

    purchase.sub_total = sub_total
    purchase.sub_total_usd = sub_total_usd
    purchase.total = sub_total - to_decimal(purchase.discount_amount) + tax_usd * rate
    purchase.total_usd = sub_total_usd - to_decimal(purchase.discount_amount_usd) + tax_usd
    purchase.final_total_usd = to_decimal(purchase.total_usd) + fees_usd
    return purchase


def _build_lines(db: Session, purchase: Purchase, items: List[dict], existing: Optional[dict] = None):
    """Pair each incoming line with its (new or existing) row and its computed amounts."""
    existing = existing or {}
    prepared = []
    for data in items:
        item = get_item(db, purchase.tenant_id, data["item_id"])
        amounts = calculate_line_amounts(
            data["price"], data["quantity"], data.get("discount_percent") or 0,
            data.get("discount_amount") or 0, purchase.currency_rate,
        )
        line = existing.get(data.get("id")) if data.get("id") else None
        if data.get("id") and line is None:
            raise BusinessRuleError(f"Purchase item {data['id']} does not belong to purchase #{purchase.id}")
        prepared.append((line, item, amounts, data.get("note")))
    sub_total_usd = sum((amounts["total_price_usd"] for _, _, amounts, _ in prepared), Decimal("0"))
    return prepared, sub_total_usd


def _apply_new_line_effects(db: Session, purchase: Purchase, line: PurchaseItem, user: Optional[str]):
    inventory_crud.add(db, purchase.tenant_id, line.item_id, purchase.warehouse_id, line.quantity,
                       reason=f"Purchase {purchase.code}", reference_type="purchase",
                       reference_id=purchase.id, user=user)
    pricing.update_from_purchase(db, purchase, line)
    supplier_item_prices.update_or_create_from_purchase(db, purchase, line)


def _validate_reduction(db: Session, purchase: Purchase, line: PurchaseItem, old_quantity: Decimal,
                        new_quantity: Decimal):
    reduction = old_quantity - new_quantity
    current = inventory_crud.get_quantity(db, purchase.tenant_id, line.item_id, purchase.warehouse_id)
    if current - reduction < 0:
        name = line.item.name if line.item else f"Item #{line.item_id}"
        raise BusinessRuleError(
            f"Cannot reduce purchase quantity for '{name}'. "
            f"Original purchase: {old_quantity} units. "
            f"Current inventory: {current} units ({old_quantity - current} already sold/used). "
            f"You tried to reduce to: {new_quantity} units (reduction of {reduction}). "
            f"Minimum allowed: {old_quantity - current} units (can reduce by maximum {current} units)."
        )


def _validate_removal(db: Session, purchase: Purchase, lines: List[PurchaseItem]):
    """Stock must still cover what the lines brought in, summed per item."""
    quantities, names = {}, {}
    for line in lines:
        quantities[line.item_id] = quantities.get(line.item_id, Decimal("0")) + to_decimal(line.quantity)
        names[line.item_id] = line.item.name if line.item else f"Item #{line.item_id}"
    for item_id, quantity in quantities.items():
        current = inventory_crud.get_quantity(db, purchase.tenant_id, item_id, purchase.warehouse_id)
        if current < quantity:
            raise BusinessRuleError(
                f"Cannot remove '{names[item_id]}' from purchase {purchase.code}. "
                f"Purchased quantity: {quantity} units. "
                f"Current inventory: {current} units ({quantity - current} already sold/used). "
                f"Please adjust quantities instead of removing the item completely."
            )


def create_purchase(db: Session, tenant_id: str, data: dict, items: List[dict], user: Optional[str] = None) -> Purchase:
    """Create a purchase with its lines; a Delivered purchase moves stock and prices immediately."""
    with service_errors(logger, "create purchase"):
        get_partner(db, tenant_id, data["supplier_id"], role="supplier")
        get_warehouse(db, tenant_id, data["warehouse_id"])

        status = data.get("status") or PurchaseStatus.WAITING
        purchase = Purchase(
            tenant_id=tenant_id,
            code=code_counters.next_code(db, tenant_id, PURCHASE_COUNTER, PURCHASE_PREFIX),
            status=status,
            created_by=user,
            **{field: data[field] for field in HEADER_FIELDS if data.get(field) is not None},
        )
        db.add(purchase)
        db.flush()

        prepared, sub_total_usd = _build_lines(db, purchase, items)
        lines = []
        for _, item, amounts, note in prepared:
            line = PurchaseItem(tenant_id=tenant_id, purchase_id=purchase.id, item_id=item.id, item_code=item.code,
                                note=note, **amounts)
            line.item = item
            apply_landed_cost(purchase, line, sub_total_usd)
            db.add(line)
            lines.append(line)
        db.flush()
        recalculate_totals(purchase, lines)

        if status == PurchaseStatus.DELIVERED:
            if not lines:
                raise BusinessRuleError("Cannot deliver a purchase without items")
            for line in lines:
                _apply_new_line_effects(db, purchase, line, user)

        db.flush()
        logger.info(f"Purchase {purchase.code} created with {len(lines)} line(s) for tenant {tenant_id}")
        return purchase


def update_purchase(db: Session, purchase: Purchase, data: dict, items: Optional[List[dict]] = None,
                    user: Optional[str] = None) -> Purchase:
    """
    Update header fields and, when ``items`` is given, sync the lines.

    Lines with an id are updated, lines without one are created and lines
    missing from the list are removed. On a delivered purchase quantity
    changes move stock by the difference and cost or quantity changes
    reprice the item through the purchase-history rebuild.
    """
    with service_errors(logger, f"update purchase #{purchase.id}"):
        tenant_id = purchase.tenant_id
        delivered = purchase.status == PurchaseStatus.DELIVERED
        new_status = data.get("status")
        if delivered and new_status is not None and new_status != PurchaseStatus.DELIVERED:
            raise BusinessRuleError(f"Purchase {purchase.code} is delivered and cannot move back to {new_status.value}")
        if delivered and data.get("warehouse_id") not in (None, purchase.warehouse_id):
            raise BusinessRuleError(f"Purchase {purchase.code} is delivered; its warehouse cannot change")

        if data.get("supplier_id") is not None:
            get_partner(db, tenant_id, data["supplier_id"], role="supplier")
        if data.get("warehouse_id") is not None:
            get_warehouse(db, tenant_id, data["warehouse_id"])
        for field in HEADER_FIELDS:
            if data.get(field) is not None:
                setattr(purchase, field, data[field])
        purchase.updated_by = user

        current_lines = list(purchase.items)
        if items is None:
            items = [
                {"id": line.id, "item_id": line.item_id, "price": line.price, "quantity": line.quantity,
                 "discount_percent": line.discount_percent, "discount_amount": line.discount_amount,
                 "note": line.note}
                for line in current_lines
            ]

        existing = {line.id: line for line in current_lines}
        prepared, sub_total_usd = _build_lines(db, purchase, items, existing)

        kept_ids = {line.id for line, _, _, _ in prepared if line is not None}
        for line in current_lines:
            if line.id not in kept_ids:
                _remove_line(db, purchase, line, delivered, user)

        lines = []
        for line, item, amounts, note in prepared:
            if line is None:
                line = PurchaseItem(tenant_id=tenant_id, purchase_id=purchase.id, item_id=item.id,
                                    item_code=item.code, note=note, **amounts)
                line.item = item
                apply_landed_cost(purchase, line, sub_total_usd)
                db.add(line)
                db.flush()
                if delivered:
                    _apply_new_line_effects(db, purchase, line, user)
            else:
                _update_line(db, purchase, line, item, amounts, note, sub_total_usd, delivered, user)
            lines.append(line)

        recalculate_totals(purchase, lines)
        db.flush()

        if not delivered and new_status == PurchaseStatus.DELIVERED:
            deliver_purchase(db, purchase, user)
        elif new_status is not None:
            purchase.status = new_status

        db.expire(purchase, ["items"])
        logger.info(f"Purchase {purchase.code} updated for tenant {tenant_id}")
        return purchase


def _update_line(db: Session, purchase: Purchase, line: PurchaseItem, item, amounts: dict, note,
                 sub_total_usd, delivered: bool, user: Optional[str]):
    old_quantity = to_decimal(line.quantity)
    old_cost = to_decimal(line.cost_per_item_usd)
    if line.item_id != item.id:
        raise BusinessRuleError(f"Purchase item {line.id} cannot change its item; remove it and add a new line")

    for field, value in amounts.items():
        setattr(line, field, value)
    if note is not None:
        line.note = note
    apply_landed_cost(purchase, line, sub_total_usd)
    db.flush()

    new_quantity = to_decimal(line.quantity)
    new_cost = to_decimal(line.cost_per_item_usd)
    if not delivered or (old_cost == new_cost and old_quantity == new_quantity):
        return

    difference = new_quantity - old_quantity
    if difference < 0:
        _validate_reduction(db, purchase, line, old_quantity, new_quantity)
    if difference != 0:
        inventory_crud.adjust(db, purchase.tenant_id, line.item_id, purchase.warehouse_id, difference,
                              reason=f"Purchase {purchase.code} line updated", reference_type="purchase",
                              reference_id=purchase.id, user=user)
    pricing.update_from_purchase(db, purchase, line, is_update=True, old_cost=old_cost, old_quantity=old_quantity)
    supplier_item_prices.update_or_create_from_purchase(db, purchase, line)


def _remove_line(db: Session, purchase: Purchase, line: PurchaseItem, delivered: bool, user: Optional[str]):
    if delivered:
        _validate_removal(db, purchase, [line])
        inventory_crud.subtract(db, purchase.tenant_id, line.item_id, purchase.warehouse_id, line.quantity,
                                reason=f"Purchase {purchase.code} line removed", reference_type="purchase",
                                reference_id=purchase.id, user=user)
        pricing.update_from_purchase_deletion(db, purchase, line)
    purchase.items.remove(line)
    db.delete(line)
    db.flush()


def deliver_purchase(db: Session, purchase: Purchase, user: Optional[str] = None) -> Purchase:
    """Mark a purchase Delivered and apply every line's stock, price and supplier-price effects."""
    with service_errors(logger, f"deliver purchase #{purchase.id}"):
        if purchase.status == PurchaseStatus.DELIVERED:
            raise BusinessRuleError(
                f"Purchase #{purchase.id} is already delivered. Inventory has already been added."
            )
        lines = list(purchase.items)
        if not lines:
            raise BusinessRuleError(f"Cannot deliver purchase #{purchase.id}. No items found in this purchase.")

        purchase.status = PurchaseStatus.DELIVERED
        purchase.updated_by = user
        db.flush()
        for line in lines:
            _apply_new_line_effects(db, purchase, line, user)
        logger.info(f"Purchase {purchase.code} delivered for tenant {purchase.tenant_id}")
        return purchase


def change_status(db: Session, purchase: Purchase, status: PurchaseStatus, user: Optional[str] = None) -> Purchase:
    if status == PurchaseStatus.DELIVERED:
        return deliver_purchase(db, purchase, user)
    if purchase.status == PurchaseStatus.DELIVERED:
        raise BusinessRuleError(f"Purchase {purchase.code} is delivered and cannot move back to {status.value}")
    purchase.status = status
    purchase.updated_by = user
    db.flush()
    return purchase


def delete_purchase(db: Session, purchase: Purchase, user: Optional[str] = None) -> Purchase:
    """Soft-delete a purchase; a delivered one first takes its stock back out and reprices its items."""
    with service_errors(logger, f"delete purchase #{purchase.id}"):
        lines = list(purchase.items)
        if purchase.status == PurchaseStatus.DELIVERED:
            _validate_removal(db, purchase, lines)
            purchase.soft_delete(user)
            db.flush()
            for line in lines:
                inventory_crud.subtract(db, purchase.tenant_id, line.item_id, purchase.warehouse_id, line.quantity,
                                        reason=f"Purchase {purchase.code} deleted", reference_type="purchase",
                                        reference_id=purchase.id, user=user)
                pricing.update_from_purchase_deletion(db, purchase, line, whole_purchase=True)
        else:
            purchase.soft_delete(user)
        db.flush()
        logger.info(f"Purchase {purchase.code} deleted for tenant {purchase.tenant_id}")
        return purchase
