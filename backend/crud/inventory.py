"""
Inventory ledger.

Keeps one quantity per (item, warehouse) pair and appends an
``InventoryMovement`` row for every accepted change. All functions work in
the caller's session: they flush but never commit, so a router (or a
document service such as purchases) decides the transaction boundary and a
raised error rolls every staged change back.
"""

import logging
from collections import defaultdict
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from exceptions import InsufficientInventoryError, InvalidQuantityError, NotFoundError
from models.inventory import Inventory
from models.inventory_movements import InventoryMovement
from models.item_prices import ItemPrice
from models.items import Item
from models.warehouses import Warehouse
from utils import to_decimal

logger = logging.getLogger("inventory")

OPERATIONS = ("add", "subtract", "set", "adjust")


def validate_item_and_warehouse(db: Session, tenant_id: str, item_id: int, warehouse_id: int):
    item = db.query(Item).filter(Item.id == item_id, Item.tenant_id == tenant_id).first()
    if item is None:
        raise NotFoundError("Item", item_id)
    warehouse = db.query(Warehouse).filter(Warehouse.id == warehouse_id, Warehouse.tenant_id == tenant_id).first()
    if warehouse is None:
        raise NotFoundError("Warehouse", warehouse_id)
    return item, warehouse


def get_inventory(db: Session, tenant_id: str, item_id: int, warehouse_id: int,
                  for_update: bool = False) -> Optional[Inventory]:
    query = db.query(Inventory).filter(
        Inventory.tenant_id == tenant_id,
        Inventory.item_id == item_id,
        Inventory.warehouse_id == warehouse_id,
    )
    if for_update:
        query = query.with_for_update()
    return query.first()


def find_or_create(db: Session, tenant_id: str, item_id: int, warehouse_id: int) -> Inventory:
    """Locked inventory row for the pair, created at zero when this is its first movement."""
    inventory = get_inventory(db, tenant_id, item_id, warehouse_id, for_update=True)
    if inventory is None:
        inventory = Inventory(tenant_id=tenant_id, item_id=item_id, warehouse_id=warehouse_id, quantity=Decimal("0"))
        db.add(inventory)
        db.flush()
    return inventory


def _apply_operation(current: Decimal, amount: Decimal, operation: str) -> Decimal:
    """Resulting balance, or raise without touching anything."""
    if operation == "add":
        if amount <= 0:
            raise InvalidQuantityError("Add quantity must be greater than 0")
        return current + amount
    if operation == "subtract":
        if amount <= 0:
            raise InvalidQuantityError("Subtract quantity must be greater than 0")
        if current < amount:
            raise InsufficientInventoryError(current, amount)
        return current - amount
    if operation == "set":
        if amount < 0:
            raise InvalidQuantityError("Set quantity cannot be negative")
        return amount
    if operation == "adjust":
        result = current + amount
        if result < 0:
            raise InvalidQuantityError(
                f"Adjustment would result in negative inventory. Available: {current}, Adjustment: {amount}"
            )
        return result
    raise InvalidQuantityError(f"Invalid operation: {operation}")


def update_quantity(
    db: Session,
    tenant_id: str,
    item_id: int,
    warehouse_id: int,
    amount,
    operation: str = "set",
    reason: Optional[str] = None,
    reference_type: Optional[str] = None,
    reference_id: Optional[int] = None,
    user: Optional[str] = None,
) -> Inventory:
    """
    Core ledger mutation.

    ``add``/``subtract`` take a positive amount, ``set`` a non-negative
    absolute quantity and ``adjust`` a signed delta. The row is locked (or
    created) before the read-modify-write; validation happens before any
    change so a rejected call leaves the balance as it was.
    """
    validate_item_and_warehouse(db, tenant_id, item_id, warehouse_id)
    amount = to_decimal(amount)

    inventory = get_inventory(db, tenant_id, item_id, warehouse_id, for_update=True)
    old_quantity = to_decimal(inventory.quantity) if inventory else Decimal("0")
    try:
        new_quantity = _apply_operation(old_quantity, amount, operation)
    except InsufficientInventoryError as e:
        e.details.update({"item_id": item_id, "warehouse_id": warehouse_id})
        logger.warning(f"Rejected {operation} of {amount} for item {item_id} in warehouse {warehouse_id}: {e.message}")
        raise

    if inventory is None:
        inventory = find_or_create(db, tenant_id, item_id, warehouse_id)
    inventory.quantity = new_quantity
    inventory.updated_by = user

    db.add(InventoryMovement(
        tenant_id=tenant_id,
        item_id=item_id,
        warehouse_id=warehouse_id,
        operation=operation,
        change_amount=new_quantity - old_quantity,
        old_quantity=old_quantity,
        new_quantity=new_quantity,
        reason=reason,
        reference_type=reference_type,
        reference_id=reference_id,
        changed_by=user,
    ))
    db.flush()
    logger.debug(f"Item {item_id} in warehouse {warehouse_id}: {old_quantity} -> {new_quantity} ({operation})")
    return inventory


def add(db: Session, tenant_id: str, item_id: int, warehouse_id: int, quantity, **kwargs) -> Inventory:
    return update_quantity(db, tenant_id, item_id, warehouse_id, quantity, "add", **kwargs)


def subtract(db: Session, tenant_id: str, item_id: int, warehouse_id: int, quantity, **kwargs) -> Inventory:
    return update_quantity(db, tenant_id, item_id, warehouse_id, quantity, "subtract", **kwargs)


def set_quantity(db: Session, tenant_id: str, item_id: int, warehouse_id: int, quantity, **kwargs) -> Inventory:
    return update_quantity(db, tenant_id, item_id, warehouse_id, quantity, "set", **kwargs)


def adjust(db: Session, tenant_id: str, item_id: int, warehouse_id: int, difference, **kwargs) -> Inventory:
    return update_quantity(db, tenant_id, item_id, warehouse_id, difference, "adjust", **kwargs)


def transfer(
    db: Session,
    tenant_id: str,
    item_id: int,
    from_warehouse_id: int,
    to_warehouse_id: int,
    quantity,
    reason: Optional[str] = None,
    reference_type: Optional[str] = None,
    reference_id: Optional[int] = None,
    user: Optional[str] = None,
) -> Dict[str, Inventory]:
    """Move stock between warehouses as one unit: both sides are validated before either is written."""
    quantity = to_decimal(quantity)
    if quantity <= 0:
        raise InvalidQuantityError("Quantity must be greater than 0")
    if from_warehouse_id == to_warehouse_id:
        raise InvalidQuantityError("Source and destination warehouses must be different")

    validate_item_and_warehouse(db, tenant_id, item_id, from_warehouse_id)
    validate_item_and_warehouse(db, tenant_id, item_id, to_warehouse_id)

    available = get_quantity(db, tenant_id, item_id, from_warehouse_id)
    if available < quantity:
        raise InsufficientInventoryError(available, quantity, item_id=item_id, warehouse_id=from_warehouse_id)

    reason = reason or f"Transfer from warehouse {from_warehouse_id} to {to_warehouse_id}"
    common = dict(reason=reason, reference_type=reference_type, reference_id=reference_id, user=user)
    source = subtract(db, tenant_id, item_id, from_warehouse_id, quantity, **common)
    destination = add(db, tenant_id, item_id, to_warehouse_id, quantity, **common)
    return {"from": source, "to": destination}


def batch_update(
    db: Session,
    tenant_id: str,
    entries: Iterable[dict],
    operation: str = "add",
    reason: Optional[str] = None,
    reference_type: Optional[str] = None,
    reference_id: Optional[int] = None,
    user: Optional[str] = None,
) -> List[Inventory]:
    """
    Apply ``operation`` to a list of ``{"item_id", "warehouse_id", "quantity"}`` entries.

    The whole batch is checked against projected balances first, so one bad
    entry rejects the batch before any row is written.
    """
    entries = list(entries)
    projected: Dict[tuple, Decimal] = {}
    for entry in entries:
        key = (entry["item_id"], entry["warehouse_id"])
        if key not in projected:
            validate_item_and_warehouse(db, tenant_id, *key)
            projected[key] = get_quantity(db, tenant_id, *key)
        try:
            projected[key] = _apply_operation(projected[key], to_decimal(entry["quantity"]), operation)
        except InsufficientInventoryError as e:
            e.details.update({"item_id": key[0], "warehouse_id": key[1]})
            raise

    return [
        update_quantity(
            db, tenant_id, entry["item_id"], entry["warehouse_id"], entry["quantity"], operation,
            reason=entry.get("reason") or reason,
            reference_type=reference_type,
            reference_id=reference_id,
            user=user,
        )
        for entry in entries
    ]


def add_batch(db: Session, tenant_id: str, entries: Iterable[dict], **kwargs) -> List[Inventory]:
    return batch_update(db, tenant_id, entries, "add", **kwargs)


def subtract_batch(db: Session, tenant_id: str, entries: Iterable[dict], **kwargs) -> List[Inventory]:
    return batch_update(db, tenant_id, entries, "subtract", **kwargs)


def get_quantity(db: Session, tenant_id: str, item_id: int, warehouse_id: int) -> Decimal:
    inventory = get_inventory(db, tenant_id, item_id, warehouse_id)
    return to_decimal(inventory.quantity) if inventory else Decimal("0")


def exists(db: Session, tenant_id: str, item_id: int, warehouse_id: int) -> bool:
    return get_inventory(db, tenant_id, item_id, warehouse_id) is not None


def has_stock(db: Session, tenant_id: str, item_id: int, warehouse_id: int, required=1) -> bool:
    return get_quantity(db, tenant_id, item_id, warehouse_id) >= to_decimal(required)


def get_item_inventory_across_warehouses(db: Session, tenant_id: str, item_id: int) -> List[Inventory]:
    return (
        db.query(Inventory)
        .options(joinedload(Inventory.warehouse))
        .filter(Inventory.tenant_id == tenant_id, Inventory.item_id == item_id)
        .order_by(Inventory.warehouse_id)
        .all()
    )


def get_total_quantity(db: Session, tenant_id: str, item_id: int) -> Decimal:
    """Quantity of the item summed over every warehouse (item prices are global)."""
    total = db.query(func.sum(Inventory.quantity)).filter(
        Inventory.tenant_id == tenant_id,
        Inventory.item_id == item_id,
    ).scalar()
    return to_decimal(total)


def get_inventory_balance(db: Session, tenant_id: str, warehouse_id: Optional[int] = None) -> List[dict]:
    """Positive balances with their valuation at the current item price."""
    query = (
        db.query(Inventory, Item, Warehouse, ItemPrice.price_usd)
        .join(Item, Inventory.item_id == Item.id)
        .join(Warehouse, Inventory.warehouse_id == Warehouse.id)
        .outerjoin(ItemPrice, ItemPrice.item_id == Inventory.item_id)
        .filter(
            Inventory.tenant_id == tenant_id,
            Inventory.quantity > 0,
            Item.deleted_at.is_(None),
            Warehouse.deleted_at.is_(None),
        )
    )
    if warehouse_id:
        query = query.filter(Inventory.warehouse_id == warehouse_id)

    balance = []
    for inventory, item, warehouse, price_usd in query.order_by(Item.name, Warehouse.name).all():
        quantity = to_decimal(inventory.quantity)
        price = to_decimal(price_usd)
        balance.append({
            "item_id": item.id,
            "item_code": item.code,
            "item_name": item.name,
            "warehouse_id": warehouse.id,
            "warehouse_name": warehouse.name,
            "quantity": quantity,
            "price_usd": price,
            "total_value_usd": quantity * price,
            "last_updated": inventory.updated_at or inventory.created_at,
        })
    return balance


def get_movement_history(db: Session, tenant_id: str, item_id: int, warehouse_id: Optional[int] = None,
                         limit: Optional[int] = 100) -> List[InventoryMovement]:
    query = db.query(InventoryMovement).filter(
        InventoryMovement.tenant_id == tenant_id,
        InventoryMovement.item_id == item_id,
    )
    if warehouse_id:
        query = query.filter(InventoryMovement.warehouse_id == warehouse_id)
    query = query.order_by(InventoryMovement.id.desc())
    if limit:
        query = query.limit(limit)
    return query.all()


def get_low_stock_items(db: Session, tenant_id: str) -> List[dict]:
    """Items whose total quantity is at or below their low-quantity alert."""
    totals = defaultdict(Decimal)
    for item_id, quantity in db.query(Inventory.item_id, Inventory.quantity).filter(Inventory.tenant_id == tenant_id):
        totals[item_id] += to_decimal(quantity)

    items = db.query(Item).filter(
        Item.tenant_id == tenant_id,
        Item.low_quantity_alert.isnot(None),
        Item.is_active.is_(True),
    ).order_by(Item.name).all()
    return [
        {
            "item_id": item.id,
            "item_code": item.code,
            "item_name": item.name,
            "quantity": totals[item.id],
            "low_quantity_alert": to_decimal(item.low_quantity_alert),
        }
        for item in items
        if totals[item.id] <= to_decimal(item.low_quantity_alert)
    ]
