import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from crud import code_counters
from crud import inventory as inventory_crud
from crud import pricing
from crud.lookups import get_item, get_warehouse
from exceptions import BusinessRuleError, InvalidQuantityError, service_errors
from models.item_adjusts import AdjustType, ItemAdjust, ItemAdjustItem
from utils import to_decimal

logger = logging.getLogger("item_adjusts")

ADJUST_COUNTER = "item_adjust"
ADJUST_PREFIX = "ADJ"


def _entries(item_adjust: ItemAdjust, lines) -> List[dict]:
    return [{"item_id": line.item_id, "warehouse_id": item_adjust.warehouse_id, "quantity": line.quantity}
            for line in lines]


def _apply(db: Session, item_adjust: ItemAdjust, lines: List[ItemAdjustItem], user: Optional[str]):
    """Move the stock of each line; added stock with a unit cost also feeds the item price."""
    common = dict(reason=f"Item adjust {item_adjust.code}", reference_type="item_adjust",
                  reference_id=item_adjust.id, user=user)
    if item_adjust.type == AdjustType.ADD:
        for line in lines:
            inventory_crud.add(db, item_adjust.tenant_id, line.item_id, item_adjust.warehouse_id, line.quantity,
                               **common)
            pricing.update_from_adjustment(db, item_adjust, line)
    else:
        inventory_crud.subtract_batch(db, item_adjust.tenant_id, _entries(item_adjust, lines), **common)


def _reverse(db: Session, item_adjust: ItemAdjust, lines: List[ItemAdjustItem], user: Optional[str]):
    """Undo ``_apply``; added lines leave in reverse order and take their cost out of the price."""
    common = dict(reason=f"Item adjust {item_adjust.code} reversed", reference_type="item_adjust",
                  reference_id=item_adjust.id, user=user)
    if item_adjust.type == AdjustType.ADD:
        for line in reversed(lines):
            inventory_crud.subtract(db, item_adjust.tenant_id, line.item_id, item_adjust.warehouse_id, line.quantity,
                                    **common)
            pricing.reverse_adjustment(db, item_adjust, line)
    else:
        inventory_crud.add_batch(db, item_adjust.tenant_id, _entries(item_adjust, lines), **common)


def _build_lines(db: Session, item_adjust: ItemAdjust, items: List[dict]) -> List[ItemAdjustItem]:
    if not items:
        raise BusinessRuleError("An item adjust must contain at least one item")
    lines = []
    for data in items:
        item = get_item(db, item_adjust.tenant_id, data["item_id"])
        quantity = to_decimal(data["quantity"])
        if quantity <= 0:
            raise InvalidQuantityError("Adjusted quantity must be greater than 0")
        unit_cost = data.get("unit_cost_usd")
        if unit_cost is not None and item_adjust.type == AdjustType.SUBTRACT:
            unit_cost = None
        line = ItemAdjustItem(tenant_id=item_adjust.tenant_id, item_adjust_id=item_adjust.id, item_id=item.id,
                              quantity=quantity, unit_cost_usd=unit_cost)
        line.item = item
        item_adjust.items.append(line)
        lines.append(line)
    db.flush()
    return lines


def create_item_adjust(db: Session, tenant_id: str, data: dict, items: List[dict],
                       user: Optional[str] = None) -> ItemAdjust:
    with service_errors(logger, "create item adjust"):
        get_warehouse(db, tenant_id, data["warehouse_id"])
        item_adjust = ItemAdjust(
            tenant_id=tenant_id,
            code=code_counters.next_code(db, tenant_id, ADJUST_COUNTER, ADJUST_PREFIX),
            warehouse_id=data["warehouse_id"],
            type=data["type"],
            date=data["date"],
            note=data.get("note"),
            created_by=user,
        )
        db.add(item_adjust)
        db.flush()
        lines = _build_lines(db, item_adjust, items)
        _apply(db, item_adjust, lines, user)
        logger.info(f"Item adjust {item_adjust.code} ({item_adjust.type.value}) created for tenant {tenant_id}")
        return item_adjust


def update_item_adjust(db: Session, item_adjust: ItemAdjust, data: dict, items: Optional[List[dict]] = None,
                       user: Optional[str] = None) -> ItemAdjust:
    """
    Undo the old stock effect, apply the new header and lines, then redo the effect.

    An edit that keeps the lines, warehouse and type (a date or note fix)
    only touches the header.
    """
    with service_errors(logger, f"update item adjust #{item_adjust.id}"):
        if data.get("warehouse_id") is not None:
            get_warehouse(db, item_adjust.tenant_id, data["warehouse_id"])
        moves_stock = items is not None or any(
            data.get(field) is not None and data[field] != getattr(item_adjust, field)
            for field in ("warehouse_id", "type")
        )
        old_lines = list(item_adjust.items)
        if moves_stock:
            _reverse(db, item_adjust, old_lines, user)

        for field in ("warehouse_id", "type", "date", "note"):
            if data.get(field) is not None:
                setattr(item_adjust, field, data[field])
        item_adjust.updated_by = user

        if not moves_stock:
            db.flush()
            logger.info(f"Item adjust {item_adjust.code} header updated for tenant {item_adjust.tenant_id}")
            return item_adjust

        if items is None:
            items = [{"item_id": line.item_id, "quantity": line.quantity, "unit_cost_usd": line.unit_cost_usd}
                     for line in old_lines]
        for line in old_lines:
            item_adjust.items.remove(line)
            db.delete(line)
        db.flush()

        lines = _build_lines(db, item_adjust, items)
        _apply(db, item_adjust, lines, user)
        logger.info(f"Item adjust {item_adjust.code} updated for tenant {item_adjust.tenant_id}")
        return item_adjust


def delete_item_adjust(db: Session, item_adjust: ItemAdjust, user: Optional[str] = None) -> ItemAdjust:
    with service_errors(logger, f"delete item adjust #{item_adjust.id}"):
        _reverse(db, item_adjust, list(item_adjust.items), user)
        item_adjust.soft_delete(user)
        db.flush()
        logger.info(f"Item adjust {item_adjust.code} deleted for tenant {item_adjust.tenant_id}")
        return item_adjust
