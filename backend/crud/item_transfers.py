import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from crud import code_counters
from crud import inventory as inventory_crud
from crud.lookups import get_item, get_warehouse
from exceptions import BusinessRuleError, InvalidQuantityError, service_errors
from models.item_transfers import ItemTransfer, ItemTransferItem
from utils import to_decimal

logger = logging.getLogger("item_transfers")

TRANSFER_COUNTER = "item_transfer"
TRANSFER_PREFIX = "TRF"


def _move(db: Session, transfer: ItemTransfer, lines, from_warehouse_id: int, to_warehouse_id: int,
          reason: str, user: Optional[str]):
    for line in lines:
        inventory_crud.transfer(db, transfer.tenant_id, line.item_id, from_warehouse_id, to_warehouse_id,
                                line.quantity, reason=reason, reference_type="item_transfer",
                                reference_id=transfer.id, user=user)


def _apply(db: Session, transfer: ItemTransfer, lines, user: Optional[str]):
    _move(db, transfer, lines, transfer.from_warehouse_id, transfer.to_warehouse_id,
          f"Item transfer {transfer.code}", user)


def _reverse(db: Session, transfer: ItemTransfer, lines, user: Optional[str]):
    _move(db, transfer, lines, transfer.to_warehouse_id, transfer.from_warehouse_id,
          f"Item transfer {transfer.code} reversed", user)


def _validate_warehouses(db: Session, tenant_id: str, from_warehouse_id: int, to_warehouse_id: int):
    if from_warehouse_id == to_warehouse_id:
        raise BusinessRuleError("Source and destination warehouses must be different")
    get_warehouse(db, tenant_id, from_warehouse_id)
    get_warehouse(db, tenant_id, to_warehouse_id)


def _build_lines(db: Session, transfer: ItemTransfer, items: List[dict]) -> List[ItemTransferItem]:
    if not items:
        raise BusinessRuleError("An item transfer must contain at least one item")
    lines = []
    for data in items:
        item = get_item(db, transfer.tenant_id, data["item_id"])
        quantity = to_decimal(data["quantity"])
        if quantity <= 0:
            raise InvalidQuantityError("Transferred quantity must be greater than 0")
        line = ItemTransferItem(tenant_id=transfer.tenant_id, item_transfer_id=transfer.id, item_id=item.id,
                                quantity=quantity)
        transfer.items.append(line)
        lines.append(line)
    db.flush()
    return lines


def create_item_transfer(db: Session, tenant_id: str, data: dict, items: List[dict],
                         user: Optional[str] = None) -> ItemTransfer:
    with service_errors(logger, "create item transfer"):
        _validate_warehouses(db, tenant_id, data["from_warehouse_id"], data["to_warehouse_id"])
        transfer = ItemTransfer(
            tenant_id=tenant_id,
            code=code_counters.next_code(db, tenant_id, TRANSFER_COUNTER, TRANSFER_PREFIX),
            from_warehouse_id=data["from_warehouse_id"],
            to_warehouse_id=data["to_warehouse_id"],
            date=data["date"],
            note=data.get("note"),
            created_by=user,
        )
        db.add(transfer)
        db.flush()
        lines = _build_lines(db, transfer, items)
        _apply(db, transfer, lines, user)
        logger.info(f"Item transfer {transfer.code} created for tenant {tenant_id}")
        return transfer


def update_item_transfer(db: Session, transfer: ItemTransfer, data: dict, items: Optional[List[dict]] = None,
                         user: Optional[str] = None) -> ItemTransfer:
    with service_errors(logger, f"update item transfer #{transfer.id}"):
        old_lines = list(transfer.items)
        _reverse(db, transfer, old_lines, user)

        from_id = data.get("from_warehouse_id") or transfer.from_warehouse_id
        to_id = data.get("to_warehouse_id") or transfer.to_warehouse_id
        _validate_warehouses(db, transfer.tenant_id, from_id, to_id)
        transfer.from_warehouse_id = from_id
        transfer.to_warehouse_id = to_id
        for field in ("date", "note"):
            if data.get(field) is not None:
                setattr(transfer, field, data[field])
        transfer.updated_by = user

        if items is None:
            items = [{"item_id": line.item_id, "quantity": line.quantity} for line in old_lines]
        for line in old_lines:
            transfer.items.remove(line)
            db.delete(line)
        db.flush()

        lines = _build_lines(db, transfer, items)
        _apply(db, transfer, lines, user)
        logger.info(f"Item transfer {transfer.code} updated for tenant {transfer.tenant_id}")
        return transfer


def delete_item_transfer(db: Session, transfer: ItemTransfer, user: Optional[str] = None) -> ItemTransfer:
    """Move the stock back to the source warehouse; fails if the destination no longer holds it."""
    with service_errors(logger, f"delete item transfer #{transfer.id}"):
        _reverse(db, transfer, list(transfer.items), user)
        transfer.soft_delete(user)
        db.flush()
        logger.info(f"Item transfer {transfer.code} deleted for tenant {transfer.tenant_id}")
        return transfer
