import logging
from decimal import Decimal, InvalidOperation
from typing import Optional

from sqlalchemy.orm import Session

from crud import inventory as inventory_crud
from crud import pricing
from crud.audit_log import log_change
from exceptions import BusinessRuleError, ConflictError
from models.items import CostCalculation, Item
from utils import sqlalchemy_to_dict, to_decimal
from utils.spreadsheets import read_rows

logger = logging.getLogger("items")

ITEM_FIELDS = ("code", "name", "description", "unit", "category", "cost_calculation", "base_sell_price",
               "tax_percent", "low_quantity_alert", "is_active")
IMPORT_REQUIRED_COLUMNS = ("code", "name")
IMPORT_DECIMAL_COLUMNS = ("starting_price", "base_sell_price", "tax_percent", "low_quantity_alert")


def get_item_by_code(db: Session, tenant_id: str, code: str, include_deleted: bool = False) -> Optional[Item]:
    query = db.query(Item).filter(Item.tenant_id == tenant_id, Item.code == code)
    if include_deleted:
        query = query.execution_options(include_deleted=True)
    return query.first()


def create_item(db: Session, tenant_id: str, data: dict, user: Optional[str] = None) -> Item:
    """Create an item; a positive starting price becomes its first current price."""
    if get_item_by_code(db, tenant_id, data["code"], include_deleted=True):
        raise ConflictError(f"Item with code '{data['code']}' already exists")
    item = Item(tenant_id=tenant_id, created_by=user, **data)
    db.add(item)
    db.flush()
    pricing.initialize_from_item(db, item)
    log_change(db, tenant_id, item, "CREATE", user)
    logger.info(f"Item '{item.code}' created for tenant {tenant_id}")
    return item


def update_item(db: Session, item: Item, data: dict, user: Optional[str] = None) -> Item:
    old_values = sqlalchemy_to_dict(item)
    if data.get("code") and data["code"] != item.code:
        if get_item_by_code(db, item.tenant_id, data["code"], include_deleted=True):
            raise ConflictError(f"Item with code '{data['code']}' already exists")

    if "cost_calculation" in data and data["cost_calculation"] is not None \
            and CostCalculation(data["cost_calculation"]) != item.cost_calculation \
            and not pricing.can_update_starting_price(db, item.tenant_id, item.id):
        raise BusinessRuleError("Cost calculation cannot change once the item has been priced or purchased")

    starting_price = data.pop("starting_price", None)
    for field in ITEM_FIELDS:
        if field in data:
            setattr(item, field, data[field])
    if starting_price is not None and to_decimal(starting_price) != to_decimal(item.starting_price):
        pricing.update_starting_price(db, item, starting_price)

    item.updated_by = user
    log_change(db, item.tenant_id, item, "UPDATE", user, old_values=old_values)
    return item


def delete_item(db: Session, item: Item, user: Optional[str] = None) -> Item:
    on_hand = inventory_crud.get_total_quantity(db, item.tenant_id, item.id)
    if on_hand > 0:
        raise BusinessRuleError(f"Item '{item.code}' still has {on_hand} in stock and cannot be deleted")
    item.soft_delete(user)
    log_change(db, item.tenant_id, item, "DELETE", user)
    return item


def _import_values(row: dict) -> dict:
    values = {"code": str(row["code"]).strip(), "name": str(row["name"]).strip()}
    for column in ("description", "unit", "category"):
        if row.get(column) is not None:
            values[column] = str(row[column]).strip()
    for column in IMPORT_DECIMAL_COLUMNS:
        if row.get(column) is not None:
            values[column] = Decimal(str(row[column]))
    if row.get("cost_calculation") is not None:
        values["cost_calculation"] = CostCalculation(str(row["cost_calculation"]).strip().lower())
    return values


def import_items(db: Session, tenant_id: str, contents: bytes, user: Optional[str] = None) -> dict:
    """
    Create items from an .xlsx sheet with at least ``code`` and ``name`` columns.

    Rows with an existing code or unreadable values are skipped and reported;
    the rest are created in the caller's transaction.
    """
    rows = read_rows(contents, IMPORT_REQUIRED_COLUMNS)
    created, skipped = [], []
    for index, row in enumerate(rows, start=2):
        if not row.get("code") or not row.get("name"):
            skipped.append({"row": index, "reason": "code and name are required"})
            continue
        try:
            values = _import_values(row)
        except (InvalidOperation, ValueError) as e:
            skipped.append({"row": index, "code": str(row["code"]), "reason": f"invalid value: {e}"})
            continue
        if get_item_by_code(db, tenant_id, values["code"], include_deleted=True):
            skipped.append({"row": index, "code": values["code"], "reason": "code already exists"})
            continue
        item = create_item(db, tenant_id, values, user)
        created.append({"row": index, "id": item.id, "code": item.code})

    logger.info(f"Item import for tenant {tenant_id}: {len(created)} created, {len(skipped)} skipped")
    return {"created": created, "skipped": skipped}
