from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional
import logging

from database import get_db
from schemas.inventory import Inventory, InventoryQuantityUpdate, InventoryTransfer
from crud import inventory as crud_inventory
from utils.auth_utils import get_current_user, get_user_identifier
from utils.tenancy import get_tenant_id

router = APIRouter(prefix="/inventory", tags=["Inventory"])
logger = logging.getLogger("inventory")


@router.get("/balance")
def read_inventory_balance(warehouse_id: Optional[int] = None, db: Session = Depends(get_db),
                           tenant_id: str = Depends(get_tenant_id)):
    """Positive balances per item and warehouse with their value at the current price."""
    balance = crud_inventory.get_inventory_balance(db, tenant_id, warehouse_id=warehouse_id)
    total_value = sum(row["total_value_usd"] for row in balance)
    return {"message": "Inventory balance retrieved successfully", "data": balance, "total_value_usd": total_value}


@router.get("/low-stock")
def read_low_stock(db: Session = Depends(get_db), tenant_id: str = Depends(get_tenant_id)):
    return crud_inventory.get_low_stock_items(db, tenant_id)


@router.get("/quantity")
def read_quantity(item_id: int, warehouse_id: int, db: Session = Depends(get_db),
                  tenant_id: str = Depends(get_tenant_id)):
    crud_inventory.validate_item_and_warehouse(db, tenant_id, item_id, warehouse_id)
    return {
        "item_id": item_id,
        "warehouse_id": warehouse_id,
        "quantity": crud_inventory.get_quantity(db, tenant_id, item_id, warehouse_id),
        "total_quantity": crud_inventory.get_total_quantity(db, tenant_id, item_id),
    }


@router.post("/quantity", response_model=Inventory)
def update_quantity(
    body: InventoryQuantityUpdate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    """Manual add, subtract, set or adjust of one item/warehouse balance."""
    user_id = get_user_identifier(user)
    try:
        inventory = crud_inventory.update_quantity(
            db, tenant_id, body.item_id, body.warehouse_id, body.quantity, body.operation,
            reason=body.reason or "Manual inventory update", reference_type="manual", user=user_id,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(inventory)
    logger.info(f"Inventory {body.operation} {body.quantity} for item {body.item_id} in warehouse "
                f"{body.warehouse_id} by user {user_id} for tenant {tenant_id}")
    return inventory


@router.post("/transfer")
def transfer_stock(
    body: InventoryTransfer,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    user_id = get_user_identifier(user)
    try:
        result = crud_inventory.transfer(
            db, tenant_id, body.item_id, body.from_warehouse_id, body.to_warehouse_id, body.quantity,
            reason=body.reason, reference_type="manual", user=user_id,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(f"Transferred {body.quantity} of item {body.item_id} from warehouse {body.from_warehouse_id} "
                f"to {body.to_warehouse_id} by user {user_id} for tenant {tenant_id}")
    return {
        "message": "Stock transferred successfully",
        "from": Inventory.model_validate(result["from"]),
        "to": Inventory.model_validate(result["to"]),
    }
