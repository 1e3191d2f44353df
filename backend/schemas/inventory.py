from pydantic import BaseModel
from typing import Literal, Optional
from datetime import datetime
from decimal import Decimal


class Inventory(BaseModel):
    id: int
    item_id: int
    warehouse_id: int
    quantity: Decimal
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class InventoryMovement(BaseModel):
    id: int
    item_id: int
    warehouse_id: int
    operation: str
    change_amount: Decimal
    old_quantity: Decimal
    new_quantity: Decimal
    reason: Optional[str] = None
    reference_type: Optional[str] = None
    reference_id: Optional[int] = None
    changed_by: Optional[str] = None
    timestamp: Optional[datetime] = None

    class Config:
        from_attributes = True


class InventoryQuantityUpdate(BaseModel):
    """Manual correction of one balance; ``adjust`` takes a signed difference."""
    item_id: int
    warehouse_id: int
    quantity: Decimal
    operation: Literal["add", "subtract", "set", "adjust"] = "set"
    reason: Optional[str] = None


class InventoryTransfer(BaseModel):
    item_id: int
    from_warehouse_id: int
    to_warehouse_id: int
    quantity: Decimal
    reason: Optional[str] = None
