from fastapi import APIRouter, Depends, HTTPException, status, Query, UploadFile, File
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from database import get_db
from models.items import Item as ItemModel, CostCalculation
from schemas.items import Item, ItemCreate, ItemUpdate, ItemPrice, ItemPriceHistory, ItemPriceAdjust, SupplierItemPrice
from schemas.inventory import Inventory, InventoryMovement
from crud import items as crud_items
from crud import inventory as crud_inventory
from crud import pricing
from crud import soft_delete
from crud import supplier_item_prices
from utils.auth_utils import get_current_user, get_user_identifier
from utils.query_helpers import apply_search, apply_sort, paginate
from utils.tenancy import get_tenant_id

router = APIRouter(prefix="/items", tags=["Items"])
logger = logging.getLogger("items")

SEARCH_FIELDS = ("code", "name", "description", "category")
SORT_FIELDS = ("id", "code", "name", "category", "created_at")


def _get_item(db: Session, item_id: int, tenant_id: str) -> ItemModel:
    db_item = db.query(ItemModel).filter(ItemModel.id == item_id, ItemModel.tenant_id == tenant_id).first()
    if db_item is None:
        raise HTTPException(status_code=404, detail="Item not found")
    return db_item


@router.post("/", response_model=Item, status_code=status.HTTP_201_CREATED)
def create_item(
    item: ItemCreate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    user_id = get_user_identifier(user)
    try:
        db_item = crud_items.create_item(db, tenant_id, item.model_dump(), user_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(db_item)
    logger.info(f"Item '{db_item.code}' created by user {user_id} for tenant {tenant_id}")
    return db_item


@router.get("/")
def read_items(
    page: int = 1,
    per_page: int = 15,
    search: Optional[str] = None,
    search_field: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_direction: Optional[str] = None,
    category: Optional[str] = None,
    cost_calculation: Optional[CostCalculation] = None,
    is_active: Optional[bool] = Query(None),
    db: Session = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id)
):
    query = db.query(ItemModel).filter(ItemModel.tenant_id == tenant_id)
    if category:
        query = query.filter(ItemModel.category == category)
    if cost_calculation:
        query = query.filter(ItemModel.cost_calculation == cost_calculation)
    if is_active is not None:
        query = query.filter(ItemModel.is_active == is_active)
    query = apply_search(query, ItemModel, search, SEARCH_FIELDS, search_field)
    query = apply_sort(query, ItemModel, sort_by, sort_direction, SORT_FIELDS, default="code", default_direction="asc")
    return paginate(query, page, per_page, serializer=Item.model_validate)


@router.get("/trashed")
def read_trashed_items(page: int = 1, per_page: int = 15, db: Session = Depends(get_db),
                       tenant_id: str = Depends(get_tenant_id)):
    return paginate(soft_delete.list_trashed(db, ItemModel, tenant_id), page, per_page, serializer=Item.model_validate)


@router.post("/import")
def import_items(
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    """Bulk-create items from an .xlsx sheet; rows with a known code are skipped."""
    if not file.filename or not file.filename.lower().endswith(".xlsx"):
        raise HTTPException(status_code=400, detail="Only .xlsx files are supported")
    user_id = get_user_identifier(user)
    try:
        result = crud_items.import_items(db, tenant_id, file.file.read(), user_id)
        db.commit()
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))
    except Exception:
        db.rollback()
        raise
    logger.info(f"Items imported from '{file.filename}' by user {user_id} for tenant {tenant_id}")
    return {"message": f"{len(result['created'])} item(s) created, {len(result['skipped'])} skipped", **result}


@router.get("/{item_id}", response_model=Item)
def read_item(item_id: int, db: Session = Depends(get_db), tenant_id: str = Depends(get_tenant_id)):
    return _get_item(db, item_id, tenant_id)


@router.patch("/{item_id}", response_model=Item)
def update_item(
    item_id: int,
    item: ItemUpdate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    db_item = _get_item(db, item_id, tenant_id)
    user_id = get_user_identifier(user)
    try:
        crud_items.update_item(db, db_item, item.model_dump(exclude_unset=True), user_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(db_item)
    logger.info(f"Item '{db_item.code}' (ID: {item_id}) updated by user {user_id} for tenant {tenant_id}")
    return db_item


@router.delete("/{item_id}")
def delete_item(
    item_id: int,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    db_item = _get_item(db, item_id, tenant_id)
    user_id = get_user_identifier(user)
    try:
        crud_items.delete_item(db, db_item, user_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(f"Item '{db_item.code}' (ID: {item_id}) deleted by user {user_id} for tenant {tenant_id}")
    return {"message": "Item deleted successfully"}


@router.post("/{item_id}/restore", response_model=Item)
def restore_item(item_id: int, db: Session = Depends(get_db), user: dict = Depends(get_current_user),
                 tenant_id: str = Depends(get_tenant_id)):
    try:
        db_item = soft_delete.restore(db, ItemModel, tenant_id, item_id, get_user_identifier(user),
                                      unique_fields=["code"])
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(db_item)
    return db_item


@router.delete("/{item_id}/force")
def force_delete_item(item_id: int, db: Session = Depends(get_db), user: dict = Depends(get_current_user),
                      tenant_id: str = Depends(get_tenant_id)):
    try:
        soft_delete.force_delete(db, ItemModel, tenant_id, item_id, get_user_identifier(user))
        db.commit()
    except Exception:
        db.rollback()
        raise
    return {"message": "Item permanently deleted"}


@router.get("/{item_id}/price", response_model=Optional[ItemPrice])
def read_item_price(item_id: int, db: Session = Depends(get_db), tenant_id: str = Depends(get_tenant_id)):
    _get_item(db, item_id, tenant_id)
    return pricing.get_current_price(db, tenant_id, item_id)


@router.post("/{item_id}/price", response_model=ItemPrice)
def adjust_item_price(
    item_id: int,
    body: ItemPriceAdjust,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    """Manual price correction; changes of a cent or less are ignored."""
    _get_item(db, item_id, tenant_id)
    user_id = get_user_identifier(user)
    try:
        price = pricing.adjust_price(db, tenant_id, item_id, body.price_usd, note=body.note,
                                     effective_date=body.effective_date)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(price)
    logger.info(f"Price of item {item_id} set to {body.price_usd} by user {user_id} for tenant {tenant_id}")
    return price


@router.get("/{item_id}/price-history", response_model=List[ItemPriceHistory])
def read_price_history(item_id: int, limit: int = 50, db: Session = Depends(get_db),
                       tenant_id: str = Depends(get_tenant_id)):
    _get_item(db, item_id, tenant_id)
    return pricing.get_price_history(db, tenant_id, item_id, limit=limit)


@router.get("/{item_id}/price-trend")
def read_price_trend(item_id: int, days: int = 30, db: Session = Depends(get_db),
                     tenant_id: str = Depends(get_tenant_id)):
    _get_item(db, item_id, tenant_id)
    return pricing.get_price_trend(db, tenant_id, item_id, days=days)


@router.get("/{item_id}/starting-price-impact")
def read_starting_price_impact(item_id: int, db: Session = Depends(get_db),
                               tenant_id: str = Depends(get_tenant_id)):
    _get_item(db, item_id, tenant_id)
    return pricing.get_starting_price_change_impact(db, tenant_id, item_id)


@router.get("/{item_id}/cost-history")
def read_cost_history(item_id: int, limit: int = 50, db: Session = Depends(get_db),
                      tenant_id: str = Depends(get_tenant_id)):
    _get_item(db, item_id, tenant_id)
    return pricing.get_item_cost_history(db, tenant_id, item_id, limit=limit)


@router.get("/{item_id}/supplier-prices", response_model=List[SupplierItemPrice])
def read_best_supplier_prices(item_id: int, limit: int = 5, db: Session = Depends(get_db),
                              tenant_id: str = Depends(get_tenant_id)):
    _get_item(db, item_id, tenant_id)
    return supplier_item_prices.get_best_prices_for_item(db, tenant_id, item_id, limit=limit)


@router.get("/{item_id}/inventory", response_model=List[Inventory])
def read_item_inventory(item_id: int, db: Session = Depends(get_db), tenant_id: str = Depends(get_tenant_id)):
    _get_item(db, item_id, tenant_id)
    return crud_inventory.get_item_inventory_across_warehouses(db, tenant_id, item_id)


@router.get("/{item_id}/movements", response_model=List[InventoryMovement])
def read_item_movements(item_id: int, warehouse_id: Optional[int] = None, limit: int = 100,
                        db: Session = Depends(get_db), tenant_id: str = Depends(get_tenant_id)):
    _get_item(db, item_id, tenant_id)
    return crud_inventory.get_movement_history(db, tenant_id, item_id, warehouse_id=warehouse_id, limit=limit)
