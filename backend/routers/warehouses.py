from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import Optional
import logging

from database import get_db
from models.warehouses import Warehouse as WarehouseModel
from schemas.warehouses import Warehouse, WarehouseCreate, WarehouseUpdate
from crud import inventory as crud_inventory
from crud import soft_delete
from crud.audit_log import log_change
from utils import sqlalchemy_to_dict
from utils.auth_utils import get_current_user, get_user_identifier
from utils.query_helpers import apply_search, apply_sort, paginate
from utils.tenancy import get_tenant_id

router = APIRouter(prefix="/warehouses", tags=["Warehouses"])
logger = logging.getLogger("warehouses")

SEARCH_FIELDS = ("code", "name", "address")
SORT_FIELDS = ("id", "code", "name", "created_at")


def _get_warehouse(db: Session, warehouse_id: int, tenant_id: str) -> WarehouseModel:
    db_warehouse = db.query(WarehouseModel).filter(
        WarehouseModel.id == warehouse_id, WarehouseModel.tenant_id == tenant_id
    ).first()
    if db_warehouse is None:
        raise HTTPException(status_code=404, detail="Warehouse not found")
    return db_warehouse


def _check_code(db: Session, code: str, tenant_id: str):
    existing = db.query(WarehouseModel).execution_options(include_deleted=True).filter(
        WarehouseModel.code == code, WarehouseModel.tenant_id == tenant_id
    ).first()
    if existing:
        raise HTTPException(status_code=409, detail="Warehouse with this code already exists")


@router.post("/", response_model=Warehouse, status_code=status.HTTP_201_CREATED)
def create_warehouse(
    warehouse: WarehouseCreate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    _check_code(db, warehouse.code, tenant_id)
    user_id = get_user_identifier(user)
    db_warehouse = WarehouseModel(**warehouse.model_dump(), tenant_id=tenant_id, created_by=user_id)
    db.add(db_warehouse)
    log_change(db, tenant_id, db_warehouse, "CREATE", user_id)
    db.commit()
    db.refresh(db_warehouse)
    logger.info(f"Warehouse '{db_warehouse.code}' created by user {user_id} for tenant {tenant_id}")
    return db_warehouse


@router.get("/")
def read_warehouses(
    page: int = 1,
    per_page: int = 15,
    search: Optional[str] = None,
    search_field: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_direction: Optional[str] = None,
    is_active: Optional[bool] = Query(None),
    db: Session = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id)
):
    query = db.query(WarehouseModel).filter(WarehouseModel.tenant_id == tenant_id)
    if is_active is not None:
        query = query.filter(WarehouseModel.is_active == is_active)
    query = apply_search(query, WarehouseModel, search, SEARCH_FIELDS, search_field)
    query = apply_sort(query, WarehouseModel, sort_by, sort_direction, SORT_FIELDS, default="name",
                       default_direction="asc")
    return paginate(query, page, per_page, serializer=Warehouse.model_validate)


@router.get("/trashed")
def read_trashed_warehouses(page: int = 1, per_page: int = 15, db: Session = Depends(get_db),
                            tenant_id: str = Depends(get_tenant_id)):
    return paginate(soft_delete.list_trashed(db, WarehouseModel, tenant_id), page, per_page,
                    serializer=Warehouse.model_validate)


@router.get("/{warehouse_id}", response_model=Warehouse)
def read_warehouse(warehouse_id: int, db: Session = Depends(get_db), tenant_id: str = Depends(get_tenant_id)):
    return _get_warehouse(db, warehouse_id, tenant_id)


@router.get("/{warehouse_id}/inventory")
def read_warehouse_inventory(warehouse_id: int, db: Session = Depends(get_db),
                             tenant_id: str = Depends(get_tenant_id)):
    """Stock held in the warehouse, valued at current item prices."""
    _get_warehouse(db, warehouse_id, tenant_id)
    return crud_inventory.get_inventory_balance(db, tenant_id, warehouse_id=warehouse_id)


@router.patch("/{warehouse_id}", response_model=Warehouse)
def update_warehouse(
    warehouse_id: int,
    warehouse: WarehouseUpdate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    db_warehouse = _get_warehouse(db, warehouse_id, tenant_id)
    if warehouse.code is not None and warehouse.code != db_warehouse.code:
        _check_code(db, warehouse.code, tenant_id)

    user_id = get_user_identifier(user)
    old_values = sqlalchemy_to_dict(db_warehouse)
    for key, value in warehouse.model_dump(exclude_unset=True).items():
        setattr(db_warehouse, key, value)
    db_warehouse.updated_by = user_id
    log_change(db, tenant_id, db_warehouse, "UPDATE", user_id, old_values=old_values)
    db.commit()
    db.refresh(db_warehouse)
    logger.info(f"Warehouse '{db_warehouse.code}' (ID: {warehouse_id}) updated by user {user_id} for tenant {tenant_id}")
    return db_warehouse


@router.delete("/{warehouse_id}")
def delete_warehouse(
    warehouse_id: int,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    db_warehouse = _get_warehouse(db, warehouse_id, tenant_id)
    if any(row["quantity"] > 0 for row in crud_inventory.get_inventory_balance(db, tenant_id, warehouse_id)):
        raise HTTPException(status_code=409, detail=f"Warehouse '{db_warehouse.name}' still holds stock")
    user_id = get_user_identifier(user)
    soft_delete.soft_delete(db, db_warehouse, user_id)
    db.commit()
    logger.info(f"Warehouse '{db_warehouse.code}' (ID: {warehouse_id}) deleted by user {user_id} for tenant {tenant_id}")
    return {"message": "Warehouse deleted successfully"}


@router.post("/{warehouse_id}/restore", response_model=Warehouse)
def restore_warehouse(warehouse_id: int, db: Session = Depends(get_db), user: dict = Depends(get_current_user),
                      tenant_id: str = Depends(get_tenant_id)):
    try:
        db_warehouse = soft_delete.restore(db, WarehouseModel, tenant_id, warehouse_id, get_user_identifier(user),
                                           unique_fields=["code"])
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(db_warehouse)
    return db_warehouse


@router.delete("/{warehouse_id}/force")
def force_delete_warehouse(warehouse_id: int, db: Session = Depends(get_db), user: dict = Depends(get_current_user),
                           tenant_id: str = Depends(get_tenant_id)):
    try:
        soft_delete.force_delete(db, WarehouseModel, tenant_id, warehouse_id, get_user_identifier(user))
        db.commit()
    except Exception:
        db.rollback()
        raise
    return {"message": "Warehouse permanently deleted"}
