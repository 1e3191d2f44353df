from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session, selectinload
from typing import List, Optional
import logging

from database import get_db
from models.price_lists import PriceList as PriceListModel, PriceListItem as PriceListItemModel
from schemas.price_lists import PriceList, PriceListCreate, PriceListUpdate
from crud.audit_log import log_change
from crud.lookups import get_item
from crud.sales import suggest_sell_price
from utils import sqlalchemy_to_dict
from utils.auth_utils import get_current_user, get_user_identifier
from utils.tenancy import get_tenant_id

router = APIRouter(prefix="/price-lists", tags=["Price Lists"])
logger = logging.getLogger("price_lists")


def _get_price_list(db: Session, price_list_id: int, tenant_id: str) -> PriceListModel:
    db_list = (
        db.query(PriceListModel)
        .filter(PriceListModel.id == price_list_id, PriceListModel.tenant_id == tenant_id)
        .options(selectinload(PriceListModel.items))
        .first()
    )
    if db_list is None:
        raise HTTPException(status_code=404, detail="Price list not found")
    return db_list


def _clear_default(db: Session, tenant_id: str, keep_id: Optional[int] = None):
    """Only one default list per tenant."""
    query = db.query(PriceListModel).filter(PriceListModel.tenant_id == tenant_id, PriceListModel.is_default.is_(True))
    if keep_id is not None:
        query = query.filter(PriceListModel.id != keep_id)
    for other in query.all():
        other.is_default = False


def _set_lines(db: Session, db_list: PriceListModel, items, tenant_id: str):
    seen = set()
    for line in items:
        if line.item_id in seen:
            raise HTTPException(status_code=400, detail=f"Item {line.item_id} appears more than once in the price list")
        seen.add(line.item_id)
        get_item(db, tenant_id, line.item_id)
    db_list.items.clear()
    db.flush()
    for line in items:
        db_list.items.append(PriceListItemModel(tenant_id=tenant_id, item_id=line.item_id,
                                                sell_price_usd=line.sell_price_usd))


@router.post("/", response_model=PriceList, status_code=status.HTTP_201_CREATED)
def create_price_list(
    price_list: PriceListCreate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    if db.query(PriceListModel).filter(PriceListModel.code == price_list.code,
                                       PriceListModel.tenant_id == tenant_id).first():
        raise HTTPException(status_code=409, detail="Price list with this code already exists")

    user_id = get_user_identifier(user)
    try:
        if price_list.is_default:
            _clear_default(db, tenant_id)
        db_list = PriceListModel(tenant_id=tenant_id, code=price_list.code, description=price_list.description,
                                 is_default=price_list.is_default, created_by=user_id)
        db.add(db_list)
        _set_lines(db, db_list, price_list.items, tenant_id)
        log_change(db, tenant_id, db_list, "CREATE", user_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(db_list)
    logger.info(f"Price list '{db_list.code}' created by user {user_id} for tenant {tenant_id}")
    return db_list


@router.get("/", response_model=List[PriceList])
def read_price_lists(db: Session = Depends(get_db), tenant_id: str = Depends(get_tenant_id)):
    return (
        db.query(PriceListModel)
        .filter(PriceListModel.tenant_id == tenant_id)
        .options(selectinload(PriceListModel.items))
        .order_by(PriceListModel.is_default.desc(), PriceListModel.code)
        .all()
    )


@router.get("/suggest-price")
def read_suggested_price(item_id: int, price_list_id: Optional[int] = None, db: Session = Depends(get_db),
                         tenant_id: str = Depends(get_tenant_id)):
    """Sell price for an item from the given list, the default list or the item's base sell price."""
    return suggest_sell_price(db, tenant_id, item_id, price_list_id)


@router.get("/{price_list_id}", response_model=PriceList)
def read_price_list(price_list_id: int, db: Session = Depends(get_db), tenant_id: str = Depends(get_tenant_id)):
    return _get_price_list(db, price_list_id, tenant_id)


@router.patch("/{price_list_id}", response_model=PriceList)
def update_price_list(
    price_list_id: int,
    price_list: PriceListUpdate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    db_list = _get_price_list(db, price_list_id, tenant_id)
    user_id = get_user_identifier(user)
    old_values = sqlalchemy_to_dict(db_list)
    try:
        if price_list.code is not None and price_list.code != db_list.code:
            if db.query(PriceListModel).filter(PriceListModel.code == price_list.code,
                                               PriceListModel.tenant_id == tenant_id).first():
                raise HTTPException(status_code=409, detail="Price list with this code already exists")
            db_list.code = price_list.code
        if price_list.description is not None:
            db_list.description = price_list.description
        if price_list.is_default is not None:
            if price_list.is_default:
                _clear_default(db, tenant_id, keep_id=db_list.id)
            db_list.is_default = price_list.is_default
        if price_list.items is not None:
            _set_lines(db, db_list, price_list.items, tenant_id)
        db_list.updated_by = user_id
        log_change(db, tenant_id, db_list, "UPDATE", user_id, old_values=old_values)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(db_list)
    logger.info(f"Price list '{db_list.code}' (ID: {price_list_id}) updated by user {user_id} for tenant {tenant_id}")
    return db_list


@router.delete("/{price_list_id}")
def delete_price_list(
    price_list_id: int,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    db_list = _get_price_list(db, price_list_id, tenant_id)
    user_id = get_user_identifier(user)
    db_list.soft_delete(user_id)
    db_list.is_default = False
    log_change(db, tenant_id, db_list, "DELETE", user_id)
    db.commit()
    logger.info(f"Price list '{db_list.code}' (ID: {price_list_id}) deleted by user {user_id} for tenant {tenant_id}")
    return {"message": "Price list deleted successfully"}
