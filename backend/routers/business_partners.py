from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import Optional
from datetime import date
import logging

from database import get_db
from models.business_partners import BusinessPartner as BusinessPartnerModel
from models.credit_debit_notes import PartnerRole
from models.purchases import Purchase as PurchaseModel
from models.sales import Sale as SaleModel
from schemas.business_partners import BusinessPartner, BusinessPartnerCreate, BusinessPartnerUpdate, PartnerStatus
from schemas.items import SupplierItemPrice
from crud import partner_balances
from crud import soft_delete
from crud import statements
from crud import supplier_item_prices
from crud.audit_log import log_change
from utils import sqlalchemy_to_dict
from utils.auth_utils import get_current_user, get_user_identifier
from utils.query_helpers import apply_search, apply_sort, paginate
from utils.tenancy import get_tenant_id

router = APIRouter(prefix="/business-partners", tags=["Business Partners"])
logger = logging.getLogger("business_partners")

SEARCH_FIELDS = ("code", "name", "contact_name", "phone", "email")
SORT_FIELDS = ("id", "code", "name", "created_at")


def _get_partner(db: Session, partner_id: int, tenant_id: str) -> BusinessPartnerModel:
    db_partner = db.query(BusinessPartnerModel).filter(
        BusinessPartnerModel.id == partner_id, BusinessPartnerModel.tenant_id == tenant_id
    ).first()
    if db_partner is None:
        raise HTTPException(status_code=404, detail="Business partner not found")
    return db_partner


def _check_code(db: Session, code: str, tenant_id: str):
    existing = db.query(BusinessPartnerModel).execution_options(include_deleted=True).filter(
        BusinessPartnerModel.code == code, BusinessPartnerModel.tenant_id == tenant_id
    ).first()
    if existing:
        raise HTTPException(status_code=409, detail="Business partner with this code already exists")


@router.post("/", response_model=BusinessPartner, status_code=status.HTTP_201_CREATED)
def create_business_partner(
    partner: BusinessPartnerCreate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    if not partner.is_supplier and not partner.is_customer:
        raise HTTPException(status_code=400, detail="A business partner must be a supplier, a customer or both")
    _check_code(db, partner.code, tenant_id)

    user_id = get_user_identifier(user)
    db_partner = BusinessPartnerModel(**partner.model_dump(), tenant_id=tenant_id, created_by=user_id)
    db.add(db_partner)
    log_change(db, tenant_id, db_partner, "CREATE", user_id)
    db.commit()
    db.refresh(db_partner)
    logger.info(f"Business partner '{db_partner.name}' created by user {user_id} for tenant {tenant_id}")
    return db_partner


@router.get("/")
def read_business_partners(
    page: int = 1,
    per_page: int = 15,
    search: Optional[str] = None,
    search_field: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_direction: Optional[str] = None,
    status: Optional[PartnerStatus] = None,
    is_supplier: Optional[bool] = Query(None),
    is_customer: Optional[bool] = Query(None),
    db: Session = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id)
):
    query = db.query(BusinessPartnerModel).filter(BusinessPartnerModel.tenant_id == tenant_id)
    if status:
        query = query.filter(BusinessPartnerModel.status == status)
    if is_supplier is not None:
        query = query.filter(BusinessPartnerModel.is_supplier == is_supplier)
    if is_customer is not None:
        query = query.filter(BusinessPartnerModel.is_customer == is_customer)
    query = apply_search(query, BusinessPartnerModel, search, SEARCH_FIELDS, search_field)
    query = apply_sort(query, BusinessPartnerModel, sort_by, sort_direction, SORT_FIELDS, default="name",
                       default_direction="asc")
    return paginate(query, page, per_page, serializer=BusinessPartner.model_validate)


@router.get("/trashed")
def read_trashed_partners(page: int = 1, per_page: int = 15, db: Session = Depends(get_db),
                          tenant_id: str = Depends(get_tenant_id)):
    return paginate(soft_delete.list_trashed(db, BusinessPartnerModel, tenant_id), page, per_page,
                    serializer=BusinessPartner.model_validate)


@router.get("/unpaid-customers")
def read_unpaid_customers(db: Session = Depends(get_db), tenant_id: str = Depends(get_tenant_id)):
    return partner_balances.get_unpaid_customers(db, tenant_id)


@router.get("/{partner_id}", response_model=BusinessPartner)
def read_business_partner(partner_id: int, db: Session = Depends(get_db), tenant_id: str = Depends(get_tenant_id)):
    return _get_partner(db, partner_id, tenant_id)


@router.get("/{partner_id}/balance")
def read_partner_balance(partner_id: int, db: Session = Depends(get_db), tenant_id: str = Depends(get_tenant_id)):
    """Running balance in each role the partner plays, with the figures behind it."""
    return partner_balances.get_partner_balances(db, tenant_id, partner_id)


@router.get("/{partner_id}/statement")
def read_partner_statement(
    partner_id: int,
    role: PartnerRole = PartnerRole.CUSTOMER,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id)
):
    """Sales, returns, payments and notes of the partner in one role, with a running balance."""
    return statements.get_partner_statement(db, tenant_id, partner_id, role.value, start_date, end_date)


@router.get("/{partner_id}/item-prices", response_model=list[SupplierItemPrice])
def read_supplier_item_prices(partner_id: int, db: Session = Depends(get_db),
                              tenant_id: str = Depends(get_tenant_id)):
    _get_partner(db, partner_id, tenant_id)
    return supplier_item_prices.get_supplier_prices(db, tenant_id, partner_id)


@router.patch("/{partner_id}", response_model=BusinessPartner)
def update_business_partner(
    partner_id: int,
    partner: BusinessPartnerUpdate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    db_partner = _get_partner(db, partner_id, tenant_id)
    if partner.code is not None and partner.code != db_partner.code:
        _check_code(db, partner.code, tenant_id)

    user_id = get_user_identifier(user)
    old_values = sqlalchemy_to_dict(db_partner)
    for key, value in partner.model_dump(exclude_unset=True).items():
        setattr(db_partner, key, value)
    if not db_partner.is_supplier and not db_partner.is_customer:
        db.rollback()
        raise HTTPException(status_code=400, detail="A business partner must be a supplier, a customer or both")
    db_partner.updated_by = user_id
    log_change(db, tenant_id, db_partner, "UPDATE", user_id, old_values=old_values)
    db.commit()
    db.refresh(db_partner)
    logger.info(f"Business partner '{db_partner.name}' (ID: {partner_id}) updated by user {user_id} for tenant {tenant_id}")
    return db_partner


@router.delete("/{partner_id}")
def delete_business_partner(
    partner_id: int,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    """Trash a partner. Partners with documents are only set to Inactive."""
    db_partner = _get_partner(db, partner_id, tenant_id)
    user_id = get_user_identifier(user)

    has_purchases = db.query(PurchaseModel).filter(PurchaseModel.supplier_id == partner_id).first()
    has_sales = db.query(SaleModel).filter(SaleModel.customer_id == partner_id).first()
    if has_purchases or has_sales:
        old_values = sqlalchemy_to_dict(db_partner)
        db_partner.status = PartnerStatus.INACTIVE
        db_partner.updated_by = user_id
        log_change(db, tenant_id, db_partner, "DEACTIVATE", user_id, old_values=old_values)
        db.commit()
        logger.warning(f"Business partner '{db_partner.name}' (ID: {partner_id}) set to INACTIVE due to associated "
                       f"documents by user {user_id} for tenant {tenant_id}")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Business partner '{db_partner.name}' has associated documents. Status changed to Inactive."
        )

    soft_delete.soft_delete(db, db_partner, user_id)
    db.commit()
    logger.info(f"Business partner '{db_partner.name}' (ID: {partner_id}) deleted by user {user_id} for tenant {tenant_id}")
    return {"message": "Business partner deleted successfully"}


@router.post("/{partner_id}/restore", response_model=BusinessPartner)
def restore_business_partner(partner_id: int, db: Session = Depends(get_db), user: dict = Depends(get_current_user),
                             tenant_id: str = Depends(get_tenant_id)):
    try:
        db_partner = soft_delete.restore(db, BusinessPartnerModel, tenant_id, partner_id, get_user_identifier(user),
                                         unique_fields=["code"])
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(db_partner)
    return db_partner


@router.delete("/{partner_id}/force")
def force_delete_business_partner(partner_id: int, db: Session = Depends(get_db),
                                  user: dict = Depends(get_current_user), tenant_id: str = Depends(get_tenant_id)):
    try:
        soft_delete.force_delete(db, BusinessPartnerModel, tenant_id, partner_id, get_user_identifier(user))
        db.commit()
    except Exception:
        db.rollback()
        raise
    return {"message": "Business partner permanently deleted"}
