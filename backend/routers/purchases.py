from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session, selectinload
from typing import Optional
from datetime import date
import logging

from database import get_db
from models.purchases import Purchase as PurchaseModel, PurchaseStatus
from schemas.purchases import Purchase, PurchaseCreate, PurchaseUpdate, PurchaseStatusUpdate, DocumentUploadRequest
from crud import purchases as crud_purchases
from crud.audit_log import log_change
from utils.auth_utils import get_current_user, get_user_identifier
from utils.query_helpers import apply_search, apply_sort, paginate
from utils.s3_utils import generate_presigned_upload_url, generate_presigned_download_url
from utils.tenancy import get_tenant_id

router = APIRouter(prefix="/purchases", tags=["Purchases"])
logger = logging.getLogger("purchases")

SEARCH_FIELDS = ("code", "supplier_invoice_number", "note")
SORT_FIELDS = ("id", "code", "date", "status", "total_usd", "created_at")


def _get_purchase(db: Session, purchase_id: int, tenant_id: str) -> PurchaseModel:
    db_purchase = (
        db.query(PurchaseModel)
        .filter(PurchaseModel.id == purchase_id, PurchaseModel.tenant_id == tenant_id)
        .options(selectinload(PurchaseModel.items))
        .first()
    )
    if db_purchase is None:
        raise HTTPException(status_code=404, detail="Purchase not found")
    return db_purchase


@router.post("/", response_model=Purchase, status_code=status.HTTP_201_CREATED)
def create_purchase(
    purchase: PurchaseCreate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    """
    Create a purchase with its lines.

    A purchase created as Delivered adds its quantities to the warehouse,
    reprices each item by weighted average and records the supplier's price
    in the same transaction.
    """
    user_id = get_user_identifier(user)
    data = purchase.model_dump(exclude={"items"})
    items = [line.model_dump() for line in purchase.items]
    try:
        db_purchase = crud_purchases.create_purchase(db, tenant_id, data, items, user_id)
        log_change(db, tenant_id, db_purchase, "CREATE", user_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(db_purchase)
    logger.info(f"Purchase {db_purchase.code} created by user {user_id} for tenant {tenant_id}")
    return db_purchase


@router.get("/")
def read_purchases(
    page: int = 1,
    per_page: int = 15,
    search: Optional[str] = None,
    search_field: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_direction: Optional[str] = None,
    status: Optional[PurchaseStatus] = None,
    supplier_id: Optional[int] = None,
    warehouse_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id)
):
    query = db.query(PurchaseModel).filter(PurchaseModel.tenant_id == tenant_id).options(
        selectinload(PurchaseModel.items)
    )
    if status:
        query = query.filter(PurchaseModel.status == status)
    if supplier_id:
        query = query.filter(PurchaseModel.supplier_id == supplier_id)
    if warehouse_id:
        query = query.filter(PurchaseModel.warehouse_id == warehouse_id)
    if start_date:
        query = query.filter(PurchaseModel.date >= start_date)
    if end_date:
        query = query.filter(PurchaseModel.date <= end_date)
    query = apply_search(query, PurchaseModel, search, SEARCH_FIELDS, search_field)
    query = apply_sort(query, PurchaseModel, sort_by, sort_direction, SORT_FIELDS, default="date")
    return paginate(query, page, per_page, serializer=Purchase.model_validate)


@router.get("/{purchase_id}", response_model=Purchase)
def read_purchase(purchase_id: int, db: Session = Depends(get_db), tenant_id: str = Depends(get_tenant_id)):
    return _get_purchase(db, purchase_id, tenant_id)


@router.patch("/{purchase_id}", response_model=Purchase)
def update_purchase(
    purchase_id: int,
    purchase: PurchaseUpdate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    db_purchase = _get_purchase(db, purchase_id, tenant_id)
    user_id = get_user_identifier(user)
    data = purchase.model_dump(exclude_unset=True, exclude={"items"})
    items = [line.model_dump() for line in purchase.items] if purchase.items is not None else None
    old_status = db_purchase.status
    try:
        crud_purchases.update_purchase(db, db_purchase, data, items, user_id)
        log_change(db, tenant_id, db_purchase, "UPDATE", user_id, old_values={"status": old_status.value})
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(db_purchase)
    logger.info(f"Purchase {db_purchase.code} (ID: {purchase_id}) updated by user {user_id} for tenant {tenant_id}")
    return db_purchase


@router.post("/{purchase_id}/deliver", response_model=Purchase)
def deliver_purchase(
    purchase_id: int,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    db_purchase = _get_purchase(db, purchase_id, tenant_id)
    user_id = get_user_identifier(user)
    try:
        crud_purchases.deliver_purchase(db, db_purchase, user_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(db_purchase)
    logger.info(f"Purchase {db_purchase.code} delivered by user {user_id} for tenant {tenant_id}")
    return db_purchase


@router.patch("/{purchase_id}/status", response_model=Purchase)
def update_purchase_status(
    purchase_id: int,
    body: PurchaseStatusUpdate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    db_purchase = _get_purchase(db, purchase_id, tenant_id)
    user_id = get_user_identifier(user)
    try:
        crud_purchases.change_status(db, db_purchase, body.status, user_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(db_purchase)
    logger.info(f"Purchase {db_purchase.code} moved to {body.status.value} by user {user_id} for tenant {tenant_id}")
    return db_purchase


@router.delete("/{purchase_id}")
def delete_purchase(
    purchase_id: int,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    """Trash a purchase; delivered stock is taken back out when every unit is still on hand."""
    db_purchase = _get_purchase(db, purchase_id, tenant_id)
    user_id = get_user_identifier(user)
    try:
        crud_purchases.delete_purchase(db, db_purchase, user_id)
        log_change(db, tenant_id, db_purchase, "DELETE", user_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(f"Purchase {db_purchase.code} (ID: {purchase_id}) deleted by user {user_id} for tenant {tenant_id}")
    return {"message": "Purchase deleted successfully"}


@router.post("/{purchase_id}/document-upload-url")
def get_document_upload_url(
    purchase_id: int,
    request_body: DocumentUploadRequest,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    """Get a pre-signed URL for uploading the supplier's invoice."""
    db_purchase = _get_purchase(db, purchase_id, tenant_id)
    try:
        upload_data = generate_presigned_upload_url(
            tenant_id=tenant_id,
            folder="purchases",
            object_id=purchase_id,
            filename=request_body.filename
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception(f"Failed to generate presigned URL for purchase {purchase_id}")
        raise HTTPException(status_code=500, detail=f"Failed to generate upload URL: {str(e)}")

    db_purchase.document_path = upload_data["s3_path"]
    db_purchase.updated_by = get_user_identifier(user)
    db.commit()
    return {"upload_url": upload_data["upload_url"], "s3_path": upload_data["s3_path"],
            "expires_in": upload_data["expires_in"]}


@router.get("/{purchase_id}/document-download-url")
def get_document_download_url(
    purchase_id: int,
    db: Session = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id)
):
    """Get a pre-signed URL for previewing the stored supplier invoice."""
    db_purchase = _get_purchase(db, purchase_id, tenant_id)
    if not db_purchase.document_path:
        raise HTTPException(status_code=404, detail="Document not found")

    try:
        download_url = generate_presigned_download_url(s3_path=db_purchase.document_path)
        return {"download_url": download_url}
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except FileNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.exception(f"Failed to generate download URL for purchase {purchase_id}")
        raise HTTPException(status_code=500, detail=f"Failed to generate download URL: {str(e)}")
