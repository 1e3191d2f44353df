from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import Optional
from datetime import date
import logging

from database import get_db
from models.credit_debit_notes import CreditDebitNote as CreditDebitNoteModel, NoteType, PartnerRole
from schemas.credit_debit_notes import CreditDebitNote, CreditDebitNoteCreate, CreditDebitNoteUpdate
from crud import credit_debit_notes as crud_notes
from crud.audit_log import log_change
from utils import sqlalchemy_to_dict
from utils.auth_utils import get_current_user, get_user_identifier
from utils.query_helpers import apply_search, apply_sort, paginate
from utils.tenancy import get_tenant_id

router = APIRouter(prefix="/credit-debit-notes", tags=["Credit & Debit Notes"])
logger = logging.getLogger("credit_debit_notes")

SORT_FIELDS = ("id", "code", "date", "amount_usd", "created_at")


def _get_note(db: Session, note_id: int, tenant_id: str) -> CreditDebitNoteModel:
    db_note = db.query(CreditDebitNoteModel).filter(
        CreditDebitNoteModel.id == note_id, CreditDebitNoteModel.tenant_id == tenant_id
    ).first()
    if db_note is None:
        raise HTTPException(status_code=404, detail="Note not found")
    return db_note


@router.post("/", response_model=CreditDebitNote, status_code=status.HTTP_201_CREATED)
def create_note(
    note: CreditDebitNoteCreate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    """A credit note lowers what the partner owes (or is owed); a debit note raises it."""
    user_id = get_user_identifier(user)
    try:
        db_note = crud_notes.create_note(db, tenant_id, note.model_dump(), user_id)
        log_change(db, tenant_id, db_note, "CREATE", user_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(db_note)
    logger.info(f"Note {db_note.code} created by user {user_id} for tenant {tenant_id}")
    return db_note


@router.get("/")
def read_notes(
    page: int = 1,
    per_page: int = 15,
    search: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_direction: Optional[str] = None,
    type: Optional[NoteType] = None,
    partner_role: Optional[PartnerRole] = None,
    partner_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id)
):
    query = db.query(CreditDebitNoteModel).filter(CreditDebitNoteModel.tenant_id == tenant_id)
    if type:
        query = query.filter(CreditDebitNoteModel.type == type)
    if partner_role:
        query = query.filter(CreditDebitNoteModel.partner_role == partner_role)
    if partner_id:
        query = query.filter(CreditDebitNoteModel.partner_id == partner_id)
    if start_date:
        query = query.filter(CreditDebitNoteModel.date >= start_date)
    if end_date:
        query = query.filter(CreditDebitNoteModel.date <= end_date)
    query = apply_search(query, CreditDebitNoteModel, search, ("code", "note"))
    query = apply_sort(query, CreditDebitNoteModel, sort_by, sort_direction, SORT_FIELDS, default="date")
    return paginate(query, page, per_page, serializer=CreditDebitNote.model_validate)


@router.get("/{note_id}", response_model=CreditDebitNote)
def read_note(note_id: int, db: Session = Depends(get_db), tenant_id: str = Depends(get_tenant_id)):
    return _get_note(db, note_id, tenant_id)


@router.patch("/{note_id}", response_model=CreditDebitNote)
def update_note(
    note_id: int,
    note: CreditDebitNoteUpdate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    db_note = _get_note(db, note_id, tenant_id)
    user_id = get_user_identifier(user)
    old_values = sqlalchemy_to_dict(db_note)
    try:
        crud_notes.update_note(db, db_note, note.model_dump(exclude_unset=True), user_id)
        log_change(db, tenant_id, db_note, "UPDATE", user_id, old_values=old_values)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(db_note)
    logger.info(f"Note {db_note.code} updated by user {user_id} for tenant {tenant_id}")
    return db_note


@router.delete("/{note_id}")
def delete_note(
    note_id: int,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    db_note = _get_note(db, note_id, tenant_id)
    user_id = get_user_identifier(user)
    crud_notes.delete_note(db, db_note, user_id)
    log_change(db, tenant_id, db_note, "DELETE", user_id)
    db.commit()
    logger.info(f"Note {db_note.code} deleted by user {user_id} for tenant {tenant_id}")
    return {"message": "Note deleted successfully"}
