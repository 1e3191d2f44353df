import logging
from typing import Optional

from sqlalchemy.orm import Session

from crud import code_counters
from crud.lookups import get_partner
from exceptions import BusinessRuleError, service_errors
from models.credit_debit_notes import CreditDebitNote, NoteType, PartnerRole
from utils import to_decimal

logger = logging.getLogger("credit_debit_notes")

NOTE_PREFIXES = {NoteType.CREDIT: "CRN", NoteType.DEBIT: "DBN"}
NOTE_FIELDS = ("date", "amount_usd", "note")


def create_note(db: Session, tenant_id: str, data: dict, user: Optional[str] = None) -> CreditDebitNote:
    with service_errors(logger, "create credit/debit note"):
        role = PartnerRole(data["partner_role"])
        note_type = NoteType(data["type"])
        get_partner(db, tenant_id, data["partner_id"], role=role.value)
        if to_decimal(data["amount_usd"]) <= 0:
            raise BusinessRuleError("Note amount must be greater than 0")

        note = CreditDebitNote(
            tenant_id=tenant_id,
            code=code_counters.next_code(db, tenant_id, f"{note_type.value}_note", NOTE_PREFIXES[note_type]),
            partner_id=data["partner_id"],
            partner_role=role,
            type=note_type,
            date=data["date"],
            amount_usd=data["amount_usd"],
            note=data.get("note"),
            created_by=user,
        )
        db.add(note)
        db.flush()
        logger.info(f"{note_type.value.capitalize()} note {note.code} created for {role.value} "
                    f"{note.partner_id} in tenant {tenant_id}")
        return note


def update_note(db: Session, note: CreditDebitNote, data: dict, user: Optional[str] = None) -> CreditDebitNote:
    for field in NOTE_FIELDS:
        if data.get(field) is not None:
            setattr(note, field, data[field])
    if to_decimal(note.amount_usd) <= 0:
        raise BusinessRuleError("Note amount must be greater than 0")
    note.updated_by = user
    db.flush()
    return note


def delete_note(db: Session, note: CreditDebitNote, user: Optional[str] = None) -> CreditDebitNote:
    note.soft_delete(user)
    db.flush()
    logger.info(f"Note {note.code} deleted for tenant {note.tenant_id}")
    return note
