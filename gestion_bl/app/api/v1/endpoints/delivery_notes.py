from __future__ import annotations

from datetime import date
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from gestion_bl.app.api.deps import get_db
from gestion_bl.app.db.models.core_types import NoteStatus
from gestion_bl.app.schemas.delivery_note import DeliveryNoteDetail, DeliveryNoteRead
from gestion_bl.services import delivery_notes as notes_service
from gestion_bl.services.errors import BusinessRuleError, ConflictError, NotFoundError

router = APIRouter(prefix="/delivery-notes")


class LineCreate(BaseModel):
    designation: str = Field(default="", max_length=255)
    quantity: int = Field(default=1, ge=0)
    unit_price: Decimal = Field(default=Decimal("0"), ge=0)
    article_id: int | None = None


class DeliveryNoteCreate(BaseModel):
    note_number: str = Field(min_length=1, max_length=64)
    supplier: str = Field(min_length=1, max_length=255)
    note_date: date
    notes: str | None = None
    lines: list[LineCreate] = Field(default_factory=list)


@router.get("", response_model=list[DeliveryNoteRead])
def list_delivery_notes(
    q: str | None = None,
    status: NoteStatus | None = None,
    db: Session = Depends(get_db),
):
    return notes_service.list_delivery_notes(db, search=q, status=status)


@router.get("/pending", response_model=list[DeliveryNoteRead])
def list_pending_notes(db: Session = Depends(get_db)):
    return notes_service.list_pending_notes(db)


@router.get("/{note_id}", response_model=DeliveryNoteDetail)
def get_delivery_note(note_id: int, db: Session = Depends(get_db)):
    try:
        return notes_service.get_delivery_note(db, note_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("", response_model=DeliveryNoteDetail, status_code=201)
def create_delivery_note(payload: DeliveryNoteCreate, db: Session = Depends(get_db)):
    draft = notes_service.NoteDraft(
        note_number=payload.note_number,
        supplier=payload.supplier,
        note_date=payload.note_date,
        notes=payload.notes,
        lines=[
            notes_service.LineDraft(
                designation=ln.designation,
                quantity=ln.quantity,
                unit_price=ln.unit_price,
                article_id=ln.article_id,
            )
            for ln in payload.lines
        ],
    )
    try:
        return notes_service.create_delivery_note(db, draft)
    except BusinessRuleError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/{note_id}", status_code=204)
def delete_delivery_note(note_id: int, db: Session = Depends(get_db)):
    try:
        notes_service.delete_delivery_note(db, note_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
