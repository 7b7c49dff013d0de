from datetime import date, datetime

from pydantic import BaseModel

from gestion_bl.app.db.models.core_types import NoteStatus
from gestion_bl.app.schemas.money import Millimes


class LineItemRead(BaseModel):
    id: int
    article_id: int | None = None
    designation: str
    quantity: int
    unit_price: Millimes
    amount: Millimes

    class Config:
        from_attributes = True


class DeliveryNoteRead(BaseModel):
    id: int
    note_number: str
    supplier: str
    note_date: date
    total_amount: Millimes
    status: NoteStatus
    notes: str | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class DeliveryNoteDetail(DeliveryNoteRead):
    qr_payload: str | None = None
    lines: list[LineItemRead] = []
