from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from gestion_bl.app.api.deps import get_db
from gestion_bl.app.schemas.delivery_note import DeliveryNoteDetail
from gestion_bl.services.delivery_notes import create_delivery_note
from gestion_bl.services.errors import BusinessRuleError
from gestion_bl.services.qr_payload import decode_qr_payload

router = APIRouter(prefix="/qr")


class QrScan(BaseModel):
    payload: str


@router.post("/delivery-notes", response_model=DeliveryNoteDetail, status_code=201)
def create_from_qr(scan: QrScan, db: Session = Depends(get_db)):
    """
    Contenu du QR (saisi ou scanné) -> BL "En attente".
    Le contenu brut est conservé dans qr_payload.
    """
    try:
        draft = decode_qr_payload(scan.payload)
        return create_delivery_note(db, draft)
    except BusinessRuleError as e:
        raise HTTPException(status_code=400, detail=str(e))
