from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from gestion_bl.app.api.deps import get_db
from gestion_bl.services.errors import data_access

router = APIRouter(prefix="/health")


@router.get("")
def health(db: Session = Depends(get_db)):
    with data_access(db, "health check"):
        db.execute(text("SELECT 1"))
    return {"status": "ok"}
