from __future__ import annotations

from decimal import Decimal

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from gestion_bl.app.api.deps import get_db
from gestion_bl.app.schemas.article import ArticleRead, ImportReport
from gestion_bl.services import articles as catalog
from gestion_bl.services.article_import import read_spreadsheet
from gestion_bl.services.errors import BusinessRuleError, ConflictError, ImportRejected, NotFoundError

router = APIRouter(prefix="/articles")

ALLOWED_EXTENSIONS = (".xlsx", ".csv")


class ArticleCreate(BaseModel):
    designation: str = Field(min_length=1, max_length=255)
    unit_price: Decimal = Field(ge=0)
    code: str | None = Field(default=None, max_length=64)
    description: str | None = None


class ArticleUpdate(BaseModel):
    designation: str | None = Field(default=None, min_length=1, max_length=255)
    unit_price: Decimal | None = Field(default=None, ge=0)
    code: str | None = Field(default=None, max_length=64)
    description: str | None = None


@router.get("", response_model=list[ArticleRead])
def list_articles(db: Session = Depends(get_db)):
    return catalog.list_articles(db)


@router.get("/search", response_model=list[ArticleRead])
def search_articles(
    q: str = "",
    limit: int = Query(default=catalog.SEARCH_LIMIT, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return catalog.search_articles(db, q, limit=limit)


@router.get("/{article_id}", response_model=ArticleRead)
def get_article(article_id: int, db: Session = Depends(get_db)):
    try:
        return catalog.get_article(db, article_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("", response_model=ArticleRead, status_code=201)
def create_article(payload: ArticleCreate, db: Session = Depends(get_db)):
    try:
        return catalog.create_article(db, **payload.model_dump())
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except BusinessRuleError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.put("/{article_id}", response_model=ArticleRead)
def update_article(article_id: int, payload: ArticleUpdate, db: Session = Depends(get_db)):
    try:
        return catalog.update_article(db, article_id, **payload.model_dump(exclude_unset=True))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except BusinessRuleError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/{article_id}", status_code=204)
def delete_article(article_id: int, db: Session = Depends(get_db)):
    try:
        catalog.delete_article(db, article_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.delete("")
def delete_all_articles(db: Session = Depends(get_db)):
    return {"deleted": catalog.delete_all_articles(db)}


@router.post("/import", response_model=ImportReport, status_code=201)
def import_articles(file: UploadFile = File(...), db: Session = Depends(get_db)):
    filename = file.filename or ""
    if not filename.lower().endswith(ALLOWED_EXTENSIONS):
        raise HTTPException(status_code=400, detail="Fichier .xlsx ou .csv attendu")

    content = file.file.read()
    try:
        rows = read_spreadsheet(content, filename)
        created = catalog.import_articles(db, rows)
    except ImportRejected as e:
        # Toutes les erreurs ensemble, rien n'est inséré
        raise HTTPException(status_code=422, detail={"message": str(e), "errors": e.messages})
    except BusinessRuleError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {"inserted": len(created), "articles": created}
