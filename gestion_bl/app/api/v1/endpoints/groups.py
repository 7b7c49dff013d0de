from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from gestion_bl.app.api.deps import get_db
from gestion_bl.app.schemas.reports import (
    ArticleSummaryRead,
    GroupArticlesRead,
    GroupDetailsRead,
    GroupRead,
    ReportTotalsRead,
)
from gestion_bl.services import groupage, reports
from gestion_bl.services.errors import BusinessRuleError, ConflictError, NotFoundError

router = APIRouter(prefix="/groups")

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


class GroupCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    note_ids: list[int] = Field(min_length=1)


def _get_group_or_404(db: Session, group_id: int):
    try:
        return groupage.get_group(db, group_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("", response_model=list[GroupRead])
def list_groups(db: Session = Depends(get_db)):
    return groupage.list_groups(db)


@router.post("", response_model=GroupRead, status_code=201)
def create_group(payload: GroupCreate, db: Session = Depends(get_db)):
    try:
        return groupage.create_group(db, name=payload.name, note_ids=payload.note_ids)
    except NotFoundError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except BusinessRuleError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{group_id}", response_model=GroupDetailsRead)
def get_group_details(group_id: int, strict: bool = False, db: Session = Depends(get_db)):
    group = _get_group_or_404(db, group_id)
    report = groupage.get_group_details(db, group_id, strict=strict)
    return GroupDetailsRead(
        group=GroupRead.model_validate(group),
        note_ids=groupage.group_note_ids(db, group_id),
        rows=[ArticleSummaryRead.model_validate(r) for r in report.rows],
        totals=ReportTotalsRead.model_validate(report.totals),
    )


@router.get("/{group_id}/articles", response_model=GroupArticlesRead)
def get_group_articles(group_id: int, strict: bool = False, db: Session = Depends(get_db)):
    """
    Equivalent de la procédure get_group_details : groupe inconnu -> rapport vide.
    """
    report = groupage.get_group_details(db, group_id, strict=strict)
    return GroupArticlesRead(
        group_id=group_id,
        rows=[ArticleSummaryRead.model_validate(r) for r in report.rows],
        totals=ReportTotalsRead.model_validate(report.totals),
    )


@router.post("/{group_id}/process", response_model=GroupRead)
def process_group(group_id: int, db: Session = Depends(get_db)):
    try:
        return groupage.mark_group_processed(db, group_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/{group_id}/export.pdf")
def export_group_pdf(group_id: int, db: Session = Depends(get_db)):
    group = _get_group_or_404(db, group_id)
    report = groupage.get_group_details(db, group_id)
    return Response(
        content=reports.group_report_pdf(group, report),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="groupe_{group_id}.pdf"'},
    )


@router.get("/{group_id}/export.xlsx")
def export_group_excel(group_id: int, db: Session = Depends(get_db)):
    _get_group_or_404(db, group_id)
    report = groupage.get_group_details(db, group_id)
    return Response(
        content=reports.group_report_excel(report),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="groupe_{group_id}.xlsx"'},
    )
