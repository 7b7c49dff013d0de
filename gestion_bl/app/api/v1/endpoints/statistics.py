from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from gestion_bl.app.api.deps import get_db
from gestion_bl.app.core.config import get_settings
from gestion_bl.app.schemas.reports import (
    ArticleSummaryRead,
    DashboardRead,
    ReportTotalsRead,
    StatisticsRead,
)
from gestion_bl.services import reports
from gestion_bl.services.statistics import dashboard_counters, get_statistics

router = APIRouter()

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _summary(row):
    return ArticleSummaryRead.model_validate(row) if row is not None else None


@router.get("/statistics", response_model=StatisticsRead)
def statistics(
    top: int | None = Query(default=None, ge=0),
    strict: bool = False,
    db: Session = Depends(get_db),
):
    report = get_statistics(db, strict=strict)
    top_n = top if top is not None else get_settings().stats_top_n
    return StatisticsRead(
        rows=[ArticleSummaryRead.model_validate(r) for r in report.rows],
        totals=ReportTotalsRead.model_validate(report.totals),
        most_profitable=_summary(report.most_profitable),
        most_ordered=_summary(report.most_ordered),
        top=[ArticleSummaryRead.model_validate(r) for r in report.top(top_n)],
    )


@router.get("/statistics/export.xlsx")
def export_statistics(db: Session = Depends(get_db)):
    report = get_statistics(db)
    return Response(
        content=reports.statistics_excel(report),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": 'attachment; filename="statistiques.xlsx"'},
    )


@router.get("/dashboard", response_model=DashboardRead)
def dashboard(db: Session = Depends(get_db)):
    return dashboard_counters(db)
