from datetime import date

from pydantic import BaseModel

from gestion_bl.app.db.models.core_types import GroupStatus
from gestion_bl.app.schemas.money import Millimes


class GroupRead(BaseModel):
    id: int
    name: str
    creation_date: date
    total_amount: Millimes
    note_count: int
    status: GroupStatus

    class Config:
        from_attributes = True


class ArticleSummaryRead(BaseModel):
    designation: str
    article_id: int | None = None
    total_quantity: int
    average_unit_price: Millimes
    total_amount: Millimes
    note_count: int

    class Config:
        from_attributes = True


class ReportTotalsRead(BaseModel):
    article_count: int
    total_quantity: int
    total_amount: Millimes
    note_count_total: int
    note_appearances: int
    average_unit_price: Millimes | None = None  # toujours null

    class Config:
        from_attributes = True


class GroupArticlesRead(BaseModel):
    group_id: int
    rows: list[ArticleSummaryRead]
    totals: ReportTotalsRead


class GroupDetailsRead(BaseModel):
    group: GroupRead
    note_ids: list[int]
    rows: list[ArticleSummaryRead]
    totals: ReportTotalsRead


class StatisticsRead(BaseModel):
    rows: list[ArticleSummaryRead]
    totals: ReportTotalsRead
    most_profitable: ArticleSummaryRead | None = None
    most_ordered: ArticleSummaryRead | None = None
    top: list[ArticleSummaryRead]


class DashboardRead(BaseModel):
    total_articles: int
    total_notes: int
    total_groups: int
    total_value: Millimes
