from datetime import datetime

from pydantic import BaseModel

from gestion_bl.app.schemas.money import Millimes


class ArticleRead(BaseModel):
    id: int
    designation: str
    unit_price: Millimes
    code: str | None = None
    description: str | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class ImportReport(BaseModel):
    inserted: int
    articles: list[ArticleRead]
