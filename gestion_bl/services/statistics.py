from __future__ import annotations

from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from gestion_bl.app.db.models.models_v1 import Article, DeliveryNote, LineItem, NoteGroup
from gestion_bl.services.aggregation import (
    LineSnapshot,
    StatisticsReport,
    build_statistics_report,
    to_decimal,
)
from gestion_bl.services.errors import data_access


def load_line_snapshots(db: Session) -> list[LineSnapshot]:
    """Photo de toutes les lignes, prise en une seule lecture."""
    with data_access(db, "lecture de toutes les lignes"):
        rows = db.execute(
            select(
                LineItem.designation,
                LineItem.quantity,
                LineItem.amount,
                LineItem.article_id,
                LineItem.delivery_note_id,
            ).order_by(LineItem.id)
        ).all()

    return [
        LineSnapshot(
            designation=designation,
            quantity=int(quantity),
            amount=to_decimal(amount),
            article_id=article_id,
            delivery_note_id=note_id,
        )
        for designation, quantity, amount, article_id, note_id in rows
    ]


def get_statistics(db: Session, *, strict: bool = False) -> StatisticsReport:
    return build_statistics_report(load_line_snapshots(db), strict=strict)


def dashboard_counters(db: Session) -> dict:
    with data_access(db, "compteurs tableau de bord"):
        articles = db.scalar(select(func.count()).select_from(Article)) or 0
        notes = db.scalar(select(func.count()).select_from(DeliveryNote)) or 0
        groups = db.scalar(select(func.count()).select_from(NoteGroup)) or 0
        total = db.scalar(select(func.coalesce(func.sum(DeliveryNote.total_amount), 0)))

    return {
        "total_articles": int(articles),
        "total_notes": int(notes),
        "total_groups": int(groups),
        "total_value": to_decimal(total if total is not None else Decimal("0")),
    }
