from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

from sqlalchemy import select

from gestion_bl.app.core.config import get_settings
from gestion_bl.app.core.logging_config import setup_logging
from gestion_bl.app.db.session import SessionLocal
from gestion_bl.app.db.models.models_v1 import Article, DeliveryNote
from gestion_bl.services.delivery_notes import NoteDraft, create_delivery_note, line_from_article

logger = logging.getLogger(__name__)

SAMPLE_ARTICLES = [
    ("Ordinateur portable", Decimal("899.900"), "INF-001"),
    ("Souris sans fil", Decimal("29.990"), "INF-002"),
    ("Clavier mécanique", Decimal("89.990"), "INF-003"),
    ("Écran 24 pouces", Decimal("299.990"), "INF-004"),
    ("Casque audio", Decimal("79.990"), "INF-005"),
]


def run_seed():
    db = SessionLocal()
    try:
        # 1) Catalogue
        for designation, price, code in SAMPLE_ARTICLES:
            if not db.scalar(select(Article).where(Article.code == code)):
                db.add(Article(designation=designation, unit_price=price, code=code))
        db.commit()

        # 2) Un BL de démonstration
        if not db.scalar(select(DeliveryNote).where(DeliveryNote.note_number == "BL-DEMO-001")):
            laptop = db.scalar(select(Article).where(Article.code == "INF-001"))
            mouse = db.scalar(select(Article).where(Article.code == "INF-002"))
            create_delivery_note(
                db,
                NoteDraft(
                    note_number="BL-DEMO-001",
                    supplier="Tech Solutions",
                    note_date=date.today(),
                    lines=[line_from_article(laptop, 2), line_from_article(mouse, 5)],
                ),
            )

        logger.info("SEED OK: %d articles, BL-DEMO-001", len(SAMPLE_ARTICLES))
    finally:
        db.close()


if __name__ == "__main__":
    setup_logging(get_settings().log_level)
    run_seed()
