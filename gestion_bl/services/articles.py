from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Iterable, Sequence

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from gestion_bl.app.db.models.models_v1 import Article, LineItem
from gestion_bl.services.article_import import Accepted, ArticleDraft, Rejected, validate_rows
from gestion_bl.services.errors import (
    BusinessRuleError,
    ConflictError,
    ImportRejected,
    NotFoundError,
    data_access,
)
from gestion_bl.services.formatting import quantize_millimes

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 10


def _clean_designation(designation: str | None) -> str:
    cleaned = (designation or "").strip()
    if not cleaned:
        raise BusinessRuleError("La désignation est requise")
    return cleaned


def _clean_price(price: Any) -> Decimal:
    try:
        value = quantize_millimes(price)
    except ValueError:
        raise BusinessRuleError(f"Prix invalide ({price})") from None
    if value < 0:
        raise BusinessRuleError(f"Prix invalide ({price})")
    return value


def _ensure_code_free(db: Session, code: str | None, *, exclude_id: int | None = None) -> None:
    if not code:
        return
    stmt = select(Article.id).where(Article.code == code)
    if exclude_id is not None:
        stmt = stmt.where(Article.id != exclude_id)
    if db.execute(stmt).first():
        raise ConflictError(f"Code article déjà utilisé ({code})")


def list_articles(db: Session) -> list[Article]:
    with data_access(db, "liste des articles"):
        return list(db.execute(select(Article).order_by(Article.designation)).scalars().all())


def search_articles(db: Session, term: str, *, limit: int = SEARCH_LIMIT) -> list[Article]:
    """
    Recherche insensible à la casse sur la désignation (autocomplétion).
    Les désignations sont renvoyées nettoyées (strip), sans modifier la base.
    """
    term = (term or "").strip()
    stmt = select(Article).order_by(Article.designation).limit(limit)
    if term:
        stmt = stmt.where(func.lower(Article.designation).contains(term.lower()))

    with data_access(db, "recherche d'articles"):
        rows = db.execute(stmt).scalars().all()
        for a in rows:
            db.expunge(a)
            a.designation = a.designation.strip()
        return list(rows)


def get_article(db: Session, article_id: int) -> Article:
    with data_access(db, "lecture article"):
        article = db.get(Article, article_id)
    if not article:
        raise NotFoundError(f"Article {article_id} introuvable")
    return article


def create_article(
    db: Session,
    *,
    designation: str,
    unit_price: Any,
    code: str | None = None,
    description: str | None = None,
) -> Article:
    article = Article(
        designation=_clean_designation(designation),
        unit_price=_clean_price(unit_price),
        code=(code or "").strip() or None,
        description=description or None,
    )
    with data_access(db, "création article"):
        _ensure_code_free(db, article.code)
        db.add(article)
        db.commit()
        db.refresh(article)

    logger.info("Article créé id=%s designation=%r", article.id, article.designation)
    return article


def update_article(db: Session, article_id: int, **changes: Any) -> Article:
    article = get_article(db, article_id)

    if "designation" in changes:
        article.designation = _clean_designation(changes["designation"])
    if "unit_price" in changes:
        article.unit_price = _clean_price(changes["unit_price"])
    if "description" in changes:
        article.description = changes["description"] or None

    with data_access(db, "modification article"):
        if "code" in changes:
            code = (changes["code"] or "").strip() or None
            _ensure_code_free(db, code, exclude_id=article.id)
            article.code = code
        db.commit()
        db.refresh(article)
    return article


def delete_article(db: Session, article_id: int) -> None:
    article = get_article(db, article_id)
    with data_access(db, "suppression article"):
        # Les lignes de BL gardent leur désignation
        db.execute(update(LineItem).where(LineItem.article_id == article_id).values(article_id=None))
        db.delete(article)
        db.commit()
    logger.info("Article supprimé id=%s", article_id)


def delete_all_articles(db: Session) -> int:
    """Vidage complet du catalogue (équivalent truncate_articles)."""
    with data_access(db, "suppression de tous les articles"):
        db.execute(update(LineItem).where(LineItem.article_id.is_not(None)).values(article_id=None))
        result = db.execute(delete(Article))
        db.commit()
    count = result.rowcount or 0
    logger.info("Catalogue vidé: %d article(s) supprimé(s)", count)
    return count


def insert_drafts(db: Session, drafts: Sequence[ArticleDraft]) -> list[Article]:
    articles = [
        Article(
            designation=d.designation,
            unit_price=d.unit_price,
            code=d.code,
            description=d.description,
        )
        for d in drafts
    ]
    with data_access(db, "insertion des articles importés"):
        db.add_all(articles)
        db.commit()
        for a in articles:
            db.refresh(a)
    return articles


def _codes_in_catalog(db: Session, rows: Sequence[Accepted]) -> list[Rejected]:
    codes = {r.article.code for r in rows if r.article.code}
    if not codes:
        return []
    with data_access(db, "contrôle des codes importés"):
        taken = set(db.execute(select(Article.code).where(Article.code.in_(codes))).scalars().all())
    return [
        Rejected(r.row_number, f"Code article déjà utilisé ({r.article.code})")
        for r in rows
        if r.article.code in taken
    ]


def import_articles(db: Session, rows: Iterable[Sequence[Any]]) -> list[Article]:
    """
    Import "tout ou rien" : une seule ligne invalide bloque l'insertion
    et toutes les erreurs sont remontées ensemble.
    Un code déjà au catalogue, ou répété dans le fichier, rejette la ligne.
    """
    result = validate_rows(rows)
    rejected = sorted(
        result.rejected + _codes_in_catalog(db, result.accepted_rows),
        key=lambda r: r.row_number,
    )
    if rejected:
        logger.warning("Import refusé: %d ligne(s) en erreur", len(rejected))
        raise ImportRejected(rejected)
    if not result.accepted:
        raise BusinessRuleError("Aucun article valide trouvé dans le fichier")

    articles = insert_drafts(db, result.accepted)
    logger.info("Import terminé: %d article(s) ajouté(s)", len(articles))
    return articles
