"""
Bons d'entrée (BL) et leurs lignes.

Invariant maintenu ici (la base ne le garantit pas) :
    delivery_note.total_amount == SUM(line.amount)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload

from gestion_bl.app.db.models.core_types import NoteStatus
from gestion_bl.app.db.models.models_v1 import Article, DeliveryNote, LineItem
from gestion_bl.services.errors import BusinessRuleError, ConflictError, NotFoundError, data_access
from gestion_bl.services.formatting import quantize_millimes

logger = logging.getLogger(__name__)

# Un BL groupé (ou traité) ne se supprime plus
LOCKED_STATUSES = {NoteStatus.grouped, NoteStatus.processed}


@dataclass
class LineDraft:
    designation: str
    quantity: int
    unit_price: Any
    article_id: int | None = None


@dataclass
class NoteDraft:
    note_number: str
    supplier: str
    note_date: date | None
    lines: list[LineDraft] = field(default_factory=list)
    notes: str | None = None
    qr_payload: str | None = None


def line_from_article(article: Article, quantity: int = 1) -> LineDraft:
    """Ligne alimentée depuis le catalogue : désignation + prix copiés."""
    return LineDraft(
        designation=article.designation.strip(),
        quantity=quantity,
        unit_price=article.unit_price,
        article_id=article.id,
    )


def line_amount(quantity: int, unit_price: Any) -> Decimal:
    return quantize_millimes(quantize_millimes(unit_price) * quantity)


def compute_note_total(lines: list[LineItem] | list[LineDraft]) -> Decimal:
    total = Decimal("0")
    for ln in lines:
        amount = getattr(ln, "amount", None)
        total += amount if amount is not None else line_amount(ln.quantity, ln.unit_price)
    return quantize_millimes(total)


def usable_lines(lines: list[LineDraft]) -> list[LineDraft]:
    # Comme le formulaire : lignes sans désignation ou à quantité nulle ignorées
    return [ln for ln in lines if (ln.designation or "").strip() and ln.quantity > 0]


def _validate_draft(draft: NoteDraft) -> list[LineDraft]:
    if not (draft.note_number or "").strip():
        raise BusinessRuleError("Le numéro de BL est requis")
    if not (draft.supplier or "").strip():
        raise BusinessRuleError("Le fournisseur est requis")
    if not draft.note_date:
        raise BusinessRuleError("La date de BL est requise")

    lines = usable_lines(draft.lines)
    if not lines:
        raise BusinessRuleError("Au moins une ligne d'article est requise")

    for ln in lines:
        try:
            price = quantize_millimes(ln.unit_price)
        except ValueError:
            raise BusinessRuleError(f"Prix unitaire invalide pour '{ln.designation}'") from None
        if price < 0:
            raise BusinessRuleError(f"Prix unitaire négatif pour '{ln.designation}'")
    return lines


def create_delivery_note(db: Session, draft: NoteDraft) -> DeliveryNote:
    lines = _validate_draft(draft)

    with data_access(db, "création BL"):
        # FK checks (fail fast, message clair)
        for ln in lines:
            if ln.article_id is not None and not db.get(Article, ln.article_id):
                raise BusinessRuleError(f"Article {ln.article_id} introuvable")

        note = DeliveryNote(
            note_number=draft.note_number.strip(),
            supplier=draft.supplier.strip(),
            note_date=draft.note_date,
            notes=draft.notes or None,
            qr_payload=draft.qr_payload,
            status=NoteStatus.pending,
        )
        for ln in lines:
            note.lines.append(
                LineItem(
                    article_id=ln.article_id,
                    designation=ln.designation.strip(),
                    quantity=ln.quantity,
                    unit_price=quantize_millimes(ln.unit_price),
                    amount=line_amount(ln.quantity, ln.unit_price),
                )
            )
        note.total_amount = compute_note_total(note.lines)

        db.add(note)
        db.commit()

    logger.info(
        "BL créé id=%s numero=%s lignes=%d total=%s",
        note.id,
        note.note_number,
        len(lines),
        note.total_amount,
    )
    # Relecture avec les lignes chargées
    return get_delivery_note(db, note.id)


def list_delivery_notes(
    db: Session,
    *,
    search: str | None = None,
    status: NoteStatus | None = None,
) -> list[DeliveryNote]:
    """Plus récents d'abord ; recherche sur numéro ou fournisseur."""
    stmt = select(DeliveryNote).order_by(DeliveryNote.created_at.desc(), DeliveryNote.id.desc())

    term = (search or "").strip().lower()
    if term:
        stmt = stmt.where(
            or_(
                func.lower(DeliveryNote.note_number).contains(term),
                func.lower(DeliveryNote.supplier).contains(term),
            )
        )
    if status is not None:
        stmt = stmt.where(DeliveryNote.status == status)

    with data_access(db, "liste des BL"):
        return list(db.execute(stmt).scalars().all())


def list_pending_notes(db: Session) -> list[DeliveryNote]:
    return list_delivery_notes(db, status=NoteStatus.pending)


def get_delivery_note(db: Session, note_id: int) -> DeliveryNote:
    with data_access(db, "lecture BL"):
        note = db.execute(
            select(DeliveryNote)
            .where(DeliveryNote.id == note_id)
            .options(selectinload(DeliveryNote.lines))
        ).scalar_one_or_none()
    if not note:
        raise NotFoundError(f"BL {note_id} introuvable")
    return note


def delete_delivery_note(db: Session, note_id: int) -> None:
    note = get_delivery_note(db, note_id)
    if note.status in LOCKED_STATUSES:
        logger.warning("Suppression refusée: BL %s au statut %s", note_id, note.status.value)
        raise ConflictError(f"Le BL {note.note_number} est {note.status.value.lower()} et ne peut pas être supprimé")

    with data_access(db, "suppression BL"):
        db.delete(note)
        db.commit()
    logger.info("BL supprimé id=%s", note_id)
