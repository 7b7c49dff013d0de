"""
Groupage des bons d'entrée.

Ce module gère les groupes (création, traitement) et délègue
le calcul du rapport par article à :
    gestion_bl.services.aggregation
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from gestion_bl.app.db.models.core_types import GroupStatus, NoteStatus
from gestion_bl.app.db.models.models_v1 import (
    DeliveryNote,
    GroupMembership,
    LineItem,
    NoteGroup,
)
from gestion_bl.services.aggregation import GroupReport, LineSnapshot, build_group_report, to_decimal
from gestion_bl.services.errors import BusinessRuleError, ConflictError, NotFoundError, data_access

logger = logging.getLogger(__name__)


def create_group(db: Session, *, name: str, note_ids: Iterable[int]) -> NoteGroup:
    """
    Crée un groupe à partir de BL "En attente".

    Effets (une seule transaction) :
    - liaisons groupe <-> BL
    - BL passés au statut "Groupé"
    - total_amount = SUM(total des BL), note_count = nombre de BL
    """
    name = (name or "").strip()
    if not name:
        raise BusinessRuleError("Veuillez saisir un nom pour le groupe")

    ids = sorted({int(i) for i in note_ids if i is not None})
    if not ids:
        raise BusinessRuleError("Veuillez sélectionner au moins un BL")

    with data_access(db, "création groupe"):
        notes = db.execute(select(DeliveryNote).where(DeliveryNote.id.in_(ids))).scalars().all()

        missing = set(ids) - {n.id for n in notes}
        if missing:
            raise NotFoundError(f"BL introuvable(s): {sorted(missing)}")

        not_pending = [n.note_number for n in notes if n.status != NoteStatus.pending]
        if not_pending:
            logger.warning("Groupage refusé, BL déjà groupés: %s", not_pending)
            raise ConflictError(f"BL déjà groupés ou traités: {', '.join(not_pending)}")

        group = NoteGroup(
            name=name,
            creation_date=date.today(),
            total_amount=sum((n.total_amount for n in notes), Decimal("0")),
            note_count=len(notes),
            status=GroupStatus.pending,
        )
        db.add(group)
        db.flush()  # get group.id

        for n in notes:
            db.add(GroupMembership(group_id=group.id, delivery_note_id=n.id))
            n.status = NoteStatus.grouped

        db.commit()
        db.refresh(group)

    logger.info("Groupe créé id=%s nom=%r avec %d BL", group.id, group.name, group.note_count)
    return group


def list_groups(db: Session) -> list[NoteGroup]:
    with data_access(db, "liste des groupes"):
        return list(
            db.execute(select(NoteGroup).order_by(NoteGroup.creation_date.desc(), NoteGroup.id.desc()))
            .scalars()
            .all()
        )


def get_group(db: Session, group_id: int) -> NoteGroup:
    with data_access(db, "lecture groupe"):
        group = db.get(NoteGroup, group_id)
    if not group:
        raise NotFoundError(f"Groupe {group_id} introuvable")
    return group


def group_note_ids(db: Session, group_id: int) -> list[int]:
    with data_access(db, "lecture liaisons groupe"):
        rows = db.execute(
            select(GroupMembership.delivery_note_id)
            .where(GroupMembership.group_id == group_id)
            .order_by(GroupMembership.delivery_note_id)
        ).all()
    return [int(r[0]) for r in rows]


def fetch_group_lines(db: Session, group_id: int) -> list[LineSnapshot]:
    """
    Photo des lignes de tous les BL membres du groupe.
    Groupe inconnu ou vide -> liste vide.
    """
    with data_access(db, "lecture des lignes du groupe"):
        rows = db.execute(
            select(
                LineItem.designation,
                LineItem.quantity,
                LineItem.amount,
                LineItem.article_id,
                LineItem.delivery_note_id,
            )
            .join(GroupMembership, GroupMembership.delivery_note_id == LineItem.delivery_note_id)
            .where(GroupMembership.group_id == group_id)
            .order_by(LineItem.delivery_note_id, LineItem.id)
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


def get_group_details(db: Session, group_id: int, *, strict: bool = False) -> GroupReport:
    """
    Rapport par article d'un groupe (équivalent get_group_details).
    Ne lève pas d'erreur pour un groupe inconnu : rapport vide.
    """
    lines = fetch_group_lines(db, group_id)
    return build_group_report(lines, group_id=group_id, strict=strict)


def mark_group_processed(db: Session, group_id: int) -> NoteGroup:
    group = get_group(db, group_id)
    if group.status == GroupStatus.processed:
        return group

    with data_access(db, "traitement groupe"):
        notes = db.execute(
            select(DeliveryNote)
            .join(GroupMembership, GroupMembership.delivery_note_id == DeliveryNote.id)
            .where(GroupMembership.group_id == group_id)
        ).scalars().all()
        for n in notes:
            n.status = NoteStatus.processed
        group.status = GroupStatus.processed
        db.commit()
        db.refresh(group)

    logger.info("Groupe traité id=%s (%d BL)", group_id, len(notes))
    return group
