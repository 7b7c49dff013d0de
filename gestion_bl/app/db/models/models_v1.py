from __future__ import annotations

from datetime import datetime, date
from decimal import Decimal

from sqlalchemy import (
    String,
    Integer,
    DateTime,
    Date,
    ForeignKey,
    Numeric,
    Text,
    Enum,
    Index,
    CheckConstraint,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gestion_bl.app.db.base import Base, BigIntPK
from gestion_bl.app.db.models.core_types import NoteStatus, GroupStatus


def _labels(enum_cls):
    # On stocke les libellés ("En attente", "Groupé"...), pas les noms Python
    return [m.value for m in enum_cls]


# ---------- CATALOGUE ----------
class Article(Base):
    __tablename__ = "articles"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    designation: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False)
    code: Mapped[str | None] = mapped_column(String(64), unique=True)
    description: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )

    __table_args__ = (CheckConstraint("unit_price >= 0", name="ck_article_unit_price_nonneg"),)


# ---------- BONS D'ENTRÉE ----------
class DeliveryNote(Base):
    __tablename__ = "delivery_notes"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    note_number: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    supplier: Mapped[str] = mapped_column(String(255), nullable=False)
    note_date: Mapped[date] = mapped_column(Date, nullable=False)
    # Somme des montants de lignes, maintenue par le service qui écrit le bon
    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 3), default=Decimal("0"), nullable=False)
    status: Mapped[NoteStatus] = mapped_column(
        Enum(NoteStatus, name="note_status", values_callable=_labels),
        default=NoteStatus.pending,
        nullable=False,
    )
    notes: Mapped[str | None] = mapped_column(Text)
    qr_payload: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )

    lines: Mapped[list["LineItem"]] = relationship(
        back_populates="delivery_note",
        cascade="all, delete-orphan",
        order_by="LineItem.id",
    )
    memberships: Mapped[list["GroupMembership"]] = relationship(
        back_populates="delivery_note",
        cascade="all, delete-orphan",
    )


class LineItem(Base):
    __tablename__ = "line_items"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    delivery_note_id: Mapped[int] = mapped_column(
        ForeignKey("delivery_notes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    article_id: Mapped[int | None] = mapped_column(ForeignKey("articles.id", ondelete="SET NULL"))
    designation: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    delivery_note: Mapped[DeliveryNote] = relationship(back_populates="lines")
    article: Mapped[Article | None] = relationship()

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_line_item_qty_pos"),
        CheckConstraint("unit_price >= 0", name="ck_line_item_unit_price_nonneg"),
    )


# ---------- GROUPAGE ----------
class NoteGroup(Base):
    __tablename__ = "note_groups"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    creation_date: Mapped[date] = mapped_column(Date, default=date.today, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 3), default=Decimal("0"), nullable=False)
    note_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    status: Mapped[GroupStatus] = mapped_column(
        Enum(GroupStatus, name="group_status", values_callable=_labels),
        default=GroupStatus.pending,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )

    memberships: Mapped[list["GroupMembership"]] = relationship(
        back_populates="group",
        cascade="all, delete-orphan",
    )


class GroupMembership(Base):
    __tablename__ = "group_memberships"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    group_id: Mapped[int] = mapped_column(ForeignKey("note_groups.id", ondelete="CASCADE"), nullable=False)
    delivery_note_id: Mapped[int] = mapped_column(
        ForeignKey("delivery_notes.id", ondelete="CASCADE"),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    group: Mapped[NoteGroup] = relationship(back_populates="memberships")
    delivery_note: Mapped[DeliveryNote] = relationship(back_populates="memberships")

    __table_args__ = (
        UniqueConstraint("group_id", "delivery_note_id", name="uq_group_membership"),
        Index("ix_group_memberships_note", "delivery_note_id"),
    )
