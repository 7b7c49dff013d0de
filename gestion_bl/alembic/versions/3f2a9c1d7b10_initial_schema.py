"""initial schema: articles, delivery notes, line items, groups

Revision ID: 3f2a9c1d7b10
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "3f2a9c1d7b10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

NOTE_STATUS = sa.Enum("En attente", "Groupé", "Traité", name="note_status")
GROUP_STATUS = sa.Enum("En attente", "Traité", name="group_status")

PK = sa.BigInteger().with_variant(sa.Integer(), "sqlite")
MONEY = sa.Numeric(14, 3)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "articles",
        sa.Column("id", PK, primary_key=True),
        sa.Column("designation", sa.String(255), nullable=False),
        sa.Column("unit_price", MONEY, nullable=False),
        sa.Column("code", sa.String(64), unique=True),
        sa.Column("description", sa.Text()),
        *_timestamps(),
        sa.CheckConstraint("unit_price >= 0", name="ck_article_unit_price_nonneg"),
    )
    op.create_index("ix_articles_designation", "articles", ["designation"])

    op.create_table(
        "delivery_notes",
        sa.Column("id", PK, primary_key=True),
        sa.Column("note_number", sa.String(64), nullable=False),
        sa.Column("supplier", sa.String(255), nullable=False),
        sa.Column("note_date", sa.Date(), nullable=False),
        sa.Column("total_amount", MONEY, nullable=False, server_default="0"),
        sa.Column("status", NOTE_STATUS, nullable=False, server_default="En attente"),
        sa.Column("notes", sa.Text()),
        sa.Column("qr_payload", sa.Text()),
        *_timestamps(),
    )
    op.create_index("ix_delivery_notes_note_number", "delivery_notes", ["note_number"])

    op.create_table(
        "line_items",
        sa.Column("id", PK, primary_key=True),
        sa.Column(
            "delivery_note_id",
            sa.BigInteger(),
            sa.ForeignKey("delivery_notes.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("article_id", sa.BigInteger(), sa.ForeignKey("articles.id", ondelete="SET NULL")),
        sa.Column("designation", sa.String(255), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", MONEY, nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("quantity > 0", name="ck_line_item_qty_pos"),
        sa.CheckConstraint("unit_price >= 0", name="ck_line_item_unit_price_nonneg"),
    )
    op.create_index("ix_line_items_delivery_note_id", "line_items", ["delivery_note_id"])

    op.create_table(
        "note_groups",
        sa.Column("id", PK, primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("creation_date", sa.Date(), nullable=False, server_default=sa.func.current_date()),
        sa.Column("total_amount", MONEY, nullable=False, server_default="0"),
        sa.Column("note_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", GROUP_STATUS, nullable=False, server_default="En attente"),
        *_timestamps(),
    )

    op.create_table(
        "group_memberships",
        sa.Column("id", PK, primary_key=True),
        sa.Column("group_id", sa.BigInteger(), sa.ForeignKey("note_groups.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "delivery_note_id",
            sa.BigInteger(),
            sa.ForeignKey("delivery_notes.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("group_id", "delivery_note_id", name="uq_group_membership"),
    )
    op.create_index("ix_group_memberships_note", "group_memberships", ["delivery_note_id"])


def downgrade() -> None:
    op.drop_index("ix_group_memberships_note", table_name="group_memberships")
    op.drop_table("group_memberships")
    op.drop_table("note_groups")
    op.drop_index("ix_line_items_delivery_note_id", table_name="line_items")
    op.drop_table("line_items")
    op.drop_index("ix_delivery_notes_note_number", table_name="delivery_notes")
    op.drop_table("delivery_notes")
    op.drop_index("ix_articles_designation", table_name="articles")
    op.drop_table("articles")

    bind = op.get_bind()
    GROUP_STATUS.drop(bind, checkfirst=True)
    NOTE_STATUS.drop(bind, checkfirst=True)
