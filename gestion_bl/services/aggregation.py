"""
Agrégation des lignes de bons d'entrée par article.

Deux usages :
    - rapport d'un groupe de BL (tri par désignation)
    - statistiques globales (tri par montant décroissant + indicateurs)

Règles :
    total_quantity     = SUM(quantity)
    total_amount       = SUM(amount)
    average_unit_price = total_amount / total_quantity   (0 si quantité nulle)

Clé de regroupement :
    - article_id si la ligne est liée au catalogue
    - sinon désignation nettoyée (strip + casefold)
    - strict=True : désignation brute, telle que stockée

Chaque appel reconstruit ses accumulateurs : aucun état partagé.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

MILLIME = Decimal("0.001")
ZERO = Decimal("0")


# ---------- ENTRÉES ----------
@dataclass(frozen=True)
class LineSnapshot:
    designation: str
    quantity: int
    amount: Decimal
    article_id: int | None = None
    delivery_note_id: int | None = None


def to_decimal(value: Any, *, field_name: str = "montant") -> Decimal:
    if isinstance(value, bool):
        raise ValueError(f"{field_name} invalide ({value!r})")
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            raise ValueError(f"{field_name} invalide ({value!r})")
        value = str(value)
    try:
        d = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValueError(f"{field_name} invalide ({value!r})") from None
    if not d.is_finite():
        raise ValueError(f"{field_name} invalide ({value!r})")
    return d


def _get(line: Any, name: str, default: Any = None) -> Any:
    if isinstance(line, Mapping):
        return line.get(name, default)
    return getattr(line, name, default)


def snapshot_line(line: Any) -> LineSnapshot:
    """
    Valide une ligne (ORM, dict ou LineSnapshot) et la fige.
    Lève ValueError si la ligne est inexploitable.
    """
    designation = _get(line, "designation")
    if not isinstance(designation, str) or not designation.strip():
        raise ValueError("Ligne sans désignation")

    quantity = _get(line, "quantity")
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValueError(f"Quantité invalide pour '{designation}' ({quantity!r})")
    if quantity < 0:
        raise ValueError(f"Quantité négative pour '{designation}' ({quantity})")

    raw_amount = _get(line, "amount")
    if raw_amount is None:
        unit_price = _get(line, "unit_price")
        if unit_price is None:
            raise ValueError(f"Montant manquant pour '{designation}'")
        amount = to_decimal(unit_price, field_name="prix unitaire") * quantity
    else:
        amount = to_decimal(raw_amount)
    if amount < 0:
        raise ValueError(f"Montant négatif pour '{designation}' ({amount})")

    return LineSnapshot(
        designation=designation,
        quantity=quantity,
        amount=amount,
        article_id=_get(line, "article_id"),
        delivery_note_id=_get(line, "delivery_note_id"),
    )


def normalize_designation(designation: str) -> str:
    return designation.strip().casefold()


def grouping_key(line: LineSnapshot, *, strict: bool = False) -> tuple:
    if strict:
        return ("designation", line.designation)
    if line.article_id is not None:
        return ("article", line.article_id)
    return ("designation", normalize_designation(line.designation))


# ---------- SORTIES ----------
@dataclass(frozen=True)
class ArticleSummary:
    designation: str
    article_id: int | None
    total_quantity: int
    total_amount: Decimal
    average_unit_price: Decimal
    note_count: int


@dataclass(frozen=True)
class ReportTotals:
    article_count: int
    total_quantity: int
    total_amount: Decimal
    # Nombre de BL distincts
    note_count_total: int
    # Somme des nombres de BL par article (un BL multi-articles compte plusieurs fois)
    note_appearances: int
    # Une moyenne de moyennes n'a pas de sens : toujours None
    average_unit_price: None = None


@dataclass(frozen=True)
class GroupReport:
    group_id: int | None
    rows: list[ArticleSummary]
    totals: ReportTotals


@dataclass(frozen=True)
class StatisticsReport:
    rows: list[ArticleSummary]
    totals: ReportTotals

    @property
    def most_profitable(self) -> ArticleSummary | None:
        # Lignes déjà triées par montant décroissant
        return self.rows[0] if self.rows else None

    @property
    def most_ordered(self) -> ArticleSummary | None:
        if not self.rows:
            return None
        return max(self.rows, key=lambda r: r.total_quantity)

    def top(self, n: int) -> list[ArticleSummary]:
        if n < 0:
            raise ValueError("n doit être positif")
        return self.rows[:n]


# ---------- CALCUL ----------
@dataclass
class _Accumulator:
    designation: str
    article_id: int | None
    quantity_sum: int = 0
    amount_sum: Decimal = ZERO
    note_ids: set = field(default_factory=set)

    def add(self, line: LineSnapshot) -> None:
        self.quantity_sum += line.quantity
        self.amount_sum += line.amount
        if line.delivery_note_id is not None:
            self.note_ids.add(line.delivery_note_id)
        if self.article_id is None and line.article_id is not None:
            self.article_id = line.article_id


def average_unit_price(total_amount: Decimal, total_quantity: int) -> Decimal:
    if total_quantity == 0:
        return ZERO.quantize(MILLIME)
    return (total_amount / total_quantity).quantize(MILLIME, rounding=ROUND_HALF_UP)


def _accumulate(lines: Iterable[Any], strict: bool) -> tuple[list[_Accumulator], set]:
    buckets: dict[tuple, _Accumulator] = {}
    all_note_ids: set = set()

    for raw in lines:
        line = snapshot_line(raw)
        key = grouping_key(line, strict=strict)
        acc = buckets.get(key)
        if acc is None:
            display = line.designation if strict else line.designation.strip()
            acc = _Accumulator(designation=display, article_id=line.article_id)
            buckets[key] = acc
        acc.add(line)
        if line.delivery_note_id is not None:
            all_note_ids.add(line.delivery_note_id)

    return list(buckets.values()), all_note_ids


def _summarize(acc: _Accumulator) -> ArticleSummary:
    return ArticleSummary(
        designation=acc.designation,
        article_id=acc.article_id,
        total_quantity=acc.quantity_sum,
        total_amount=acc.amount_sum,
        average_unit_price=average_unit_price(acc.amount_sum, acc.quantity_sum),
        note_count=len(acc.note_ids),
    )


def _totals(rows: list[ArticleSummary], note_ids: set) -> ReportTotals:
    return ReportTotals(
        article_count=len(rows),
        total_quantity=sum(r.total_quantity for r in rows),
        total_amount=sum((r.total_amount for r in rows), ZERO),
        note_count_total=len(note_ids),
        note_appearances=sum(r.note_count for r in rows),
    )


def _article_sort_id(row: ArticleSummary) -> int:
    return row.article_id if row.article_id is not None else -1


def build_group_report(
    lines: Iterable[Any],
    *,
    group_id: int | None = None,
    strict: bool = False,
) -> GroupReport:
    """
    Rapport d'un groupe : une ligne par article, triée par désignation.
    Groupe vide -> aucune ligne, totaux à zéro.
    """
    accumulators, note_ids = _accumulate(lines, strict)
    rows = sorted(
        (_summarize(a) for a in accumulators),
        key=lambda r: (r.designation.casefold(), r.designation, _article_sort_id(r)),
    )
    return GroupReport(group_id=group_id, rows=rows, totals=_totals(rows, note_ids))


def build_statistics_report(lines: Iterable[Any], *, strict: bool = False) -> StatisticsReport:
    """
    Statistiques sur toutes les lignes.
    Tri : montant total décroissant, puis désignation croissante.
    """
    accumulators, note_ids = _accumulate(lines, strict)
    rows = sorted(
        (_summarize(a) for a in accumulators),
        key=lambda r: (-r.total_amount, r.designation.casefold(), r.designation, _article_sort_id(r)),
    )
    return StatisticsReport(rows=rows, totals=_totals(rows, note_ids))
