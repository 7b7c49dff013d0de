"""
Import d'articles depuis un fichier Excel / CSV.

Colonnes (ordre fixe) : designation, prix, code?, description?

Chaque ligne est validée indépendamment et produit :
    - Accepted(row_number, article)
    - Rejected(row_number, reason)
    - rien (ligne vide, ignorée silencieusement)

La décision "tout ou rien" appartient à l'appelant
(voir gestion_bl.services.articles.import_articles).
"""

from __future__ import annotations

import io
import logging
import math
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Iterable, Sequence, Union

import pandas as pd

from gestion_bl.services.aggregation import MILLIME, to_decimal
from gestion_bl.services.errors import BusinessRuleError

logger = logging.getLogger(__name__)

HEADER_WORDS = {"designation", "désignation", "prix", "price", "code", "description"}


@dataclass(frozen=True)
class ArticleDraft:
    designation: str
    unit_price: Decimal
    code: str | None = None
    description: str | None = None


@dataclass(frozen=True)
class Accepted:
    row_number: int
    article: ArticleDraft


@dataclass(frozen=True)
class Rejected:
    row_number: int
    reason: str

    @property
    def message(self) -> str:
        return f"Ligne {self.row_number}: {self.reason}"


RowResult = Union[Accepted, Rejected]


@dataclass(frozen=True)
class ImportResult:
    accepted_rows: list[Accepted] = field(default_factory=list)
    rejected: list[Rejected] = field(default_factory=list)
    skipped: int = 0

    @property
    def accepted(self) -> list[ArticleDraft]:
        return [a.article for a in self.accepted_rows]

    @property
    def errors(self) -> list[str]:
        return [r.message for r in self.rejected]

    @property
    def ok(self) -> bool:
        return not self.rejected


def cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and math.isnan(value):
        return ""
    return str(value).strip()


def is_header_row(row: Sequence[Any] | None) -> bool:
    if not row:
        return False
    return any(cell_text(c).casefold() in HEADER_WORDS for c in row)


def is_blank_row(row: Sequence[Any] | None) -> bool:
    if not row or len(row) < 2:
        return True
    return not any(cell_text(c) for c in row)


def parse_price(value: Any) -> Decimal:
    """
    "1,500" -> Decimal("1.500"). Lève ValueError si illisible ou négatif.
    """
    if isinstance(value, str):
        value = value.strip().replace(",", ".")
    price = to_decimal(value, field_name="prix")
    if price < 0:
        raise ValueError(f"prix négatif ({price})")
    return price.quantize(MILLIME)


def _optional(row: Sequence[Any], index: int) -> str | None:
    if len(row) <= index:
        return None
    return cell_text(row[index]) or None


def validate_row(row: Sequence[Any], row_number: int) -> RowResult | None:
    if is_blank_row(row):
        return None

    designation = cell_text(row[0])
    price_text = cell_text(row[1])

    if not designation:
        return Rejected(row_number, "Désignation manquante")

    if not price_text:
        return Rejected(row_number, f"Prix manquant pour '{designation}'")

    try:
        price = parse_price(row[1] if not isinstance(row[1], str) else price_text)
    except ValueError:
        return Rejected(row_number, f"Prix invalide ({price_text})")

    return Accepted(
        row_number,
        ArticleDraft(
            designation=designation,
            unit_price=price,
            code=_optional(row, 2),
            description=_optional(row, 3),
        ),
    )


def validate_rows(rows: Iterable[Sequence[Any]]) -> ImportResult:
    """
    Numérotation des lignes : 1 = première ligne du fichier (en-tête compris).
    """
    accepted: list[Accepted] = []
    rejected: list[Rejected] = []
    skipped = 0
    seen_codes: dict[str, int] = {}

    for index, row in enumerate(rows):
        if index == 0 and is_header_row(row):
            continue
        result = validate_row(row, index + 1)
        if result is None:
            skipped += 1
        elif isinstance(result, Rejected):
            rejected.append(result)
        elif result.article.code and result.article.code in seen_codes:
            code = result.article.code
            rejected.append(
                Rejected(result.row_number, f"Code en double ({code}, déjà en ligne {seen_codes[code]})")
            )
        else:
            if result.article.code:
                seen_codes[result.article.code] = result.row_number
            accepted.append(result)

    logger.info(
        "Validation import: %d acceptée(s), %d rejetée(s), %d vide(s)",
        len(accepted),
        len(rejected),
        skipped,
    )
    return ImportResult(accepted_rows=accepted, rejected=rejected, skipped=skipped)


def trim_row(row: Sequence[Any]) -> list[Any]:
    # pandas complète les lignes courtes jusqu'à la largeur de la feuille
    cells = list(row)
    while cells and not cell_text(cells[-1]):
        cells.pop()
    return cells


def read_spreadsheet(content: bytes, filename: str) -> list[list[Any]]:
    """
    Lit la première feuille (ou le CSV) en liste de lignes brutes.
    """
    buffer = io.BytesIO(content)
    try:
        if filename.lower().endswith(".csv"):
            df = pd.read_csv(
                buffer,
                header=None,
                dtype=str,
                keep_default_na=False,
                sep=None,
                engine="python",
            )
        else:
            df = pd.read_excel(buffer, header=None, dtype=object, engine="openpyxl")
    except Exception as exc:
        logger.warning("Lecture impossible du fichier %s: %s", filename, exc)
        raise BusinessRuleError("Erreur lors de la lecture du fichier Excel") from exc

    df = df.astype(object).where(pd.notna(df), None)
    return [trim_row(row) for row in df.values.tolist()]
