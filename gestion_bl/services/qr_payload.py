"""
Décodage du contenu d'un QR code de BL.

Format attendu (JSON) :
    {
      "numero_bl": "BL-2024-001",
      "fournisseur": "Tech Solutions",
      "date_bl": "2024-01-18",
      "notes": "optionnel",
      "lignes": [
        {"designation": "Souris sans fil", "quantite": 5, "prix_unitaire": "29.990", "article_id": 3}
      ]
    }
"""

from __future__ import annotations

import json
from datetime import date

from gestion_bl.services.delivery_notes import LineDraft, NoteDraft
from gestion_bl.services.errors import BusinessRuleError

REQUIRED_FIELDS = ("numero_bl", "fournisseur", "date_bl", "lignes")


def _parse_date(value: object) -> date:
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise BusinessRuleError(f"Date de BL invalide ({value})") from None


def _parse_quantity(value: object, index: int) -> int:
    # Quantités entières uniquement : 2.7 n'est pas arrondi
    if isinstance(value, bool):
        raise BusinessRuleError(f"Ligne {index}: quantité invalide")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise BusinessRuleError(f"Ligne {index}: quantité invalide")


def _parse_line(raw: object, index: int) -> LineDraft:
    if not isinstance(raw, dict):
        raise BusinessRuleError(f"Ligne {index}: format invalide")
    return LineDraft(
        designation=str(raw.get("designation") or "").strip(),
        quantity=_parse_quantity(raw.get("quantite", 0), index),
        unit_price=raw.get("prix_unitaire", raw.get("prix", 0)),
        article_id=raw.get("article_id"),
    )


def decode_qr_payload(text: str) -> NoteDraft:
    if not text or not text.strip():
        raise BusinessRuleError("Veuillez saisir un code QR")
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        raise BusinessRuleError("Code QR illisible (JSON attendu)") from None
    if not isinstance(data, dict):
        raise BusinessRuleError("Code QR illisible (objet JSON attendu)")

    missing = [f for f in REQUIRED_FIELDS if f not in data]
    if missing:
        raise BusinessRuleError(f"Champs manquants dans le code QR: {', '.join(missing)}")
    if not isinstance(data["lignes"], list):
        raise BusinessRuleError("Le champ 'lignes' doit être une liste")

    return NoteDraft(
        note_number=str(data["numero_bl"]),
        supplier=str(data["fournisseur"]),
        note_date=_parse_date(data["date_bl"]),
        lines=[_parse_line(raw, i) for i, raw in enumerate(data["lignes"], start=1)],
        notes=data.get("notes"),
        qr_payload=text,
    )
