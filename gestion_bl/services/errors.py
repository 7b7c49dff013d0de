"""
Exceptions métier des services.

Les services ne connaissent pas HTTP : les endpoints traduisent ces erreurs
en codes de réponse (404 / 409 / 422 / 503).
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


class DataUnavailable(RuntimeError):
    """La base (lecture ou écriture) n'a pas répondu correctement."""

    def __init__(self, operation: str):
        super().__init__(f"Données indisponibles ({operation})")
        self.operation = operation


class NotFoundError(LookupError):
    pass


class BusinessRuleError(ValueError):
    pass


class ConflictError(BusinessRuleError):
    """Opération incompatible avec l'état courant (doublon, BL verrouillé)."""


class ImportRejected(ValueError):
    """Au moins une ligne du fichier est invalide : rien n'est inséré."""

    def __init__(self, rejected: list):
        super().__init__(f"{len(rejected)} ligne(s) invalide(s), import annulé")
        self.rejected = rejected

    @property
    def messages(self) -> list[str]:
        return [r.message for r in self.rejected]


@contextmanager
def data_access(db: Session, operation: str) -> Iterator[Session]:
    """
    Toute erreur SQLAlchemy -> rollback + DataUnavailable.
    L'état précédent reste inchangé (aucun commit partiel).
    """
    try:
        yield db
    except SQLAlchemyError as exc:
        logger.exception("Echec base de données pendant %s", operation)
        db.rollback()
        raise DataUnavailable(operation) from exc
