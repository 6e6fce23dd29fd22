"""
Erreurs métier du moteur d'inventaire.

Toutes dérivent de DomainError : la couche HTTP les traduit en réponse
(status_code + code), le unit_of_work annule la transaction en cours.
Aucune n'est rejouée automatiquement.
"""

from __future__ import annotations

from typing import Any


class DomainError(Exception):
    code = "DOMAIN_ERROR"
    status_code = 400

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(DomainError):
    """Entrée mal formée (delta nul, quantité négative, sélection vide...)."""

    code = "VALIDATION_ERROR"
    status_code = 422


class BusinessRuleViolationError(DomainError):
    """Violation de machine à états ou stock négatif."""

    code = "BUSINESS_RULE_VIOLATION"
    status_code = 422


class NotFoundError(DomainError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, entity: str, entity_id: Any | None = None) -> None:
        message = f"{entity} {entity_id} not found" if entity_id is not None else f"{entity} not found"
        super().__init__(message, {"entity": entity, "id": entity_id})


class ForbiddenError(DomainError):
    code = "FORBIDDEN"
    status_code = 403
