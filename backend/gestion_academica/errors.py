"""Excepciones del motor de reglas académicas.

Cada clase corresponde a un tipo de error: recurso inexistente, estado no
operable, violación de política y falla de infraestructura. Todas llevan un
mensaje legible y un ``details`` estructurado para que el llamador pueda
construir una respuesta accionable.
"""

from typing import Any, Optional


class RulesEngineError(Exception):
    """Base exception for rules engine errors."""

    kind = "error"
    status_code = 400

    def __init__(self, message: str, details: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        return {"detail": self.message, "kind": self.kind, "details": self.details}


class NotFoundError(RulesEngineError):
    """Referenced student, course, period, enrollment or evaluation type does not exist."""

    kind = "not_found"
    status_code = 404


class InvalidStateError(RulesEngineError):
    """Period or enrollment is not in a state that allows the operation."""

    kind = "invalid_state"
    status_code = 409


class PolicyViolationError(RulesEngineError):
    """An academic rule rejected the operation."""

    kind = "policy_violation"
    status_code = 422


class InfrastructureError(RulesEngineError):
    """The store failed; the operation was rolled back."""

    kind = "infrastructure"
    status_code = 503
