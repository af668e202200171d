# moveout/domain/errors.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


class SettlementError(Exception):
    """Base class for every error the engine raises on purpose."""


class ValidationError(SettlementError, ValueError):
    """Input rejected before any remote call was made."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"error": "validation", "field": self.field, "message": self.message}


# Violation codes surfaced by inspection completion.
CONDITION_UNSET = "CONDITION_UNSET"
DAMAGE_COST_REQUIRED = "DAMAGE_COST_REQUIRED"
METER_READING_MISSING = "METER_READING_MISSING"
READING_CYCLE_MISSING = "READING_CYCLE_MISSING"
CONTRACT_NOT_EXPIRED = "CONTRACT_NOT_EXPIRED"


@dataclass(frozen=True)
class Violation:
    code: str
    subject_id: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code, "subject_id": self.subject_id, "message": self.message}


class PreconditionError(SettlementError):
    def __init__(self, violations: list[Violation]) -> None:
        self.violations = list(violations)
        summary = "; ".join(v.message for v in self.violations) or "precondition not met"
        super().__init__(summary)

    def codes(self) -> set[str]:
        return {v.code for v in self.violations}

    def subjects(self, code: Optional[str] = None) -> list[str]:
        return [v.subject_id for v in self.violations if code is None or v.code == code]

    def to_dict(self) -> dict[str, Any]:
        return {"error": "precondition", "violations": [v.to_dict() for v in self.violations]}


class InvalidTransitionError(SettlementError):
    def __init__(self, current: str, action: str) -> None:
        super().__init__(f"cannot {action} an inspection in status {current}")
        self.current = current
        self.action = action

    def to_dict(self) -> dict[str, Any]:
        return {"error": "invalid_transition", "status": self.current, "action": self.action, "message": str(self)}


class NotFoundError(SettlementError):
    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class RemoteError(SettlementError):
    """A collaborator call failed; the upstream message is passed through."""

    def __init__(self, message: str, *, status_code: Optional[int] = None, url: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.url = url

    @property
    def is_transient(self) -> bool:
        return self.status_code is None or self.status_code >= 500
