"""Structured errors raised by the conquest engine.

Every public operation either returns its payload or raises exactly one
:class:`ConquestError`. Callers that need a transport-neutral shape use
:meth:`ConquestError.to_payload` (see also :mod:`conquest.results`).
"""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError as PydanticValidationError


def build_error_payload(
    kind: str, message: str, details: dict[str, Any] | None = None
) -> dict[str, Any]:
    payload: dict[str, Any] = {"kind": kind, "message": message}
    if details:
        payload["details"] = details
    return {"error": payload}


class ConquestError(Exception):
    """Base class for all engine failures."""

    kind = "error"
    retryable = False

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_payload(self) -> dict[str, Any]:
        return build_error_payload(self.kind, self.message, self.details)

    def __repr__(self) -> str:
        return f"<{type(self).__name__}(message={self.message!r}, details={self.details!r})>"


class ValidationError(ConquestError):
    """Malformed or missing input."""

    kind = "validation_error"

    @classmethod
    def from_pydantic(cls, exc: PydanticValidationError, entity: str) -> ValidationError:
        fields = {
            ".".join(str(part) for part in error["loc"]) or entity: error["msg"]
            for error in exc.errors()
        }
        summary = "; ".join(f"{name}: {msg}" for name, msg in fields.items())
        return cls(f"Invalid {entity}: {summary}", entity=entity, fields=fields)


class NotFoundError(ConquestError):
    """A referenced entity does not exist."""

    kind = "not_found"

    def __init__(self, entity: str, entity_id: Any) -> None:
        super().__init__(f"{entity} {entity_id} not found", entity=entity, entity_id=entity_id)


class ConflictError(ConquestError):
    """An invariant would be violated by concurrent or stale state."""

    kind = "conflict"


class InvalidTransitionError(ConquestError):
    """A milestone state machine violation."""

    kind = "invalid_transition"


class AuthorizationError(ConquestError):
    """The caller lacks entity-level rights for this operation."""

    kind = "authorization_error"


class StorageError(ConquestError):
    """The storage collaborator failed; may be transient."""

    kind = "storage_error"
    retryable = True


class StorageTimeoutError(StorageError):
    """The storage collaborator did not answer within the configured timeout."""

    kind = "timeout"
