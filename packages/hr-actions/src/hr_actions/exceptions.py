"""Custom exceptions for the action lifecycle."""

from __future__ import annotations

from typing import Any


class ActionError(Exception):
    """Base exception for action lifecycle errors."""


class ValidationError(ActionError):
    """Raised when an action field is malformed or outside its enum."""

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []

    @classmethod
    def from_pydantic(cls, exc: Exception) -> "ValidationError":
        """Wrap a pydantic ValidationError, keeping its per-field detail."""
        errors = [
            {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
            for err in exc.errors()  # type: ignore[attr-defined]
        ]
        summary = "; ".join(f"{e['field']}: {e['message']}" for e in errors)
        return cls(summary or str(exc), errors)


class ActionNotFoundError(ActionError):
    """Raised when an action is not found."""

    def __init__(self, action_id: str) -> None:
        super().__init__(f"Action not found: {action_id}")
        self.action_id = action_id


NotFoundError = ActionNotFoundError


class InvalidTransitionError(ActionError):
    """Raised when a lifecycle operation is attempted from an incompatible state."""

    def __init__(self, action_id: str, operation: str, status: str, reason: str = "") -> None:
        message = f"Cannot {operation} action {action_id} in status {status!r}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.action_id = action_id
        self.operation = operation
        self.status = status


class ConflictError(ActionError):
    """Raised when a conditional save loses to a concurrent write."""

    def __init__(self, action_id: str, expected_version: int) -> None:
        super().__init__(
            f"Action {action_id} was modified concurrently (expected version {expected_version})"
        )
        self.action_id = action_id
        self.expected_version = expected_version


class PersistenceError(ActionError):
    """Raised when the backing store is unavailable or returns garbage."""


class ConfigError(ActionError):
    """Raised when the configuration file cannot be read."""
