from __future__ import annotations


class AppError(Exception):
    """Base error for domain/application exceptions."""


class NotAuthorized(AppError):
    """Raised when the actor's role does not allow the requested action."""


class NotFound(AppError):
    """Raised when entity is missing or not visible to the actor."""


class ValidationError(AppError):
    """Raised for domain-level validation beyond schema validation."""


class StructureMismatch(ValidationError):
    """Raised when the payment structure does not match the financing type."""


class InvalidTransition(AppError):
    """Raised when a status change is not listed in the transition table."""

    def __init__(self, current: str, target: str, *, machine: str | None = None) -> None:
        self.current = current
        self.target = target
        self.machine = machine
        super().__init__(f"Invalid transition: {current} -> {target}")


class InvariantViolation(AppError):
    """Raised when an action-specific precondition is not met."""
