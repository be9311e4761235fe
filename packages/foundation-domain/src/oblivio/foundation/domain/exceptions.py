"""Domain exception hierarchy for type-safe error handling.

This module provides the base exception hierarchy for all oblivio errors.
Exceptions carry a machine-readable error code and structured context so
erasure failures can be logged and surfaced consistently across packages.

Example:
    >>> from oblivio.foundation.domain.exceptions import NotFoundError
    >>> raise NotFoundError("User", "user-42")
"""

from __future__ import annotations

from typing import Any

__all__ = [
    "AuthorizationError",
    "ConflictError",
    "DomainError",
    "InvalidStateTransitionError",
    "NotFoundError",
    "ValidationError",
]


class DomainError(Exception):
    """Base class for all domain errors.

    Provides error code and structured context for debugging. All domain
    exceptions inherit from this class so callers can catch one type at the
    boundary of the erasure engine.

    Attributes:
        error_code: Machine-readable error code for client handling.
        message: Human-readable error description.
        context: Structured debugging information (table names, document ids).

    Example:
        >>> raise DomainError("Operation failed", context={"table": "tasks"})
        DomainError: Operation failed (table=tasks)
    """

    error_code: str = "DOMAIN_ERROR"

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        """Initialize domain error with message and optional context.

        Args:
            message: Human-readable error description.
            context: Structured debugging information. Keys should be snake_case.
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        """String representation including context for logging."""
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} ({context_str})"
        return self.message

    def __repr__(self) -> str:
        """Detailed representation for debugging."""
        return f"{self.__class__.__name__}({self.message!r}, context={self.context!r})"


class NotFoundError(DomainError):
    """Raised when a requested resource does not exist.

    Document stores raise it when a patch or delete targets a document that
    is gone. Strategy executors treat it as "already handled" rather than as
    a failure, which is what makes a resumed cascade safe.

    Attributes:
        error_code: "RESOURCE_NOT_FOUND" (class constant).
        resource_type: Type of missing resource (e.g., "User", a table name).
        resource_id: Identifier of missing resource.

    Example:
        >>> raise NotFoundError("tasks", "t-1")
        NotFoundError: tasks not found: t-1
    """

    error_code: str = "RESOURCE_NOT_FOUND"

    def __init__(
        self,
        resource_type: str,
        resource_id: object,
        **extra_context: Any,
    ) -> None:
        """Initialize not found error.

        Args:
            resource_type: Type of resource (e.g., "User", "deletion_journal").
            resource_id: Identifier of missing resource. Converted to string.
            **extra_context: Additional debugging context.
        """
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type} not found: {resource_id}"
        context = {
            "resource_type": resource_type,
            "resource_id": str(resource_id),
            **extra_context,
        }
        super().__init__(message, context)


class ValidationError(DomainError):
    """Raised when input fails domain validation rules.

    Attributes:
        error_code: "VALIDATION_ERROR" (class constant).
        field: Field path that failed validation.
        reason: Human-readable validation failure reason.

    Example:
        >>> raise ValidationError("reason", "Reason is required for admin deletion")
        ValidationError: Validation failed for 'reason': Reason is required for admin deletion
    """

    error_code: str = "VALIDATION_ERROR"

    def __init__(
        self,
        field: str,
        reason: str,
        **extra_context: Any,
    ) -> None:
        """Initialize validation error.

        Args:
            field: Field path that failed validation (dot notation allowed).
            reason: Human-readable validation failure reason.
            **extra_context: Additional debugging context.
        """
        self.field = field
        self.reason = reason
        message = f"Validation failed for '{field}': {reason}"
        context = {
            "field": field,
            "reason": reason,
            **extra_context,
        }
        super().__init__(message, context)


class ConflictError(DomainError):
    """Raised when an operation conflicts with current system state.

    Attributes:
        error_code: "CONFLICT" (class constant).
        reason: Description of the conflict.

    Example:
        >>> raise ConflictError("External id already registered", external_id="ext_1")
        ConflictError: Conflict: External id already registered (external_id=ext_1)
    """

    error_code: str = "CONFLICT"

    def __init__(
        self,
        reason: str,
        **context: Any,
    ) -> None:
        """Initialize conflict error.

        Args:
            reason: Description of conflict.
            **context: Additional debugging context.
        """
        self.reason = reason
        message = f"Conflict: {reason}"
        super().__init__(message, context)


class AuthorizationError(DomainError):
    """Raised when the calling user lacks the rank an operation requires.

    Attributes:
        error_code: "AUTHORIZATION_ERROR" or more specific code.

    Example:
        >>> raise AuthorizationError("Admiral rank required to delete users")
    """

    error_code: str = "AUTHORIZATION_ERROR"


class InvalidStateTransitionError(ConflictError):
    """Raised when a state machine transition is not allowed.

    The cascade orchestrator raises it if its own step sequence is violated,
    which indicates a programming error rather than bad input.

    Attributes:
        error_code: "INVALID_STATE_TRANSITION" (class constant).

    Example:
        >>> raise InvalidStateTransitionError(
        ...     "Cannot move from idle to cascading", current_state="idle"
        ... )
    """

    error_code: str = "INVALID_STATE_TRANSITION"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message, **context)
