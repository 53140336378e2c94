"""
Domain exceptions for the DocVault core.

These exceptions represent business rule violations and are independent of
infrastructure concerns. The HTTP layer maps them to status codes through
``error_code``.
"""

from typing import Any


class DocVaultException(Exception):
    """
    Base exception for all DocVault errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable error code for API responses
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class NotFoundError(DocVaultException):
    """Raised when a document, version, share or link does not exist."""

    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type} not found: {resource_id}",
            "RESOURCE_NOT_FOUND",
            {"resource_type": resource_type, "resource_id": resource_id},
        )


class ForbiddenError(DocVaultException):
    """Raised when the actor lacks the permission level an operation needs."""

    def __init__(
        self,
        message: str = "Permission denied",
        resource: str | None = None,
        action: str | None = None,
    ):
        details: dict[str, Any] = {}
        if resource:
            details["resource"] = resource
        if action:
            details["action"] = action
        super().__init__(message, "FORBIDDEN", details)


class ConflictError(DocVaultException):
    """Raised when a write collides with the current state of a document or share."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, "CONFLICT", details)


class VersionConflictError(ConflictError):
    """Another writer took the version number being appended."""


class ValidationError(DocVaultException):
    """Raised when input is structurally invalid."""

    def __init__(self, message: str, field: str | None = None):
        details = {"field": field} if field else {}
        super().__init__(message, "VALIDATION_ERROR", details)


class LoggingError(DocVaultException):
    """
    An access-log entry could not be written.

    Reported, never raised to callers of the primary action.
    """

    def __init__(self, document_id: str, action: str, reason: str):
        super().__init__(
            f"Failed to record {action} access for document {document_id}",
            "ACCESS_LOG_ERROR",
            {"document_id": document_id, "action": action, "reason": reason},
        )
