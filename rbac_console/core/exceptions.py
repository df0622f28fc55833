"""Custom exception classes for the RBAC console."""

from typing import List, Optional

from fastapi import status


class RBACConsoleError(Exception):
    """Base exception for the RBAC console.

    ``errors`` always holds at least one entry so responses can list every
    failed rule uniformly.
    """

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "An error occurred", errors: Optional[List[str]] = None):
        self.message = message
        self.errors = list(errors) if errors else [message]
        super().__init__(self.message)


class ValidationError(RBACConsoleError):
    """Raised when input validation fails."""

    def __init__(self, errors: List[str], message: str = "Validation failed"):
        super().__init__(message, errors)


class AuthenticationError(RBACConsoleError):
    """Raised when the caller is not authenticated."""
    status_code = status.HTTP_401_UNAUTHORIZED


class AuthorizationError(RBACConsoleError):
    """Raised when user lacks permission."""
    status_code = status.HTTP_403_FORBIDDEN


class ResourceNotFoundError(RBACConsoleError):
    """Raised when a requested resource is not found."""
    status_code = status.HTTP_404_NOT_FOUND

    @classmethod
    def for_entity(cls, entity: str, entity_id: object) -> "ResourceNotFoundError":
        return cls(f"{entity} with id '{entity_id}' was not found")


class ResourceConflictError(RBACConsoleError):
    """Raised when an operation is refused because of dependent data."""
    status_code = status.HTTP_409_CONFLICT
