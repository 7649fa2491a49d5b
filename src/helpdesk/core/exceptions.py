"""
Core Exceptions
================

Custom exceptions for the application following clean architecture principles.

These exceptions define domain-specific errors that can be caught and handled
appropriately at the application boundaries.
"""

from typing import Optional, Any


class ApplicationException(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    """Base exception for domain logic violations."""


class RepositoryException(ApplicationException):
    """Base exception for repository/data access errors."""


class StoreUnavailableException(RepositoryException):
    """The database could not be reached. Safe to retry."""

    def __init__(self, operation: str, details: Optional[dict] = None):
        self.operation = operation
        super().__init__(f"Data store unavailable during {operation}", details)


class ValidationException(ApplicationException):
    """Exception for validation errors."""


class ResourceNotFoundException(ApplicationException):
    """Exception when a requested resource is not found."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[Any] = None,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type}"
        if resource_id is not None:
            message += f" with id '{resource_id}'"
        message += " not found"
        super().__init__(message, details)


class ConflictException(DomainException):
    """Exception when a write would violate a uniqueness rule."""

    def __init__(
        self,
        resource_type: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        super().__init__(f"{resource_type}: {message}", details)


class ConfigurationException(ApplicationException):
    """Exception for configuration errors."""
