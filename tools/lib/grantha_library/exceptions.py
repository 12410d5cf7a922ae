"""Custom exceptions for grantha_library.

This module defines the error taxonomy shared by the services, the HTTP
layer and the command line. Each family maps to one HTTP status class.
"""

from typing import List, Optional


class GranthaLibraryError(Exception):
    """Base exception for all grantha_library errors."""


class NotFoundError(GranthaLibraryError):
    """Raised when a referenced entity id does not resolve."""


class GranthaNotFoundError(NotFoundError):
    """Raised when a grantha id does not resolve."""


class VerseNotFoundError(NotFoundError):
    """Raised when a verse id does not resolve."""


class CommentaryNotFoundError(NotFoundError):
    """Raised when a commentary id does not resolve."""


class SuggestionNotFoundError(NotFoundError):
    """Raised when a suggestion id does not resolve."""


class ValidationError(GranthaLibraryError):
    """Raised when a payload is missing required fields or is malformed.

    Attributes:
        required: Names of the required fields that were missing, if any.
    """

    def __init__(self, message: str, required: Optional[List[str]] = None):
        super().__init__(message)
        self.required = required or []


class DuplicateGranthaError(ValidationError):
    """Raised when importing a grantha whose title and author already exist."""


class InvalidTransitionError(ValidationError):
    """Raised when a suggestion has already been approved or rejected."""


class CommentaryCycleError(ValidationError):
    """Raised when a commentary would become its own ancestor."""


class SchemaValidationError(ValidationError):
    """Raised when an import document does not match the export schema.

    Attributes:
        errors: Individual schema violation messages.
    """

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = errors or []


class AuthenticationError(GranthaLibraryError):
    """Raised when admin credentials are rejected."""
