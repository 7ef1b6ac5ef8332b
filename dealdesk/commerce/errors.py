"""Error categories shared by the commerce engines.

Callers need to tell three situations apart:

- the request broke a business rule (CommerceValidationError, HTTP 400)
- the acting user may not do this (CommercePermissionError, HTTP 403)
- the referenced record does not exist for this caller (CommerceNotFoundError, HTTP 404)

StaleStateError is a validation error raised when a conditional update
finds the record already moved on (another request won the race). The
HTTP layer reports it as 409.
"""

from typing import Optional


class CommerceError(Exception):
    """Base class for commerce engine errors."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field


class CommerceValidationError(CommerceError):
    """The request violates a business rule."""


class CommercePermissionError(CommerceError):
    """The acting user is not entitled to this operation."""


class CommerceNotFoundError(CommerceError):
    """The referenced record does not exist or is not visible to the caller."""


class StaleStateError(CommerceValidationError):
    """A conditional update lost to a concurrent change."""
