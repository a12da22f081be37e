"""
Domain errors raised by the services and rendered by main.py.

Each error carries the HTTP status it maps to, so the routes never need
to translate them one by one.
"""

from fastapi import status


class ShortLinkError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Request failed"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationFailed(ShortLinkError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Validation failed"


class InvalidUrl(ValidationFailed):
    default_message = "Invalid URL format"


class InvalidAlias(ValidationFailed):
    default_message = "Invalid custom alias format"


class AliasTaken(ShortLinkError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Custom alias already exists"


class AllocationExhausted(ShortLinkError):
    """No free short code was found within the attempt ceiling."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Could not allocate a short code"


class NotFoundOrExpired(ShortLinkError):
    # Same outcome for unknown, deactivated and expired codes
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "URL not found or expired"

    def __init__(self):
        super().__init__(self.default_message)


class LinkNotFound(ShortLinkError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "URL not found or access denied"
