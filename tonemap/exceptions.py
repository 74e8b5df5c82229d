"""
ToneMap Exceptions

Error taxonomy shared by every component. Recoverable failures
(external lookups, empty filter results) are handled close to where they
occur; the rest propagate to the caller.
"""

from typing import Optional


class ToneMapError(Exception):
    """Base class for all ToneMap errors."""


class NotAuthenticatedError(ToneMapError):
    """Raised when an operation is invoked without a user id."""

    def __init__(self, message: str = "No authenticated user for this operation"):
        super().__init__(message)


class NoDataAvailableError(ToneMapError):
    """Raised when the candidate pool is empty even after relaxing filters."""

    DEFAULT_MESSAGE = "No tracks found in listening history. Please listen to more music!"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.DEFAULT_MESSAGE)


class ExternalLookupError(ToneMapError):
    """Raised when a weather, discovery or platform call fails."""

    def __init__(self, service: str, message: str):
        self.service = service
        super().__init__(f"{service}: {message}")


class PersistenceError(ToneMapError):
    """Raised when a pattern, suggestion or playlist write fails."""


def ensure_authenticated(user_id: Optional[str]) -> str:
    """
    Validate that a user id is present.

    Args:
        user_id: User id supplied by the caller

    Returns:
        The same user id

    Raises:
        NotAuthenticatedError: If the id is missing or blank
    """
    if not user_id or not str(user_id).strip():
        raise NotAuthenticatedError()
    return user_id
