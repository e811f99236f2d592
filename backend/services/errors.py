"""
Entries Service Errors

Each error carries the HTTP status the route layer answers with. Services raise
them; routes translate them outside any open transaction.
"""

from typing import Any, Dict, List, Optional


class EntriesServiceError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_response(self) -> Dict[str, Any]:
        return {"success": False, "error": self.message}


class UnauthorizedError(EntriesServiceError):
    """Caller is not an authenticated admin."""

    status_code = 401


class NotFoundError(EntriesServiceError):
    """Referenced user or draw does not exist."""

    status_code = 404


class ValidationFailedError(EntriesServiceError):
    """Payload failed schema checks; carries every offending field path."""

    status_code = 400

    def __init__(self, issues: List[Dict[str, Any]], message: str = "Validation failed"):
        super().__init__(message)
        self.issues = issues

    def to_response(self) -> Dict[str, Any]:
        return {"success": False, "error": self.message, "issues": self.issues}


class FeatureDisabledError(EntriesServiceError):
    """A gated capability was attempted while administratively paused."""

    status_code = 503

    def __init__(self, message: str, code: str):
        super().__init__(message)
        self.code = code

    def to_response(self) -> Dict[str, Any]:
        return {"success": False, "error": self.message, "code": self.code}


class TransactionAbortedError(EntriesServiceError):
    """Unexpected failure inside an atomic update; the original error is the __cause__."""

    status_code = 500


class DrawUnavailableError(EntriesServiceError):
    """Draw exists but cannot accept entries (wrong status or at capacity)."""

    status_code = 409

    def __init__(self, message: str, draw_id: Optional[str] = None):
        super().__init__(message)
        self.draw_id = draw_id


class InvalidTransitionError(EntriesServiceError):
    """Draw status change not allowed by the lifecycle."""

    status_code = 409
