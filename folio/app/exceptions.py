"""Custom exceptions for the folio application."""

from typing import Any, Dict, List, Optional


class FolioException(Exception):
    """Base class for folio exceptions with HTTP status code.

    All custom exceptions should inherit from this class and define
    their specific status_code for consistent HTTP response handling.
    """
    status_code: int = 500

    def __init__(self, message: str = "Internal error"):
        self.message = message
        super().__init__(message)


class RateLimitExceededError(FolioException):
    """Raised when a client has exhausted its request allowance.

    Carries the headers to send back with the 429 response.
    Maps to HTTP 429 Too Many Requests.
    """
    status_code = 429

    def __init__(
        self,
        retry_after: int,
        headers: Optional[Dict[str, str]] = None,
        message: str = "Too many requests. Please try again later.",
    ):
        self.retry_after = retry_after
        self.headers = headers or {}
        super().__init__(message)


class InvalidSearchQueryError(FolioException):
    """Raised when the ``q`` search parameter fails validation.

    Maps to HTTP 400 Bad Request.
    """
    status_code = 400

    def __init__(
        self,
        details: Optional[List[Dict[str, Any]]] = None,
        headers: Optional[Dict[str, str]] = None,
        message: str = "Invalid search parameters",
    ):
        self.details = details or []
        self.headers = headers or {}
        super().__init__(message)


class SearchBackendError(FolioException):
    """Raised by a search service when the content source fails.

    Maps to HTTP 500; the search route answers it with empty results.
    """
    status_code = 500

    def __init__(self, message: str = "Search backend unavailable"):
        super().__init__(message)
