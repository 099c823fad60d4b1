"""
Exceptions for ShelfSpace.

Every error carries a machine readable code and an HTTP status so the API
layer can translate it into a structured response without special cases.
"""

from typing import Any, Dict, Optional


class ShelfSpaceException(Exception):
    """Base exception for ShelfSpace errors."""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        status_code: int = 500,
        detail: Optional[str] = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.detail = detail
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "code": self.code,
            "detail": self.detail,
        }


class InvalidBufferError(ShelfSpaceException):
    """Pixel buffer is missing, empty or malformed."""

    def __init__(self, detail: Optional[str] = None):
        super().__init__(
            message="Invalid pixel buffer",
            code="INVALID_BUFFER",
            status_code=400,
            detail=detail,
        )


class DetectorUnavailableError(ShelfSpaceException):
    """External detector failed or timed out."""

    def __init__(self, detector: str, detail: Optional[str] = None):
        super().__init__(
            message=f"{detector} detector unavailable",
            code="DETECTOR_UNAVAILABLE",
            status_code=503,
            detail=detail,
        )


class SessionNotFoundError(ShelfSpaceException):
    """No analysis session with the given id."""

    def __init__(self, session_id: str):
        super().__init__(
            message="Session not found",
            code="NOT_FOUND",
            status_code=404,
            detail=f"No session with identifier '{session_id}' exists",
        )
