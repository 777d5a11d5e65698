"""
PencilX Shared Errors
Custom exception classes and the HTTP error envelope
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Error body returned by every failing endpoint"""

    error_code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class PencilXException(Exception):
    """Base exception for the PencilX gateway"""

    error_code = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ServiceUnavailableError(PencilXException):
    """Upstream capacity exhausted (503)"""

    error_code = "SERVICE_UNAVAILABLE"

    def __init__(
        self,
        message: str = "AI service temporarily unavailable, please try again",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, status_code=503, details=details)
