"""
Error types for the file drop service.
Each error carries the HTTP status it maps to; external failures keep their cause.
"""

from typing import Optional

from fastapi import status


class FileDropError(Exception):
    """Base class for all service errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code: str = "internal_error"

    def __init__(self, detail: str = "Internal server error"):
        super().__init__(detail)
        self.detail = detail


class BackendError(FileDropError):
    """Transport or service failure while talking to object storage."""

    error_code = "backend_error"

    def __init__(self, detail: str, operation: Optional[str] = None):
        super().__init__(detail)
        self.operation = operation


class ProtocolError(FileDropError):
    """Malformed or unexpected storage response, or multipart protocol misuse."""

    error_code = "protocol_error"


class ValidationError(FileDropError):
    """Client input that cannot be used as sent."""

    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "validation_error"


class UploadTooLarge(FileDropError):
    """Request body exceeds the configured upload limit."""

    status_code = status.HTTP_413_CONTENT_TOO_LARGE
    error_code = "upload_too_large"


class NotFound(FileDropError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "not_found"

    def __init__(self, detail: str = "Not found"):
        super().__init__(detail)


class Expired(FileDropError):
    status_code = status.HTTP_410_GONE
    error_code = "expired"

    def __init__(self, detail: str = "Expired"):
        super().__init__(detail)
