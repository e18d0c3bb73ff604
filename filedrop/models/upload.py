"""
Upload and retrieval data models.
Dataclasses for internal pipeline state, Pydantic models for responses.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Optional

from pydantic import BaseModel

from filedrop.s3.config import READ_CHUNK_SIZE


@dataclass(frozen=True)
class CompletedPart:
    """A part acknowledged by the backend, referenced again on completion."""

    part_number: int
    etag: str


class UploadResult(BaseModel):
    """Summary of one uploaded file field."""

    id: str
    length: int
    file_name: str
    content_type: str
    expiration_date: str

    model_config = {"frozen": True}


class UploadOutput(BaseModel):
    """Upload result paired with its public retrieval URL."""

    url: str
    upload: UploadResult


@dataclass
class StoredObject:
    """
    A fetched object: response metadata plus the lazily read body.

    The body is not restartable and must be consumed (or closed) exactly once.
    """

    body: Any
    content_type: Optional[str] = None
    etag: Optional[str] = None
    content_length: Optional[int] = None
    expiration: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)

    def iter_bytes(self, chunk_size: int = READ_CHUNK_SIZE) -> Iterator[bytes]:
        """Yield the body in chunks, closing it once done or abandoned."""
        try:
            for chunk in self.body.iter_chunks(chunk_size):
                if chunk:
                    yield chunk
        finally:
            self.close()

    def close(self) -> None:
        self.body.close()


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    detail: str
    error_code: str | None = None


class HealthCheckResponse(BaseModel):
    """Health check response."""
    status: str
    s3_connection: str
