"""
Object retrieval.
Fetches stored objects, checks expiration and derives download headers.
"""

import logging
from datetime import datetime, timezone
from email.utils import format_datetime, parsedate_to_datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from filedrop.core.errors import FileDropError
from filedrop.models.upload import StoredObject
from filedrop.s3.client import S3Client
from filedrop.s3.config import FILE_NAME_METADATA_KEY
from filedrop.utils.content_type import (
    DEFAULT_CONTENT_TYPE,
    attachment_disposition,
    is_inline_safe,
    is_path_segment,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _expiration_string(response: Dict[str, Any]) -> Optional[str]:
    """Raw Expires header from a GetObject response, in RFC 2822 form."""
    # Newer botocore exposes the raw header and stops parsing Expires
    raw = response.get("ExpiresString")
    if raw:
        return raw

    expires = response.get("Expires")
    if isinstance(expires, datetime):
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)
        return format_datetime(expires.astimezone(timezone.utc), usegmt=True)
    return expires


def parse_expiration(value: Optional[str]) -> Optional[datetime]:
    """Parse an RFC 2822 date, returning None for missing or malformed input."""
    if not value:
        return None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class RetrievalPolicy:
    """Read side of the service: fetch, expiry decision and response headers."""

    def __init__(
        self,
        client: S3Client,
        bucket: str,
        clock: Callable[[], datetime] = _utcnow
    ):
        self.client = client
        self.bucket = bucket
        self.clock = clock

    async def fetch(self, object_id: str) -> Optional[StoredObject]:
        """
        Fetch an object by identifier.

        Returns:
            StoredObject, or None if it is missing or the backend call failed
        """
        try:
            response = await self.client.run(self.client.get_object, self.bucket, object_id)
        except FileDropError as e:
            logger.info(f"[DOWNLOAD] Unavailable: {object_id} :: {e}")
            return None

        length = response.get("ContentLength")
        return StoredObject(
            body=response["Body"],
            content_type=response.get("ContentType"),
            etag=response.get("ETag"),
            content_length=int(length) if length is not None else None,
            expiration=_expiration_string(response),
            metadata=dict(response.get("Metadata") or {})
        )

    def is_expired(self, obj: StoredObject, now: Optional[datetime] = None) -> bool:
        """True only if the expiration parses and lies strictly in the past."""
        expiration = parse_expiration(obj.expiration)
        if expiration is None:
            return False
        return expiration < (now or self.clock())

    def headers(self, obj: StoredObject) -> List[Tuple[str, str]]:
        """
        Derive response headers for a download.

        Content-Disposition forces a download for any type outside the
        inline-safe list, so uploaded HTML and the like is never rendered by the
        browser. It is left out if the stored file name is not a valid URI path
        segment.
        """
        headers = [("Content-Type", obj.content_type or DEFAULT_CONTENT_TYPE)]

        if obj.etag:
            headers.append(("ETag", obj.etag))

        if obj.content_length is not None:
            headers.append(("Content-Length", str(obj.content_length)))

        if obj.content_type and not is_inline_safe(obj.content_type):
            file_name = obj.metadata.get(FILE_NAME_METADATA_KEY)
            if file_name and is_path_segment(file_name):
                headers.append(("Content-Disposition", attachment_disposition(file_name)))

        return headers
