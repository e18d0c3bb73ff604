"""
Content-Type utilities.
Type detection for uploads and the inline/attachment policy for downloads.
"""

import mimetypes
import re
from typing import Optional
from urllib.parse import quote

DEFAULT_CONTENT_TYPE = "application/octet-stream"

# Types browsers may render inline; matched as substrings of the stored type
INLINE_SAFE_TYPES = ("text/plain", "image/", "video/mp4")

# RFC 3986 pchar minus "/" (unreserved, sub-delims, ":", "@" and percent escapes)
_PATH_SEGMENT_SAFE = "-._~!$&'()*+,;=:@"
_PATH_SEGMENT_RE = re.compile(r"(?:[A-Za-z0-9\-._~!$&'()*+,;=:@]|%[0-9A-Fa-f]{2})+")


def detect_content_type(filename: str, provided_type: Optional[str] = None) -> str:
    """
    Detect Content-Type from filename extension.

    Falls back to provided type if detection fails, or 'application/octet-stream' as last resort.

    Args:
        filename: Filename (e.g., "document.pdf", "archive.tar.gz")
        provided_type: Optional explicitly provided Content-Type from client

    Returns:
        MIME type string (e.g., "application/pdf", "image/jpeg")

    Examples:
        >>> detect_content_type("document.pdf")
        'application/pdf'

        >>> detect_content_type("unknown.xyz")
        'application/octet-stream'

        >>> detect_content_type("file.txt", "text/custom")
        'text/custom'
    """
    # If client provided a specific type (not generic), use it
    if provided_type and provided_type != DEFAULT_CONTENT_TYPE:
        return provided_type

    guessed_type, _ = mimetypes.guess_type(filename)

    # Priority: guessed > provided > fallback
    return guessed_type or provided_type or DEFAULT_CONTENT_TYPE


def is_inline_safe(content_type: str) -> bool:
    """Whether a browser may render this type inline without risk."""
    return any(safe in content_type for safe in INLINE_SAFE_TYPES)


def encode_filename(filename: str) -> Optional[str]:
    """
    Percent-encode a file name into a single URI path segment.

    Returns:
        Encoded name, or None if the name is empty or not encodable as UTF-8
    """
    if not filename:
        return None
    try:
        return quote(filename, safe=_PATH_SEGMENT_SAFE)
    except UnicodeEncodeError:
        return None


def is_path_segment(value: str) -> bool:
    """Check that a stored name is already a valid URI path segment."""
    return _PATH_SEGMENT_RE.fullmatch(value) is not None


def attachment_disposition(filename: str) -> str:
    return f'attachment; filename="{filename}"'
