"""
Multipart upload session.
Tracks one S3 multipart upload from open to completion or abort.
"""

import asyncio
import logging
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Sequence

from filedrop.core.errors import FileDropError, ProtocolError
from filedrop.models.upload import CompletedPart
from filedrop.s3.client import S3Client

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    """Lifecycle of a multipart upload session."""
    CREATED = "created"
    UPLOADING = "uploading"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


def check_part_order(parts: Sequence[CompletedPart]) -> None:
    """
    Ensure parts are numbered 1..n in ascending order with no gaps.

    Raises:
        ProtocolError: On any duplicate, gap or out-of-order part
    """
    for expected, part in enumerate(parts, start=1):
        if part.part_number != expected:
            numbers = [p.part_number for p in parts]
            raise ProtocolError(f"Parts must be submitted as 1..{len(parts)} in order, got {numbers}")


class UploadSession:
    """
    One multipart upload against the storage backend.

    Parts are uploaded one at a time; each acknowledged part is recorded with
    its ETag so the session can be completed (or aborted) later.
    """

    def __init__(self, client: S3Client, bucket: str, key: str, upload_id: str):
        self.client = client
        self.bucket = bucket
        self.key = key
        self.upload_id = upload_id
        self.parts: List[CompletedPart] = []
        self.part_counter = 1
        self.state = SessionState.CREATED

    @classmethod
    async def open(
        cls,
        client: S3Client,
        bucket: str,
        key: str,
        content_type: str,
        metadata: Dict[str, str],
        expires: datetime
    ) -> "UploadSession":
        """
        Open a new multipart upload.

        Args:
            client: Shared storage client
            bucket: Target bucket
            key: Object key (the public identifier)
            content_type: MIME type stored with the object
            metadata: User metadata stored with the object
            expires: Expiration stored as the object's Expires header

        Returns:
            Session in CREATED state

        Raises:
            BackendError: If the backend rejects the request
            ProtocolError: If no upload id is returned
        """
        upload_id = await client.run(
            client.create_multipart_upload,
            bucket,
            key,
            content_type,
            metadata,
            expires
        )
        return cls(client, bucket, key, upload_id)

    @property
    def finished(self) -> bool:
        return self.state in (SessionState.COMPLETED, SessionState.ABANDONED)

    def _ensure_open(self) -> None:
        if self.finished:
            raise ProtocolError(f"Upload session for {self.key} is already {self.state.value}")

    async def upload_part(self, part_number: int, body: bytes) -> str:
        """
        Upload the next part.

        Args:
            part_number: Must equal the next expected part number
            body: Part contents

        Returns:
            ETag assigned by the backend

        Raises:
            ProtocolError: On an unexpected part number, a missing ETag or a finished session
            BackendError: If the transfer fails
        """
        self._ensure_open()
        if part_number != self.part_counter:
            raise ProtocolError(f"Expected part {self.part_counter}, got {part_number}")

        self.state = SessionState.UPLOADING
        transfer = asyncio.ensure_future(
            self.client.run(
                self.client.upload_part,
                self.bucket,
                self.key,
                self.upload_id,
                part_number,
                body
            )
        )
        try:
            etag = await asyncio.shield(transfer)
        except asyncio.CancelledError:
            # Abort must reach the backend after the in-flight part, not before it
            await asyncio.wait([transfer])
            raise

        self.parts.append(CompletedPart(part_number=part_number, etag=etag))
        self.part_counter += 1
        return etag

    async def complete(self, parts: Optional[Sequence[CompletedPart]] = None) -> None:
        """
        Finalize the upload so the object becomes readable.

        Args:
            parts: Parts to submit, defaults to every part uploaded in this session

        Raises:
            ProtocolError: If parts are not in ascending order without gaps
            BackendError: If the backend rejects completion
        """
        self._ensure_open()
        parts = list(self.parts if parts is None else parts)
        check_part_order(parts)

        await self.client.run(
            self.client.complete_multipart_upload,
            self.bucket,
            self.key,
            self.upload_id,
            parts
        )
        self.state = SessionState.COMPLETED

    async def abort(self) -> None:
        """
        Abort the upload and drop stored parts. No-op once finished.

        Failures are logged, never raised, so cleanup cannot hide the error
        that triggered it.
        """
        if self.finished:
            return

        self.state = SessionState.ABANDONED
        try:
            await self.client.run(
                self.client.abort_multipart_upload,
                self.bucket,
                self.key,
                self.upload_id
            )
        except FileDropError as e:
            logger.error(f"[MULTIPART] Abort failed, upload {self.upload_id} left orphaned: {e}")
