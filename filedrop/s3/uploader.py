"""
Upload coordinator.
Streams one form field into a multipart upload and reports the result.
"""

import logging
import time
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from typing import AsyncIterable, Callable, Optional

from filedrop.models.upload import UploadResult
from filedrop.s3.client import S3Client
from filedrop.s3.config import FILE_NAME_METADATA_KEY, PART_SIZE
from filedrop.s3.multipart import UploadSession
from filedrop.utils.content_type import detect_content_type, encode_filename
from filedrop.utils.ids import generate_id
from filedrop.utils.streaming import PartBuffer

logger = logging.getLogger(__name__)

UNNAMED = "unnamed"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UploadCoordinator:
    """Drives PartBuffer and UploadSession for each uploaded file field."""

    def __init__(
        self,
        client: S3Client,
        bucket: str,
        id_length: int,
        part_size: int = PART_SIZE,
        clock: Callable[[], datetime] = _utcnow
    ):
        self.client = client
        self.bucket = bucket
        self.id_length = id_length
        self.part_size = part_size
        self.clock = clock

    async def upload_field(
        self,
        duration: timedelta,
        chunks: AsyncIterable[bytes],
        file_name: Optional[str] = None,
        content_type: Optional[str] = None
    ) -> UploadResult:
        """
        Upload a streamed file field under a fresh identifier.

        Args:
            duration: How long the object stays retrievable
            chunks: Async iterable of the field's raw bytes
            file_name: Client-supplied file name, "unnamed" if missing
            content_type: Client-supplied MIME type, guessed from the name if missing

        Returns:
            UploadResult for the stored object

        Raises:
            BackendError / ProtocolError: If any storage call fails. The multipart
                session is aborted first; the same applies to client disconnects
                and any other error raised while reading ``chunks``.
        """
        start_time = time.time()

        object_id = generate_id(self.id_length)
        expiration = self.clock() + duration
        file_name = file_name or UNNAMED
        content_type = detect_content_type(file_name, content_type)

        session = await UploadSession.open(
            self.client,
            bucket=self.bucket,
            key=object_id,
            content_type=content_type,
            metadata={FILE_NAME_METADATA_KEY: encode_filename(file_name) or UNNAMED},
            expires=expiration
        )
        logger.info(f"[UPLOAD] Starting: {object_id} ({file_name}, {content_type})")

        parts = PartBuffer(chunks, threshold=self.part_size)
        try:
            part_number = 1
            while True:
                part = await parts.next_part()
                if part is None:
                    break
                await session.upload_part(part_number, part)
                part_number += 1

            # S3 refuses to complete an upload with no parts; store empty files as one empty part
            if part_number == 1:
                await session.upload_part(part_number, b"")

            await session.complete()
        except BaseException as e:
            logger.error(f"[UPLOAD] Failed: {object_id} after {parts.total_bytes} bytes :: {e!r}")
            await session.abort()
            raise

        duration_s = time.time() - start_time
        logger.info(
            f"[UPLOAD] Completed: {object_id} "
            f"({parts.total_bytes / 1024 / 1024:.2f}MB in {parts.part_count} parts, {duration_s:.2f}s)"
        )

        return UploadResult(
            id=object_id,
            length=parts.total_bytes,
            file_name=file_name,
            content_type=content_type,
            expiration_date=format_datetime(expiration.astimezone(timezone.utc), usegmt=True)
        )
