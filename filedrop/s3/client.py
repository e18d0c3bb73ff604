"""
S3 Client wrapper.
Handles the multipart upload protocol, object reads and bucket checks.
boto3 errors are translated into BackendError/ProtocolError.
"""

import asyncio
import functools
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Any, Callable, Dict, Sequence, TypeVar

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from filedrop.core.config import Settings
from filedrop.core.errors import BackendError, ProtocolError
from filedrop.models.upload import CompletedPart

logger = logging.getLogger(__name__)

T = TypeVar("T")

NOT_FOUND_CODES = {"404", "NoSuchKey", "NoSuchBucket", "NotFound"}


class S3Client:
    """
    Wrapper for S3 operations.

    Constructed once at startup and shared by all requests. The boto3 client is
    thread-safe; blocking calls are run on a bounded executor via ``run``.
    """

    def __init__(self, settings: Settings):
        """Initialize S3 client from settings."""
        addressing_style = "path" if settings.S3_FORCE_PATH_STYLE else "auto"

        self.client = boto3.client(
            's3',
            endpoint_url=settings.S3_ENDPOINT_URL,
            region_name=settings.S3_REGION,
            aws_access_key_id=settings.S3_ACCESS_KEY_ID,
            aws_secret_access_key=settings.S3_SECRET_ACCESS_KEY,
            config=Config(signature_version='s3v4', s3={'addressing_style': addressing_style}),
        )

        # Bounded pool so concurrent uploads cannot spawn unlimited threads
        self.executor = ThreadPoolExecutor(
            max_workers=settings.S3_MAX_WORKERS,
            thread_name_prefix="s3-io"
        )

        logger.info(f"S3 client initialized (endpoint: {settings.S3_ENDPOINT_URL or 'default'})")

    async def run(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run a blocking client call on the executor and await the result."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            self.executor,
            functools.partial(func, *args, **kwargs)
        )

    def close(self) -> None:
        self.executor.shutdown(wait=False)

    def create_multipart_upload(
        self,
        bucket: str,
        key: str,
        content_type: str,
        metadata: Dict[str, str],
        expires: datetime
    ) -> str:
        """
        Open a multipart upload session.

        Returns:
            Upload ID for subsequent part and completion calls

        Raises:
            BackendError: If the backend rejects the request
            ProtocolError: If the response carries no UploadId
        """
        try:
            response = self.client.create_multipart_upload(
                Bucket=bucket,
                Key=key,
                ContentType=content_type,
                Metadata=metadata,
                Expires=expires
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"[MULTIPART] Failed to open upload for {bucket}/{key}: {e}")
            raise BackendError(
                f"Failed to create multipart upload: {e}",
                operation="create_multipart_upload"
            ) from e

        upload_id = response.get("UploadId")
        if not upload_id:
            raise ProtocolError("Failed to get upload id")

        logger.info(f"[MULTIPART] Opened upload for {bucket}/{key}")
        return upload_id

    def upload_part(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        part_number: int,
        body: bytes
    ) -> str:
        """
        Upload one part.

        Returns:
            ETag of the stored part

        Raises:
            BackendError: If the transfer or the backend fails
            ProtocolError: If the response carries no ETag
        """
        try:
            response = self.client.upload_part(
                Bucket=bucket,
                Key=key,
                UploadId=upload_id,
                PartNumber=part_number,
                Body=body
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"[MULTIPART] Part {part_number} failed for {bucket}/{key}: {e}")
            raise BackendError(f"Failed to upload part: {e}", operation="upload_part") from e

        etag = response.get("ETag")
        if not etag:
            raise ProtocolError("Failed to get e_tag from upload part")

        return etag

    def complete_multipart_upload(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        parts: Sequence[CompletedPart]
    ) -> None:
        """
        Stitch uploaded parts into the final object.

        Parts are submitted in the order given.

        Raises:
            BackendError: If the backend rejects completion
        """
        multipart_payload = {
            "Parts": [
                {"ETag": part.etag, "PartNumber": part.part_number}
                for part in parts
            ]
        }

        try:
            self.client.complete_multipart_upload(
                Bucket=bucket,
                Key=key,
                UploadId=upload_id,
                MultipartUpload=multipart_payload
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"[MULTIPART] Completion failed for {bucket}/{key}: {e}")
            raise BackendError(
                f"Failed to complete multipart upload: {e}",
                operation="complete_multipart_upload"
            ) from e

        logger.info(f"[MULTIPART] Completed {bucket}/{key} ({len(parts)} parts)")

    def abort_multipart_upload(self, bucket: str, key: str, upload_id: str) -> None:
        """
        Abort a multipart upload and discard its parts.

        Raises:
            BackendError: If the backend rejects the abort
        """
        try:
            self.client.abort_multipart_upload(
                Bucket=bucket,
                Key=key,
                UploadId=upload_id
            )
        except (BotoCoreError, ClientError) as e:
            raise BackendError(
                f"Failed to abort multipart upload: {e}",
                operation="abort_multipart_upload"
            ) from e

        logger.info(f"[MULTIPART] Aborted upload for {bucket}/{key}")

    def get_object(self, bucket: str, key: str) -> Dict[str, Any]:
        """
        Fetch an object with its metadata and streaming body.

        Returns:
            Raw boto3 GetObject response

        Raises:
            BackendError: If the object is missing or the read fails
        """
        try:
            return self.client.get_object(Bucket=bucket, Key=key)
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code')
            if error_code in NOT_FOUND_CODES:
                logger.info(f"Object not found: {bucket}/{key}")
            else:
                logger.error(f"Failed to get {bucket}/{key}: {e}")
            raise BackendError(f"Failed to get object: {e}", operation="get_object") from e
        except BotoCoreError as e:
            logger.error(f"Failed to get {bucket}/{key}: {e}")
            raise BackendError(f"Failed to get object: {e}", operation="get_object") from e

    def check_bucket(self, bucket: str) -> None:
        """
        Verify the bucket is reachable.

        Raises:
            BackendError: If it is missing or the backend is unreachable
        """
        try:
            self.client.head_bucket(Bucket=bucket)
        except (BotoCoreError, ClientError) as e:
            raise BackendError(f"Bucket check failed: {e}", operation="head_bucket") from e

    def ensure_bucket_exists(self, bucket: str) -> None:
        """
        Ensure bucket exists, create if it doesn't.

        Raises:
            BackendError: If checking or creating the bucket fails
        """
        try:
            self.client.head_bucket(Bucket=bucket)
            logger.info(f"Bucket exists: {bucket}")
            return
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code')
            if error_code not in NOT_FOUND_CODES:
                logger.error(f"Error checking bucket {bucket}: {e}")
                raise BackendError(f"Bucket check failed: {e}", operation="head_bucket") from e
        except BotoCoreError as e:
            logger.error(f"Error checking bucket {bucket}: {e}")
            raise BackendError(f"Bucket check failed: {e}", operation="head_bucket") from e

        try:
            self.client.create_bucket(Bucket=bucket)
            logger.info(f"Created bucket: {bucket}")
        except (BotoCoreError, ClientError) as create_error:
            logger.error(f"Failed to create bucket {bucket}: {create_error}")
            raise BackendError(
                f"Failed to create bucket: {create_error}",
                operation="create_bucket"
            ) from create_error

