"""
Streaming upload utilities.
Re-buffers an async chunk stream into multipart upload parts.
"""

import logging
from typing import AsyncIterable, Optional

from filedrop.s3.config import PART_SIZE

logger = logging.getLogger(__name__)


class PartBuffer:
    """
    Accumulate incoming chunks into parts for a multipart upload.

    Every part except the last is larger than ``threshold``; the last one may be
    any non-empty size. Memory is bounded by one part plus one incoming chunk,
    so a single oversized chunk produces an oversized part.

    Call next_part() repeatedly until it returns None.
    """

    def __init__(self, chunks: AsyncIterable[bytes], threshold: int = PART_SIZE):
        """
        Args:
            chunks: Async iterable yielding raw body chunks
            threshold: Size a buffer must exceed before it is emitted as a part
        """
        self._chunks = chunks.__aiter__()
        self.threshold = threshold
        self.exhausted = False
        self.total_bytes = 0
        self.part_count = 0

    async def next_part(self) -> Optional[bytes]:
        """
        Pull chunks until a full part is buffered or the stream ends.

        Returns:
            The next part, or None once the stream is exhausted and nothing is left
        """
        buffer = bytearray()

        while not self.exhausted:
            try:
                chunk = await self._chunks.__anext__()
            except StopAsyncIteration:
                self.exhausted = True
                break

            buffer.extend(chunk)
            if len(buffer) > self.threshold:
                break

        if not buffer:
            return None

        self.total_bytes += len(buffer)
        self.part_count += 1
        logger.debug(f"[PART BUFFER] Part {self.part_count}: {len(buffer)} bytes")
        return bytes(buffer)
