"""
Streaming multipart/form-data reader.
Yields form fields one at a time while the request body is still arriving,
so file contents never have to be spooled to memory or disk.
"""

import logging
from collections import deque
from typing import AsyncIterator, Deque, List, Optional, Tuple

from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser, parse_options_header
from starlette.requests import Request

from filedrop.core.errors import UploadTooLarge, ValidationError

logger = logging.getLogger(__name__)

# Parser event kinds
_BEGIN = "begin"
_DATA = "data"
_END = "end"


class FormField:
    """A single form part; its body is read through ``chunks()`` or ``text()``."""

    def __init__(self, reader: "FormReader", headers: List[Tuple[bytes, bytes]]):
        self._reader = reader
        self.finished = False
        self.name: Optional[str] = None
        self.filename: Optional[str] = None
        self.content_type: Optional[str] = None

        for header_name, value in headers:
            header_name = header_name.lower()
            if header_name == b"content-disposition":
                _, options = parse_options_header(value)
                if b"name" in options:
                    self.name = options[b"name"].decode("utf-8", errors="replace")
                if b"filename" in options:
                    self.filename = options[b"filename"].decode("utf-8", errors="replace")
            elif header_name == b"content-type":
                self.content_type = value.decode("latin-1").strip() or None

    async def chunks(self) -> AsyncIterator[bytes]:
        """Yield this field's body as it arrives."""
        while not self.finished:
            event = await self._reader.next_event()
            if event is None or event[0] == _END:
                self.finished = True
            elif event[0] == _DATA:
                yield event[1]

    async def text(self, encoding: str = "utf-8") -> str:
        data = bytearray()
        async for chunk in self.chunks():
            data.extend(chunk)
        return data.decode(encoding, errors="replace")

    async def drain(self) -> None:
        """Skip whatever is left of the body."""
        async for _ in self.chunks():
            pass


class FormReader:
    """
    Pull-based wrapper around python-multipart's push parser.

    Body chunks are fed to the parser only when a consumer asks for more data,
    which keeps memory bounded by a single request chunk.
    """

    def __init__(self, request: Request, max_size: Optional[int] = None):
        """
        Args:
            request: Incoming request with a multipart/form-data body
            max_size: Maximum accepted body size in bytes

        Raises:
            ValidationError: If the request is not multipart/form-data
        """
        content_type, params = parse_options_header(request.headers.get("content-type", ""))
        if content_type != b"multipart/form-data":
            raise ValidationError("Expected a multipart/form-data request")

        boundary = params.get(b"boundary")
        if not boundary:
            raise ValidationError("Missing multipart boundary")

        self.max_size = max_size
        self.received = 0
        self._stream = request.stream().__aiter__()
        self._events: Deque[tuple] = deque()
        self._done = False
        self._complete = False

        self._headers: List[Tuple[bytes, bytes]] = []
        self._header_field = bytearray()
        self._header_value = bytearray()

        self._parser = MultipartParser(
            boundary,
            callbacks={
                "on_part_begin": self._on_part_begin,
                "on_part_data": self._on_part_data,
                "on_part_end": self._on_part_end,
                "on_header_field": self._on_header_field,
                "on_header_value": self._on_header_value,
                "on_header_end": self._on_header_end,
                "on_headers_finished": self._on_headers_finished,
                "on_end": self._on_end,
            },
        )

    # Parser callbacks

    def _on_part_begin(self) -> None:
        self._headers = []

    def _on_part_data(self, data: bytes, start: int, end: int) -> None:
        if end > start:
            self._events.append((_DATA, data[start:end]))

    def _on_part_end(self) -> None:
        self._events.append((_END,))

    def _on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_field.extend(data[start:end])

    def _on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value.extend(data[start:end])

    def _on_header_end(self) -> None:
        self._headers.append((bytes(self._header_field), bytes(self._header_value)))
        self._header_field.clear()
        self._header_value.clear()

    def _on_headers_finished(self) -> None:
        self._events.append((_BEGIN, self._headers))

    def _on_end(self) -> None:
        self._complete = True

    async def _feed(self) -> None:
        """Read one body chunk and push it through the parser."""
        try:
            chunk = await self._stream.__anext__()
        except StopAsyncIteration:
            self._done = True
            self._parser.finalize()
            if not self._complete:
                logger.warning(f"[UPLOAD] Body ended without closing boundary after {self.received} bytes")
                raise ValidationError("Incomplete multipart body")
            return

        self.received += len(chunk)
        if self.max_size is not None and self.received > self.max_size:
            raise UploadTooLarge(f"Upload exceeds {self.max_size} bytes")

        try:
            self._parser.write(chunk)
        except MultipartParseError as e:
            logger.warning(f"[UPLOAD] Malformed multipart body after {self.received} bytes: {e}")
            raise ValidationError(f"Malformed multipart body: {e}") from e

    async def next_event(self) -> Optional[tuple]:
        """Next parser event, or None once the body is fully consumed."""
        while not self._events:
            if self._done:
                return None
            await self._feed()
        return self._events.popleft()

    async def fields(self) -> AsyncIterator[FormField]:
        """
        Yield form fields in order.

        A field's body must be consumed before the next one is produced; any
        unread remainder is skipped automatically.
        """
        while True:
            event = await self.next_event()
            if event is None:
                return
            if event[0] != _BEGIN:
                continue

            field = FormField(self, event[1])
            yield field
            await field.drain()
