"""
File drop API endpoints.
Upload form, multipart upload and download by identifier. No authentication.
"""

import logging
from datetime import timedelta
from typing import List, Mapping

from fastapi import APIRouter, Request, status
from fastapi.responses import HTMLResponse, PlainTextResponse, StreamingResponse

from filedrop.core.dependencies import AppSettings, Retrieval, Uploader
from filedrop.core.errors import Expired, NotFound, ValidationError
from filedrop.models.upload import UploadOutput, UploadResult
from filedrop.utils.forms import FormReader
from filedrop.utils.templates import render_template

logger = logging.getLogger(__name__)

router = APIRouter(tags=["drop"])


def get_origin(headers: Mapping[str, str]) -> str:
    """Public origin of this service as seen by the client (proxy-aware)."""
    proto = headers.get("x-forwarded-proto") or "http"
    host = headers.get("x-forwarded-host") or headers.get("host") or "localhost"
    return f"{proto}://{host}"


def is_terminal_client(headers: Mapping[str, str]) -> bool:
    """Non-browser clients send a User-Agent without "mozilla"."""
    user_agent = headers.get("user-agent")
    return user_agent is not None and "mozilla" not in user_agent.lower()


def format_minutes(minutes: int) -> str:
    """Short human duration, e.g. 30m, 1h, 6h, 1day, 7days."""
    days, remainder = divmod(minutes, 24 * 60)
    hours, mins = divmod(remainder, 60)

    parts = []
    if days:
        parts.append(f"{days}day" if days == 1 else f"{days}days")
    if hours:
        parts.append(f"{hours}h")
    if mins or not parts:
        parts.append(f"{mins}m")
    return " ".join(parts)


@router.get("/", response_class=HTMLResponse)
async def index(request: Request, config: AppSettings):
    """Upload form listing the allowed expiration choices."""
    allowed_expiration_times = [
        (minutes, format_minutes(minutes)) for minutes in config.allowed_durations
    ]
    return render_template(
        "index.html",
        {
            "allowed_expiration_times": allowed_expiration_times,
            "origin": get_origin(request.headers),
        }
    )


@router.post("/", status_code=status.HTTP_201_CREATED)
async def upload(request: Request, uploader: Uploader, config: AppSettings):
    """
    Upload one or more files.

    Accepts multipart/form-data with any number of "file" fields and an optional
    "expiration" field (minutes). An expiration outside the allow-list falls back
    to the default. Fields are processed in order, so "expiration" only applies
    to files sent after it.

    Example:
        curl -F expiration=60 -F file=@photo.png http://server/

    Returns:
        One URL per line for terminal clients, an HTML fragment for browsers
    """
    duration: timedelta = config.default_duration
    origin = get_origin(request.headers)
    uploads: List[UploadResult] = []

    form = FormReader(request, max_size=config.max_upload_bytes)
    async for field in form.fields():
        if field.name == "expiration":
            raw = await field.text()
            try:
                duration = config.resolve_duration(raw)
            except ValidationError as e:
                logger.info(f"[UPLOAD] {e.detail}, using default of {config.default_duration}")
        elif field.name == "file":
            result = await uploader.upload_field(
                duration,
                field.chunks(),
                file_name=field.filename,
                content_type=field.content_type
            )
            uploads.append(result)

    logger.info(f"[UPLOAD] Request stored {len(uploads)} file(s), {form.received} bytes received")

    if is_terminal_client(request.headers):
        body = "".join(f"{origin}/{upload.id}\n" for upload in uploads)
        return PlainTextResponse(body, status_code=status.HTTP_201_CREATED)

    outputs = [UploadOutput(url=f"{origin}/{upload.id}", upload=upload) for upload in uploads]
    return HTMLResponse(
        render_template("upload.html", {"uploads": outputs}),
        status_code=status.HTTP_201_CREATED
    )


@router.get("/{object_id}")
async def download(object_id: str, retrieval: Retrieval):
    """
    Stream a stored file.

    Returns:
        File stream with derived headers; 404 if missing, 410 if expired
    """
    obj = await retrieval.fetch(object_id)
    if obj is None:
        raise NotFound()

    if retrieval.is_expired(obj):
        obj.close()
        logger.info(f"[DOWNLOAD] Expired: {object_id}")
        raise Expired()

    return StreamingResponse(
        obj.iter_bytes(),
        headers=dict(retrieval.headers(obj))
    )
