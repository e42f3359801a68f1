"""
Upload Storage

Validates and stores image uploads on local disk under UPLOAD_DIR.

The declared Content-Type and the filename are client-controlled, so the
stored type and extension come from the file's leading bytes. Both the
declared and the sniffed type must be on the allow-list.
"""
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Optional
from uuid import uuid4

from fastapi.staticfiles import StaticFiles

from sigstudio.config import get_settings
from sigstudio.core.exceptions import InvalidInputError

logger = logging.getLogger(__name__)
settings = get_settings()

UPLOAD_URL_PREFIX = "/uploads"

EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/svg+xml": ".svg",
}

# Anything in an SVG that can run script: script elements, on* handlers,
# javascript: URIs (entity-encoded too), embedded HTML and external entities
_ACTIVE_SVG_CONTENT = re.compile(
    rb"<\s*script|<\s*foreignobject|<!entity|[\s\"'/]on[a-z]+\s*=|javascript\s*:|&#",
    re.IGNORECASE,
)

# Added to every file served from /uploads
UPLOAD_RESPONSE_HEADERS = {
    "Content-Security-Policy": "default-src 'none'; style-src 'unsafe-inline'; sandbox",
    "X-Content-Type-Options": "nosniff",
}


@dataclass
class StoredFile:
    filename: str
    mime_type: str
    size: int
    url: str


def sniff_mime_type(data: bytes) -> Optional[str]:
    """Identify an image format from its magic bytes. None if unknown."""
    if data.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if data[:6] in (b"GIF87a", b"GIF89a"):
        return "image/gif"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"

    head = data[:1024].lstrip(b"\xef\xbb\xbf \t\r\n").lower()
    if (head.startswith(b"<?xml") or head.startswith(b"<svg")) and b"<svg" in head:
        return "image/svg+xml"
    return None


def read_limited(stream: BinaryIO, max_bytes: int) -> bytes:
    """
    Read at most ``max_bytes`` from ``stream``.

    Reads one extra byte to detect oversize input without buffering the
    whole upload.
    """
    data = stream.read(max_bytes + 1)
    if len(data) > max_bytes:
        raise InvalidInputError(
            f"File exceeds maximum size of {max_bytes} bytes",
            code="FILE_TOO_LARGE",
        )
    return data


def validate_upload(data: bytes, declared_type: Optional[str]) -> str:
    """Return the sniffed MIME type, or raise UNSUPPORTED_FILE_TYPE."""
    allowed = {mime.lower() for mime in settings.ALLOWED_UPLOAD_MIME_TYPES}
    declared = (declared_type or "").split(";")[0].strip().lower()
    sniffed = sniff_mime_type(data)

    if declared not in allowed or sniffed is None or sniffed not in allowed:
        logger.info(f"Rejected upload: declared={declared or '-'} sniffed={sniffed or '-'}")
        raise InvalidInputError(
            "Unsupported file type. Allowed types: " + ", ".join(sorted(allowed)),
            code="UNSUPPORTED_FILE_TYPE",
        )

    if sniffed == "image/svg+xml" and _ACTIVE_SVG_CONTENT.search(data):
        raise InvalidInputError(
            "SVG files must not contain scripts, event handlers or embedded documents",
            code="UNSUPPORTED_FILE_TYPE",
        )

    return sniffed


def upload_dir() -> Path:
    path = Path(settings.UPLOAD_DIR)
    path.mkdir(parents=True, exist_ok=True)
    return path


def save_upload(stream: BinaryIO, declared_type: Optional[str]) -> StoredFile:
    """Validate an upload and write it as ``<uuid hex><ext>``."""
    data = read_limited(stream, settings.MAX_UPLOAD_SIZE_BYTES)
    if not data:
        raise InvalidInputError("Uploaded file is empty")

    mime_type = validate_upload(data, declared_type)
    filename = f"{uuid4().hex}{EXTENSIONS[mime_type]}"

    path = upload_dir() / filename
    with path.open("wb") as buffer:
        buffer.write(data)

    return StoredFile(
        filename=filename,
        mime_type=mime_type,
        size=len(data),
        url=f"{UPLOAD_URL_PREFIX}/{filename}",
    )


def remove_upload(filename: str) -> None:
    """Delete a stored file. A file already gone is not an error."""
    path = Path(settings.UPLOAD_DIR) / Path(filename).name
    try:
        path.unlink()
    except FileNotFoundError:
        logger.warning(f"Upload already missing on disk: {filename}")


class UploadFiles(StaticFiles):
    """StaticFiles for UPLOAD_DIR, adding UPLOAD_RESPONSE_HEADERS to every file."""

    def file_response(self, *args, **kwargs):
        response = super().file_response(*args, **kwargs)
        response.headers.update(UPLOAD_RESPONSE_HEADERS)
        return response
