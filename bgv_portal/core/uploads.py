from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

from bgv_portal.core.errors import FileTooLarge, UnsupportedType

MAX_FILENAME_LENGTH = 150
OCTET_STREAM_MIME_TYPES = {"application/octet-stream", "binary/octet-stream"}

DOC_EXTENSIONS = {
    ".jpeg",
    ".jpg",
    ".pdf",
    ".png",
}
DOC_MIME_TYPES = {
    "application/pdf",
    "application/x-pdf",
    "image/jpg",
    "image/jpeg",
    "image/pjpeg",
    "image/png",
}

_SAFE_NAME_RE = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass(frozen=True)
class IncomingFile:
    filename: str | None
    content_type: str | None
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


def sanitize_filename(raw: str | None, *, default: str = "file") -> str:
    name = (raw or "").strip() or default
    name = name.replace("/", "_").replace("\\", "_")
    name = _SAFE_NAME_RE.sub("_", name).strip("._") or default

    if len(name) > MAX_FILENAME_LENGTH:
        base, ext = _split_name_ext(name)
        keep = max(1, MAX_FILENAME_LENGTH - len(ext))
        name = f"{base[:keep]}{ext}"
    return name


def normalize_content_type(raw: str | None) -> str:
    content_type = (raw or "").strip().lower()
    if ";" in content_type:
        content_type = content_type.split(";", 1)[0].strip()
    return content_type


def validate_file(
    upload: IncomingFile,
    *,
    max_bytes: int,
    allowed_extensions: set[str] = DOC_EXTENSIONS,
    allowed_mime_types: set[str] = DOC_MIME_TYPES,
) -> str:
    """Check type and size; returns the sanitized filename."""
    filename = sanitize_filename(upload.filename)
    ext = Path(filename).suffix.lower()
    if not ext or ext not in allowed_extensions:
        raise UnsupportedType("Unsupported file type. Upload a PDF, JPG or PNG file.")

    content_type = normalize_content_type(upload.content_type)
    if content_type and content_type not in allowed_mime_types and content_type not in OCTET_STREAM_MIME_TYPES:
        raise UnsupportedType("Unsupported file content type.", content_type)

    if upload.size == 0:
        raise UnsupportedType("Uploaded file is empty.")
    if upload.size > max_bytes:
        raise FileTooLarge(max_bytes, upload.size)
    return filename


def _split_name_ext(name: str) -> tuple[str, str]:
    ext = Path(name).suffix
    if ext:
        return name[: -len(ext)], ext
    return name, ""
