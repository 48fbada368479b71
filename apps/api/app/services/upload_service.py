"""Local storage for files attached to file-type form fields."""

import logging
import os
import re
import uuid
from typing import BinaryIO

from fastapi import UploadFile

from app.core.config import settings
from app.services.errors import UploadRejectedError

logger = logging.getLogger(__name__)

_STORED_NAME_RE = re.compile(r"^file-[0-9a-f]{32}\.[a-z0-9]+$")


def _get_upload_dir() -> str:
    path = settings.UPLOAD_DIR
    os.makedirs(path, exist_ok=True)
    return path


def _measure(file: BinaryIO) -> int:
    file.seek(0, 2)
    size = file.tell()
    file.seek(0)
    return size


def validate_upload(filename: str, content_type: str | None, file_size: int) -> str:
    """Return the lowercase extension, or raise UploadRejectedError.

    Both the extension and the declared content type must be allowed.
    """
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    if ext not in settings.allowed_upload_extensions_list:
        raise UploadRejectedError("Invalid file type")
    mime = (content_type or "").split(";", 1)[0].strip().lower()
    if mime not in settings.allowed_upload_mime_types_list:
        raise UploadRejectedError("Invalid file type")
    if file_size > settings.MAX_UPLOAD_SIZE_BYTES:
        max_mb = settings.MAX_UPLOAD_SIZE_BYTES / (1024 * 1024)
        raise UploadRejectedError(f"File size exceeds {max_mb:.0f} MB limit")
    return ext


def store_upload(file: UploadFile) -> dict[str, object]:
    """Validate and store one upload; return the descriptor used as a field answer."""
    if not file.filename:
        raise UploadRejectedError("No file uploaded")

    file_size = _measure(file.file)
    ext = validate_upload(file.filename, file.content_type, file_size)

    stored_name = f"file-{uuid.uuid4().hex}.{ext}"
    path = os.path.join(_get_upload_dir(), stored_name)
    with open(path, "wb") as out:
        file.file.seek(0)
        for chunk in iter(lambda: file.file.read(8192), b""):
            out.write(chunk)

    logger.info("upload_stored", extra={"stored_name": stored_name, "size": file_size})
    return {
        "filename": stored_name,
        "original_name": file.filename,
        "size": file_size,
        "content_type": file.content_type or "application/octet-stream",
        "path": f"/uploads/{stored_name}",
    }


def get_upload_path(stored_name: str) -> str | None:
    """Resolve a stored name to a path; None for unknown or malformed names."""
    if not _STORED_NAME_RE.match(stored_name):
        return None
    path = os.path.join(settings.UPLOAD_DIR, stored_name)
    if not os.path.exists(path):
        return None
    return path
