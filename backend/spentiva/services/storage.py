# spentiva/services/storage.py
"""Local file storage for uploads, served by the /uploads static mount."""
import base64
import binascii
import logging
import mimetypes
import os
import re
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from spentiva.core.config import settings
from spentiva.db import models
from spentiva.services.catalog import epoch_ms

logger = logging.getLogger(__name__)

_UNSAFE = re.compile(r"[^A-Za-z0-9_-]+")
_DATA_URL = re.compile(r"^data:(?P<mime>[\w.+/-]+)?;base64,", re.I)


def ensure_user_upload_dir(user_id: int) -> str:
    d = os.path.join(settings.upload_root, str(user_id))
    os.makedirs(d, exist_ok=True)
    return d


def sanitize_filename(filename: str) -> Tuple[str, str]:
    """Split into (safe stem, lowercased extension without dot)."""
    base = os.path.basename(filename or "")
    stem, ext = os.path.splitext(base)
    stem = _UNSAFE.sub("_", stem).strip("_")[:80] or "file"
    ext = _UNSAFE.sub("", ext.lstrip(".")).lower()[:10]
    return stem, ext


def decode_base64(data: str) -> Tuple[bytes, Optional[str]]:
    """Decode a raw base64 string or a data URL. Raises ValueError on bad input."""
    mime = None
    m = _DATA_URL.match(data or "")
    if m:
        mime = m.group("mime")
        data = data[m.end():]
    try:
        return base64.b64decode(data, validate=True), mime
    except (binascii.Error, ValueError) as exc:
        raise ValueError(str(exc))


def save_file(db: Session, user_id: int, filename: str, content: bytes, mime_type: Optional[str] = None) -> models.FileUpload:
    """Write ``content`` to disk and add a FileUpload row. Caller commits."""
    stem, ext = sanitize_filename(filename)
    saved_name = f"{epoch_ms()}-{stem}" + (f".{ext}" if ext else "")
    user_dir = ensure_user_upload_dir(user_id)
    dest_path = os.path.join(user_dir, saved_name)
    # two uploads of the same name in one millisecond
    n = 1
    while os.path.exists(dest_path):
        saved_name = f"{epoch_ms()}-{stem}-{n}" + (f".{ext}" if ext else "")
        dest_path = os.path.join(user_dir, saved_name)
        n += 1

    with open(dest_path, "wb") as f:
        f.write(content)

    rec = models.FileUpload(
        user_id=user_id,
        original_name=os.path.basename(filename or saved_name),
        saved_name=saved_name,
        file_path=os.path.relpath(dest_path, settings.upload_root),
        file_url=f"/uploads/{user_id}/{saved_name}",
        size=len(content),
        mime_type=mime_type or mimetypes.guess_type(saved_name)[0],
    )
    db.add(rec)
    logger.info("Stored upload %s (%s bytes) for user %s", saved_name, len(content), user_id)
    return rec


def absolute_path(rec: models.FileUpload) -> str:
    return os.path.join(settings.upload_root, rec.file_path)


def delete_file(rec: models.FileUpload) -> bool:
    """Remove the file from disk; failures are logged and reported as False."""
    path = absolute_path(rec)
    try:
        if os.path.exists(path):
            os.remove(path)
        return True
    except OSError:
        logger.exception("Failed to delete upload file %s", path)
        return False


def upload_to_dict(rec: models.FileUpload):
    return {
        "id": rec.id,
        "originalName": rec.original_name,
        "savedName": rec.saved_name,
        "filePath": rec.file_path,
        "fileUrl": rec.file_url,
        "size": rec.size,
        "mimeType": rec.mime_type,
        "uploadedAt": rec.uploaded_at.isoformat() if rec.uploaded_at else None,
    }
