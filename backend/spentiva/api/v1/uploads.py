# spentiva/api/v1/uploads.py
import logging
from typing import List

from fastapi import APIRouter, Depends, File, Query, UploadFile
from sqlalchemy.orm import Session

from spentiva.api.v1.deps import get_current_user, get_db_dep
from spentiva.core.config import settings
from spentiva.core.responses import bad_request, not_found, success_response
from spentiva.db import models
from spentiva.schemas.upload import Base64Upload
from spentiva.services import storage

logger = logging.getLogger(__name__)
router = APIRouter(tags=["upload"])


def _check_count(n: int) -> None:
    if n == 0:
        raise bad_request("No files uploaded")
    if n > settings.MAX_UPLOAD_FILES:
        raise bad_request(f"You can upload a maximum of {settings.MAX_UPLOAD_FILES} files")


def _get_upload(db: Session, upload_id: int, user: models.User) -> models.FileUpload:
    rec = (
        db.query(models.FileUpload)
        .filter(models.FileUpload.id == upload_id, models.FileUpload.user_id == user.id)
        .first()
    )
    if not rec:
        raise not_found("File not found")
    return rec


@router.post("/upload")
def upload_files(
    files: List[UploadFile] = File(None),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_dep),
):
    files = files or []
    _check_count(len(files))

    # read and size-check everything first so one bad file stores nothing
    contents = []
    for f in files:
        try:
            data = f.file.read()
        finally:
            f.file.close()
        if len(data) > settings.MAX_UPLOAD_BYTES:
            raise bad_request(f"File too large: {f.filename}")
        contents.append((f.filename or "file", data, f.content_type))

    saved = [storage.save_file(db, current_user.id, name, data, mime) for name, data, mime in contents]
    db.commit()
    for rec in saved:
        db.refresh(rec)
    return success_response({"files": [storage.upload_to_dict(r) for r in saved]}, f"{len(saved)} file(s) uploaded successfully")


@router.post("/upload/base64")
def upload_base64(
    payload: Base64Upload,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_dep),
):
    _check_count(len(payload.files))
    decoded = []
    for item in payload.files:
        try:
            data, mime = storage.decode_base64(item.data)
        except ValueError:
            raise bad_request(f"Invalid base64 data for {item.fileName}")
        if len(data) > settings.MAX_UPLOAD_BYTES:
            raise bad_request(f"File too large: {item.fileName}")
        decoded.append((item.fileName, data, item.mimeType or mime))

    saved = [storage.save_file(db, current_user.id, name, data, mime) for name, data, mime in decoded]
    db.commit()
    for rec in saved:
        db.refresh(rec)
    return success_response({"files": [storage.upload_to_dict(r) for r in saved]}, f"{len(saved)} file(s) uploaded successfully")


@router.get("/uploads")
def list_uploads(
    limit: int = Query(50, ge=1, le=200),
    skip: int = Query(0, ge=0),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_dep),
):
    q = db.query(models.FileUpload).filter(models.FileUpload.user_id == current_user.id)
    total = q.count()
    rows = q.order_by(models.FileUpload.uploaded_at.desc(), models.FileUpload.id.desc()).offset(skip).limit(limit).all()
    return success_response({"files": [storage.upload_to_dict(r) for r in rows], "total": total, "limit": limit, "skip": skip})


@router.get("/uploads/{upload_id}")
def get_upload(upload_id: int, current_user: models.User = Depends(get_current_user), db: Session = Depends(get_db_dep)):
    return success_response({"file": storage.upload_to_dict(_get_upload(db, upload_id, current_user))})


@router.delete("/uploads/{upload_id}")
def delete_upload(upload_id: int, current_user: models.User = Depends(get_current_user), db: Session = Depends(get_db_dep)):
    rec = _get_upload(db, upload_id, current_user)
    storage.delete_file(rec)
    db.delete(rec)
    db.commit()
    return success_response({"id": upload_id}, "File deleted successfully")
