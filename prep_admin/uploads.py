"""
Exercise source files: validation and upload to Cloudinary.

Only Word (.docx) and PDF files up to 10MB are accepted. Validation runs
before any upload is attempted and reports a user-facing message instead of
raising a server error.
"""

import os
import re
import unicodedata
from datetime import datetime, timezone

import cloudinary
import cloudinary.uploader
from flask import current_app

from prep_admin.errors import StorageError, ValidationError

DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
PDF_MIME = "application/pdf"
ALLOWED_MIME_TYPES = (DOCX_MIME, PDF_MIME)
MAX_UPLOAD_BYTES = 10 * 1024 * 1024

FILE_TYPE_MESSAGE = "Chỉ hỗ trợ file Word (.docx) và PDF"
FILE_SIZE_MESSAGE = "File không được vượt quá 10MB"
NO_FILE_MESSAGE = "Không tìm thấy file"


def validate_upload(filename, mimetype, size, max_bytes=MAX_UPLOAD_BYTES):
    if not filename:
        raise ValidationError(NO_FILE_MESSAGE, field="file")
    if mimetype not in ALLOWED_MIME_TYPES:
        raise ValidationError(FILE_TYPE_MESSAGE, field="file")
    if size is None or size > max_bytes:
        raise ValidationError(FILE_SIZE_MESSAGE, field="file")


def safe_object_name(filename, now=None):
    """Timestamped storage key with diacritics and unsafe characters removed."""
    base, ext = os.path.splitext(filename)
    base = unicodedata.normalize("NFD", base)
    base = "".join(ch for ch in base if not unicodedata.combining(ch))
    # Vietnamese đ/Đ has no decomposition
    base = base.replace("đ", "d").replace("Đ", "D")
    base = re.sub(r"[^a-zA-Z0-9\-_. ]", "", base).strip()
    base = re.sub(r"\s+", "-", base) or "file"
    stamp = (now or datetime.now(timezone.utc)).strftime("%Y-%m-%dT%H-%M-%S-%fZ")
    return f"{stamp}-{base}{ext.lower()}"


def _configure_cloudinary():
    cfg = current_app.config
    cloud_name = cfg.get("CLOUDINARY_CLOUD_NAME")
    api_key = cfg.get("CLOUDINARY_API_KEY")
    api_secret = cfg.get("CLOUDINARY_API_SECRET")
    if all([cloud_name, api_key, api_secret]):
        cloudinary.config(cloud_name=cloud_name, api_key=api_key, api_secret=api_secret, secure=True)
        return
    if cfg.get("CLOUDINARY_URL") or os.environ.get("CLOUDINARY_URL"):
        # The SDK reads CLOUDINARY_URL from the environment, query options included
        settings = cloudinary.config()
        if settings.cloud_name and settings.api_key and settings.api_secret:
            return
        current_app.logger.error("CLOUDINARY_URL did not yield a usable Cloudinary configuration.")
    current_app.logger.error("Cloudinary is not configured (CLOUDINARY_URL or CLOUDINARY_* missing).")
    raise StorageError("Thiếu cấu hình lưu trữ file. Vui lòng liên hệ quản trị viên.")


def store_file(file_storage):
    """Validate and upload a Werkzeug ``FileStorage``; returns the upload descriptor."""
    stream = file_storage.stream
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(0)
    validate_upload(
        file_storage.filename,
        file_storage.mimetype,
        size,
        current_app.config.get("UPLOAD_MAX_BYTES", MAX_UPLOAD_BYTES),
    )

    _configure_cloudinary()
    folder = current_app.config.get("STORAGE_FOLDER", "exercise-files")
    object_name = safe_object_name(file_storage.filename)
    try:
        result = cloudinary.uploader.upload(
            stream,
            public_id=object_name,
            folder=folder,
            resource_type="raw",
            overwrite=False,
        )
    except Exception as e:
        current_app.logger.error(f"Cloudinary upload failed for {file_storage.filename}: {e}", exc_info=True)
        raise StorageError(detail=str(e)) from e

    public_url = (result or {}).get("secure_url")
    if not public_url:
        current_app.logger.error(f"Cloudinary upload returned no URL: {result}")
        raise StorageError(detail=str(result))

    current_app.logger.info(f"File uploaded to Cloudinary: {public_url}")
    return {
        "fileName": file_storage.filename,
        "fileSize": size,
        "filePath": result.get("public_id", f"{folder}/{object_name}"),
        "publicUrl": public_url,
        "uploadedAt": datetime.now(timezone.utc).isoformat(),
    }
