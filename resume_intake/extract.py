"""Resume upload validation and text extraction.

Text and markdown files are decoded as UTF-8. PDF and image uploads are
accepted but only produce a placeholder notice; OCR is not performed.
"""
from __future__ import annotations

from pathlib import PurePath
from typing import Dict, Optional

from interview_session.errors import ValidationFailedError

MAX_UPLOAD_BYTES = 10 * 1024 * 1024

ALLOWED_TYPES: Dict[str, str] = {
    "application/pdf": "pdf",
    "text/markdown": "text",
    "text/x-markdown": "text",
    "text/plain": "text",
    "image/png": "image",
    "image/jpeg": "image",
    "image/jpg": "image",
}

EXTENSION_TYPES: Dict[str, str] = {
    ".pdf": "application/pdf",
    ".md": "text/markdown",
    ".markdown": "text/markdown",
    ".txt": "text/plain",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
}

PDF_PLACEHOLDER = "[PDF resume uploaded; text extraction is not available for this file]"
IMAGE_PLACEHOLDER = "[Image resume uploaded; OCR text extraction is not available for this file]"


def resolve_content_type(filename: Optional[str], content_type: Optional[str]) -> Optional[str]:
    """Return the effective MIME type, falling back to the file extension."""

    declared = (content_type or "").split(";")[0].strip().lower()
    if declared in ALLOWED_TYPES:
        return declared
    suffix = PurePath(filename or "").suffix.lower()
    return EXTENSION_TYPES.get(suffix)


def validate_upload(
    filename: Optional[str],
    content_type: Optional[str],
    size: int,
    *,
    max_bytes: int = MAX_UPLOAD_BYTES,
) -> str:  # Returns the accepted MIME type
    resolved = resolve_content_type(filename, content_type)
    if resolved is None:
        raise ValidationFailedError(
            f"Unsupported file type: {content_type or filename or 'unknown'}",
            code="UNSUPPORTED_FILE_TYPE",
        )
    if size > max_bytes:
        raise ValidationFailedError(
            f"File size cannot exceed {round(max_bytes / 1024 / 1024)}MB",
            code="FILE_TOO_LARGE",
        )
    return resolved


def extract_resume_text(
    filename: Optional[str],
    content_type: Optional[str],
    data: bytes,
    *,
    max_bytes: int = MAX_UPLOAD_BYTES,
) -> str:
    resolved = validate_upload(filename, content_type, len(data), max_bytes=max_bytes)
    kind = ALLOWED_TYPES[resolved]
    if kind == "pdf":
        return PDF_PLACEHOLDER
    if kind == "image":
        return IMAGE_PLACEHOLDER
    return data.decode("utf-8", errors="replace").strip()


__all__ = [
    "ALLOWED_TYPES",
    "IMAGE_PLACEHOLDER",
    "MAX_UPLOAD_BYTES",
    "PDF_PLACEHOLDER",
    "extract_resume_text",
    "resolve_content_type",
    "validate_upload",
]
