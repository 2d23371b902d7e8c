from __future__ import annotations  # Re-export resume_intake public API

from .extract import (
    IMAGE_PLACEHOLDER,
    MAX_UPLOAD_BYTES,
    PDF_PLACEHOLDER,
    extract_resume_text,
    resolve_content_type,
    validate_upload,
)

__all__ = [
    "IMAGE_PLACEHOLDER",
    "MAX_UPLOAD_BYTES",
    "PDF_PLACEHOLDER",
    "extract_resume_text",
    "resolve_content_type",
    "validate_upload",
]
