"""
Attachment upload and validation handler.
Turns uploads into AttachedFile payloads and manages transient previews.
"""
import os
import base64
import logging
import uuid
from typing import Iterable, Optional
from pathlib import Path

from baratie.models import AttachedFile

logger = logging.getLogger(__name__)

# Configuration
UPLOAD_DIR = os.getenv("UPLOAD_DIR", "storage/uploads")
MAX_FILE_SIZE = int(os.getenv("MAX_FILE_SIZE", 10 * 1024 * 1024))  # 10MB
ALLOWED_EXTENSIONS = {"jpg", "jpeg", "png", "gif", "webp", "pdf"}
ALLOWED_MIME_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp", "application/pdf"}

MIME_BY_EXTENSION = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "pdf": "application/pdf",
}


class AttachmentValidationError(Exception):
    """Raised when attachment validation fails."""
    pass


def sniff_mime_type(content: bytes) -> Optional[str]:
    """MIME type from magic bytes, or None if not a supported format."""
    if content.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if content.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if content[:6] in (b"GIF87a", b"GIF89a"):
        return "image/gif"
    if content[:4] == b"RIFF" and content[8:12] == b"WEBP":
        return "image/webp"
    if content.startswith(b"%PDF"):
        return "application/pdf"
    return None


def validate_attachment(content: bytes, filename: str, mime_type: Optional[str] = None) -> str:
    """
    Validate an uploaded attachment.

    Args:
        content: Raw file bytes
        filename: Original filename
        mime_type: Declared MIME type, if the client sent one

    Returns:
        The normalized MIME type

    Raises:
        AttachmentValidationError: If validation fails
    """
    if not content:
        raise AttachmentValidationError("File is empty")

    if len(content) > MAX_FILE_SIZE:
        raise AttachmentValidationError(
            f"File too large. Maximum size: {MAX_FILE_SIZE / 1024 / 1024:.0f}MB"
        )

    ext = Path(filename).suffix.lower().lstrip('.')
    declared = (mime_type or "").lower() or MIME_BY_EXTENSION.get(ext)
    if declared not in ALLOWED_MIME_TYPES:
        raise AttachmentValidationError(
            f"Invalid file type. Allowed: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
        )

    sniffed = sniff_mime_type(content)
    if sniffed is None:
        raise AttachmentValidationError("File does not appear to be a valid image or PDF")
    return sniffed


def build_attached_file(content: bytes, filename: str, mime_type: Optional[str] = None) -> AttachedFile:
    """
    Validate an upload and wrap it as an AttachedFile (base64 payload).

    Images also get a preview file in UPLOAD_DIR; PDFs do not.

    Raises:
        AttachmentValidationError: If validation fails
    """
    normalized = validate_attachment(content, filename, mime_type)
    preview = save_preview(content, filename) if normalized.startswith("image/") else None
    return AttachedFile(
        name=Path(filename).name or "attachment",
        mime_type=normalized,
        data=base64.b64encode(content).decode('utf-8'),
        preview=preview,
    )


def save_preview(content: bytes, filename: str) -> str:
    """
    Save an image preview to UPLOAD_DIR.

    Returns:
        Path to saved file
    """
    os.makedirs(UPLOAD_DIR, exist_ok=True)
    ext = Path(filename).suffix.lower()
    file_path = Path(UPLOAD_DIR) / f"{uuid.uuid4()}{ext}"
    with open(file_path, 'wb') as f:
        f.write(content)
    return str(file_path)


def delete_preview(file_path: str) -> bool:
    """
    Delete a preview file.

    Returns:
        True if deleted, False otherwise
    """
    try:
        path = Path(file_path)
        if path.exists() and path.is_file():
            path.unlink()
            return True
    except OSError as e:
        logger.warning(f"[FILES] Failed to delete {file_path}: {e}")

    return False


def release_files(files: Iterable[AttachedFile]) -> int:
    """Delete the previews of files. Returns the number deleted."""
    deleted = 0
    for file in files:
        if file.preview and delete_preview(file.preview):
            deleted += 1
    return deleted
