"""Prescription document storage on local disk under settings.UPLOAD_DIR."""
import logging
import os
import secrets
from pathlib import Path
from typing import BinaryIO, Iterable, List, Optional

from pharmacare.core.config import settings
from pharmacare.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

SUBDIR = "prescriptions"

_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "application/pdf": ".pdf",
}


def _root() -> Path:
    return Path(settings.UPLOAD_DIR)


def check_document(filename: Optional[str], content_type: Optional[str]) -> None:
    if not filename:
        raise ValidationError("Uploaded document has no file name")
    if content_type not in settings.ALLOWED_UPLOAD_TYPES:
        raise ValidationError(f"{filename}: only images and PDF files are accepted")


def save_document(stream: BinaryIO, filename: str, content_type: str) -> str:
    """Write one upload to disk and return its path relative to UPLOAD_DIR."""
    check_document(filename, content_type)
    data = stream.read(settings.MAX_UPLOAD_BYTES + 1)
    if not data:
        raise ValidationError(f"{filename} is empty")
    if len(data) > settings.MAX_UPLOAD_BYTES:
        raise ValidationError(f"{filename} is larger than {settings.MAX_UPLOAD_BYTES // (1024 * 1024)} MB")

    suffix = _EXTENSIONS.get(content_type) or Path(filename).suffix.lower()
    relative = f"{SUBDIR}/{secrets.token_hex(16)}{suffix}"
    target = _root() / relative
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(data)
    logger.debug(f"Stored {filename} as {relative} ({len(data)} bytes)")
    return relative


def delete_documents(paths: Iterable[str]) -> List[str]:
    """Remove stored files; returns the ones that could not be removed."""
    failed = []
    for relative in paths or []:
        target = (_root() / relative).resolve()
        if _root().resolve() not in target.parents:
            logger.warning(f"Refusing to delete {relative}: outside upload dir")
            failed.append(relative)
            continue
        try:
            os.remove(target)
        except FileNotFoundError:
            continue
        except OSError as e:
            logger.error(f"Could not delete document {relative}: {e}")
            failed.append(relative)
    return failed
