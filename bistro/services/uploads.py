"""
Image uploads for menu items and the restaurant logo.

Files land in ``upload_directory`` under a unique name and are served by
the ``/uploads`` static mount.
"""

import logging
import secrets
import time
from pathlib import Path
from typing import Union

from fastapi import UploadFile
from starlette.concurrency import run_in_threadpool

from bistro.core.errors import ValidationError

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = frozenset({".png", ".jpg", ".jpeg", ".gif", ".webp", ".svg"})
MAX_UPLOAD_BYTES = 5 * 1024 * 1024
PUBLIC_PREFIX = "/uploads"


async def save_upload(upload: UploadFile, directory: Union[str, Path], field: str) -> str:
    """
    Store an uploaded image and return its public URL.

    Raises:
        ValidationError: Unsupported extension, empty or oversized file
    """
    extension = Path(upload.filename or "").suffix.lower()
    if extension not in ALLOWED_EXTENSIONS:
        raise ValidationError(
            "Unsupported file type",
            details={field: f"Allowed: {', '.join(sorted(ALLOWED_EXTENSIONS))}"},
        )

    content = await upload.read()
    if not content:
        raise ValidationError("Empty file", details={field: "File is empty"})
    if len(content) > MAX_UPLOAD_BYTES:
        raise ValidationError("File too large", details={field: "Maximum size is 5 MB"})

    directory = Path(directory)
    filename = f"{field}-{int(time.time() * 1000)}-{secrets.token_hex(4)}{extension}"
    target = directory / filename

    def write() -> None:
        directory.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)

    await run_in_threadpool(write)
    logger.info(f"Saved upload {filename} ({len(content)} bytes)")
    return f"{PUBLIC_PREFIX}/{filename}"
