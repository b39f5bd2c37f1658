"""
File upload utility functions
"""
import logging
import uuid
from pathlib import Path
from typing import Iterable, List, Optional

import aiofiles
from fastapi import UploadFile

from xclone.config import settings
from xclone.utils.errors import APIError

logger = logging.getLogger(__name__)

IMAGE = "image"
GIF = "gif"
VIDEO = "video"
DOCUMENT = "document"

IMAGE_TYPES = {"image/jpeg", "image/png", "image/webp"}
GIF_TYPES = {"image/gif"}
VIDEO_TYPES = {"video/mp4", "video/quicktime", "video/webm"}
DOCUMENT_TYPES = {
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "text/plain",
}

TWEET_MEDIA = (IMAGE, GIF, VIDEO)
MESSAGE_MEDIA = (IMAGE, GIF, VIDEO, DOCUMENT)
PROFILE_MEDIA = (IMAGE,)


def media_kind(content_type: Optional[str]) -> Optional[str]:
    """Classify a MIME type into one of the supported media kinds"""
    if content_type in GIF_TYPES:
        return GIF
    if content_type in IMAGE_TYPES:
        return IMAGE
    if content_type in VIDEO_TYPES:
        return VIDEO
    if content_type in DOCUMENT_TYPES:
        return DOCUMENT
    return None


def max_size_for(kind: str) -> int:
    return {
        IMAGE: settings.MAX_IMAGE_SIZE,
        GIF: settings.MAX_GIF_SIZE,
        VIDEO: settings.MAX_VIDEO_SIZE,
        DOCUMENT: settings.MAX_DOCUMENT_SIZE,
    }[kind]


async def read_validated(upload_file: UploadFile, allowed_kinds: Iterable[str]) -> bytes:
    """
    Read an upload and check its type and size.

    Raises:
        APIError(400) for an unsupported type or an oversized file
    """
    kind = media_kind(upload_file.content_type)
    if kind is None or kind not in allowed_kinds:
        raise APIError(400, f"Unsupported file type: {upload_file.content_type}")

    content = await upload_file.read()
    limit = max_size_for(kind)
    if len(content) > limit:
        raise APIError(400, f"{upload_file.filename} exceeds the {limit // (1024 * 1024)}MB {kind} limit")
    return content


async def save_upload_file(upload_file: UploadFile, content: bytes, subdirectory: str = "") -> str:
    """
    Save uploaded file to disk

    Returns:
        URL path to the saved file
    """
    try:
        # Generate unique filename
        file_extension = Path(upload_file.filename).suffix if upload_file.filename else ""
        unique_filename = f"{uuid.uuid4()}{file_extension}"

        # Create directory if it doesn't exist
        upload_dir = Path(settings.UPLOAD_DIR) / subdirectory
        upload_dir.mkdir(parents=True, exist_ok=True)

        file_path = upload_dir / unique_filename

        async with aiofiles.open(file_path, 'wb') as out_file:
            await out_file.write(content)

        # Return relative path for URL
        return f"/uploads/{subdirectory}/{unique_filename}" if subdirectory else f"/uploads/{unique_filename}"

    except Exception as e:
        logger.error(f"Error saving uploaded file: {e}")
        raise


async def save_media(
    files: Optional[List[UploadFile]],
    allowed_kinds: Iterable[str],
    max_files: int,
    subdirectory: str,
) -> List[str]:
    """Validate a batch of uploads first, then store them and return their URLs"""
    files = [f for f in (files or []) if f is not None and f.filename]
    if len(files) > max_files:
        raise APIError(400, f"You can upload at most {max_files} files")

    contents = [await read_validated(f, allowed_kinds) for f in files]
    return [
        await save_upload_file(f, content, subdirectory)
        for f, content in zip(files, contents)
    ]


def delete_file(file_path: str) -> bool:
    """Delete a stored upload given its URL path"""
    relative = file_path.removeprefix("/uploads/")
    full_path = Path(settings.UPLOAD_DIR) / relative
    try:
        if full_path.exists():
            full_path.unlink()
            return True
        return False
    except OSError as e:
        logger.error(f"Error deleting file {file_path}: {e}")
        return False
