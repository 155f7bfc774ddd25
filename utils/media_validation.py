"""Validation helpers for uploaded image content."""

import base64
import binascii
from typing import Optional

from fastapi import HTTPException, UploadFile

ALLOWED_IMAGE_TYPES = {
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/webp",
    "image/gif",
    "image/heic",
    "application/octet-stream",
}


def decode_base64_image(data: str) -> bytes:
    """Decode a base64 image payload, accepting an optional data-URL prefix."""
    text = (data or "").strip()
    if text.startswith("data:") and "," in text:
        text = text.split(",", 1)[1]
    if not text:
        raise HTTPException(status_code=400, detail="Image is required")
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise HTTPException(status_code=400, detail="Image must be base64-encoded.") from exc


def validate_image_file(image_file: UploadFile) -> None:
    """Reject uploads whose declared content type is not an image."""
    if image_file.content_type:
        content_type = image_file.content_type.lower().split(";", 1)[0].strip()
        if content_type not in ALLOWED_IMAGE_TYPES:
            raise HTTPException(status_code=415, detail=f"Unsupported image content type: {image_file.content_type}")


async def read_image_bytes(image_file: UploadFile) -> Optional[bytes]:
    """Read an uploaded photo. Empty uploads return None rather than failing.

    A capture that produced no bytes still becomes a session image; it simply
    cannot be enhanced or analyzed.
    """
    validate_image_file(image_file)
    image_bytes = await image_file.read()
    return image_bytes or None
