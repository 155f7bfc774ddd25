"""Helpers for saving captured and enhanced photos to disk.

Every saved file gets a unique name under ``<DATABASE_DIR>/images/`` and the
returned path is used as the image's display reference in sessions and
persisted drafts.
"""

from __future__ import annotations

import asyncio
import uuid
from pathlib import Path
from typing import Union

from services.inference.media_inputs import detect_media_type

_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
}


class ImageFileStore:
    """Write image bytes to a directory and hand back their path."""

    def __init__(self, image_dir: Union[Path, str]) -> None:
        self.image_dir = Path(image_dir)

    async def save(self, image_bytes: bytes, prefix: str = "img") -> str:
        """Save image bytes and return the absolute file path.

        Raises:
            ValueError: If image bytes are missing.
        """
        if not image_bytes:
            raise ValueError("Image bytes are required for saving.")
        ext = _EXTENSIONS.get(detect_media_type(image_bytes), "jpg")
        path = self.image_dir / f"{prefix}_{uuid.uuid4().hex}.{ext}"

        def _write() -> None:
            self.image_dir.mkdir(parents=True, exist_ok=True)
            path.write_bytes(image_bytes)

        # file IO is blocking -> run in thread
        await asyncio.to_thread(_write)
        return str(path)

    async def discard(self, path: Union[Path, str]) -> bool:
        """Delete a file previously returned by `save`. Paths outside the store are left alone."""
        target = Path(path)
        if target.parent.resolve() != self.image_dir.resolve():
            return False

        def _unlink() -> bool:
            try:
                target.unlink()
            except FileNotFoundError:
                return False
            return True

        return await asyncio.to_thread(_unlink)
