"""Studio-style enhancement for captured item photos.

Wraps Pillow to turn a raw photo into a brighter, punchier JPEG while also
returning a JPEG-normalised copy of the untouched original. The transform is
pure: it keeps no state between calls.

Public class: `ImageEnhancer`

Example:
    enhancer = ImageEnhancer()
    result = enhancer.transform(raw_bytes)
    result.enhanced_bytes, result.normalized_original
"""
from __future__ import annotations

import asyncio
import io

from PIL import Image, ImageEnhance, ImageFilter, ImageOps

from models.listing_models import EnhancedImage


class ImageEnhancer:
    """Apply a fixed enhancement chain to raw image bytes.

    Args:
        brightness: Brightness factor (1.0 keeps the original).
        saturation: Colour saturation factor.
        contrast: Contrast factor around mid-grey.
        normalized_quality: JPEG quality for the normalised original.
        quality: JPEG quality for the enhanced output.
    """

    def __init__(
        self,
        brightness: float = 1.12,
        saturation: float = 1.15,
        contrast: float = 1.18,
        normalized_quality: int = 95,
        quality: int = 90,
    ):
        self.brightness = brightness
        self.saturation = saturation
        self.contrast = contrast
        self.normalized_quality = normalized_quality
        self.quality = quality

    def transform(self, raw: bytes) -> EnhancedImage:
        """Enhance raw image bytes.

        Args:
            raw: Encoded image bytes in any format Pillow can open.

        Returns:
            `EnhancedImage` with the enhanced JPEG and the normalised original JPEG.

        Raises:
            ValueError: If the bytes are empty or not a supported image.
        """
        if not raw:
            raise ValueError("Image bytes are required for enhancement.")

        try:
            src = Image.open(io.BytesIO(raw))
            src = ImageOps.exif_transpose(src)
        except Exception as exc:
            raise ValueError("Decoded bytes are not a supported image format") from exc

        # Flatten alpha against white so JPEG output matches what the camera shows
        if src.mode in ("RGBA", "LA", "P"):
            src = src.convert("RGBA")
            background = Image.new("RGB", src.size, (255, 255, 255))
            background.paste(src, mask=src.split()[3])
            src = background
        else:
            src = src.convert("RGB")

        normalized = self._to_jpeg(src, self.normalized_quality)

        enhanced = ImageEnhance.Brightness(src).enhance(self.brightness)
        enhanced = ImageEnhance.Color(enhanced).enhance(self.saturation)
        enhanced = ImageEnhance.Contrast(enhanced).enhance(self.contrast)
        enhanced = enhanced.filter(ImageFilter.UnsharpMask(radius=1.2, percent=100, threshold=2))
        enhanced = ImageOps.autocontrast(enhanced, cutoff=0.5)

        return EnhancedImage(
            enhanced_bytes=self._to_jpeg(enhanced, self.quality),
            normalized_original=normalized,
        )

    async def enhance(self, raw: bytes) -> EnhancedImage:
        """Run `transform` off the event loop; Pillow work is blocking."""
        return await asyncio.to_thread(self.transform, raw)

    @staticmethod
    def _to_jpeg(image: Image.Image, quality: int) -> bytes:
        out_io = io.BytesIO()
        image.save(out_io, format="JPEG", quality=quality, optimize=True)
        return out_io.getvalue()
