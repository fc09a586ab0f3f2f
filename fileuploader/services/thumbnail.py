"""
Thumbnail Service - Single Responsibility: render small previews of images.

Thumbnails are returned as PNG ``data:`` URLs so UI layers can use them
directly without touching the filesystem.
"""
import asyncio
import base64
import io
import logging
from typing import Any, Tuple

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)


def fit_within(width: int, height: int, max_size: int) -> Tuple[int, int]:
    """Scale (width, height) so the longer side equals max_size, keeping aspect ratio."""
    if width <= 0 or height <= 0:
        return max_size, max_size
    aspect_ratio = width / height
    if aspect_ratio >= 1:
        return max_size, max(1, round(max_size / aspect_ratio))
    return max(1, round(max_size * aspect_ratio)), max_size


class ThumbnailService:
    """Service for generating image thumbnails with Pillow."""

    def render(self, data: bytes, max_size: int) -> str:
        """
        Render a thumbnail for raw image bytes.

        Args:
            data: Encoded image (PNG, JPEG, GIF, ...)
            max_size: Size in pixels of the thumbnail's longer side

        Returns:
            PNG data URL, or "" when the bytes are not a readable image
        """
        try:
            with Image.open(io.BytesIO(data)) as image:
                size = fit_within(image.width, image.height, max_size)
                thumb = image.convert("RGBA").resize(size, resample=Image.Resampling.BICUBIC)
        except (UnidentifiedImageError, OSError, ValueError) as e:
            logger.debug("Thumbnail rendering failed: %s", e)
            return ""

        buffer = io.BytesIO()
        thumb.save(buffer, format="PNG")
        encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
        return f"data:image/png;base64,{encoded}"

    async def render_source(self, source: Any, max_size: int) -> str:
        """Render a thumbnail for an IFileSource without blocking the event loop."""
        try:
            data = await asyncio.to_thread(source.read_bytes)
        except (OSError, AttributeError) as e:
            logger.debug("Could not read %s for thumbnail: %s", getattr(source, "name", source), e)
            return ""
        return await asyncio.to_thread(self.render, data, max_size)
