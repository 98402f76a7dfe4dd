"""Re-encoding of oversized images before upload.

Decoding and encoding are CPU bound, so they run in a worker thread and the
event loop keeps serving the other upload workers meanwhile.
"""

import asyncio
import io
from dataclasses import dataclass
from typing import Optional

from PIL import Image, ImageOps, UnidentifiedImageError

from tgpic.utils import tracing

logger = tracing.get_logger("compressor")


class CompressionError(Exception):
    """The blob could not be decoded as an image."""


@dataclass
class CompressedImage:
    data: bytes
    content_type: str
    quality: int
    width: int
    height: int

    @property
    def size(self) -> int:
        return len(self.data)


class CompressionAdapter:
    """Downscale and re-encode at decreasing quality until the result fits.

    Starting at ``quality_start`` the quality drops by ``quality_step`` per
    attempt and stops once the encoding is at most ``target_max_bytes`` or
    the next quality would fall below ``quality_floor``. The smallest
    encoding seen is returned even when it is still too large; rejecting it
    is up to the caller.
    """

    def __init__(
        self,
        max_dimension: int = 1600,
        quality_start: int = 70,
        quality_floor: int = 20,
        quality_step: int = 10,
    ):
        if quality_step <= 0:
            raise ValueError("quality_step must be positive")
        self.max_dimension = max_dimension
        self.quality_start = quality_start
        self.quality_floor = quality_floor
        self.quality_step = quality_step

    async def compress(self, blob: bytes, target_max_bytes: int) -> CompressedImage:
        return await asyncio.to_thread(self._compress_sync, blob, target_max_bytes)

    def _compress_sync(self, blob: bytes, target_max_bytes: int) -> CompressedImage:
        try:
            image = Image.open(io.BytesIO(blob))
            image.load()
        except (UnidentifiedImageError, OSError) as e:
            raise CompressionError(f"Cannot decode image: {e}") from e

        # WEBP stays WEBP; everything else (PNG, GIF, BMP, ...) goes to JPEG
        fmt = "WEBP" if image.format == "WEBP" else "JPEG"
        image = ImageOps.exif_transpose(image)
        if fmt == "JPEG" and image.mode != "RGB":
            image = image.convert("RGB")
        image.thumbnail((self.max_dimension, self.max_dimension), Image.LANCZOS)

        best: Optional[CompressedImage] = None
        quality = self.quality_start
        while quality >= self.quality_floor:
            buf = io.BytesIO()
            if fmt == "JPEG":
                image.save(buf, format=fmt, quality=quality, optimize=True)
            else:
                image.save(buf, format=fmt, quality=quality, method=6)
            encoded = CompressedImage(
                data=buf.getvalue(),
                content_type=f"image/{fmt.lower()}",
                quality=quality,
                width=image.width,
                height=image.height,
            )
            if best is None or encoded.size < best.size:
                best = encoded
            if encoded.size <= target_max_bytes:
                break
            quality -= self.quality_step

        if best is None:
            raise CompressionError("quality_start is below quality_floor")
        logger.debug(
            "Image compressed",
            extra={"original": len(blob), "compressed": best.size, "quality": best.quality},
        )
        return best
