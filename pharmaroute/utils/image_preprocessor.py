"""Image preprocessing for pharmaceutical packaging OCR retries.

Packaging photos fail OCR for a handful of recurring reasons: the photo is
huge (slow, token-hungry) or tiny (characters too small), glossy foil and
curved bottles flatten contrast, and embossed batch codes are soft-edged.
A single recipe cannot fix all of these at once, so the preprocessing
retry stage applies several :class:`PreprocessingConfig` variations in
turn.  Each variation runs the same pipeline:

    1. smart resize       : fit within max width/height, upscale tiny images
    2. contrast (optional): grayscale histogram equalization with a 1.1 boost
    3. sharpen (optional) : thresholded 3x3 unsharp mask on luminance
    4. re-encode          : JPEG at the configured quality

All methods are synchronous and CPU-bound; callers on the event loop run
them via ``asyncio.to_thread``.
"""

import io
import time

import cv2
import numpy as np
from PIL import Image

from pharmaroute.models.preprocessing import PreprocessedImage, PreprocessingConfig
from pharmaroute.utils.errors import PreprocessingError

# Shortest side below which text becomes unreliable for OCR engines.
_MIN_OCR_SIDE = 600
_MAX_UPSCALE = 2.0

_CONTRAST_BOOST = 1.1
_SHARPEN_AMOUNT = 0.8
_SHARPEN_THRESHOLD = 10.0

# Averages the 8 neighbours of each pixel.
_NEIGHBOUR_KERNEL = np.array(
    [[1, 1, 1], [1, 0, 1], [1, 1, 1]],
    dtype=np.float32,
) / 8.0


class ImagePreprocessor:
    """Produces re-encoded image variants for preprocessing retries."""

    def apply_variation(self, image_bytes: bytes, config: PreprocessingConfig) -> PreprocessedImage:
        """Run the full pipeline for one variation.

        Args:
            image_bytes: Raw image file bytes (JPEG, PNG, WEBP, ...).
            config: The variation to apply.

        Returns:
            The re-encoded JPEG with size, dimension and enhancement metadata.

        Raises:
            PreprocessingError: If the bytes cannot be decoded or encoded.
        """
        start = time.perf_counter()
        try:
            original = Image.open(io.BytesIO(image_bytes)).convert("RGB")
        except Exception as exc:
            raise PreprocessingError(f"Could not decode image: {exc}") from exc

        enhancements: list[str] = []
        image = self.smart_resize(original, config.max_width, config.max_height)
        if image.size != original.size:
            enhancements.append("resized")

        if config.enhance_contrast:
            image = self.enhance_contrast(image)
            enhancements.append("contrast-enhanced")

        if config.sharpen:
            image = self.sharpen_text(image)
            enhancements.append("text-sharpened")

        data = self.encode_jpeg(image, config.quality)
        enhancements.append("quality-optimized")

        return PreprocessedImage(
            data=data,
            original_size=len(image_bytes),
            processed_size=len(data),
            original_dimensions=original.size,
            processed_dimensions=image.size,
            enhancements=enhancements,
            processing_time_ms=(time.perf_counter() - start) * 1000,
        )

    def smart_resize(
        self,
        image: Image.Image,
        max_width: int,
        max_height: int,
        min_side: int = _MIN_OCR_SIDE,
    ) -> Image.Image:
        """Fit *image* inside ``max_width`` x ``max_height``, then upscale if tiny.

        Upscaling is capped at 2x so a thumbnail does not turn into mush.
        Aspect ratio is always preserved.
        """
        width, height = image.size
        target_w, target_h = width, height

        if width > max_width or height > max_height:
            scale = min(max_width / width, max_height / height)
            target_w = max(1, int(width * scale))
            target_h = max(1, int(height * scale))

        shortest = min(target_w, target_h)
        if shortest < min_side:
            scale = min(min_side / shortest, _MAX_UPSCALE)
            target_w = int(target_w * scale)
            target_h = int(target_h * scale)

        if (target_w, target_h) == (width, height):
            return image
        return image.resize((target_w, target_h), Image.LANCZOS)

    def enhance_contrast(self, image: Image.Image) -> Image.Image:
        """Equalize the luminance histogram and brighten slightly.

        The result is grayscale (replicated into RGB) -- colour carries no
        information for batch and expiry text.
        """
        gray = cv2.cvtColor(np.array(image.convert("RGB")), cv2.COLOR_RGB2GRAY)
        equalized = cv2.equalizeHist(gray).astype(np.float32) * _CONTRAST_BOOST
        boosted = np.clip(equalized, 0, 255).astype(np.uint8)
        return Image.fromarray(cv2.cvtColor(boosted, cv2.COLOR_GRAY2RGB))

    def sharpen_text(self, image: Image.Image) -> Image.Image:
        """Thresholded unsharp mask on luminance.

        Pixels whose luminance differs from their neighbourhood average by
        more than the threshold are pushed further away from it; flat areas
        are left untouched so sensor noise is not amplified.
        """
        rgb = np.array(image.convert("RGB")).astype(np.float32)
        luminance = cv2.cvtColor(rgb, cv2.COLOR_RGB2GRAY)
        neighbours = cv2.filter2D(luminance, -1, _NEIGHBOUR_KERNEL, borderType=cv2.BORDER_REPLICATE)
        diff = luminance - neighbours

        mask = np.abs(diff) > _SHARPEN_THRESHOLD
        delta = np.where(mask, diff * _SHARPEN_AMOUNT, 0.0)
        sharpened = np.clip(rgb + delta[..., np.newaxis], 0, 255).astype(np.uint8)
        return Image.fromarray(sharpened)

    def encode_jpeg(self, image: Image.Image, quality: float) -> bytes:
        """Encode *image* as JPEG; ``quality`` is on a 0-1 scale."""
        jpeg_quality = max(1, min(100, round(quality * 100)))
        buffer = io.BytesIO()
        try:
            image.convert("RGB").save(buffer, format="JPEG", quality=jpeg_quality)
        except Exception as exc:
            raise PreprocessingError(f"Could not encode image: {exc}") from exc
        return buffer.getvalue()
