"""Image helpers shared by the vision-capable LLM adapters."""

from __future__ import annotations

import base64


def detect_media_type(image_bytes: bytes) -> str:
    """Detect the MIME type of an image from its magic bytes.

    PNG starts with 89 50 4E 47 0D 0A 1A 0A, WEBP with RIFF....WEBP and
    JPEG with FF D8.  Anything else is sent as JPEG.
    """
    if image_bytes[:8] == b"\x89PNG\r\n\x1a\n":
        return "image/png"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    if image_bytes[:2] == b"\xff\xd8":
        return "image/jpeg"
    return "image/jpeg"


def encode_image(image_bytes: bytes) -> str:
    return base64.b64encode(image_bytes).decode("utf-8")
