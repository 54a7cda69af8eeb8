"""
schoolsecrets/services/images.py — Image normalization and secret attachments
Uploaded images are bounded to a maximum size and re-encoded before they reach
object storage; the metadata row is written only after a successful upload.
"""
from __future__ import annotations

import io
import time
from datetime import datetime, timezone
from typing import Optional

from loguru import logger
from PIL import Image
from pillow_heif import register_heif_opener
from pydantic import BaseModel

from schoolsecrets.clients.supabase_client import BackendClient
from schoolsecrets.config import get_settings
from schoolsecrets.models import SecretImage

settings = get_settings()

# HEIF/HEIC decoding for Pillow
register_heif_opener()

SVG_MIME_TYPE = "image/svg+xml"

ALLOWED_MIME_TYPES = frozenset({
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/bmp",
    "image/webp",
    SVG_MIME_TYPE,
    "image/tiff",
    "image/heif",
    "image/heic",
})

# Input MIME type → Pillow output format. Anything not listed becomes JPEG.
_OUTPUT_FORMATS = {
    "image/png": "PNG",
    "image/webp": "WEBP",
}

_EXTENSIONS = {"PNG": "png", "WEBP": "webp", "JPEG": "jpg"}


class UnsupportedImageType(ValueError):
    """Raised before any processing when the declared MIME type is not allowed."""

    def __init__(self, mime_type: Optional[str]) -> None:
        super().__init__(f"Unsupported image type: {mime_type!r}")
        self.mime_type = mime_type


class NormalizedImage(BaseModel):
    data: bytes
    mime_type: str
    extension: str


def is_allowed_mime_type(mime_type: Optional[str]) -> bool:
    return mime_type in ALLOWED_MIME_TYPES


def normalize_image(
    data: bytes,
    mime_type: str,
    max_dimension: Optional[int] = None,
    quality: Optional[int] = None,
    png_compression_level: Optional[int] = None,
) -> NormalizedImage:
    """
    Re-encode an uploaded image for storage.

    SVG is returned untouched. Raster images are shrunk to fit inside a
    ``max_dimension`` square (aspect ratio kept, never enlarged) and written
    as PNG (from PNG), WEBP (from WEBP) or JPEG (everything else).
    Decode and encode errors propagate to the caller.
    """
    if not is_allowed_mime_type(mime_type):
        raise UnsupportedImageType(mime_type)

    if mime_type == SVG_MIME_TYPE:
        return NormalizedImage(data=data, mime_type=SVG_MIME_TYPE, extension="svg")

    max_dimension = max_dimension or settings.image_max_dimension
    quality = quality or settings.image_quality
    if png_compression_level is None:
        png_compression_level = settings.png_compression_level

    output_format = _OUTPUT_FORMATS.get(mime_type, "JPEG")

    with Image.open(io.BytesIO(data)) as source:
        source.load()
        original_size = source.size
        image = source.copy()

    # thumbnail() only ever shrinks
    image.thumbnail((max_dimension, max_dimension))

    buffer = io.BytesIO()
    if output_format == "PNG":
        image.save(buffer, format="PNG", compress_level=png_compression_level)
    elif output_format == "WEBP":
        if image.mode not in ("RGB", "RGBA"):
            image = image.convert("RGBA")
        image.save(buffer, format="WEBP", quality=quality)
    else:
        if image.mode not in ("RGB", "L"):
            image = image.convert("RGB")
        image.save(buffer, format="JPEG", quality=quality)

    logger.debug(
        f"Normalized {mime_type} {original_size[0]}x{original_size[1]} -> "
        f"{output_format} {image.size[0]}x{image.size[1]}"
    )
    return NormalizedImage(
        data=buffer.getvalue(),
        mime_type=f"image/{output_format.lower()}",
        extension=_EXTENSIONS[output_format],
    )


def build_storage_key(secret_id: str, extension: str, timestamp_ms: Optional[int] = None) -> str:
    """Object key: public/<epoch ms>_<secret id>.<ext>"""
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"public/{timestamp_ms}_{secret_id}.{extension}"


async def store_secret_image(
    backend: BackendClient,
    secret_id: str,
    image: NormalizedImage,
    bucket: Optional[str] = None,
) -> str:
    """Upload the image, then record it in secret_images. Returns the storage key."""
    bucket = bucket or settings.storage_bucket
    key = build_storage_key(secret_id, image.extension)

    path = await backend.upload(bucket, key, image.data, image.mime_type)
    public_url = backend.public_url(bucket, path)

    await backend.insert("secret_images", [{
        "secret_id": secret_id,
        "urls": {"publicUrl": public_url},
        "created_at": datetime.now(timezone.utc).isoformat(),
    }])
    return key


async def list_secret_image_urls(backend: BackendClient, secret_id: str) -> list[str]:
    """Public URLs of every image attached to a secret."""
    rows = await backend.select("secret_images", filters={"secret_id": secret_id})
    images = [SecretImage(**row) for row in rows]
    return [img.public_url for img in images if img.public_url]
